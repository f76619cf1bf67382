"""Tabela de transições do caso de recuperação.

- TRANSITIONS[(estado_atual, evento)] = próximo_estado
- TERMINAL é absorvente (sem transições de saída)
- Validação pura: sem side effects
"""

from __future__ import annotations

from skiddly.domain.enums import CaseEvent, CaseState

TRANSITIONS: dict[tuple[CaseState, CaseEvent], CaseState] = {
    # === PENDING_FIRST_CALL → ... ===
    # Caso não qualificado permanece pendente, sem próxima ligação, até
    # nova atividade no carrinho requalificá-lo.
    (CaseState.PENDING_FIRST_CALL, CaseEvent.ELIGIBILITY_CONFIRMED): CaseState.AWAITING_RESULT,
    (CaseState.PENDING_FIRST_CALL, CaseEvent.ELIGIBILITY_REJECTED): CaseState.PENDING_FIRST_CALL,
    (CaseState.PENDING_FIRST_CALL, CaseEvent.ORDER_PLACED): CaseState.TERMINAL,
    (CaseState.PENDING_FIRST_CALL, CaseEvent.DO_NOT_CONTACT): CaseState.TERMINAL,
    # === AWAITING_RESULT → ... ===
    (CaseState.AWAITING_RESULT, CaseEvent.CALL_DISPATCHED): CaseState.AWAITING_RESULT,
    (CaseState.AWAITING_RESULT, CaseEvent.NEXT_CALL_COMPUTED): CaseState.AWAITING_RESULT,
    (CaseState.AWAITING_RESULT, CaseEvent.RETRYABLE_RESULT): CaseState.RETRY_SCHEDULED,
    (CaseState.AWAITING_RESULT, CaseEvent.TERMINAL_RESULT): CaseState.TERMINAL,
    (CaseState.AWAITING_RESULT, CaseEvent.RETRIES_EXHAUSTED): CaseState.TERMINAL,
    (CaseState.AWAITING_RESULT, CaseEvent.ORDER_PLACED): CaseState.TERMINAL,
    (CaseState.AWAITING_RESULT, CaseEvent.DO_NOT_CONTACT): CaseState.TERMINAL,
    # === RETRY_SCHEDULED → ... ===
    (CaseState.RETRY_SCHEDULED, CaseEvent.NEXT_CALL_COMPUTED): CaseState.AWAITING_RESULT,
    (CaseState.RETRY_SCHEDULED, CaseEvent.RETRIES_EXHAUSTED): CaseState.TERMINAL,
    (CaseState.RETRY_SCHEDULED, CaseEvent.ORDER_PLACED): CaseState.TERMINAL,
    (CaseState.RETRY_SCHEDULED, CaseEvent.DO_NOT_CONTACT): CaseState.TERMINAL,
    # === TERMINAL: sem transições de saída ===
}


def validate_transition(
    current_state: CaseState, event: CaseEvent
) -> tuple[bool, CaseState | None, str]:
    """Valida se uma transição é permitida.

    Retorna (True, próximo_estado, "") ou (False, None, motivo).
    Nunca lança exceção.
    """
    if current_state == CaseState.TERMINAL:
        return False, None, f"Terminal state {current_state} has no transitions"

    next_state = TRANSITIONS.get((current_state, event))
    if next_state is None:
        return False, None, f"No transition from {current_state} on event {event}"
    return True, next_state, ""
