"""Mapeamento total CallOutcome → FinalAction."""

from __future__ import annotations

from skiddly.domain.enums import CallOutcome, FinalAction
from skiddly.domain.errors import UnreachableOutcomeError

OUTCOME_ACTIONS: dict[CallOutcome, FinalAction] = {
    CallOutcome.COMPLETED_PURCHASE: FinalAction.ORDER_COMPLETED,
    CallOutcome.DO_NOT_CALL_REQUEST: FinalAction.MARKED_DNC,
    CallOutcome.ABUSIVE_LANGUAGE: FinalAction.MARKED_DNC,
    CallOutcome.RESCHEDULE_REQUEST: FinalAction.RESCHEDULE_CALL,
    CallOutcome.WANTS_DISCOUNT: FinalAction.SMS_SENT_WITH_DISCOUNT_CODE,
    CallOutcome.WANTS_FREE_SHIPPING: FinalAction.SMS_SENT_WITH_DISCOUNT_CODE,
    CallOutcome.CUSTOMER_BUSY: FinalAction.SCHEDULED_RETRY,
    # Encerra o caso sem bloquear o telefone
    CallOutcome.NOT_INTERESTED: FinalAction.NO_ACTION_REQUIRED,
    CallOutcome.WILL_THINK_ABOUT_IT: FinalAction.NO_ACTION_REQUIRED,
    CallOutcome.TECHNICAL_ISSUES: FinalAction.NO_ACTION_REQUIRED,
    CallOutcome.WRONG_PERSON: FinalAction.NO_ACTION_REQUIRED,
}

TERMINAL_ACTIONS: frozenset[FinalAction] = frozenset(
    {
        FinalAction.ORDER_COMPLETED,
        FinalAction.MARKED_DNC,
        FinalAction.NO_ACTION_REQUIRED,
    }
)

# Ações com efeito colateral fora do sistema (notificação)
NOTIFY_ACTIONS: frozenset[FinalAction] = frozenset(
    {
        FinalAction.SMS_SENT_WITH_DISCOUNT_CODE,
        FinalAction.MARKED_DNC,
    }
)

_unmapped = set(CallOutcome) - set(OUTCOME_ACTIONS)
if _unmapped:
    raise UnreachableOutcomeError(f"Outcomes sem ação mapeada: {sorted(_unmapped)}")


def map_to_final_action(outcome: CallOutcome) -> FinalAction:
    """Retorna a ação final do outcome.

    Raises:
        UnreachableOutcomeError: outcome fora da tabela (bug de programação)
    """
    try:
        return OUTCOME_ACTIONS[outcome]
    except KeyError as exc:
        raise UnreachableOutcomeError(f"Outcome sem ação mapeada: {outcome!r}") from exc


def is_terminal_action(action: FinalAction) -> bool:
    """Ações que encerram o caso."""
    return action in TERMINAL_ACTIONS


def requires_notification(action: FinalAction) -> bool:
    return action in NOTIFY_ACTIONS
