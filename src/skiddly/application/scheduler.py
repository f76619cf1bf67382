"""Agendamento de ligações: elegibilidade, primeira ligação, retries e claim.

Todo horário devolvido passa por clip_to_business_hours. A única escrita
de tentativas/próximo horário é o compare-and-set do CaseStore.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta

from skiddly.application.eligibility import check_conditions, is_reachable_phone
from skiddly.application.reschedule import resolve_reschedule_time
from skiddly.domain.analysis import AnalysisResult
from skiddly.domain.business_hours import clip_to_business_hours
from skiddly.domain.cart import Cart
from skiddly.domain.case import AbandonedCartCase, EligibilityResult
from skiddly.domain.case_states import validate_transition
from skiddly.domain.enums import CartStatus, CaseEvent
from skiddly.domain.errors import SchedulingConflictError
from skiddly.domain.policy import CallPolicy
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class CallScheduler:
    """Decide se e quando ligar, para uma política de tenant."""

    def __init__(self, case_store: CaseStoreProtocol) -> None:
        self._cases = case_store

    def evaluate_eligibility(
        self,
        cart: Cart,
        existing_case: AbandonedCartCase | None,
        policy: CallPolicy,
    ) -> EligibilityResult:
        """Avalia todas as regras e coleta todos os motivos de falha."""
        reasons: list[str] = []
        phone = cart.phone_number

        if cart.status == CartStatus.PURCHASED:
            reasons.append("cart already purchased")
        if not is_reachable_phone(phone):
            reasons.append("no reachable phone number")
        elif self._cases.is_phone_do_not_contact(cart.tenant_id, phone):
            reasons.append("phone number marked do-not-contact")
        if existing_case is not None and existing_case.do_not_contact:
            reasons.append("case marked do-not-contact")
        if existing_case is not None and existing_case.is_terminal:
            reasons.append("case already closed")
        if cart.total_price < policy.min_cart_value:
            reasons.append(
                f"cart total {cart.total_price} below minimum {policy.min_cart_value}"
            )
        reasons.extend(check_conditions(cart, policy.conditions))

        result = EligibilityResult(qualified=not reasons, reasons=tuple(reasons))
        logger.info(
            "eligibility_evaluated",
            extra={
                "tenant_id": cart.tenant_id,
                "checkout_id": cart.checkout_id,
                "qualified": result.qualified,
                "reasons": list(result.reasons),
            },
        )
        return result

    def schedule_first(
        self,
        case: AbandonedCartCase,
        abandoned_at: datetime,
        wait_duration: timedelta,
        policy: CallPolicy,
    ) -> datetime:
        """Primeira ligação: abandono + espera, recortado para horário comercial."""
        next_call = clip_to_business_hours(abandoned_at + wait_duration, policy.business_hours)
        logger.info(
            "first_call_scheduled",
            extra={"case_id": case.case_id, "next_call_time": next_call.isoformat()},
        )
        return next_call

    def schedule_retry(
        self,
        case: AbandonedCartCase,
        last_attempt_time: datetime,
        retry_interval: timedelta,
        max_retries: int,
        policy: CallPolicy,
        *,
        analysis: AnalysisResult | None = None,
        now: datetime | None = None,
        customer_phone: str | None = None,
    ) -> datetime | None:
        """Próxima tentativa ou None (tentativas esgotadas, DNC ou terminal).

        Pedido de reagendamento resolvido e futuro tem precedência sobre o
        intervalo de retry; ambos passam pelo recorte comercial.
        """
        if case.do_not_contact or case.is_terminal:
            return None
        if case.total_attempts >= max_retries:
            logger.info(
                "retries_exhausted",
                extra={"case_id": case.case_id, "total_attempts": case.total_attempts},
            )
            return None

        reference = now or last_attempt_time
        candidate: datetime | None = None
        if analysis is not None:
            candidate = resolve_reschedule_time(
                analysis.structured_data,
                now=reference,
                default_timezone=policy.business_hours.timezone,
                customer_phone=customer_phone,
            )
            if candidate is not None:
                logger.info("customer_reschedule_honored", extra={"case_id": case.case_id})

        if candidate is None:
            candidate = last_attempt_time + retry_interval

        next_call = clip_to_business_hours(candidate, policy.business_hours)
        logger.info(
            "retry_scheduled",
            extra={
                "case_id": case.case_id,
                "attempt": case.total_attempts + 1,
                "next_call_time": next_call.isoformat(),
            },
        )
        return next_call

    def due_attempts(self, now: datetime) -> Iterator[AbandonedCartCase]:
        """Casos prontos para ligar (lazy)."""
        for case in self._cases.list_due(now):
            if case.do_not_contact or case.is_terminal or case.next_call_time is None:
                continue
            if case.next_call_time <= now:
                yield case

    def claim_attempt(self, case: AbandonedCartCase, now: datetime) -> AbandonedCartCase:
        """Reserva atomicamente a próxima tentativa do caso.

        Incrementa total_attempts e limpa next_call_time com compare-and-set.

        Raises:
            SchedulingConflictError: outro escritor já alterou o caso
        """
        allowed, next_state, reason = validate_transition(case.state, CaseEvent.CALL_DISPATCHED)
        if not allowed or next_state is None:
            logger.warning(
                "claim_rejected",
                extra={"case_id": case.case_id, "state": case.state.value, "reason": reason},
            )
            raise SchedulingConflictError(case.case_id, case.version)

        claimed = case.model_copy(
            update={
                "state": next_state,
                "total_attempts": case.total_attempts + 1,
                "next_call_time": None,
                "last_attempt_at": now,
                "version": case.version + 1,
                "updated_at": now,
            }
        )
        if not self._cases.compare_and_set(claimed, expected_version=case.version):
            logger.info(
                "claim_conflict",
                extra={"case_id": case.case_id, "expected_version": case.version},
            )
            raise SchedulingConflictError(case.case_id, case.version)

        logger.info(
            "attempt_claimed",
            extra={"case_id": case.case_id, "attempt": claimed.total_attempts},
        )
        return claimed
