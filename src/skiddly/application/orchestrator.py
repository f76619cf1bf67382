"""Orquestrador do fluxo carrinho → caso → ligação → ação final.

Responsabilidades:
- Abrir casos para carrinhos abandonados elegíveis
- Disparar tentativas vencidas (claim atômico antes do disparo)
- Processar resultados de ligação de forma idempotente
- Aplicar a ação final e as transições do caso

Toda escrita de caso é compare-and-set com releitura limitada.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from skiddly.ai.transcript_analyzer import TranscriptAnalyzer, build_fallback_analysis
from skiddly.application.action_mapper import (
    is_terminal_action,
    map_to_final_action,
    requires_notification,
)
from skiddly.application.cart_tracker import (
    CartLifecycleTracker,
    is_abandoned,
    is_customer_active,
)
from skiddly.application.eligibility import is_reachable_phone
from skiddly.application.scheduler import CallScheduler
from skiddly.domain.analysis import AnalysisResult
from skiddly.domain.cart import Cart, CheckoutEvent, OrderEvent
from skiddly.domain.case import AbandonedCartCase, Call, CallResult
from skiddly.domain.case_states import validate_transition
from skiddly.domain.enums import (
    CartStatus,
    CaseEvent,
    CaseState,
    CheckoutEventKind,
    FinalAction,
)
from skiddly.domain.errors import CallDispatchError, SchedulingConflictError
from skiddly.domain.policy import PolicyRegistry
from skiddly.domain.protocols.call_store import CallStoreProtocol
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.domain.protocols.outreach import CallDispatcherProtocol, NotifierProtocol
from skiddly.observability.logging import get_logger
from skiddly.observability.middleware import correlation_scope, get_correlation_id
from skiddly.utils.ids import new_call_id, new_case_id, new_correlation_id

logger: logging.Logger = get_logger(__name__)

MAX_CAS_ATTEMPTS = 3
DISPATCH_FAILED_REASON = "dispatch-failed"

CaseMutation = Callable[[AbandonedCartCase], dict[str, Any] | None]


def call_variables(cart: Cart, phone: str) -> dict[str, str]:
    """Valores de template do assistente montados a partir do carrinho."""
    return {
        "CustomerFirstName": cart.contact.first_name or "",
        "ProductNames": ", ".join(item.title for item in cart.line_items),
        "CartValue": str(cart.total_price),
        "Currency": cart.currency,
        "Last4Digits": phone[-4:],
    }


def _advance(case: AbandonedCartCase, event: CaseEvent) -> CaseState:
    """Próximo estado pela tabela; transição inválida mantém o estado atual."""
    allowed, next_state, reason = validate_transition(case.state, event)
    if not allowed or next_state is None:
        logger.warning(
            "invalid_case_transition",
            extra={"case_id": case.case_id, "state": case.state.value, "reason": reason},
        )
        return case.state
    return next_state


def _awaits_attempt(case: AbandonedCartCase, attempt_number: int) -> bool:
    """Caso em AWAITING_RESULT, sem próxima ligação, parado nessa tentativa."""
    return (
        case.state == CaseState.AWAITING_RESULT
        and case.next_call_time is None
        and case.total_attempts == attempt_number
    )


class CallOrchestrator:
    """Coordena tracker, scheduler, analyzer e provedores externos."""

    def __init__(
        self,
        *,
        tracker: CartLifecycleTracker,
        scheduler: CallScheduler,
        analyzer: TranscriptAnalyzer,
        case_store: CaseStoreProtocol,
        call_store: CallStoreProtocol,
        dispatcher: CallDispatcherProtocol,
        notifier: NotifierProtocol,
        policies: PolicyRegistry,
    ) -> None:
        self._tracker = tracker
        self._scheduler = scheduler
        self._analyzer = analyzer
        self._cases = case_store
        self._calls = call_store
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._policies = policies

    # ------------------------------------------------------------------
    # Eventos da loja
    # ------------------------------------------------------------------

    def handle_checkout_event(self, event: CheckoutEvent, kind: CheckoutEventKind) -> Cart:
        return self._tracker.record_checkout_event(event, kind)

    def handle_order_event(self, event: OrderEvent, now: datetime) -> Cart | None:
        """Registra a compra e encerra o caso aberto do carrinho (nunca reabre)."""
        cart = self._tracker.record_order_event(event)
        if cart is None:
            return None
        case = self._cases.get_by_cart(cart.tenant_id, cart.checkout_id)
        if case is not None and not case.is_terminal:
            self._update_case(
                case.case_id,
                now,
                lambda c: {
                    "state": _advance(c, CaseEvent.ORDER_PLACED),
                    "next_call_time": None,
                    "final_action": FinalAction.ORDER_COMPLETED,
                    "terminal_reason": "order_placed",
                },
            )
        return cart

    # ------------------------------------------------------------------
    # Abertura de casos
    # ------------------------------------------------------------------

    def open_case(self, cart: Cart, now: datetime) -> AbandonedCartCase:
        """Avalia elegibilidade e cria (ou requalifica) o caso do carrinho.

        Caso não qualificado fica pendente, sem próxima ligação, guardando o motivo.
        """
        policy = self._policies.for_tenant(cart.tenant_id)
        existing = self._cases.get_by_cart(cart.tenant_id, cart.checkout_id)
        if existing is not None and (
            existing.qualified or existing.is_terminal or existing.total_attempts > 0
        ):
            return existing

        eligibility = self._scheduler.evaluate_eligibility(cart, existing, policy)
        abandoned_at = cart.abandoned_at or now

        if existing is None:
            case = AbandonedCartCase(
                case_id=new_case_id(),
                tenant_id=cart.tenant_id,
                checkout_id=cart.checkout_id,
                agent_id=policy.agent_id,
                qualified=eligibility.qualified,
                qualification_reason=eligibility.reason,
                correlation_id=new_correlation_id("case", cart.checkout_id, now=now),
                created_at=now,
                updated_at=now,
            )
            if eligibility.qualified:
                case = case.model_copy(
                    update={
                        "state": _advance(case, CaseEvent.ELIGIBILITY_CONFIRMED),
                        "next_call_time": self._scheduler.schedule_first(
                            case, abandoned_at, policy.wait_duration, policy
                        ),
                    }
                )
            if not self._cases.create(case):
                # Outro scanner criou o caso primeiro
                return self._cases.get_by_cart(cart.tenant_id, cart.checkout_id) or case
            logger.info(
                "case_opened",
                extra={
                    "case_id": case.case_id,
                    "tenant_id": case.tenant_id,
                    "checkout_id": case.checkout_id,
                    "qualified": case.qualified,
                    "qualification_reason": case.qualification_reason,
                    "correlation_id": case.correlation_id,
                },
            )
            return case

        if not eligibility.qualified:
            updated = self._update_case(
                existing.case_id,
                now,
                lambda c: {
                    "state": _advance(c, CaseEvent.ELIGIBILITY_REJECTED),
                    "qualification_reason": eligibility.reason,
                },
            )
            return updated or existing

        updated = self._update_case(
            existing.case_id,
            now,
            lambda c: {
                "state": _advance(c, CaseEvent.ELIGIBILITY_CONFIRMED),
                "qualified": True,
                "qualification_reason": eligibility.reason,
                "next_call_time": self._scheduler.schedule_first(
                    c, abandoned_at, policy.wait_duration, policy
                ),
            },
        )
        logger.info(
            "case_requalified",
            extra={"case_id": existing.case_id, "correlation_id": existing.correlation_id},
        )
        return updated or existing

    def scan_abandoned_carts(self, now: datetime) -> list[AbandonedCartCase]:
        """Avalia abandono de todos os carrinhos abertos e abre casos.

        Falha em um carrinho é logada e não bloqueia os demais.
        """
        opened: list[AbandonedCartCase] = []
        for cart in self._tracker.open_carts():
            policy = self._policies.for_tenant(cart.tenant_id)
            # Carrinho já ABANDONED volta ao scan para requalificação
            if cart.status != CartStatus.ABANDONED and not is_abandoned(
                cart, now, policy.inactivity_threshold
            ):
                continue
            try:
                existing = self._cases.get_by_cart(cart.tenant_id, cart.checkout_id)
                if existing is not None and (
                    existing.qualified
                    or existing.is_terminal
                    or cart.last_activity_at <= existing.updated_at
                ):
                    continue
                marked = self._tracker.mark_abandoned(cart, now)
                opened.append(self.open_case(marked, now))
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "abandoned_cart_scan_failed",
                    extra={
                        "tenant_id": cart.tenant_id,
                        "checkout_id": cart.checkout_id,
                        "error": type(exc).__name__,
                    },
                )
        logger.info("abandoned_cart_scan_finished", extra={"cases": len(opened)})
        return opened

    # ------------------------------------------------------------------
    # Disparo de tentativas
    # ------------------------------------------------------------------

    async def dispatch_due(self, now: datetime) -> list[Call]:
        """Dispara todas as tentativas vencidas.

        Conflito de claim significa que outro scanner já pegou o caso.
        """
        dispatched: list[Call] = []
        for case in list(self._scheduler.due_attempts(now)):
            try:
                with correlation_scope(case.correlation_id or get_correlation_id()):
                    call = await self._dispatch_case(case, now)
            except SchedulingConflictError:
                continue
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "case_dispatch_failed",
                    extra={
                        "case_id": case.case_id,
                        "correlation_id": case.correlation_id,
                        "error": type(exc).__name__,
                    },
                )
                continue
            if call is not None:
                dispatched.append(call)
        return dispatched

    async def _dispatch_case(self, snapshot: AbandonedCartCase, now: datetime) -> Call | None:
        case = self._cases.get(snapshot.case_id)
        if (
            case is None
            or case.is_terminal
            or case.do_not_contact
            or case.next_call_time is None
            or case.next_call_time > now
        ):
            return None

        cart = self._tracker.get(case.tenant_id, case.checkout_id)
        if cart is None:
            self._close(case, now, final_action=None, reason="cart_not_found")
            return None
        if cart.is_purchased:
            self._update_case(
                case.case_id,
                now,
                lambda c: {
                    "state": _advance(c, CaseEvent.ORDER_PLACED),
                    "next_call_time": None,
                    "final_action": FinalAction.ORDER_COMPLETED,
                    "terminal_reason": "order_placed",
                },
            )
            return None

        policy = self._policies.for_tenant(case.tenant_id)
        if is_customer_active(cart, now, policy.inactivity_threshold):
            # Cliente voltou ao checkout: adia a ligação
            resume_at = self._scheduler.schedule_first(
                case,
                cart.last_activity_at + policy.inactivity_threshold,
                policy.wait_duration,
                policy,
            )
            self._update_case(
                case.case_id,
                now,
                lambda c: {
                    "state": _advance(c, CaseEvent.NEXT_CALL_COMPUTED),
                    "next_call_time": resume_at,
                },
            )
            logger.info(
                "dispatch_deferred_customer_active",
                extra={"case_id": case.case_id, "correlation_id": case.correlation_id},
            )
            return None

        phone = cart.phone_number
        if not is_reachable_phone(phone):
            self._close(case, now, final_action=None, reason="no_reachable_phone")
            return None
        if self._cases.is_phone_do_not_contact(case.tenant_id, phone):
            self._close(
                case, now, final_action=FinalAction.MARKED_DNC, reason="phone_do_not_contact"
            )
            return None

        claimed = self._scheduler.claim_attempt(case, now)
        call = Call(
            call_id=new_call_id(),
            case_id=claimed.case_id,
            attempt_number=claimed.total_attempts,
            dispatched_at=now,
        )
        try:
            self._calls.create(call)
        except Exception:
            self._release_claim(case, claimed, now)
            raise

        system_prompt = policy.prompt_template.render() if policy.prompt_template else None
        try:
            provider_call_id = await self._dispatcher.dispatch_call(
                claimed.case_id,
                phone,
                claimed.agent_id or policy.agent_id,
                system_prompt=system_prompt,
                variables=call_variables(cart, phone),
            )
        except CallDispatchError as exc:
            logger.error(
                "call_dispatch_failed",
                extra={
                    "case_id": claimed.case_id,
                    "call_id": call.call_id,
                    "status_code": exc.status_code,
                    "correlation_id": claimed.correlation_id,
                },
            )
            self._record_dispatch_failure(call, now)
            return None

        self._calls.attach_provider_id(call.call_id, provider_call_id)
        call = call.model_copy(update={"provider_call_id": provider_call_id})
        logger.info(
            "call_dispatched",
            extra={
                "case_id": claimed.case_id,
                "call_id": call.call_id,
                "attempt": call.attempt_number,
                "correlation_id": claimed.correlation_id,
            },
        )
        return call

    def _release_claim(
        self,
        snapshot: AbandonedCartCase,
        claimed: AbandonedCartCase,
        now: datetime,
    ) -> None:
        """Devolve a tentativa reservada quando a Call não chegou a ser gravada."""

        released = False

        def mutate(case: AbandonedCartCase) -> dict[str, Any] | None:
            nonlocal released
            released = case.version == claimed.version
            if not released:
                return None
            return {
                "state": _advance(case, CaseEvent.NEXT_CALL_COMPUTED),
                "total_attempts": snapshot.total_attempts,
                "next_call_time": snapshot.next_call_time,
                "last_attempt_at": snapshot.last_attempt_at,
            }

        try:
            self._update_case(claimed.case_id, now, mutate)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "attempt_release_failed",
                extra={"case_id": claimed.case_id, "error": type(exc).__name__},
            )
            return
        logger.warning(
            "attempt_released",
            extra={
                "case_id": claimed.case_id,
                "attempt": claimed.total_attempts,
                "released": released,
            },
        )

    def _record_dispatch_failure(self, call: Call, now: datetime) -> None:
        """Falha de disparo segue a política de retry, fora da tabela de outcomes.

        O caso é reagendado antes de a Call receber o outcome.
        """
        analysis = build_fallback_analysis(DISPATCH_FAILED_REASON)
        case = self._update_case(
            call.case_id,
            now,
            lambda c: self._retry_fields(c, FinalAction.SCHEDULED_RETRY, analysis, now, now),
        )
        self._calls.record_outcome(
            call.model_copy(
                update={
                    "ended_at": now,
                    "end_reason": DISPATCH_FAILED_REASON,
                    "outcome": analysis.outcome,
                    "final_action": FinalAction.SCHEDULED_RETRY,
                    "analysis": analysis,
                }
            )
        )
        logger.info(
            "dispatch_failure_recorded",
            extra={
                "call_id": call.call_id,
                "case_id": call.case_id,
                "case_state": case.state.value if case else None,
                "next_call_time": case.next_call_time.isoformat()
                if case and case.next_call_time
                else None,
            },
        )

    # ------------------------------------------------------------------
    # Resultado de ligação
    # ------------------------------------------------------------------

    async def handle_call_result(
        self,
        result: CallResult,
        now: datetime | None = None,
    ) -> Call | None:
        """Processa o fim de uma ligação. Entrega duplicada é no-op.

        Se o outcome já foi gravado mas o caso ainda espera essa tentativa
        (escrita do caso falhou na entrega anterior), a atualização do caso
        é concluída a partir da Call gravada.

        Raises:
            UnreachableOutcomeError: outcome sem ação (bug de programação)
        """
        call = self._calls.get(result.call_id) or self._calls.get_by_provider_id(result.call_id)
        if call is None:
            logger.warning("call_result_unknown_call", extra={"case_id": result.case_id})
            return None
        if call.has_outcome:
            logger.info(
                "call_result_duplicate",
                extra={"call_id": call.call_id, "case_id": call.case_id},
            )
            await self._resume_case_update(call, now or result.ended_at)
            return call

        analysis = await self._analyzer.analyze(
            result.transcript,
            result.ended_reason,
            result.ended_at,
            recording_url=result.recording_url,
        )
        return await self._finalize(call, result, analysis, now or result.ended_at)

    async def _finalize(
        self,
        call: Call,
        result: CallResult,
        analysis: AnalysisResult,
        now: datetime,
    ) -> Call:
        action = map_to_final_action(analysis.outcome)
        recorded = call.model_copy(
            update={
                "started_at": result.started_at,
                "ended_at": result.ended_at,
                "duration_seconds": result.duration_seconds,
                "transcript": result.transcript or None,
                "recording_url": result.recording_url,
                "end_reason": result.ended_reason,
                "outcome": analysis.outcome,
                "final_action": action,
                "analysis": analysis,
            }
        )
        if not self._calls.record_outcome(recorded):
            logger.info("call_outcome_already_recorded", extra={"call_id": call.call_id})
            stored = self._calls.get(call.call_id) or recorded
            await self._resume_case_update(stored, now)
            return stored

        await self._settle_case(recorded, now)
        return recorded

    async def _settle_case(self, call: Call, now: datetime) -> AbandonedCartCase | None:
        """Aplica ao caso a ação final já gravada na Call e notifica."""
        if call.outcome is None or call.final_action is None or call.analysis is None:
            return None
        action = call.final_action
        case, applied = self._apply_action(call, action, call.analysis, now)
        logger.info(
            "call_result_processed",
            extra={
                "call_id": call.call_id,
                "case_id": call.case_id,
                "outcome": call.outcome.value,
                "final_action": action.value,
                "analysis_method": call.analysis.analysis_method.value,
                "case_applied": applied,
                "case_state": case.state.value if case else None,
                "correlation_id": case.correlation_id if case else None,
            },
        )

        if applied and case is not None and requires_notification(action):
            await self._notify(case, action, call)
        return case

    async def _resume_case_update(self, call: Call, now: datetime) -> None:
        case = self._cases.get(call.case_id)
        if case is None or not _awaits_attempt(case, call.attempt_number):
            return
        logger.warning(
            "case_update_resumed",
            extra={"call_id": call.call_id, "case_id": call.case_id},
        )
        await self._settle_case(call, now)

    def _apply_action(
        self,
        call: Call,
        action: FinalAction,
        analysis: AnalysisResult,
        now: datetime,
    ) -> tuple[AbandonedCartCase | None, bool]:
        """Atualiza o caso se ele ainda espera a tentativa da Call.

        Retorna (caso, aplicado).
        """
        ended_at = call.ended_at or now
        applied = False

        def mutate(case: AbandonedCartCase) -> dict[str, Any] | None:
            nonlocal applied
            applied = _awaits_attempt(case, call.attempt_number)
            if not applied:
                return None
            if action == FinalAction.MARKED_DNC:
                return {
                    "state": _advance(case, CaseEvent.DO_NOT_CONTACT),
                    "do_not_contact": True,
                    "next_call_time": None,
                    "final_action": action,
                    "terminal_reason": "customer_opted_out",
                }
            if is_terminal_action(action):
                return {
                    "state": _advance(case, CaseEvent.TERMINAL_RESULT),
                    "next_call_time": None,
                    "final_action": action,
                    "terminal_reason": action.value,
                }
            return self._retry_fields(case, action, analysis, ended_at, now)

        case = self._update_case(call.case_id, now, mutate)
        if action == FinalAction.MARKED_DNC and case is not None:
            cart = self._tracker.get(case.tenant_id, case.checkout_id)
            if cart is not None and cart.phone_number:
                self._cases.mark_phone_do_not_contact(case.tenant_id, cart.phone_number)
        return case, applied

    def _retry_fields(
        self,
        case: AbandonedCartCase,
        action: FinalAction,
        analysis: AnalysisResult,
        ended_at: datetime,
        now: datetime,
    ) -> dict[str, Any]:
        policy = self._policies.for_tenant(case.tenant_id)
        cart = self._tracker.get(case.tenant_id, case.checkout_id)
        retry_case = case.model_copy(update={"state": _advance(case, CaseEvent.RETRYABLE_RESULT)})

        next_call = self._scheduler.schedule_retry(
            retry_case,
            ended_at,
            policy.retry_interval_for(case.total_attempts + 1),
            policy.max_retries,
            policy,
            analysis=analysis,
            now=now,
            customer_phone=cart.phone_number if cart else None,
        )
        if next_call is None:
            return {
                "state": _advance(retry_case, CaseEvent.RETRIES_EXHAUSTED),
                "next_call_time": None,
                "final_action": action,
                "terminal_reason": "max_retries_reached",
            }
        return {
            "state": _advance(retry_case, CaseEvent.NEXT_CALL_COMPUTED),
            "next_call_time": next_call,
            "final_action": action,
        }

    async def _notify(self, case: AbandonedCartCase, action: FinalAction, call: Call) -> None:
        context: dict[str, Any] = {
            "tenant_id": case.tenant_id,
            "checkout_id": case.checkout_id,
            "call_id": call.call_id,
            "correlation_id": case.correlation_id,
        }
        if call.analysis is not None:
            context["discount_requested"] = call.analysis.structured_data.discount_requested
        try:
            await self._notifier.notify(case.case_id, action, context)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "final_action_notification_failed",
                extra={
                    "case_id": case.case_id,
                    "final_action": action.value,
                    "error": type(exc).__name__,
                    "correlation_id": case.correlation_id,
                },
            )

    # ------------------------------------------------------------------
    # Cancelamento e consulta
    # ------------------------------------------------------------------

    def mark_do_not_contact(
        self,
        case_id: str,
        reason: str,
        now: datetime,
    ) -> AbandonedCartCase | None:
        """Cancela o caso; nenhuma ligação nova a partir do próximo scan."""
        case = self._update_case(
            case_id,
            now,
            lambda c: {
                "state": _advance(c, CaseEvent.DO_NOT_CONTACT),
                "do_not_contact": True,
                "next_call_time": None,
                "final_action": FinalAction.MARKED_DNC,
                "terminal_reason": reason,
            },
        )
        if case is not None and case.do_not_contact:
            cart = self._tracker.get(case.tenant_id, case.checkout_id)
            if cart is not None and cart.phone_number:
                self._cases.mark_phone_do_not_contact(case.tenant_id, cart.phone_number)
        return case

    def describe_case(self, case_id: str) -> Mapping[str, Any] | None:
        """Visão somente leitura do caso e das ligações."""
        case = self._cases.get(case_id)
        if case is None:
            return None
        return {
            "case": case.model_dump(mode="json"),
            "calls": [
                call.model_dump(mode="json", exclude={"transcript"})
                for call in self._calls.list_for_case(case_id)
            ],
        }

    # ------------------------------------------------------------------
    # Escrita de caso (compare-and-set)
    # ------------------------------------------------------------------

    def _close(
        self,
        case: AbandonedCartCase,
        now: datetime,
        *,
        final_action: FinalAction | None,
        reason: str,
    ) -> AbandonedCartCase | None:
        event = (
            CaseEvent.DO_NOT_CONTACT
            if final_action == FinalAction.MARKED_DNC
            else CaseEvent.RETRIES_EXHAUSTED
        )
        logger.info(
            "case_closed",
            extra={
                "case_id": case.case_id,
                "reason": reason,
                "correlation_id": case.correlation_id,
            },
        )
        return self._update_case(
            case.case_id,
            now,
            lambda c: {
                "state": _advance(c, event),
                "next_call_time": None,
                "do_not_contact": c.do_not_contact or final_action == FinalAction.MARKED_DNC,
                "final_action": final_action or c.final_action,
                "terminal_reason": reason,
            },
        )

    def _update_case(
        self,
        case_id: str,
        now: datetime,
        mutate: CaseMutation,
    ) -> AbandonedCartCase | None:
        """Relê o caso e aplica `mutate` com compare-and-set.

        Caso terminal não muda. Raises SchedulingConflictError após
        MAX_CAS_ATTEMPTS conflitos seguidos.
        """
        expected_version = -1
        for _ in range(MAX_CAS_ATTEMPTS):
            case = self._cases.get(case_id)
            if case is None:
                logger.warning("case_not_found", extra={"case_id": case_id})
                return None
            if case.is_terminal:
                logger.info("case_already_terminal", extra={"case_id": case_id})
                return case

            fields = mutate(case)
            if not fields:
                return case
            expected_version = case.version
            updated = case.model_copy(
                update={**fields, "version": case.version + 1, "updated_at": now}
            )
            if self._cases.compare_and_set(updated, expected_version=expected_version):
                return updated
            logger.info(
                "case_update_conflict_retry",
                extra={"case_id": case_id, "expected_version": expected_version},
            )
        raise SchedulingConflictError(case_id, expected_version)
