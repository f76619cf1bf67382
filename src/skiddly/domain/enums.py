"""Enums de domínio do ciclo carrinho → caso → ligação."""

from __future__ import annotations

from enum import StrEnum


class CartStatus(StrEnum):
    """Status do carrinho. PURCHASED é terminal."""

    IN_CHECKOUT = "in_checkout"
    ABANDONED = "abandoned"
    PURCHASED = "purchased"


class CheckoutEventKind(StrEnum):
    """Tipos de evento de checkout vindos da loja."""

    CREATED = "created"
    UPDATED = "updated"


class CaseState(StrEnum):
    """Estados do caso de carrinho abandonado. TERMINAL é absorvente."""

    PENDING_FIRST_CALL = "pending_first_call"
    AWAITING_RESULT = "awaiting_result"
    RETRY_SCHEDULED = "retry_scheduled"
    TERMINAL = "terminal"


class CaseEvent(StrEnum):
    """Eventos que disparam transições do caso."""

    ELIGIBILITY_CONFIRMED = "eligibility_confirmed"
    ELIGIBILITY_REJECTED = "eligibility_rejected"
    CALL_DISPATCHED = "call_dispatched"
    RETRYABLE_RESULT = "retryable_result"
    NEXT_CALL_COMPUTED = "next_call_computed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    TERMINAL_RESULT = "terminal_result"
    ORDER_PLACED = "order_placed"
    DO_NOT_CONTACT = "do_not_contact"


class CallOutcome(StrEnum):
    """Classificação fechada do resultado de uma ligação."""

    COMPLETED_PURCHASE = "completed_purchase"
    CUSTOMER_BUSY = "customer_busy"
    NOT_INTERESTED = "not_interested"
    WANTS_DISCOUNT = "wants_discount"
    WANTS_FREE_SHIPPING = "wants_free_shipping"
    RESCHEDULE_REQUEST = "reschedule_request"
    ABUSIVE_LANGUAGE = "abusive_language"
    DO_NOT_CALL_REQUEST = "do_not_call_request"
    WILL_THINK_ABOUT_IT = "will_think_about_it"
    TECHNICAL_ISSUES = "technical_issues"
    WRONG_PERSON = "wrong_person"


class FinalAction(StrEnum):
    """Ação de negócio derivada do outcome."""

    ORDER_COMPLETED = "order_completed"
    MARKED_DNC = "marked_dnc"
    SMS_SENT_WITH_DISCOUNT_CODE = "sms_sent_with_discount_code"
    RESCHEDULE_CALL = "reschedule_call"
    SCHEDULED_RETRY = "scheduled_retry"
    NO_ACTION_REQUIRED = "no_action_required"


class AnalysisMethod(StrEnum):
    """Origem da análise: classificador completo ou fallback determinístico."""

    FULL = "full"
    FALLBACK = "fallback"


class EndedReasonCategory(StrEnum):
    """Categorias do motivo de encerramento reportado pelo provedor de voz."""

    CUSTOMER_ANSWERED = "customer_answered"
    CUSTOMER_BUSY = "customer_busy"
    CUSTOMER_NO_ANSWER = "customer_no_answer"
    ASSISTANT_ENDED = "assistant_ended"
    VOICEMAIL = "voicemail"
    TECHNICAL_ERROR = "technical_error"
    CONNECTIVITY_ERROR = "connectivity_error"
    CALL_LIMITS = "call_limits"
    CALL_FORWARDING = "call_forwarding"
    UNKNOWN = "unknown"


class ConditionType(StrEnum):
    """Tipos de condição de elegibilidade configuráveis por política."""

    CART_VALUE = "cart_value"
    PRODUCTS = "products"
    LOCATION = "location"
    CUSTOMER_TYPE = "customer_type"
    COUPON_CODE = "coupon_code"


class ConditionOperator(StrEnum):
    """Operadores suportados nas condições de elegibilidade."""

    GTE = ">="
    GT = ">"
    LTE = "<="
    LT = "<"
    EQ = "=="
    INCLUDES = "includes"
    EXCLUDES = "excludes"


class DelayUnit(StrEnum):
    """Unidade do intervalo de retry."""

    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
