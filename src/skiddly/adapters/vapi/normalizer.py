"""Normalização dos webhooks do VAPI.

Somente `end-of-call-report` gera CallResult; demais tipos de mensagem
(status-update, transcript, ...) são reconhecidos e ignorados.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from skiddly.domain.case import CallResult
from skiddly.domain.enums import EndedReasonCategory
from skiddly.domain.errors import ValidationError
from skiddly.observability.logging import get_logger

logger = get_logger(__name__)

END_OF_CALL_REPORT = "end-of-call-report"

_EXACT_REASONS: dict[str, EndedReasonCategory] = {
    "customer-ended-call": EndedReasonCategory.CUSTOMER_ANSWERED,
    "customer-busy": EndedReasonCategory.CUSTOMER_BUSY,
    "customer-did-not-answer": EndedReasonCategory.CUSTOMER_NO_ANSWER,
    "voicemail": EndedReasonCategory.VOICEMAIL,
    "database-error": EndedReasonCategory.TECHNICAL_ERROR,
    "assistant-not-found": EndedReasonCategory.TECHNICAL_ERROR,
    "assistant-not-valid": EndedReasonCategory.TECHNICAL_ERROR,
    "assistant-not-provided": EndedReasonCategory.TECHNICAL_ERROR,
    "assistant-join-timed-out": EndedReasonCategory.TECHNICAL_ERROR,
    "unknown-error": EndedReasonCategory.TECHNICAL_ERROR,
    "customer-did-not-give-microphone-permission": EndedReasonCategory.CONNECTIVITY_ERROR,
    "exceeded-max-duration": EndedReasonCategory.CALL_LIMITS,
    "silence-timed-out": EndedReasonCategory.CALL_LIMITS,
    "manually-canceled": EndedReasonCategory.CALL_LIMITS,
    "worker-shutdown": EndedReasonCategory.CALL_LIMITS,
    "assistant-forwarded-call": EndedReasonCategory.CALL_FORWARDING,
}

# Ordem importa: prefixos de forwarding/sip antes dos genéricos
_PREFIX_REASONS: tuple[tuple[str, EndedReasonCategory], ...] = (
    ("assistant-request-returned-forwarding", EndedReasonCategory.CALL_FORWARDING),
    ("call.forwarding", EndedReasonCategory.CALL_FORWARDING),
    ("call.ringing.hook", EndedReasonCategory.CALL_FORWARDING),
    ("call.in-progress.error-sip", EndedReasonCategory.CONNECTIVITY_ERROR),
    ("call.in-progress.error-assistant-did-not-receive-customer-audio",
     EndedReasonCategory.CONNECTIVITY_ERROR),
    ("twilio-", EndedReasonCategory.CONNECTIVITY_ERROR),
    ("vonage-", EndedReasonCategory.CONNECTIVITY_ERROR),
    ("phone-call-provider", EndedReasonCategory.CONNECTIVITY_ERROR),
    ("assistant-ended-call", EndedReasonCategory.ASSISTANT_ENDED),
    ("assistant-error", EndedReasonCategory.TECHNICAL_ERROR),
    ("assistant-request-failed", EndedReasonCategory.TECHNICAL_ERROR),
    ("assistant-request-returned", EndedReasonCategory.TECHNICAL_ERROR),
    ("pipeline-error", EndedReasonCategory.TECHNICAL_ERROR),
    ("call.in-progress.error", EndedReasonCategory.TECHNICAL_ERROR),
    ("call-start-error", EndedReasonCategory.TECHNICAL_ERROR),
)


def categorize_ended_reason(ended_reason: str | None) -> EndedReasonCategory:
    """Agrupa o endedReason do VAPI em categorias para logs e métricas."""
    if not ended_reason:
        return EndedReasonCategory.UNKNOWN
    reason = ended_reason.strip().lower()
    exact = _EXACT_REASONS.get(reason)
    if exact is not None:
        return exact
    for prefix, category in _PREFIX_REASONS:
        if reason.startswith(prefix):
            return category
    return EndedReasonCategory.UNKNOWN


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def message_type(payload: dict[str, Any]) -> str | None:
    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    return message.get("type")


def normalize_end_of_call_report(
    payload: dict[str, Any],
    *,
    received_at: datetime | None = None,
) -> CallResult | None:
    """Converte end-of-call-report em CallResult.

    Retorna None para outros tipos de mensagem.

    Raises:
        ValidationError: relatório sem id de ligação
    """
    if message_type(payload) != END_OF_CALL_REPORT:
        return None

    message: dict[str, Any] = payload["message"]
    call = message.get("call") or {}
    call_id = call.get("id") or message.get("callId")
    if not call_id:
        msg = "end-of-call-report sem call.id"
        raise ValidationError(msg)

    artifact = message.get("artifact") or {}
    analysis = message.get("analysis") or {}
    metadata = call.get("metadata") or {}
    ended_reason = message.get("endedReason") or call.get("endedReason")
    ended_at = (
        _parse_timestamp(message.get("endedAt"))
        or _parse_timestamp(call.get("endedAt"))
        or received_at
        or datetime.now(tz=UTC)
    )

    result = CallResult(
        call_id=str(call_id),
        case_id=metadata.get("caseId"),
        transcript=artifact.get("transcript") or message.get("transcript") or "",
        recording_url=artifact.get("recordingUrl") or message.get("recordingUrl"),
        ended_reason=ended_reason,
        started_at=_parse_timestamp(message.get("startedAt") or call.get("startedAt")),
        ended_at=ended_at,
        summary=analysis.get("summary") or message.get("summary"),
        cost=message.get("cost"),
    )
    logger.info(
        "vapi_end_of_call_report",
        extra={
            "provider_call_id": result.call_id,
            "case_id": result.case_id,
            "ended_reason_category": categorize_ended_reason(ended_reason).value,
            "has_transcript": bool(result.transcript),
        },
    )
    return result
