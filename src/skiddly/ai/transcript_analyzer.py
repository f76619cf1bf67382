"""Análise de transcrições de ligação (classificador + fallback determinístico).

`analyze` nunca lança: qualquer falha do classificador vira fallback pelo
motivo de encerramento, com confiança baixa e método FALLBACK.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError as PydanticValidationError

from skiddly.ai.contracts.classification import ClassificationRequest
from skiddly.ai.reschedule_extractor import extract_reschedule
from skiddly.domain.analysis import AnalysisResult, StructuredCallData
from skiddly.domain.enums import AnalysisMethod, CallOutcome
from skiddly.domain.errors import ClassificationUnavailableError
from skiddly.domain.protocols.outreach import (
    ClassificationProviderProtocol,
    TranscriberProtocol,
)
from skiddly.observability.logging import get_logger, log_fallback

logger: logging.Logger = get_logger(__name__)

FALLBACK_CONFIDENCE = 0.3
DEFAULT_CONFIDENCE = 0.5

# Motivos sem contato efetivo caem em CUSTOMER_BUSY para seguirem a política de retry
_ENDED_REASON_OUTCOMES: dict[str, CallOutcome] = {
    "customer-ended-call": CallOutcome.NOT_INTERESTED,
    "customer-busy": CallOutcome.CUSTOMER_BUSY,
    "customer-did-not-answer": CallOutcome.CUSTOMER_BUSY,
    "no-answer": CallOutcome.CUSTOMER_BUSY,
    "voicemail": CallOutcome.CUSTOMER_BUSY,
}


def _normalize_reason(ended_reason: str | None) -> str:
    return (ended_reason or "").strip().lower().replace("_", "-").replace(" ", "-")


def infer_outcome_from_ended_reason(ended_reason: str | None) -> CallOutcome:
    """Lookup fixo; motivo desconhecido ou vazio vira TECHNICAL_ISSUES."""
    return _ENDED_REASON_OUTCOMES.get(_normalize_reason(ended_reason), CallOutcome.TECHNICAL_ISSUES)


def format_as_of(as_of: datetime, timezone: str) -> str:
    """Formata o instante de referência no fuso do tenant."""
    local = as_of.astimezone(ZoneInfo(timezone))
    return local.strftime("%A, %Y-%m-%d %H:%M %Z")


def build_fallback_analysis(
    ended_reason: str | None,
    as_of: str | None = None,
) -> AnalysisResult:
    """Resultado determinístico quando o classificador não está disponível."""
    reason = ended_reason or "unknown"
    return AnalysisResult(
        summary=(
            f"Call ended with reason: {reason}. "
            "Analysis could not be completed, outcome inferred from the end reason."
        ),
        outcome=infer_outcome_from_ended_reason(ended_reason),
        structured_data=StructuredCallData(),
        confidence=FALLBACK_CONFIDENCE,
        analysis_method=AnalysisMethod.FALLBACK,
        as_of=as_of,
    )


def _coerce_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def _read_outcome(raw: Mapping[str, Any]) -> CallOutcome | None:
    value = raw.get("callOutcome") or raw.get("call_outcome") or raw.get("outcome")
    if not isinstance(value, str):
        return None
    try:
        return CallOutcome(value.strip().lower())
    except ValueError:
        return None


class TranscriptAnalyzer:
    """Classifica uma ligação encerrada em AnalysisResult."""

    def __init__(
        self,
        provider: ClassificationProviderProtocol | None,
        *,
        transcriber: TranscriberProtocol | None = None,
        timezone: str = "UTC",
    ) -> None:
        self._provider = provider
        self._transcriber = transcriber
        self._timezone = timezone

    async def _resolve_transcript(self, transcript: str, recording_url: str | None) -> str:
        """Prefere a transcrição da gravação; cai para a do provedor em falha."""
        if not (self._transcriber and recording_url):
            return transcript
        try:
            transcribed = await self._transcriber.transcribe(recording_url)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "recording_transcription_failed",
                extra={"error": type(exc).__name__},
            )
            return transcript
        return transcribed.strip() or transcript

    def _fallback(
        self,
        ended_reason: str | None,
        as_of: str,
        reason: str,
        started: float,
    ) -> AnalysisResult:
        log_fallback(
            logger,
            "transcript_analysis",
            reason=reason,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return build_fallback_analysis(ended_reason, as_of)

    async def analyze(
        self,
        transcript: str | None,
        ended_reason: str | None,
        as_of: datetime,
        *,
        recording_url: str | None = None,
    ) -> AnalysisResult:
        """Analisa a ligação. Nunca lança."""
        started = time.perf_counter()
        as_of_text = format_as_of(as_of, self._timezone)
        text = await self._resolve_transcript(transcript or "", recording_url)

        if not text.strip():
            return self._fallback(ended_reason, as_of_text, "empty_transcript", started)
        if self._provider is None:
            return self._fallback(ended_reason, as_of_text, "classifier_disabled", started)

        request = ClassificationRequest(
            transcript=text,
            ended_reason=ended_reason,
            as_of=as_of_text,
            timezone=self._timezone,
        )
        try:
            raw = await self._provider.classify(request)
        except ClassificationUnavailableError:
            return self._fallback(ended_reason, as_of_text, "classifier_unavailable", started)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "transcript_classifier_failed",
                extra={"error": type(exc).__name__},
            )
            return self._fallback(ended_reason, as_of_text, "classifier_error", started)

        outcome = _read_outcome(raw)
        if outcome is None:
            return self._fallback(ended_reason, as_of_text, "invalid_outcome", started)

        try:
            structured = StructuredCallData.model_validate(
                raw.get("structuredData") or raw.get("structured_data") or {}
            )
        except PydanticValidationError:
            logger.warning("structured_data_invalid", extra={"outcome": outcome.value})
            structured = StructuredCallData()

        structured = structured.merged_with(extract_reschedule(text))

        result = AnalysisResult(
            summary=str(raw.get("summary") or "Call analyzed."),
            outcome=outcome,
            structured_data=structured,
            confidence=_coerce_confidence(raw.get("confidence", DEFAULT_CONFIDENCE)),
            analysis_method=AnalysisMethod.FULL,
            as_of=as_of_text,
        )
        logger.info(
            "transcript_analysis_result",
            extra={
                "outcome": result.outcome.value,
                "confidence": result.confidence,
                "analysis_method": result.analysis_method.value,
                "reschedule_requested": structured.reschedule_requested,
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return result
