"""Caso de recuperação, ligações e resultado de ligação."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, field_validator, model_validator

from skiddly.domain.analysis import AnalysisResult
from skiddly.domain.cart import ensure_aware
from skiddly.domain.enums import CallOutcome, CaseState, FinalAction


class AbandonedCartCase(BaseModel):
    """Caso de recuperação de um carrinho abandonado (um por carrinho).

    `version` é o token do compare-and-set: toda escrita de tentativas ou
    próximo horário passa por CaseStore.compare_and_set.
    """

    case_id: str
    tenant_id: str
    checkout_id: str
    agent_id: str | None = None
    state: CaseState = CaseState.PENDING_FIRST_CALL
    total_attempts: int = 0
    next_call_time: datetime | None = None
    last_attempt_at: datetime | None = None
    do_not_contact: bool = False
    qualified: bool = True
    qualification_reason: str | None = None
    final_action: FinalAction | None = None
    terminal_reason: str | None = None
    correlation_id: str | None = None
    version: int = 0
    created_at: datetime
    updated_at: datetime

    @field_validator("next_call_time", "last_attempt_at", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @model_validator(mode="after")
    def validate_invariants(self) -> AbandonedCartCase:
        """Caso terminal ou do-not-contact nunca tem próxima ligação."""
        if self.total_attempts < 0:
            msg = "total_attempts não pode ser negativo"
            raise ValueError(msg)
        if self.next_call_time is not None and (
            self.do_not_contact or self.state == CaseState.TERMINAL
        ):
            msg = "caso terminal/do_not_contact não pode ter next_call_time"
            raise ValueError(msg)
        return self

    @property
    def is_terminal(self) -> bool:
        return self.state == CaseState.TERMINAL


class Call(BaseModel):
    """Tentativa de ligação. Imutável depois que o outcome é gravado."""

    call_id: str
    case_id: str
    attempt_number: int
    provider_call_id: str | None = None
    dispatched_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_seconds: float | None = None
    transcript: str | None = None
    recording_url: str | None = None
    end_reason: str | None = None
    outcome: CallOutcome | None = None
    final_action: FinalAction | None = None
    analysis: AnalysisResult | None = None

    @field_validator("dispatched_at", "started_at", "ended_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @property
    def has_outcome(self) -> bool:
        return self.outcome is not None


class CallResult(BaseModel):
    """Callback normalizado de fim de ligação do provedor de voz."""

    call_id: str
    case_id: str | None = None
    transcript: str = ""
    recording_url: str | None = None
    ended_reason: str | None = None
    started_at: datetime | None = None
    ended_at: datetime
    summary: str | None = None
    cost: float | None = None

    @field_validator("started_at", "ended_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None:
            return None
        return max((self.ended_at - self.started_at).total_seconds(), 0.0)


@dataclass(slots=True, frozen=True)
class EligibilityResult:
    """Resultado da avaliação de elegibilidade com todos os motivos de falha."""

    qualified: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons) if self.reasons else "eligible"
