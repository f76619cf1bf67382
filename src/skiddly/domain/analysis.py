"""Contratos da análise de transcrição."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from skiddly.domain.enums import AnalysisMethod, CallOutcome

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "sim"})


def _camel(name: str) -> AliasChoices:
    head, *rest = name.split("_")
    return AliasChoices(name, head + "".join(p.capitalize() for p in rest))


class StructuredCallData(BaseModel):
    """Dados estruturados extraídos da conversa.

    Aceita chaves snake_case ou camelCase (formato devolvido pelo classificador).
    """

    model_config = ConfigDict(extra="ignore")

    customer_name: str | None = Field(default=None, validation_alias=_camel("customer_name"))
    customer_phone: str | None = Field(default=None, validation_alias=_camel("customer_phone"))
    discount_requested: str | None = Field(
        default=None, validation_alias=_camel("discount_requested")
    )
    reschedule_requested: bool = Field(
        default=False, validation_alias=_camel("reschedule_requested")
    )
    reschedule_time: str | None = Field(default=None, validation_alias=_camel("reschedule_time"))
    reschedule_date: str | None = Field(default=None, validation_alias=_camel("reschedule_date"))
    reschedule_timezone: str | None = Field(
        default=None, validation_alias=_camel("reschedule_timezone")
    )
    relative_time: str | None = Field(default=None, validation_alias=_camel("relative_time"))
    purchase_completed: bool = Field(default=False, validation_alias=_camel("purchase_completed"))
    technical_issues: str | None = Field(default=None, validation_alias=_camel("technical_issues"))
    additional_notes: str | None = Field(default=None, validation_alias=_camel("additional_notes"))

    @field_validator("reschedule_requested", "purchase_completed", mode="before")
    @classmethod
    def coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)

    @field_validator(
        "customer_name",
        "customer_phone",
        "discount_requested",
        "reschedule_time",
        "reschedule_date",
        "reschedule_timezone",
        "relative_time",
        "technical_issues",
        "additional_notes",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: Any) -> str | None:
        if value is None or isinstance(value, bool):
            return None
        text = str(value).strip()
        if not text or text.lower() in {"null", "none", "n/a"}:
            return None
        return text

    @property
    def has_reschedule_hint(self) -> bool:
        return bool(self.relative_time or self.reschedule_time or self.reschedule_date)

    def merged_with(self, other: StructuredCallData) -> StructuredCallData:
        """Preenche campos vazios com os valores de `other` (sem sobrescrever)."""
        update: dict[str, Any] = {}
        for name in type(self).model_fields:
            current = getattr(self, name)
            incoming = getattr(other, name)
            if current in (None, False) and incoming not in (None, False):
                update[name] = incoming
        return self.model_copy(update=update) if update else self


class AnalysisResult(BaseModel):
    """Resultado da análise de uma ligação encerrada."""

    summary: str
    outcome: CallOutcome
    structured_data: StructuredCallData = Field(default_factory=StructuredCallData)
    confidence: float = Field(ge=0.0, le=1.0)
    analysis_method: AnalysisMethod
    as_of: str | None = None
