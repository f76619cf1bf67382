"""Política de ligações por tenant (configuração fechada e tipada)."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import time, timedelta
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from skiddly.domain.enums import ConditionOperator, ConditionType, DelayUnit
from skiddly.domain.prompt_template import PromptTemplate


class BusinessHours(BaseModel):
    """Janela diária de ligações no fuso do tenant. Fim exclusivo."""

    model_config = ConfigDict(frozen=True)

    start: time = time(9, 0)
    end: time = time(18, 0)
    timezone: str = "America/New_York"
    weekend_calling: bool = False

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"timezone desconhecido: {value}"
            raise ValueError(msg) from exc
        return value

    @model_validator(mode="after")
    def validate_window(self) -> BusinessHours:
        if self.start >= self.end:
            msg = "janela de ligação inválida: start deve ser anterior a end"
            raise ValueError(msg)
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class RetryInterval(BaseModel):
    """Intervalo de retry para um número de tentativa específico."""

    model_config = ConfigDict(frozen=True)

    attempt: int = Field(ge=1)
    delay: int = Field(ge=1)
    unit: DelayUnit = DelayUnit.MINUTES

    def as_timedelta(self) -> timedelta:
        if self.unit == DelayUnit.DAYS:
            return timedelta(days=self.delay)
        if self.unit == DelayUnit.HOURS:
            return timedelta(hours=self.delay)
        return timedelta(minutes=self.delay)


class EligibilityCondition(BaseModel):
    """Condição configurável de elegibilidade (valor, produtos, local, etc.)."""

    model_config = ConfigDict(frozen=True)

    type: ConditionType
    operator: ConditionOperator
    value: str

    @model_validator(mode="after")
    def validate_operator(self) -> EligibilityCondition:
        numeric = {
            ConditionOperator.GTE,
            ConditionOperator.GT,
            ConditionOperator.LTE,
            ConditionOperator.LT,
            ConditionOperator.EQ,
        }
        if self.type == ConditionType.CART_VALUE:
            if self.operator not in numeric:
                msg = f"operador {self.operator} inválido para cart_value"
                raise ValueError(msg)
            try:
                Decimal(self.value)
            except InvalidOperation as exc:
                msg = f"valor numérico inválido para cart_value: {self.value}"
                raise ValueError(msg) from exc
        elif self.operator not in {ConditionOperator.INCLUDES, ConditionOperator.EXCLUDES}:
            msg = f"operador {self.operator} inválido para {self.type}"
            raise ValueError(msg)
        return self

    @property
    def values(self) -> list[str]:
        return [v.strip().lower() for v in self.value.split(",") if v.strip()]


class CallPolicy(BaseModel):
    """Política de ligações de um tenant/agente."""

    model_config = ConfigDict(frozen=True)

    agent_id: str | None = None
    wait_duration: timedelta = timedelta(minutes=30)
    inactivity_threshold: timedelta = timedelta(minutes=60)
    max_retries: int = Field(default=3, ge=1)
    default_retry_interval: timedelta = timedelta(minutes=60)
    retry_intervals: tuple[RetryInterval, ...] = ()
    business_hours: BusinessHours = Field(default_factory=BusinessHours)
    min_cart_value: Decimal = Decimal("0")
    conditions: tuple[EligibilityCondition, ...] = ()
    prompt_template: PromptTemplate | None = None

    def retry_interval_for(self, attempt_number: int) -> timedelta:
        """Intervalo antes da tentativa `attempt_number` (1-based)."""
        for interval in self.retry_intervals:
            if interval.attempt == attempt_number:
                return interval.as_timedelta()
        return self.default_retry_interval


class PolicyRegistry:
    """Resolve a política efetiva por tenant, com fallback na padrão."""

    def __init__(
        self,
        default: CallPolicy,
        overrides: Mapping[str, CallPolicy] | None = None,
    ) -> None:
        self._default = default
        self._overrides = dict(overrides or {})

    @property
    def default(self) -> CallPolicy:
        return self._default

    def for_tenant(self, tenant_id: str) -> CallPolicy:
        return self._overrides.get(tenant_id, self._default)

    def register(self, tenant_id: str, policy: CallPolicy) -> None:
        self._overrides[tenant_id] = policy
