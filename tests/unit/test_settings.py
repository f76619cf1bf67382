"""Testes unitários para config/settings.py.

Valida valores padrão, política derivada e validadores por ambiente.
"""

from __future__ import annotations

from datetime import time, timedelta
from decimal import Decimal

import pytest

from skiddly.config.settings import VAPI_BASE_URL, Settings, get_settings


class TestSettingsDefaults:
    """Testes para valores padrão de Settings."""

    def test_development_defaults(self) -> None:
        s = Settings()
        assert s.is_development is True
        assert s.store_backend == "memory"
        assert s.dispatcher_backend == "memory"
        assert s.openai_enabled is False
        assert s.vapi_base_url == VAPI_BASE_URL

    def test_environment_aliases(self) -> None:
        assert Settings(environment="prod").is_production is True
        assert Settings(environment="stage").is_staging is True

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestDefaultCallPolicy:
    """Política padrão derivada das variáveis call_*."""

    def test_policy_from_settings(self) -> None:
        s = Settings(
            call_wait_minutes=15,
            call_max_retries=5,
            call_retry_interval_minutes=90,
            call_time_start=time(10, 0),
            call_time_end=time(17, 0),
            call_timezone="America/Chicago",
            call_min_cart_value=Decimal("25"),
            vapi_default_assistant_id="assistant-1",
        )

        policy = s.default_call_policy()

        assert policy.agent_id == "assistant-1"
        assert policy.wait_duration == timedelta(minutes=15)
        assert policy.max_retries == 5
        assert policy.default_retry_interval == timedelta(minutes=90)
        assert policy.business_hours.start == time(10, 0)
        assert policy.business_hours.timezone == "America/Chicago"
        assert policy.min_cart_value == Decimal("25")

    def test_invalid_window_reported(self) -> None:
        s = Settings(call_time_start=time(18, 0), call_time_end=time(9, 0))
        errors = s.validate_call_policy()
        assert len(errors) == 1
        assert "Política de ligações inválida" in errors[0]


class TestValidators:
    """Validadores retornam lista de erros (vazia = OK)."""

    def test_development_defaults_are_valid(self) -> None:
        assert Settings().validation_errors() == []

    def test_memory_store_forbidden_in_production(self) -> None:
        errors = Settings(environment="production").validate_store_config()
        assert any("proibido" in e for e in errors)

    def test_unknown_store_backend(self) -> None:
        errors = Settings(store_backend="cassandra").validate_store_config()
        assert any("inválido" in e for e in errors)

    @pytest.mark.parametrize(
        ("backend", "missing"),
        [("redis", "REDIS_URL"), ("firestore", "FIRESTORE_PROJECT_ID")],
    )
    def test_store_backend_requirements(self, backend: str, missing: str) -> None:
        errors = Settings(store_backend=backend).validate_store_config()
        assert any(missing in e for e in errors)

    def test_vapi_dispatcher_requirements(self) -> None:
        errors = Settings(dispatcher_backend="vapi").validate_dispatcher_config()
        assert len(errors) == 2

    def test_webhook_notifier_requires_url(self) -> None:
        errors = Settings(notifier_backend="webhook").validate_notifier_config()
        assert errors == ["NOTIFIER_BACKEND=webhook requer NOTIFY_WEBHOOK_URL configurado"]

    def test_openai_requires_key(self) -> None:
        errors = Settings(openai_enabled=True, transcription_enabled=True).validate_openai_config()
        assert errors == ["OPENAI_ENABLED=true requer OPENAI_API_KEY configurado"]

    def test_transcription_requires_openai(self) -> None:
        errors = Settings(transcription_enabled=True).validate_openai_config()
        assert errors == ["TRANSCRIPTION_ENABLED=true requer OPENAI_ENABLED=true"]

    def test_zero_trust_requires_secrets_outside_dev(self) -> None:
        s = Settings(environment="staging", zero_trust_mode=True)
        assert len(s.validate_webhook_secrets()) == 3

    def test_zero_trust_disabled(self) -> None:
        s = Settings(environment="staging", zero_trust_mode=False)
        assert s.validate_webhook_secrets() == []
