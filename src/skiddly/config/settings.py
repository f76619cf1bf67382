"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars ou Secret Manager.
Nunca hardcode secrets ou valores sensíveis.
"""

from __future__ import annotations

import logging
import os
from datetime import time, timedelta
from decimal import Decimal
from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from skiddly.domain.policy import BusinessHours, CallPolicy
from skiddly.infra.secrets import create_secret_provider
from skiddly.observability.logging import get_logger

VAPI_BASE_URL: str = "https://api.vapi.ai"

_STORE_BACKENDS = {"memory", "redis", "firestore"}


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Aplicação
    service_name: str = "skiddly"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    timezone: str = "America/New_York"
    correlation_id_header: str = "X-Correlation-ID"

    # Persistência
    store_backend: str = "memory"  # memory | redis | firestore
    redis_url: str | None = None
    firestore_project_id: str | None = None
    firestore_database_id: str = "(default)"
    carts_collection: str = "carts"
    cases_collection: str = "abandoned_cart_cases"
    calls_collection: str = "calls"
    do_not_contact_collection: str = "do_not_contact"

    # Loja (Shopify)
    shopify_api_secret: str | None = None  # HMAC dos webhooks (Secret Manager)

    # Provedor de voz (VAPI)
    dispatcher_backend: str = "memory"  # memory | vapi
    vapi_api_key: str | None = None
    vapi_base_url: str = VAPI_BASE_URL
    vapi_phone_number_id: str | None = None
    vapi_webhook_secret: str | None = None
    vapi_default_assistant_id: str | None = None

    # HTTP de saída
    http_timeout_seconds: int = 30
    http_max_retries: int = 3
    http_retry_backoff_seconds: int = 2

    # Notificações de ação final
    notifier_backend: str = "log"  # log | webhook
    notify_webhook_url: str | None = None

    # OpenAI / IA
    openai_enabled: bool = False  # Feature flag (fail-safe: false)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: int = 20
    transcription_enabled: bool = False
    transcription_model: str = "whisper-1"

    # Disparo interno do scheduler (cron)
    internal_task_token: str | None = None
    internal_token_header: str = "X-Internal-Token"

    # Política padrão de ligações
    call_wait_minutes: int = 30
    cart_inactivity_minutes: int = 60
    call_max_retries: int = 3
    call_retry_interval_minutes: int = 60
    call_time_start: time = time(9, 0)
    call_time_end: time = time(18, 0)
    call_timezone: str = "America/New_York"
    call_weekend_calling: bool = False
    call_min_cart_value: Decimal = Decimal("0")

    # Segurança
    zero_trust_mode: bool = True  # Exige assinatura dos webhooks em staging/prod

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    def default_call_policy(self) -> CallPolicy:
        """Monta a política padrão a partir das variáveis call_*."""
        return CallPolicy(
            agent_id=self.vapi_default_assistant_id,
            wait_duration=timedelta(minutes=self.call_wait_minutes),
            inactivity_threshold=timedelta(minutes=self.cart_inactivity_minutes),
            max_retries=self.call_max_retries,
            default_retry_interval=timedelta(minutes=self.call_retry_interval_minutes),
            business_hours=BusinessHours(
                start=self.call_time_start,
                end=self.call_time_end,
                timezone=self.call_timezone,
                weekend_calling=self.call_weekend_calling,
            ),
            min_cart_value=self.call_min_cart_value,
        )

    def validate_store_config(self) -> list[str]:
        """Valida backend de persistência por ambiente.

        Em staging/prod, memory é proibido (instâncias stateless).
        Retorna lista de erros (vazia = tudo OK).
        """
        errors: list[str] = []
        backend = self.store_backend.lower()
        if backend not in _STORE_BACKENDS:
            errors.append(
                f"STORE_BACKEND '{backend}' inválido. Valores válidos: {sorted(_STORE_BACKENDS)}"
            )
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append(
                "STORE_BACKEND=memory é proibido em staging/production. "
                "Configure 'redis' ou 'firestore'."
            )
        if backend == "redis" and not self.redis_url:
            errors.append("STORE_BACKEND=redis requer REDIS_URL configurado")
        if backend == "firestore" and not self.firestore_project_id:
            errors.append("STORE_BACKEND=firestore requer FIRESTORE_PROJECT_ID configurado")
        return errors

    def validate_dispatcher_config(self) -> list[str]:
        """Valida provedor de voz."""
        errors: list[str] = []
        backend = self.dispatcher_backend.lower()
        if backend not in {"memory", "vapi"}:
            errors.append("DISPATCHER_BACKEND inválido: use memory | vapi")
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append("DISPATCHER_BACKEND=memory é proibido em staging/production")
        if backend == "vapi":
            if not self.vapi_api_key:
                errors.append("DISPATCHER_BACKEND=vapi requer VAPI_API_KEY configurado")
            if not self.vapi_phone_number_id:
                errors.append("DISPATCHER_BACKEND=vapi requer VAPI_PHONE_NUMBER_ID configurado")
        return errors

    def validate_notifier_config(self) -> list[str]:
        """Valida backend de notificações."""
        errors: list[str] = []
        backend = self.notifier_backend.lower()
        if backend not in {"log", "webhook"}:
            errors.append("NOTIFIER_BACKEND inválido: use log | webhook")
        if backend == "webhook" and not self.notify_webhook_url:
            errors.append("NOTIFIER_BACKEND=webhook requer NOTIFY_WEBHOOK_URL configurado")
        return errors

    def validate_openai_config(self) -> list[str]:
        """Se openai_enabled=True, exige OPENAI_API_KEY."""
        errors: list[str] = []
        if self.openai_enabled and not self.openai_api_key:
            errors.append("OPENAI_ENABLED=true requer OPENAI_API_KEY configurado")
        if self.transcription_enabled and not self.openai_enabled:
            errors.append("TRANSCRIPTION_ENABLED=true requer OPENAI_ENABLED=true")
        return errors

    def validate_webhook_secrets(self) -> list[str]:
        """Em zero_trust_mode fora de dev, webhooks exigem secret."""
        errors: list[str] = []
        if not self.zero_trust_mode or self.is_development:
            return errors
        if not self.shopify_api_secret:
            errors.append("SHOPIFY_API_SECRET obrigatório em zero_trust_mode")
        if not self.vapi_webhook_secret:
            errors.append("VAPI_WEBHOOK_SECRET obrigatório em zero_trust_mode")
        if not self.internal_task_token:
            errors.append("INTERNAL_TASK_TOKEN obrigatório em zero_trust_mode")
        return errors

    def validate_call_policy(self) -> list[str]:
        """Valida a política padrão (janela, fuso, limites)."""
        try:
            self.default_call_policy()
        except ValueError as exc:
            return [f"Política de ligações inválida: {exc}"]
        return []

    def validation_errors(self) -> list[str]:
        """Agrega todos os validadores."""
        errors: list[str] = []
        errors.extend(self.validate_store_config())
        errors.extend(self.validate_dispatcher_config())
        errors.extend(self.validate_notifier_config())
        errors.extend(self.validate_openai_config())
        errors.extend(self.validate_webhook_secrets())
        errors.extend(self.validate_call_policy())
        return errors

    def model_post_init(self, __context: Any) -> None:
        """Carrega secrets do Secret Manager em staging/production.

        Nunca loga valores; falha fechado se o provider não inicializa.
        """
        logger: logging.Logger = get_logger(__name__)

        if not (self.is_staging or self.is_production):
            return

        # PYTEST_CURRENT_TEST é setado pelo pytest
        if os.getenv("PYTEST_CURRENT_TEST"):
            logger.info(
                "Pulando Secret Manager em ambiente de teste controlado",
                extra={"environment": self.environment},
            )
            return

        project_id = os.getenv("GOOGLE_CLOUD_PROJECT")
        if not project_id:
            raise RuntimeError("GOOGLE_CLOUD_PROJECT obrigatório em staging/production")

        try:
            provider = create_secret_provider(backend="secret_manager", project_id=project_id)
        except Exception as e:
            logger.error(
                "Falha ao criar Secret Manager provider",
                extra={"error": type(e).__name__, "environment": self.environment},
            )
            raise RuntimeError(
                f"Não foi possível inicializar Secret Manager: {type(e).__name__}"
            ) from e

        # Nome no Secret Manager → atributo em Settings
        secret_mappings = {
            "SHOPIFY_API_SECRET": "shopify_api_secret",
            "VAPI_API_KEY": "vapi_api_key",
            "VAPI_WEBHOOK_SECRET": "vapi_webhook_secret",
            "OPENAI_API_KEY": "openai_api_key",
            "INTERNAL_TASK_TOKEN": "internal_task_token",
        }
        for secret_name, attr_name in secret_mappings.items():
            if getattr(self, attr_name):
                continue
            try:
                if not provider.secret_exists(secret_name):
                    logger.warning(
                        "Secret não encontrado no Secret Manager",
                        extra={"secret_name": secret_name, "environment": self.environment},
                    )
                    continue
                setattr(self, attr_name, provider.get_secret(secret_name))
            except Exception as e:
                logger.error(
                    "Erro ao carregar secret do Secret Manager",
                    extra={"secret_name": secret_name, "error": type(e).__name__},
                )
                raise RuntimeError(f"Falha ao carregar {secret_name}: {type(e).__name__}") from e
            logger.info(
                "Secret carregado do Secret Manager",
                extra={"secret_name": secret_name, "environment": self.environment},
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings."""
    return Settings()
