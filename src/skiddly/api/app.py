"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from skiddly.ai.openai_client import OpenAIClassificationProvider, OpenAITranscriber
from skiddly.ai.transcript_analyzer import TranscriptAnalyzer
from skiddly.api.routes import router
from skiddly.application.cart_tracker import CartLifecycleTracker
from skiddly.application.orchestrator import CallOrchestrator
from skiddly.application.scheduler import CallScheduler
from skiddly.config.settings import Settings, get_settings
from skiddly.domain.policy import PolicyRegistry
from skiddly.domain.protocols.outreach import CallDispatcherProtocol, NotifierProtocol
from skiddly.infra.http import HttpClient, create_http_client
from skiddly.infra.notifier import LoggingNotifier, WebhookNotifier
from skiddly.infra.store_factory import Stores, create_stores
from skiddly.infra.vapi_dispatcher import InMemoryCallDispatcher, VapiCallDispatcher
from skiddly.observability.logging import configure_logging, get_logger
from skiddly.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


def _create_redis_client(redis_url: str) -> Any:
    import redis

    return redis.from_url(redis_url, decode_responses=True)


def _create_firestore_client(settings: Settings) -> Any:
    from google.cloud import firestore

    return firestore.Client(
        project=settings.firestore_project_id,
        database=settings.firestore_database_id,
    )


def _create_stores(settings: Settings) -> Stores:
    backend = settings.store_backend.lower()
    redis_client = None
    firestore_client = None
    if backend == "redis" and settings.redis_url:
        redis_client = _create_redis_client(settings.redis_url)
    elif backend == "firestore":
        firestore_client = _create_firestore_client(settings)
    return create_stores(
        backend,
        redis_client=redis_client,
        firestore_client=firestore_client,
        carts_collection=settings.carts_collection,
        cases_collection=settings.cases_collection,
        calls_collection=settings.calls_collection,
        do_not_contact_collection=settings.do_not_contact_collection,
    )


def _create_dispatcher(settings: Settings, http_client: HttpClient) -> CallDispatcherProtocol:
    if settings.dispatcher_backend.lower() == "vapi":
        return VapiCallDispatcher(
            http_client,
            api_key=settings.vapi_api_key or "",
            phone_number_id=settings.vapi_phone_number_id or "",
            base_url=settings.vapi_base_url,
            default_assistant_id=settings.vapi_default_assistant_id,
        )
    logger.warning("Using in-memory call dispatcher (dev only)")
    return InMemoryCallDispatcher()


def _create_notifier(settings: Settings, http_client: HttpClient) -> NotifierProtocol:
    if settings.notifier_backend.lower() == "webhook" and settings.notify_webhook_url:
        return WebhookNotifier(http_client, settings.notify_webhook_url)
    return LoggingNotifier()


def _create_analyzer(settings: Settings, http_client: HttpClient) -> TranscriptAnalyzer:
    if not settings.openai_enabled:
        return TranscriptAnalyzer(None, timezone=settings.timezone)

    provider = OpenAIClassificationProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=float(settings.openai_timeout_seconds),
    )
    transcriber = (
        OpenAITranscriber(
            http_client,
            api_key=settings.openai_api_key,
            model=settings.transcription_model,
        )
        if settings.transcription_enabled
        else None
    )
    return TranscriptAnalyzer(provider, transcriber=transcriber, timezone=settings.timezone)


def build_orchestrator(
    settings: Settings,
    *,
    stores: Stores | None = None,
    dispatcher: CallDispatcherProtocol | None = None,
    notifier: NotifierProtocol | None = None,
    analyzer: TranscriptAnalyzer | None = None,
) -> CallOrchestrator:
    """Monta o orquestrador com os adapters configurados (ou injetados)."""
    http_client = create_http_client(settings)
    stores = stores or _create_stores(settings)
    return CallOrchestrator(
        tracker=CartLifecycleTracker(stores.carts),
        scheduler=CallScheduler(stores.cases),
        analyzer=analyzer or _create_analyzer(settings, http_client),
        case_store=stores.cases,
        call_store=stores.calls,
        dispatcher=dispatcher or _create_dispatcher(settings, http_client),
        notifier=notifier or _create_notifier(settings, http_client),
        policies=PolicyRegistry(settings.default_call_policy()),
    )


def create_app(
    settings: Settings | None = None,
    *,
    orchestrator: CallOrchestrator | None = None,
) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name, settings.log_format)

    validation_errors = settings.validation_errors()
    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    app = FastAPI(title=settings.service_name, version=settings.version)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(router)

    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)

    logger.info(
        "app_created",
        extra={
            "environment": settings.environment,
            "store_backend": settings.store_backend,
            "dispatcher_backend": settings.dispatcher_backend,
            "openai_enabled": settings.openai_enabled,
        },
    )
    return app
