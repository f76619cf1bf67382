"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from skiddly.application.orchestrator import CallOrchestrator
from skiddly.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_orchestrator(request: Request) -> CallOrchestrator:
    """Retorna o orquestrador de ligações."""

    return request.app.state.orchestrator


def require_internal_token(request: Request, settings: Settings) -> None:
    """Valida token interno enviado pelo cron/scheduler."""
    expected = settings.internal_task_token
    provided = request.headers.get(settings.internal_token_header)

    if expected and provided == expected:
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="unauthorized_internal_call",
    )


def ensure_webhook_secret(secret: str | None, settings: Settings) -> None:
    """Fail-closed quando secret de webhook está ausente em staging/prod."""
    if (settings.is_staging or settings.is_production) and not secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="missing_webhook_secret",
        )
