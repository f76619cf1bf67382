"""Contrato Pydantic para classificação de transcrições."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClassificationRequest(BaseModel):
    """Input do classificador de ligações."""

    transcript: str = Field(..., min_length=1)
    """Transcrição completa (não expor em logs)."""

    ended_reason: str | None = None
    """Motivo de encerramento reportado pelo provedor de voz."""

    as_of: str
    """Data/hora de referência já formatada no fuso do tenant."""

    timezone: str = "UTC"
    """Fuso usado para interpretar horários relativos."""
