"""Taxonomia de erros do domínio.

Fronteiras HTTP capturam ValidationError (400) e falhas por evento;
UnreachableOutcomeError indica bug de programação e deve ser barulhento.
"""

from __future__ import annotations


class SkiddlyError(Exception):
    """Base para erros conhecidos do serviço."""


class ValidationError(SkiddlyError):
    """Evento de entrada malformado (ex.: checkout sem id)."""


class ClassificationUnavailableError(SkiddlyError):
    """Provedor de classificação indisponível, timeout ou resposta ilegível."""


class UnreachableOutcomeError(SkiddlyError):
    """Outcome sem ação mapeada. Nunca deve ocorrer em produção."""


class SchedulingConflictError(SkiddlyError):
    """Outro escritor venceu o compare-and-set do caso."""

    def __init__(self, case_id: str, expected_version: int) -> None:
        super().__init__(f"Conflito de agendamento no caso {case_id} (versão {expected_version})")
        self.case_id = case_id
        self.expected_version = expected_version


class StoreError(SkiddlyError):
    """Backend de persistência indisponível (fail-closed)."""


class CallDispatchError(SkiddlyError):
    """Provedor de voz rejeitou ou não respondeu ao disparo da ligação."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
