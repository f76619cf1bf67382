"""Protocolo de persistência de ligações."""

from __future__ import annotations

from abc import ABC, abstractmethod

from skiddly.domain.case import Call


class CallStoreProtocol(ABC):
    """Contrato do store de ligações. Outcome é gravado uma única vez."""

    @abstractmethod
    def create(self, call: Call) -> None:
        """Persiste nova ligação."""

    @abstractmethod
    def get(self, call_id: str) -> Call | None:
        """Carrega ligação por id interno."""

    @abstractmethod
    def get_by_provider_id(self, provider_call_id: str) -> Call | None:
        """Carrega ligação pelo id do provedor de voz."""

    @abstractmethod
    def attach_provider_id(self, call_id: str, provider_call_id: str) -> None:
        """Associa o id do provedor à ligação."""

    @abstractmethod
    def record_outcome(self, call: Call) -> bool:
        """Grava resultado. Retorna False se a ligação já tinha outcome."""

    @abstractmethod
    def list_for_case(self, case_id: str) -> list[Call]:
        """Ligações do caso, por número de tentativa."""
