"""Protocolo de persistência de casos de recuperação."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import datetime

from skiddly.domain.case import AbandonedCartCase


class CaseStoreProtocol(ABC):
    """Contrato do store de casos.

    `compare_and_set` é a única escrita de tentativas/próxima ligação e
    precisa ser atômica no backend (dois scanners nunca vencem juntos).
    """

    @abstractmethod
    def get(self, case_id: str) -> AbandonedCartCase | None:
        """Carrega caso por id."""

    @abstractmethod
    def get_by_cart(self, tenant_id: str, checkout_id: str) -> AbandonedCartCase | None:
        """Carrega o caso do carrinho, se existir."""

    @abstractmethod
    def create(self, case: AbandonedCartCase) -> bool:
        """Cria o caso. Retorna False se o carrinho já tem caso."""

    @abstractmethod
    def compare_and_set(self, case: AbandonedCartCase, expected_version: int) -> bool:
        """Grava `case` somente se a versão persistida for `expected_version`."""

    @abstractmethod
    def list_due(self, now: datetime) -> Iterator[AbandonedCartCase]:
        """Itera casos com next_call_time <= now e sem do-not-contact."""

    @abstractmethod
    def mark_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> None:
        """Registra telefone na lista de do-not-contact do tenant."""

    @abstractmethod
    def is_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> bool:
        """Verifica lista de do-not-contact do tenant."""
