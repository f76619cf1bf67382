"""Protocolo de persistência de carrinhos."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from skiddly.domain.cart import Cart


class CartStoreProtocol(ABC):
    """Contrato de store de carrinhos, chave (tenant_id, checkout_id)."""

    @abstractmethod
    def get(self, tenant_id: str, checkout_id: str) -> Cart | None:
        """Carrega carrinho ou None."""

    @abstractmethod
    def save(self, cart: Cart) -> None:
        """Persiste o carrinho (upsert)."""

    @abstractmethod
    def list_open(self) -> Iterator[Cart]:
        """Itera carrinhos ainda não comprados."""
