"""Factory dos stores de carrinho, caso e ligação por backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from skiddly.domain.protocols.call_store import CallStoreProtocol
from skiddly.domain.protocols.cart_store import CartStoreProtocol
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.infra.store_firestore import FirestoreCallStore, FirestoreCartStore, FirestoreCaseStore
from skiddly.infra.store_memory import InMemoryCallStore, InMemoryCartStore, InMemoryCaseStore
from skiddly.infra.store_redis import RedisCallStore, RedisCartStore, RedisCaseStore
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Stores:
    """Conjunto de stores de um backend."""

    carts: CartStoreProtocol
    cases: CaseStoreProtocol
    calls: CallStoreProtocol


def create_stores(
    backend: str,
    redis_client: Any | None = None,
    firestore_client: Any | None = None,
    *,
    carts_collection: str = "carts",
    cases_collection: str = "abandoned_cart_cases",
    calls_collection: str = "calls",
    do_not_contact_collection: str = "do_not_contact",
) -> Stores:
    """Cria os stores do backend configurado.

    Args:
        backend: "redis", "firestore" ou "memory"
        redis_client: Cliente Redis (obrigatório se backend="redis")
        firestore_client: Cliente Firestore (obrigatório se backend="firestore")

    Raises:
        ValueError: Se backend inválido ou cliente não fornecido
    """
    if backend == "memory":
        logger.warning("Using in-memory stores (dev only)")
        return Stores(InMemoryCartStore(), InMemoryCaseStore(), InMemoryCallStore())

    if backend == "redis":
        if not redis_client:
            msg = "redis_client required for redis backend"
            raise ValueError(msg)
        logger.info("Using Redis stores")
        return Stores(
            RedisCartStore(redis_client),
            RedisCaseStore(redis_client),
            RedisCallStore(redis_client),
        )

    if backend == "firestore":
        if not firestore_client:
            msg = "firestore_client required for firestore backend"
            raise ValueError(msg)
        logger.info("Using Firestore stores")
        return Stores(
            FirestoreCartStore(firestore_client, carts_collection),
            FirestoreCaseStore(firestore_client, cases_collection, do_not_contact_collection),
            FirestoreCallStore(firestore_client, calls_collection),
        )

    msg = f"Unknown store backend: {backend}"
    raise ValueError(msg)
