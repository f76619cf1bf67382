"""Stores em memória para desenvolvimento e testes.

Um único lock por store garante a atomicidade do compare-and-set dentro
do processo. Não usar em staging/production (instâncias stateless).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from datetime import datetime

from skiddly.domain.cart import Cart
from skiddly.domain.case import AbandonedCartCase, Call
from skiddly.domain.enums import CartStatus
from skiddly.domain.protocols.call_store import CallStoreProtocol
from skiddly.domain.protocols.cart_store import CartStoreProtocol
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class InMemoryCartStore(CartStoreProtocol):
    """Carrinhos em dict (tenant_id, checkout_id) → Cart."""

    def __init__(self) -> None:
        self._carts: dict[tuple[str, str], Cart] = {}
        self._lock = threading.Lock()

    def get(self, tenant_id: str, checkout_id: str) -> Cart | None:
        with self._lock:
            return self._carts.get((tenant_id, checkout_id))

    def save(self, cart: Cart) -> None:
        with self._lock:
            self._carts[cart.key] = cart

    def list_open(self) -> Iterator[Cart]:
        with self._lock:
            snapshot = [c for c in self._carts.values() if c.status != CartStatus.PURCHASED]
        return iter(snapshot)


class InMemoryCaseStore(CaseStoreProtocol):
    """Casos em dict com índice por carrinho e lista de do-not-contact."""

    def __init__(self) -> None:
        self._cases: dict[str, AbandonedCartCase] = {}
        self._by_cart: dict[tuple[str, str], str] = {}
        self._do_not_contact: set[tuple[str, str]] = set()
        self._lock = threading.Lock()

    def get(self, case_id: str) -> AbandonedCartCase | None:
        with self._lock:
            return self._cases.get(case_id)

    def get_by_cart(self, tenant_id: str, checkout_id: str) -> AbandonedCartCase | None:
        with self._lock:
            case_id = self._by_cart.get((tenant_id, checkout_id))
            return self._cases.get(case_id) if case_id else None

    def create(self, case: AbandonedCartCase) -> bool:
        key = (case.tenant_id, case.checkout_id)
        with self._lock:
            if key in self._by_cart or case.case_id in self._cases:
                return False
            self._cases[case.case_id] = case
            self._by_cart[key] = case.case_id
            return True

    def compare_and_set(self, case: AbandonedCartCase, expected_version: int) -> bool:
        with self._lock:
            current = self._cases.get(case.case_id)
            if current is None or current.version != expected_version:
                return False
            self._cases[case.case_id] = case
            return True

    def list_due(self, now: datetime) -> Iterator[AbandonedCartCase]:
        with self._lock:
            due = [
                c
                for c in self._cases.values()
                if c.next_call_time is not None
                and c.next_call_time <= now
                and not c.do_not_contact
            ]
        due.sort(key=lambda c: c.next_call_time)
        return iter(due)

    def mark_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> None:
        with self._lock:
            self._do_not_contact.add((tenant_id, phone_number))

    def is_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> bool:
        with self._lock:
            return (tenant_id, phone_number) in self._do_not_contact


class InMemoryCallStore(CallStoreProtocol):
    """Ligações em dict com índice pelo id do provedor."""

    def __init__(self) -> None:
        self._calls: dict[str, Call] = {}
        self._by_provider: dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, call: Call) -> None:
        with self._lock:
            self._calls[call.call_id] = call
            if call.provider_call_id:
                self._by_provider[call.provider_call_id] = call.call_id

    def get(self, call_id: str) -> Call | None:
        with self._lock:
            return self._calls.get(call_id)

    def get_by_provider_id(self, provider_call_id: str) -> Call | None:
        with self._lock:
            call_id = self._by_provider.get(provider_call_id)
            return self._calls.get(call_id) if call_id else None

    def attach_provider_id(self, call_id: str, provider_call_id: str) -> None:
        with self._lock:
            call = self._calls.get(call_id)
            if call is None:
                return
            self._calls[call_id] = call.model_copy(update={"provider_call_id": provider_call_id})
            self._by_provider[provider_call_id] = call_id

    def record_outcome(self, call: Call) -> bool:
        with self._lock:
            current = self._calls.get(call.call_id)
            if current is not None and current.has_outcome:
                return False
            if current is not None and current.provider_call_id and not call.provider_call_id:
                call = call.model_copy(update={"provider_call_id": current.provider_call_id})
            self._calls[call.call_id] = call
            return True

    def list_for_case(self, case_id: str) -> list[Call]:
        with self._lock:
            calls = [c for c in self._calls.values() if c.case_id == case_id]
        return sorted(calls, key=lambda c: c.attempt_number)
