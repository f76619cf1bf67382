"""Stores em Redis (produção).

Chaves:
- cart:{tenant}:{checkout}          → Cart JSON
- carts:open                        → SET de "{tenant}|{checkout}" não comprados
- case:{case_id}                    → AbandonedCartCase JSON
- case:cart:{tenant}:{checkout}     → case_id (SET NX garante um caso por carrinho)
- cases:due                         → ZSET case_id com score = next_call_time (epoch)
- dnc:{tenant}                      → SET de telefones do-not-contact
- call:{call_id}                    → Call JSON
- call:provider:{provider_call_id}  → call_id
- case:calls:{case_id}              → SET de call_ids

Compare-and-set usa WATCH/MULTI/EXEC; WatchError significa que outro
escritor venceu.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from redis.exceptions import RedisError, WatchError

from skiddly.domain.cart import Cart
from skiddly.domain.case import AbandonedCartCase, Call
from skiddly.domain.enums import CartStatus
from skiddly.domain.errors import StoreError
from skiddly.domain.protocols.call_store import CallStoreProtocol
from skiddly.domain.protocols.cart_store import CartStoreProtocol
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

OPEN_CARTS_KEY = "carts:open"
DUE_CASES_KEY = "cases:due"


def _decode(payload: Any) -> str:
    return payload.decode("utf-8") if isinstance(payload, bytes) else payload


def _cart_key(tenant_id: str, checkout_id: str) -> str:
    return f"cart:{tenant_id}:{checkout_id}"


def _case_key(case_id: str) -> str:
    return f"case:{case_id}"


def _call_key(call_id: str) -> str:
    return f"call:{call_id}"


class RedisCartStore(CartStoreProtocol):
    """Carrinhos em Redis."""

    def __init__(self, redis_client: Any) -> None:
        self._redis = redis_client

    def get(self, tenant_id: str, checkout_id: str) -> Cart | None:
        try:
            payload = self._redis.get(_cart_key(tenant_id, checkout_id))
        except RedisError as e:
            logger.error("Failed to load cart from Redis", extra={"error": type(e).__name__})
            raise StoreError(f"Redis cart load failed: {e}") from e
        if not payload:
            return None
        return Cart.model_validate_json(_decode(payload))

    def save(self, cart: Cart) -> None:
        member = f"{cart.tenant_id}|{cart.checkout_id}"
        try:
            pipe = self._redis.pipeline()
            pipe.set(_cart_key(cart.tenant_id, cart.checkout_id), cart.model_dump_json())
            if cart.status == CartStatus.PURCHASED:
                pipe.srem(OPEN_CARTS_KEY, member)
            else:
                pipe.sadd(OPEN_CARTS_KEY, member)
            pipe.execute()
        except RedisError as e:
            logger.error(
                "Failed to save cart to Redis",
                extra={"checkout_id": cart.checkout_id, "error": type(e).__name__},
            )
            raise StoreError(f"Redis cart save failed: {e}") from e

    def list_open(self) -> Iterator[Cart]:
        try:
            members = self._redis.smembers(OPEN_CARTS_KEY)
        except RedisError as e:
            raise StoreError(f"Redis open carts scan failed: {e}") from e
        for member in sorted(_decode(m) for m in members):
            tenant_id, _, checkout_id = member.partition("|")
            cart = self.get(tenant_id, checkout_id)
            if cart is not None and cart.status != CartStatus.PURCHASED:
                yield cart


class RedisCaseStore(CaseStoreProtocol):
    """Casos em Redis com índice de vencimento em ZSET."""

    def __init__(self, redis_client: Any) -> None:
        self._redis = redis_client

    @staticmethod
    def _queue_due_index(pipe: Any, case: AbandonedCartCase) -> None:
        if case.next_call_time is not None and not case.do_not_contact and not case.is_terminal:
            pipe.zadd(DUE_CASES_KEY, {case.case_id: case.next_call_time.timestamp()})
        else:
            pipe.zrem(DUE_CASES_KEY, case.case_id)

    def get(self, case_id: str) -> AbandonedCartCase | None:
        try:
            payload = self._redis.get(_case_key(case_id))
        except RedisError as e:
            logger.error("Failed to load case from Redis", extra={"error": type(e).__name__})
            raise StoreError(f"Redis case load failed: {e}") from e
        if not payload:
            return None
        return AbandonedCartCase.model_validate_json(_decode(payload))

    def get_by_cart(self, tenant_id: str, checkout_id: str) -> AbandonedCartCase | None:
        try:
            case_id = self._redis.get(f"case:cart:{tenant_id}:{checkout_id}")
        except RedisError as e:
            raise StoreError(f"Redis case index lookup failed: {e}") from e
        return self.get(_decode(case_id)) if case_id else None

    def create(self, case: AbandonedCartCase) -> bool:
        index_key = f"case:cart:{case.tenant_id}:{case.checkout_id}"
        try:
            if not self._redis.set(index_key, case.case_id, nx=True):
                return False
            pipe = self._redis.pipeline()
            pipe.set(_case_key(case.case_id), case.model_dump_json())
            self._queue_due_index(pipe, case)
            pipe.execute()
        except RedisError as e:
            logger.error(
                "Failed to create case in Redis",
                extra={"case_id": case.case_id, "error": type(e).__name__},
            )
            raise StoreError(f"Redis case create failed: {e}") from e
        return True

    def compare_and_set(self, case: AbandonedCartCase, expected_version: int) -> bool:
        key = _case_key(case.case_id)
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(key)
                payload = pipe.get(key)
                if not payload:
                    pipe.unwatch()
                    return False
                current = AbandonedCartCase.model_validate_json(_decode(payload))
                if current.version != expected_version:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, case.model_dump_json())
                self._queue_due_index(pipe, case)
                pipe.execute()
        except WatchError:
            logger.info("case_cas_watch_conflict", extra={"case_id": case.case_id})
            return False
        except RedisError as e:
            logger.error(
                "Failed to update case in Redis",
                extra={"case_id": case.case_id, "error": type(e).__name__},
            )
            raise StoreError(f"Redis case update failed: {e}") from e
        return True

    def list_due(self, now: datetime) -> Iterator[AbandonedCartCase]:
        try:
            case_ids = self._redis.zrangebyscore(DUE_CASES_KEY, "-inf", now.timestamp())
        except RedisError as e:
            raise StoreError(f"Redis due scan failed: {e}") from e
        for case_id in case_ids:
            case = self.get(_decode(case_id))
            if (
                case is not None
                and case.next_call_time is not None
                and case.next_call_time <= now
                and not case.do_not_contact
            ):
                yield case

    def mark_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> None:
        try:
            self._redis.sadd(f"dnc:{tenant_id}", phone_number)
        except RedisError as e:
            raise StoreError(f"Redis do-not-contact write failed: {e}") from e

    def is_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> bool:
        try:
            return bool(self._redis.sismember(f"dnc:{tenant_id}", phone_number))
        except RedisError as e:
            raise StoreError(f"Redis do-not-contact lookup failed: {e}") from e


class RedisCallStore(CallStoreProtocol):
    """Ligações em Redis; outcome protegido por WATCH."""

    def __init__(self, redis_client: Any) -> None:
        self._redis = redis_client

    def create(self, call: Call) -> None:
        try:
            pipe = self._redis.pipeline()
            pipe.set(_call_key(call.call_id), call.model_dump_json())
            pipe.sadd(f"case:calls:{call.case_id}", call.call_id)
            if call.provider_call_id:
                pipe.set(f"call:provider:{call.provider_call_id}", call.call_id)
            pipe.execute()
        except RedisError as e:
            logger.error(
                "Failed to create call in Redis",
                extra={"call_id": call.call_id, "error": type(e).__name__},
            )
            raise StoreError(f"Redis call create failed: {e}") from e

    def get(self, call_id: str) -> Call | None:
        try:
            payload = self._redis.get(_call_key(call_id))
        except RedisError as e:
            raise StoreError(f"Redis call load failed: {e}") from e
        if not payload:
            return None
        return Call.model_validate_json(_decode(payload))

    def get_by_provider_id(self, provider_call_id: str) -> Call | None:
        try:
            call_id = self._redis.get(f"call:provider:{provider_call_id}")
        except RedisError as e:
            raise StoreError(f"Redis call index lookup failed: {e}") from e
        return self.get(_decode(call_id)) if call_id else None

    def _watched_update(self, call_id: str, apply: Any) -> bool:
        key = _call_key(call_id)
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(key)
                payload = pipe.get(key)
                current = Call.model_validate_json(_decode(payload)) if payload else None
                updated = apply(current)
                if updated is None:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, updated.model_dump_json())
                if updated.provider_call_id:
                    pipe.set(f"call:provider:{updated.provider_call_id}", call_id)
                pipe.sadd(f"case:calls:{updated.case_id}", call_id)
                pipe.execute()
        except WatchError:
            return False
        except RedisError as e:
            logger.error(
                "Failed to update call in Redis",
                extra={"call_id": call_id, "error": type(e).__name__},
            )
            raise StoreError(f"Redis call update failed: {e}") from e
        return True

    def attach_provider_id(self, call_id: str, provider_call_id: str) -> None:
        def apply(current: Call | None) -> Call | None:
            if current is None:
                return None
            return current.model_copy(update={"provider_call_id": provider_call_id})

        self._watched_update(call_id, apply)

    def record_outcome(self, call: Call) -> bool:
        def apply(current: Call | None) -> Call | None:
            if current is not None and current.has_outcome:
                return None
            if current is not None and current.provider_call_id and not call.provider_call_id:
                return call.model_copy(update={"provider_call_id": current.provider_call_id})
            return call

        return self._watched_update(call.call_id, apply)

    def list_for_case(self, case_id: str) -> list[Call]:
        try:
            call_ids = self._redis.smembers(f"case:calls:{case_id}")
        except RedisError as e:
            raise StoreError(f"Redis call listing failed: {e}") from e
        calls = [c for c in (self.get(_decode(i)) for i in call_ids) if c is not None]
        return sorted(calls, key=lambda c: c.attempt_number)
