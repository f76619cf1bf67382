"""Testes do CartLifecycleTracker."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from skiddly.application.cart_tracker import (
    CartLifecycleTracker,
    is_abandoned,
    is_customer_active,
)
from skiddly.domain.enums import CartStatus, CheckoutEventKind
from skiddly.infra.store_memory import InMemoryCartStore
from tests.helpers.factories import BASE_TIME, TENANT, make_cart, make_checkout_event, make_order_event


@pytest.fixture
def store() -> InMemoryCartStore:
    return InMemoryCartStore()


@pytest.fixture
def tracker(store: InMemoryCartStore) -> CartLifecycleTracker:
    return CartLifecycleTracker(store)


class TestRecordCheckoutEvent:
    """Testes para record_checkout_event."""

    def test_creates_cart_in_checkout(self, tracker: CartLifecycleTracker) -> None:
        cart = tracker.record_checkout_event(make_checkout_event(), CheckoutEventKind.CREATED)

        assert cart.status == CartStatus.IN_CHECKOUT
        assert cart.last_activity_at == BASE_TIME
        assert tracker.get(TENANT, "chk-1") == cart

    def test_newer_update_refreshes_activity(self, tracker: CartLifecycleTracker) -> None:
        tracker.record_checkout_event(make_checkout_event(), CheckoutEventKind.CREATED)
        later = BASE_TIME + timedelta(minutes=10)

        cart = tracker.record_checkout_event(
            make_checkout_event(updated_at=later, total_price=Decimal("99.90")),
            CheckoutEventKind.UPDATED,
        )

        assert cart.last_activity_at == later
        assert cart.total_price == Decimal("99.90")

    def test_replayed_event_is_noop(self, tracker: CartLifecycleTracker) -> None:
        first = tracker.record_checkout_event(make_checkout_event(), CheckoutEventKind.CREATED)
        again = tracker.record_checkout_event(make_checkout_event(), CheckoutEventKind.CREATED)
        assert again == first

    def test_out_of_order_event_ignored(self, tracker: CartLifecycleTracker) -> None:
        later = BASE_TIME + timedelta(minutes=30)
        tracker.record_checkout_event(make_checkout_event(updated_at=later), CheckoutEventKind.UPDATED)

        cart = tracker.record_checkout_event(
            make_checkout_event(updated_at=BASE_TIME, total_price=Decimal("1")),
            CheckoutEventKind.UPDATED,
        )

        assert cart.last_activity_at == later
        assert cart.total_price == Decimal("120.00")

    def test_activity_reactivates_abandoned_cart(
        self, tracker: CartLifecycleTracker, store: InMemoryCartStore
    ) -> None:
        store.save(make_cart(status=CartStatus.ABANDONED, abandoned_at=BASE_TIME))

        cart = tracker.record_checkout_event(
            make_checkout_event(updated_at=BASE_TIME + timedelta(hours=2)),
            CheckoutEventKind.UPDATED,
        )

        assert cart.status == CartStatus.IN_CHECKOUT
        assert cart.abandoned_at is None

    def test_purchased_cart_is_unchanged(
        self, tracker: CartLifecycleTracker, store: InMemoryCartStore
    ) -> None:
        store.save(make_cart(status=CartStatus.PURCHASED))

        cart = tracker.record_checkout_event(
            make_checkout_event(updated_at=BASE_TIME + timedelta(hours=1)),
            CheckoutEventKind.UPDATED,
        )

        assert cart.status == CartStatus.PURCHASED
        assert cart.last_activity_at == BASE_TIME


class TestRecordOrderEvent:
    """Testes para record_order_event."""

    def test_marks_cart_purchased(self, tracker: CartLifecycleTracker) -> None:
        tracker.record_checkout_event(make_checkout_event(), CheckoutEventKind.CREATED)

        cart = tracker.record_order_event(make_order_event())

        assert cart is not None
        assert cart.status == CartStatus.PURCHASED
        assert cart.order_id == "order-1"
        assert cart.completed_at == BASE_TIME

    def test_unknown_checkout_returns_none(
        self, tracker: CartLifecycleTracker, store: InMemoryCartStore
    ) -> None:
        """Pedido para checkout não rastreado: None, sem exceção."""
        assert tracker.record_order_event(make_order_event(checkout_id="unknown")) is None
        assert store.get(TENANT, "unknown") is None

    def test_repeated_order_is_idempotent(self, tracker: CartLifecycleTracker) -> None:
        tracker.record_checkout_event(make_checkout_event(), CheckoutEventKind.CREATED)
        first = tracker.record_order_event(make_order_event())
        second = tracker.record_order_event(make_order_event(order_id="order-2"))
        assert second == first


class TestAbandonment:
    def test_is_abandoned_after_threshold(self) -> None:
        cart = make_cart()
        threshold = timedelta(minutes=60)

        assert not is_abandoned(cart, BASE_TIME + timedelta(minutes=59), threshold)
        assert is_abandoned(cart, BASE_TIME + timedelta(minutes=60), threshold)

    def test_purchased_never_abandoned(self) -> None:
        cart = make_cart(status=CartStatus.PURCHASED)
        assert not is_abandoned(cart, BASE_TIME + timedelta(days=3), timedelta(minutes=1))

    def test_already_abandoned_is_not_reported_again(self) -> None:
        cart = make_cart(status=CartStatus.ABANDONED)
        assert not is_abandoned(cart, BASE_TIME + timedelta(days=3), timedelta(minutes=1))

    def test_customer_active_only_while_in_checkout(self) -> None:
        threshold = timedelta(minutes=60)
        active = make_cart()
        abandoned = make_cart(status=CartStatus.ABANDONED)

        assert is_customer_active(active, BASE_TIME + timedelta(minutes=59), threshold)
        assert not is_customer_active(active, BASE_TIME + timedelta(minutes=60), threshold)
        assert not is_customer_active(abandoned, BASE_TIME + timedelta(minutes=5), threshold)

    def test_mark_abandoned_persists(
        self, tracker: CartLifecycleTracker, store: InMemoryCartStore
    ) -> None:
        store.save(make_cart())
        now = BASE_TIME + timedelta(hours=2)

        cart = tracker.mark_abandoned(make_cart(), now)

        assert cart.status == CartStatus.ABANDONED
        assert store.get(TENANT, "chk-1").abandoned_at == now

    def test_open_carts_skip_purchased(
        self, tracker: CartLifecycleTracker, store: InMemoryCartStore
    ) -> None:
        store.save(make_cart("chk-1"))
        store.save(make_cart("chk-2", status=CartStatus.PURCHASED))

        assert [c.checkout_id for c in tracker.open_carts()] == ["chk-1"]
