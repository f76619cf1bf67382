"""Rastreamento do ciclo de vida do carrinho a partir de eventos da loja.

Eventos são aplicados na ordem recebida (last-writer-wins por checkout);
reaplicar o mesmo evento produz o mesmo estado. PURCHASED é terminal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta

from skiddly.domain.cart import Cart, CheckoutEvent, OrderEvent
from skiddly.domain.enums import CartStatus, CheckoutEventKind
from skiddly.domain.errors import ValidationError
from skiddly.domain.protocols.cart_store import CartStoreProtocol
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def is_abandoned(cart: Cart, now: datetime, inactivity_threshold: timedelta) -> bool:
    """Carrinho em checkout e inativo há pelo menos `inactivity_threshold`."""
    if cart.status != CartStatus.IN_CHECKOUT:
        return False
    return now - cart.last_activity_at >= inactivity_threshold


def is_customer_active(cart: Cart, now: datetime, inactivity_threshold: timedelta) -> bool:
    """Cliente voltou ao checkout e ainda não passou o limiar de inatividade."""
    if cart.status != CartStatus.IN_CHECKOUT:
        return False
    return now - cart.last_activity_at < inactivity_threshold


def _require_ids(tenant_id: str | None, checkout_id: str | None) -> None:
    if not tenant_id or not checkout_id:
        msg = "evento sem tenant_id/checkout_id"
        raise ValidationError(msg)


class CartLifecycleTracker:
    """Aplica eventos de checkout/pedido no CartStore."""

    def __init__(self, cart_store: CartStoreProtocol) -> None:
        self._store = cart_store

    def get(self, tenant_id: str, checkout_id: str) -> Cart | None:
        return self._store.get(tenant_id, checkout_id)

    def record_checkout_event(self, event: CheckoutEvent, kind: CheckoutEventKind) -> Cart:
        """Cria ou atualiza o carrinho.

        - created: novo carrinho IN_CHECKOUT (ou atualização, se já existir)
        - updated: atualiza campos e lastActivityAt; ABANDONED volta a IN_CHECKOUT
        - evento não mais novo que a atividade registrada: no-op (duplicado ou fora de ordem)
        - carrinho PURCHASED não muda

        Raises:
            ValidationError: evento sem identificadores
        """
        _require_ids(event.tenant_id, event.checkout_id)
        existing = self._store.get(event.tenant_id, event.checkout_id)

        if existing is None:
            cart = Cart(
                tenant_id=event.tenant_id,
                checkout_id=event.checkout_id,
                total_price=event.total_price,
                currency=event.currency,
                line_items=event.line_items,
                contact=event.contact,
                shipping_address=event.shipping_address,
                discount_codes=event.discount_codes,
                status=CartStatus.IN_CHECKOUT,
                created_at=event.created_at,
                last_activity_at=event.updated_at,
            )
            self._store.save(cart)
            logger.info(
                "cart_created",
                extra={
                    "tenant_id": cart.tenant_id,
                    "checkout_id": cart.checkout_id,
                    "event_kind": kind.value,
                },
            )
            return cart

        if existing.status == CartStatus.PURCHASED:
            logger.info(
                "cart_event_ignored_purchased",
                extra={"tenant_id": existing.tenant_id, "checkout_id": existing.checkout_id},
            )
            return existing

        if event.updated_at <= existing.last_activity_at:
            logger.info(
                "cart_event_stale",
                extra={"tenant_id": existing.tenant_id, "checkout_id": existing.checkout_id},
            )
            return existing

        cart = existing.model_copy(
            update={
                "total_price": event.total_price,
                "currency": event.currency,
                "line_items": event.line_items,
                "contact": event.contact,
                "shipping_address": event.shipping_address or existing.shipping_address,
                "discount_codes": event.discount_codes,
                "last_activity_at": event.updated_at,
                "status": CartStatus.IN_CHECKOUT,
                "abandoned_at": None,
            }
        )
        if cart != existing:
            self._store.save(cart)
        if existing.status == CartStatus.ABANDONED:
            logger.info(
                "cart_reactivated",
                extra={"tenant_id": cart.tenant_id, "checkout_id": cart.checkout_id},
            )
        return cart

    def record_order_event(self, event: OrderEvent) -> Cart | None:
        """Marca o carrinho referenciado como PURCHASED.

        Pedido para checkout desconhecido é logado e ignorado (None).
        """
        _require_ids(event.tenant_id, event.checkout_id)
        existing = self._store.get(event.tenant_id, event.checkout_id)
        if existing is None:
            logger.warning(
                "order_for_unknown_cart",
                extra={"tenant_id": event.tenant_id, "checkout_id": event.checkout_id},
            )
            return None

        if existing.status == CartStatus.PURCHASED:
            return existing

        cart = existing.model_copy(
            update={
                "status": CartStatus.PURCHASED,
                "completed_at": event.completed_at,
                "order_id": event.order_id,
            }
        )
        self._store.save(cart)
        logger.info(
            "cart_purchased",
            extra={
                "tenant_id": cart.tenant_id,
                "checkout_id": cart.checkout_id,
                "order_id": event.order_id,
            },
        )
        return cart

    def mark_abandoned(self, cart: Cart, now: datetime) -> Cart:
        """Persiste o status ABANDONED quando a recuperação começa."""
        if cart.status != CartStatus.IN_CHECKOUT:
            return cart
        abandoned = cart.model_copy(
            update={"status": CartStatus.ABANDONED, "abandoned_at": now}
        )
        self._store.save(abandoned)
        logger.info(
            "cart_abandoned",
            extra={"tenant_id": cart.tenant_id, "checkout_id": cart.checkout_id},
        )
        return abandoned

    def open_carts(self) -> Iterator[Cart]:
        """Carrinhos ainda não comprados (entrada do scanner de abandono)."""
        return self._store.list_open()
