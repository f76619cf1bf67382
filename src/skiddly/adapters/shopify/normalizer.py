"""Normalização de webhooks Shopify em eventos de domínio.

Tópicos suportados:
- checkouts/create, checkouts/update → CheckoutEvent
- orders/create → OrderEvent

Tenant é o domínio da loja (`X-Shopify-Shop-Domain`).
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from skiddly.domain.cart import (
    CheckoutEvent,
    CustomerContact,
    LineItem,
    OrderEvent,
    ShippingAddress,
)
from skiddly.domain.enums import CheckoutEventKind
from skiddly.domain.errors import ValidationError
from skiddly.observability.logging import get_logger

logger = get_logger(__name__)

CHECKOUT_TOPICS: dict[str, CheckoutEventKind] = {
    "checkouts/create": CheckoutEventKind.CREATED,
    "checkouts/update": CheckoutEventKind.UPDATED,
}
ORDER_TOPIC = "orders/create"


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def _parse_timestamp(value: Any, fallback: datetime) -> datetime:
    if not value:
        return fallback
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return fallback
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _line_items(raw: Any) -> list[LineItem]:
    items: list[LineItem] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            continue
        items.append(
            LineItem(
                title=_as_str(entry.get("title")) or "",
                quantity=int(entry.get("quantity") or 1),
                unit_price=_as_decimal(entry.get("price")),
                product_id=_as_str(entry.get("product_id")),
            )
        )
    return items


def _contact(payload: dict[str, Any]) -> CustomerContact:
    customer = payload.get("customer") or {}
    return CustomerContact(
        email=_as_str(payload.get("email")) or _as_str(customer.get("email")),
        phone=_as_str(payload.get("phone")) or _as_str(customer.get("phone")),
        first_name=_as_str(customer.get("first_name")),
        last_name=_as_str(customer.get("last_name")),
        customer_id=_as_str(customer.get("id")),
        orders_count=int(customer.get("orders_count") or 0),
    )


def _shipping_address(raw: Any) -> ShippingAddress | None:
    if not isinstance(raw, dict):
        return None
    return ShippingAddress(
        country=_as_str(raw.get("country")),
        country_code=_as_str(raw.get("country_code")),
        province=_as_str(raw.get("province")),
        city=_as_str(raw.get("city")),
        zip=_as_str(raw.get("zip")),
        phone=_as_str(raw.get("phone")),
    )


def _discount_codes(raw: Any) -> list[str]:
    codes: list[str] = []
    for entry in raw or []:
        code = entry.get("code") if isinstance(entry, dict) else entry
        if _as_str(code):
            codes.append(str(code).strip())
    return codes


def normalize_checkout(
    payload: dict[str, Any],
    shop_domain: str | None,
    *,
    received_at: datetime | None = None,
) -> CheckoutEvent:
    """Converte payload de checkout em CheckoutEvent.

    Raises:
        ValidationError: payload sem id de checkout ou sem loja
    """
    checkout_id = _as_str(payload.get("id")) or _as_str(payload.get("token"))
    if not checkout_id:
        msg = "checkout payload sem id"
        raise ValidationError(msg)
    if not _as_str(shop_domain):
        msg = "webhook sem X-Shopify-Shop-Domain"
        raise ValidationError(msg)

    now = received_at or datetime.now(tz=UTC)
    created_at = _parse_timestamp(payload.get("created_at"), now)
    try:
        return CheckoutEvent(
            tenant_id=str(shop_domain).strip(),
            checkout_id=checkout_id,
            total_price=_as_decimal(payload.get("total_price")),
            currency=_as_str(payload.get("currency")) or "USD",
            line_items=_line_items(payload.get("line_items")),
            contact=_contact(payload),
            shipping_address=_shipping_address(payload.get("shipping_address")),
            discount_codes=_discount_codes(payload.get("discount_codes")),
            created_at=created_at,
            updated_at=_parse_timestamp(payload.get("updated_at"), created_at),
        )
    except PydanticValidationError as e:
        logger.warning("checkout_payload_invalid", extra={"errors": e.error_count()})
        raise ValidationError(f"checkout payload inválido: {e.error_count()} erros") from e


def normalize_order(
    payload: dict[str, Any],
    shop_domain: str | None,
    *,
    received_at: datetime | None = None,
) -> OrderEvent | None:
    """Converte payload de pedido em OrderEvent.

    Pedido sem checkout_id (ex.: venda manual) retorna None.

    Raises:
        ValidationError: payload sem id de pedido ou sem loja
    """
    order_id = _as_str(payload.get("id"))
    if not order_id:
        msg = "order payload sem id"
        raise ValidationError(msg)
    if not _as_str(shop_domain):
        msg = "webhook sem X-Shopify-Shop-Domain"
        raise ValidationError(msg)

    checkout_id = _as_str(payload.get("checkout_id"))
    if not checkout_id:
        logger.info("order_without_checkout", extra={"order_id": order_id})
        return None

    now = received_at or datetime.now(tz=UTC)
    return OrderEvent(
        tenant_id=str(shop_domain).strip(),
        checkout_id=checkout_id,
        order_id=order_id,
        total_price=_as_decimal(payload.get("total_price")),
        completed_at=_parse_timestamp(
            payload.get("processed_at") or payload.get("created_at"), now
        ),
    )
