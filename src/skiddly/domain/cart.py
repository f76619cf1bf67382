"""Modelos do carrinho e eventos normalizados da loja."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from skiddly.domain.enums import CartStatus


def ensure_aware(value: datetime | None) -> datetime | None:
    """Normaliza datetime naive como UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class LineItem(BaseModel):
    """Item do carrinho."""

    title: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    product_id: str | None = None


class ShippingAddress(BaseModel):
    """Endereço de entrega (apenas campos usados em elegibilidade)."""

    country: str | None = None
    country_code: str | None = None
    province: str | None = None
    city: str | None = None
    zip: str | None = None
    phone: str | None = None


class CustomerContact(BaseModel):
    """Contato do cliente no checkout."""

    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    customer_id: str | None = None
    orders_count: int = 0

    @property
    def full_name(self) -> str | None:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or None


class CheckoutEvent(BaseModel):
    """Evento de criação/atualização de checkout, já normalizado."""

    tenant_id: str
    checkout_id: str
    total_price: Decimal = Decimal("0")
    currency: str = "USD"
    line_items: list[LineItem] = Field(default_factory=list)
    contact: CustomerContact = Field(default_factory=CustomerContact)
    shipping_address: ShippingAddress | None = None
    discount_codes: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("checkout_id", "tenant_id")
    @classmethod
    def ensure_present(cls, value: str) -> str:
        if not value or not value.strip():
            msg = "identificador obrigatório ausente"
            raise ValueError(msg)
        return value


class OrderEvent(BaseModel):
    """Evento de pedido criado que referencia um checkout."""

    tenant_id: str
    checkout_id: str
    order_id: str
    total_price: Decimal = Decimal("0")
    completed_at: datetime

    @field_validator("completed_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class Cart(BaseModel):
    """Carrinho rastreado, chave (tenant_id, checkout_id).

    Abandono é derivado sob demanda (ver is_abandoned); ABANDONED só é
    persistido quando o caso de recuperação é aberto.
    """

    tenant_id: str
    checkout_id: str
    total_price: Decimal = Decimal("0")
    currency: str = "USD"
    line_items: list[LineItem] = Field(default_factory=list)
    contact: CustomerContact = Field(default_factory=CustomerContact)
    shipping_address: ShippingAddress | None = None
    discount_codes: list[str] = Field(default_factory=list)
    status: CartStatus = CartStatus.IN_CHECKOUT
    created_at: datetime
    last_activity_at: datetime
    abandoned_at: datetime | None = None
    completed_at: datetime | None = None
    order_id: str | None = None

    @field_validator("created_at", "last_activity_at", "abandoned_at", "completed_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @property
    def key(self) -> tuple[str, str]:
        return (self.tenant_id, self.checkout_id)

    @property
    def phone_number(self) -> str | None:
        if self.contact.phone:
            return self.contact.phone
        if self.shipping_address and self.shipping_address.phone:
            return self.shipping_address.phone
        return None

    @property
    def is_purchased(self) -> bool:
        return self.status == CartStatus.PURCHASED
