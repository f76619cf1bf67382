"""Condições de elegibilidade configuráveis por política de tenant."""

from __future__ import annotations

import re
from decimal import Decimal

from skiddly.domain.cart import Cart
from skiddly.domain.enums import ConditionOperator, ConditionType
from skiddly.domain.policy import EligibilityCondition

_NON_DIGITS = re.compile(r"\D")


def is_reachable_phone(phone: str | None) -> bool:
    """Telefone com 8 a 15 dígitos (faixa E.164)."""
    if not phone:
        return False
    digits = _NON_DIGITS.sub("", phone)
    return 8 <= len(digits) <= 15


def _compare(actual: Decimal, operator: ConditionOperator, expected: Decimal) -> bool:
    if operator == ConditionOperator.GTE:
        return actual >= expected
    if operator == ConditionOperator.GT:
        return actual > expected
    if operator == ConditionOperator.LTE:
        return actual <= expected
    if operator == ConditionOperator.LT:
        return actual < expected
    return actual == expected


def _membership(matched: bool, operator: ConditionOperator) -> bool:
    return matched if operator == ConditionOperator.INCLUDES else not matched


def _customer_type(cart: Cart) -> str:
    return "returning" if cart.contact.orders_count > 0 else "new"


def _locations(cart: Cart) -> set[str]:
    address = cart.shipping_address
    if address is None:
        return set()
    fields = (address.country, address.country_code, address.province, address.city)
    return {f.strip().lower() for f in fields if f}


def check_condition(cart: Cart, condition: EligibilityCondition) -> str | None:
    """Retorna o motivo de falha, ou None se a condição é satisfeita."""
    op = condition.operator
    values = condition.values

    if condition.type == ConditionType.CART_VALUE:
        expected = Decimal(condition.value)
        if _compare(cart.total_price, op, expected):
            return None
        return f"cart value {cart.total_price} does not satisfy {op.value} {expected}"

    if condition.type == ConditionType.CUSTOMER_TYPE:
        kind = _customer_type(cart)
        if _membership(kind in values, op):
            return None
        return f"customer type {kind} does not satisfy {op.value} {condition.value}"

    if condition.type == ConditionType.PRODUCTS:
        titles = [item.title.lower() for item in cart.line_items]
        matched = any(v in title for v in values for title in titles)
        if _membership(matched, op):
            return None
        return f"products do not satisfy {op.value} {condition.value}"

    if condition.type == ConditionType.LOCATION:
        matched = bool(_locations(cart) & set(values))
        if _membership(matched, op):
            return None
        return f"location does not satisfy {op.value} {condition.value}"

    codes = {c.strip().lower() for c in cart.discount_codes}
    if _membership(bool(codes & set(values)), op):
        return None
    return f"coupon code does not satisfy {op.value} {condition.value}"


def check_conditions(cart: Cart, conditions: tuple[EligibilityCondition, ...]) -> list[str]:
    """Avalia todas as condições e coleta os motivos de falha."""
    reasons: list[str] = []
    for condition in conditions:
        reason = check_condition(cart, condition)
        if reason:
            reasons.append(reason)
    return reasons
