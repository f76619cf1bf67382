"""Testes das condições de elegibilidade."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from skiddly.application.eligibility import check_condition, check_conditions, is_reachable_phone
from skiddly.domain.cart import ShippingAddress
from skiddly.domain.enums import ConditionOperator, ConditionType
from skiddly.domain.policy import EligibilityCondition
from tests.helpers.factories import make_cart, make_contact


def _condition(kind: ConditionType, op: ConditionOperator, value: str) -> EligibilityCondition:
    return EligibilityCondition(type=kind, operator=op, value=value)


class TestIsReachablePhone:
    """Testes para is_reachable_phone."""

    @pytest.mark.parametrize("phone", ["+1 (212) 555-0123", "+919876543210", "21255501"])
    def test_valid_numbers(self, phone: str) -> None:
        assert is_reachable_phone(phone)

    @pytest.mark.parametrize("phone", [None, "", "555-0123", "+1234567890123456"])
    def test_invalid_numbers(self, phone: str | None) -> None:
        assert not is_reachable_phone(phone)


class TestCheckCondition:
    """Testes para check_condition por tipo."""

    def test_cart_value_satisfied(self) -> None:
        cart = make_cart(total_price=Decimal("150"))
        cond = _condition(ConditionType.CART_VALUE, ConditionOperator.GTE, "100")
        assert check_condition(cart, cond) is None

    def test_cart_value_failure_reason(self) -> None:
        cart = make_cart(total_price=Decimal("50"))
        cond = _condition(ConditionType.CART_VALUE, ConditionOperator.GT, "100")
        reason = check_condition(cart, cond)
        assert reason is not None
        assert "cart value 50" in reason

    def test_new_customer(self) -> None:
        cart = make_cart(contact=make_contact(orders_count=0))
        cond = _condition(ConditionType.CUSTOMER_TYPE, ConditionOperator.INCLUDES, "new")
        assert check_condition(cart, cond) is None

    def test_returning_customer_excluded(self) -> None:
        cart = make_cart(contact=make_contact(orders_count=3))
        cond = _condition(ConditionType.CUSTOMER_TYPE, ConditionOperator.EXCLUDES, "returning")
        assert check_condition(cart, cond) is not None

    def test_products_substring_match(self) -> None:
        cart = make_cart()
        cond = _condition(ConditionType.PRODUCTS, ConditionOperator.INCLUDES, "sneakers, boots")
        assert check_condition(cart, cond) is None

    def test_location_matches_country_code(self) -> None:
        cart = make_cart(shipping_address=ShippingAddress(country="United States", country_code="US"))
        cond = _condition(ConditionType.LOCATION, ConditionOperator.INCLUDES, "us,ca")
        assert check_condition(cart, cond) is None

    def test_location_without_address_fails_includes(self) -> None:
        cart = make_cart()
        cond = _condition(ConditionType.LOCATION, ConditionOperator.INCLUDES, "US")
        assert check_condition(cart, cond) is not None

    def test_coupon_excludes(self) -> None:
        cart = make_cart(discount_codes=["WELCOME10"])
        cond = _condition(ConditionType.COUPON_CODE, ConditionOperator.EXCLUDES, "welcome10")
        assert check_condition(cart, cond) is not None


class TestCheckConditions:
    """Testes para check_conditions."""

    def test_collects_all_reasons(self) -> None:
        cart = make_cart(total_price=Decimal("10"), contact=make_contact(orders_count=2))
        conditions = (
            _condition(ConditionType.CART_VALUE, ConditionOperator.GTE, "100"),
            _condition(ConditionType.CUSTOMER_TYPE, ConditionOperator.INCLUDES, "new"),
        )
        assert len(check_conditions(cart, conditions)) == 2

    def test_empty_conditions(self) -> None:
        assert check_conditions(make_cart(), ()) == []


class TestEligibilityConditionModel:
    """Validação de operadores por tipo."""

    def test_membership_operator_rejected_for_cart_value(self) -> None:
        with pytest.raises(ValidationError):
            _condition(ConditionType.CART_VALUE, ConditionOperator.INCLUDES, "100")

    def test_numeric_operator_rejected_for_products(self) -> None:
        with pytest.raises(ValidationError):
            _condition(ConditionType.PRODUCTS, ConditionOperator.GT, "shoes")

    def test_non_numeric_cart_value_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _condition(ConditionType.CART_VALUE, ConditionOperator.GTE, "abc")
