"""
Commission Calculator

Pure pricing of a conversion from a product's commission rule.

Currency is an integer unit (no sub-unit fractions). Percentage results are
rounded to the nearest unit with ties away from zero (ROUND_HALF_UP on
Decimal); every code path that prices an order goes through
``compute_commission`` so the rounding is uniform.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from ..core.errors import InvalidInputError
from ..models.enums import CommissionType

Number = Union[int, float, str, Decimal]


def _to_decimal(value: Number, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number", {field: value})
    try:
        # str() keeps floats like 0.2 from dragging binary noise into the product
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInputError(f"{field} must be a number", {field: str(value)})
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be finite", {field: str(value)})
    return result


@dataclass(frozen=True)
class CommissionRule:
    """
    ``percentage``: value is a fraction in [0, 1] (0.2 = 20%).
    ``fixed``: value is a non-negative whole amount paid per conversion.
    """
    type: CommissionType
    value: Decimal

    def __init__(self, type: Union[CommissionType, str], value: Number):
        try:
            rule_type = CommissionType(type)
        except ValueError:
            raise InvalidInputError(
                'commission_type must be "percentage" or "fixed"',
                {"commission_type": str(type)},
            )
        rule_value = _to_decimal(value, "commission_value")

        if rule_value < 0:
            raise InvalidInputError(
                "commission_value must be >= 0",
                {"commission_type": rule_type.value, "commission_value": str(rule_value)},
            )
        if rule_type is CommissionType.PERCENTAGE and rule_value > 1:
            raise InvalidInputError(
                "percentage commission_value must be a fraction between 0 and 1",
                {"commission_type": rule_type.value, "commission_value": str(rule_value)},
            )
        if rule_type is CommissionType.FIXED and rule_value != rule_value.to_integral_value():
            raise InvalidInputError(
                "fixed commission_value must be a whole amount",
                {"commission_type": rule_type.value, "commission_value": str(rule_value)},
            )

        object.__setattr__(self, "type", rule_type)
        object.__setattr__(self, "value", rule_value)


def round_amount(amount: Decimal) -> int:
    """Nearest integer unit, ties away from zero."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_commission(rule: CommissionRule, order_amount: Number) -> int:
    """
    Price one order.

    Args:
        rule: Product commission rule
        order_amount: Order total in integer currency units (>= 0)

    Returns:
        Commission amount in integer currency units

    Raises:
        InvalidInputError: negative or fractional order amount
    """
    amount = _to_decimal(order_amount, "order_amount")
    if amount < 0:
        raise InvalidInputError("order_amount must be >= 0", {"order_amount": str(amount)})
    if amount != amount.to_integral_value():
        raise InvalidInputError("order_amount must be a whole amount", {"order_amount": str(amount)})

    if rule.type is CommissionType.PERCENTAGE:
        return round_amount(amount * rule.value)
    return round_amount(rule.value)
