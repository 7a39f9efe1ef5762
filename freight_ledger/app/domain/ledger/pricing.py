"""
Pricing Transform (Domain Logic).

Converts between customer-facing prices and internal base (house) cost
using the customer's price ratio: base price = customer price / ratio.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

from freight_ledger.app.core.config import DEFAULT_PRICE_RATIO
from freight_ledger.app.core.exceptions import LedgerValidationError

Number = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Number, field: str = "amount") -> Decimal:
    """Coerce a numeric input to a finite Decimal or raise LedgerValidationError."""
    if isinstance(value, bool):
        raise LedgerValidationError(f"Invalid {field}", details={field: value})
    try:
        # str() keeps float inputs like 485.5 from picking up binary noise
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid {field}", details={field: str(value)})
    if not result.is_finite():
        raise LedgerValidationError(f"Invalid {field}", details={field: str(value)})
    return result


def normalize_price_ratio(price_ratio: Optional[Number]) -> Decimal:
    """
    Return a usable ratio.

    Missing, zero, negative or non-numeric ratios fall back to
    DEFAULT_PRICE_RATIO so a base price is always defined.
    """
    if price_ratio is None or isinstance(price_ratio, bool):
        return DEFAULT_PRICE_RATIO
    try:
        ratio = price_ratio if isinstance(price_ratio, Decimal) else Decimal(str(price_ratio))
    except (InvalidOperation, TypeError, ValueError):
        return DEFAULT_PRICE_RATIO
    if not ratio.is_finite() or ratio <= 0:
        return DEFAULT_PRICE_RATIO
    return ratio


def resolve_price_ratio(user: Any) -> Decimal:
    """Ratio configured on a user record (or token payload dict), else the fallback."""
    if user is None:
        return DEFAULT_PRICE_RATIO
    if isinstance(user, dict):
        return normalize_price_ratio(user.get("price_ratio"))
    return normalize_price_ratio(getattr(user, "price_ratio", None))


def calculate_base_price(customer_price: Number, price_ratio: Optional[Number]) -> Decimal:
    """
    Convert a customer price to the internal base price.

    Args:
        customer_price: Quoted or charged amount in customer currency (>= 0)
        price_ratio: Customer's ratio; 1.0 means no markup

    Returns:
        Base price rounded to cents

    Raises:
        LedgerValidationError: If customer_price is negative or not a number

    Example:
        calculate_base_price(120, 1.5) -> Decimal("80.00")
        calculate_base_price(100, 0)   -> Decimal("5.00")
    """
    price = to_decimal(customer_price, "customer_price")
    if price < 0:
        raise LedgerValidationError("Customer price must not be negative", details={"customer_price": str(price)})

    return quantize_money(price / normalize_price_ratio(price_ratio))


def calculate_customer_price(base_price: Number, price_ratio: Optional[Number]) -> Decimal:
    """Inverse of calculate_base_price: apply the ratio to a base cost."""
    base = to_decimal(base_price, "base_price")
    if base < 0:
        raise LedgerValidationError("Base price must not be negative", details={"base_price": str(base)})

    return quantize_money(base * normalize_price_ratio(price_ratio))
