"""Money helpers. All amounts are Decimal with two places."""

from decimal import Decimal

from invoicechain.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def as_money(value) -> Decimal:
    """Normalize an aggregate result (None, float or Decimal) to Decimal."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT)


def ensure_cents(value: Decimal, field: str) -> Decimal:
    """Reject values with sub-cent precision.

    Stored columns keep two places, so a finer value would compare
    differently before and after the write.
    """
    if not value.is_finite() or value.normalize().as_tuple().exponent < -2:
        raise ValidationError(
            f"{field} must have at most two decimal places",
            details={"field": field, "value": str(value)},
        )
    return value
