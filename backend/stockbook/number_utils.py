"""Decimal helpers for monetary amounts and quantities."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value, *, field: str = "value") -> Decimal:
    """
    Convert user input to Decimal without passing through float.

    Accepts Decimal, int, float (via its repr) and numeric strings.
    Booleans, blanks, NaN and infinities are rejected.

    Raises:
        ValueError: if the value is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            raise ValueError(f"{field} must be a number")
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    else:
        raise ValueError(f"{field} must be a number")

    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def money(value) -> Decimal:
    """Round to cents (half-up). Presentation only; never feed back into sums."""
    if value is None:
        return ZERO.quantize(CENT)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    return f"{money(value):.2f}"
