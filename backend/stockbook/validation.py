from __future__ import annotations
from decimal import Decimal

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .number_utils import to_decimal


# Upper bound for catalog amounts (price, discount, cost); fits Numeric(14, 4)
MAX_AMOUNT = Decimal("9999999.99")

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (duplicate or immutable SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write, and which must be present on create.
    Anything outside writable_fields is rejected, including server-maintained
    columns such as quantity_on_hand.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "writable_fields", frozenset(self.writable_fields))
        object.__setattr__(self, "required_on_create", frozenset(self.required_on_create))


def _coerce_amount(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a decimal amount")
    try:
        return to_decimal(value, field=key)
    except ValueError as e:
        raise ValidationError(str(e))


def _coerce_flag(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValidationError(f"{key} must be true or false")


def _coerce_text(col, value: Any) -> str:
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{col.key} must be a string")
    text = str(value).strip()
    if text == "" and not col.nullable:
        raise ValidationError(f"{col.key} cannot be blank")
    length = getattr(col.type, "length", None)
    if length and len(text) > length:
        raise ValidationError(f"{col.key} exceeds max length {length}")
    return text


def _coerce(col, value: Any):
    coltype = col.type
    if isinstance(coltype, Numeric):
        return _coerce_amount(col.key, value)
    if isinstance(coltype, Boolean):
        return _coerce_flag(col.key, value)
    if isinstance(coltype, (String, Text)):
        return _coerce_text(col, value)
    raise ValidationError(f"{col.key} cannot be set through the API")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a JSON body against the model's column metadata and a policy.

    partial=False is create semantics (required_on_create enforced);
    partial=True validates only the keys that were sent. Returns a patch
    holding coerced values for writable columns only.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = {c.key: c for c in model.__mapper__.columns}

    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in cols:
            raise ValidationError(f"Field not allowed: {key}")
        col = cols[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue
        patch[key] = _coerce(col, raw)

    return patch


def enforce_rules_product(patch: dict, *, current_price: Decimal | None = None) -> None:
    """Amount bounds, and a list discount never above the list price."""
    for key in ("price", "discount", "cost"):
        amount = patch.get(key)
        if amount is None:
            continue
        if amount < 0:
            raise ValidationError(f"{key} must be >= 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT:,.2f}")

    price = patch.get("price", current_price)
    discount = patch.get("discount")
    if price is not None and discount is not None and discount > price:
        raise ValidationError("discount cannot exceed price")
