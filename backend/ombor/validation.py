# Overview: Input validation for API payloads and the domain error types.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text


# Upper bound for any money field (price, cost, debt). Keeps integer columns
# well inside 64-bit range even after quantity multiplication.
MAX_AMOUNT = 999_999_999_999
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """Bad input or a broken business rule; rendered as 400."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValidationError):
    """Duplicate unique key (barcode, phone, category name)."""


class InsufficientStockError(ValidationError):
    """A sale asks for more units than are on hand."""


class NotFoundError(LookupError):
    """A referenced row does not exist; rendered as 404."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may send for one model, and which of them a
    create must carry.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "writable_fields", frozenset(self.writable_fields))
        object.__setattr__(self, "required_on_create", frozenset(self.required_on_create))


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, fractions and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def _clean_field(column, raw: Any) -> Any:
    """Coerce one present, non-null value to its column's type."""
    key = column.key

    if isinstance(column.type, Integer):
        return coerce_int(key, raw)

    if isinstance(column.type, (String, Text)):
        text = str(raw).strip()
        if not text and not column.nullable:
            raise ValidationError(f"{key} cannot be blank")
        length = getattr(column.type, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{key} exceeds max length {length}")
        return text

    return raw


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch of typed column values.

    Only policy.writable_fields that are real columns of `model` survive;
    anything else in the body is dropped, since front-ends post whole form
    objects (populated relations included) back on update. A create
    (partial=False) must carry every required field with a non-empty value.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key in policy.writable_fields.intersection(payload):
        column = columns.get(key)
        if column is None:
            continue
        raw = payload[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean_field(column, raw)
    return patch


def _check_amount(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        value = patch[key]
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_AMOUNT:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")


def enforce_rules_product(patch: dict) -> None:
    """Non-negative money and stock; an empty barcode means "no barcode"."""
    _check_amount(patch, "price")
    _check_amount(patch, "cost")
    if patch.get("min_stock") is not None and patch["min_stock"] < 0:
        raise ValidationError("min_stock must be >= 0")
    if patch.get("quantity") is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")
    if patch.get("barcode") == "":
        patch["barcode"] = None


def enforce_rules_debtor(patch: dict) -> None:
    _check_amount(patch, "debt_amount")
    _check_amount(patch, "max_debt_amount")


@dataclass(frozen=True)
class LineItem:
    """One validated line of a sale or transaction request."""
    product_id: int
    quantity: int
    price: int | None


def parse_line_items(raw_items: Any) -> list[LineItem]:
    """
    Validate the `items` array shared by sales and transactions.

    Each entry needs `product` (or `product_id`) and a positive `quantity`;
    `price` is optional here and must be >= 0 when given.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")

    items: list[LineItem] = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        product_ref = raw.get("product", raw.get("product_id"))
        if isinstance(product_ref, dict):
            product_ref = product_ref.get("id")
        if product_ref in (None, ""):
            raise ValidationError(f"items[{index}].product is required")
        product_id = coerce_int(f"items[{index}].product", product_ref)

        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")
        quantity = coerce_int(f"items[{index}].quantity", raw["quantity"])
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_QUANTITY}")

        price = None
        if raw.get("price") is not None:
            price = coerce_int(f"items[{index}].price", raw["price"])
            if price < 0:
                raise ValidationError(f"items[{index}].price must be >= 0")
            if price > MAX_AMOUNT:
                raise ValidationError(f"items[{index}].price cannot exceed {MAX_AMOUNT}")

        items.append(LineItem(product_id=product_id, quantity=quantity, price=price))

    return items


def parse_choice(value: Any, *, field: str, choices: tuple[str, ...], default: str | None = None) -> str:
    if value in (None, ""):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    value = str(value).strip().lower()
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value
