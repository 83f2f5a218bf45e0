# Overview: Stock movements applied by sale/transaction creation and reversal.
"""
Inventory invariants

- Product.quantity changes here by exactly one delta per record line, and
  by the inverse delta when that record is deleted.
- Every stock check for a request happens before any quantity moves, so a
  rejected request leaves every product untouched.
- Callers run inside concurrency.atomic(); nothing here commits.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..extensions import db
from ..models import Product
from ..validation import InsufficientStockError, LineItem, NotFoundError
from .concurrency import lock_for_update


def load_products(product_ids: Iterable[int]) -> dict[int, Product]:
    """Lock and return every referenced product; NotFoundError on the first missing id."""
    wanted = list(dict.fromkeys(product_ids))
    rows = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(wanted)))
        .all()
    )
    products = {p.id: p for p in rows}
    for product_id in wanted:
        if product_id not in products:
            raise NotFoundError(f"Product {product_id} not found")
    return products


def _validate_on_hand(items: Sequence[LineItem], products: dict[int, Product]) -> None:
    # Totals per product, so two lines for the same product are checked together
    requested: dict[int, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.quantity < qty:
            insufficient.append({
                "product_id": product_id,
                "product_name": product.name,
                "requested_quantity": qty,
                "on_hand": product.quantity,
            })

    if insufficient:
        first = insufficient[0]
        raise InsufficientStockError(
            f"Not enough stock for {first['product_name']}. "
            f"Available: {first['on_hand']}, requested: {first['requested_quantity']}",
            details={"items": insufficient},
        )


def apply_movements(items: Sequence[LineItem], products: dict[int, Product], *, sign: int) -> None:
    """
    Move stock for each line in order.

    sign=-1 removes units (sale) after checking on-hand for all lines;
    sign=+1 adds units (purchase, return) with no upper bound.
    """
    if sign < 0:
        _validate_on_hand(items, products)

    for item in items:
        product = products[item.product_id]
        product.quantity = product.quantity + sign * item.quantity

    db.session.flush()


def reverse_movements(record) -> list[int]:
    """
    Undo the stock effect of a Sale or Transaction.

    Lines whose product has since been deleted are skipped. Reversing a
    purchase or return has no lower bound and may drive quantity negative.
    Returns the ids of the products that were adjusted.
    """
    sign = -record.stock_sign()
    product_ids = [item.product_id for item in record.items]
    if not product_ids:
        return []

    rows = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(set(product_ids))))
        .all()
    )
    products = {p.id: p for p in rows}

    touched = []
    for item in record.items:
        product = products.get(item.product_id)
        if product is None:
            continue
        product.quantity = product.quantity + sign * item.quantity
        touched.append(product.id)

    db.session.flush()
    return touched
