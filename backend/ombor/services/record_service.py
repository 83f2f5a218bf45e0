# Overview: Stock/debt consistency shared by both record kinds (Sale, Transaction).
"""
Record lifecycle

Create (inside one write transaction):
  1. lock every referenced product (404 if any is missing)
  2. check on-hand for all lines, then move stock line by line
  3. persist the record with computed totals
  4. credit sales only: charge the debtor (savepoint, best-effort)

Delete (inside one write transaction):
  1. lock the record (404 if already gone, so a retry never double-reverses)
  2. apply the inverse stock delta per line, skipping deleted products
  3. credit sales only: refund the debtor (savepoint, best-effort)
  4. delete the record

Financial fields are never edited in place; deletion is the only undo.
"""

from __future__ import annotations

from typing import Sequence

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import LineItem, NotFoundError
from . import debtor_service, inventory_service
from .concurrency import atomic, lock_for_update


def move_stock(record, items: Sequence[LineItem]) -> dict[int, Product]:
    """Apply the record's stock effect for the requested lines."""
    products = inventory_service.load_products(item.product_id for item in items)
    inventory_service.apply_movements(items, products, sign=record.stock_sign())
    return products


def delete_record(model, record_id: int, *, not_found_message: str) -> dict:
    """Reverse a Sale or Transaction and delete it. Returns the deleted record's dict."""
    def _op():
        record = lock_for_update(db.session.query(model).filter_by(id=record_id)).first()
        if record is None:
            raise NotFoundError(not_found_message)

        snapshot = record.to_dict()
        label = record.label()

        restocked = inventory_service.reverse_movements(record)

        debtor_id = record.credit_debtor_id()
        if debtor_id is not None:
            debtor_service.refund_credit_sale(debtor_id, record)

        db.session.delete(record)
        return snapshot, label, restocked

    snapshot, label, restocked = atomic(_op)
    current_app.logger.info(
        "%s deleted; stock reversed for product(s) %s", label, restocked or "none"
    )
    return snapshot
