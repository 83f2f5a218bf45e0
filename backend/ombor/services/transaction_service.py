# Overview: Generic sale/purchase/return transactions with cost and profit.

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from flask import current_app

from ..extensions import db
from ..models import Transaction, TransactionItem, TRANSACTION_TYPES
from ..validation import LineItem, NotFoundError, ValidationError
from . import record_service
from .concurrency import atomic


TRANSACTION_INFO_FIELDS = ("customer_name", "customer_phone", "notes")


def create_transaction(
    *,
    type: str,
    items: Sequence[LineItem],
    customer_name: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
) -> Transaction:
    """
    Record a sale, purchase or return and move stock accordingly.

    total_cost uses each product's cost at the time of the transaction;
    profit = total_amount - total_cost.
    """
    if type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(TRANSACTION_TYPES)}")
    if not items:
        raise ValidationError("At least one item is required")

    def _op():
        tx = Transaction(
            type=type,
            customer_name=customer_name,
            customer_phone=customer_phone,
            notes=notes,
        )

        products = record_service.move_stock(tx, items)

        total_amount = 0
        total_cost = 0
        for position, item in enumerate(items, start=1):
            product = products[item.product_id]
            price = item.price if item.price is not None else product.price
            total_amount += item.quantity * price
            total_cost += item.quantity * product.cost
            tx.items.append(TransactionItem(
                position=position,
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                price=price,
                unit_cost=product.cost,
            ))

        tx.total_amount = total_amount
        tx.total_cost = total_cost
        tx.profit = total_amount - total_cost

        db.session.add(tx)
        db.session.flush()
        return tx

    tx = atomic(_op)
    current_app.logger.info(
        "Transaction %s (%s) created: total %s, profit %s",
        tx.id, tx.type, tx.total_amount, tx.profit,
    )
    return tx


def get_transaction(transaction_id: int) -> Transaction:
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        raise NotFoundError("Transaction not found")
    return tx


def update_transaction_info(transaction_id: int, patch: dict) -> Transaction:
    """
    Only customer details and notes can change after creation.

    Empty or missing values leave the stored field as it is; a field cannot
    be cleared once set.
    """
    def _op():
        tx = get_transaction(transaction_id)
        for key in TRANSACTION_INFO_FIELDS:
            value = patch.get(key)
            if value:
                setattr(tx, key, value)
        return tx

    return atomic(_op)


def delete_transaction(transaction_id: int) -> dict:
    return record_service.delete_record(
        Transaction, transaction_id, not_found_message="Transaction not found"
    )


def list_transactions(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    type: str | None = None,
) -> list[Transaction]:
    query = db.session.query(Transaction)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    if type:
        query = query.filter(Transaction.type == type)
    return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()


def list_transactions_between(start: datetime, end: datetime) -> list[Transaction]:
    return (
        db.session.query(Transaction)
        .filter(Transaction.created_at >= start, Transaction.created_at < end)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )
