# Overview: Point-of-sale checkouts: creation with stock + credit posting, queries.

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem, PAYMENT_METHODS
from ..validation import LineItem, NotFoundError, ValidationError
from . import debtor_service, record_service
from .concurrency import atomic
from .document_service import next_document_number


def create_sale(
    *,
    items: Sequence[LineItem],
    payment_method: str = "cash",
    debtor_id: int | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Check out a sale.

    Line prices default to the product's current price. Credit sales need a
    debtor and charge them the sale total; for other payment methods any
    debtor_id is ignored.
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if payment_method == "credit" and not debtor_id:
        raise ValidationError("debtor_id is required for credit sales")
    if not items:
        raise ValidationError("At least one item is required")

    def _op():
        debtor = None
        if payment_method == "credit":
            debtor = debtor_service.get_debtor_locked(debtor_id)

        sale = Sale(
            sale_number=next_document_number(document_type="SALE", prefix="S"),
            payment_method=payment_method,
            debtor_id=debtor.id if debtor else None,
            notes=notes or "",
            status="completed",
        )

        products = record_service.move_stock(sale, items)

        total_amount = 0
        for position, item in enumerate(items, start=1):
            product = products[item.product_id]
            price = item.price if item.price is not None else product.price
            line_total = price * item.quantity
            total_amount += line_total
            sale.items.append(SaleItem(
                position=position,
                product_id=product.id,
                product_name=product.name,
                barcode=product.barcode,
                quantity=item.quantity,
                price=price,
                total=line_total,
            ))
        sale.total_amount = total_amount

        db.session.add(sale)
        db.session.flush()

        if debtor is not None:
            debtor_service.post_credit_sale(debtor, sale)
        return sale

    sale = atomic(_op)
    current_app.logger.info(
        "Sale %s created: %d line(s), total %s, %s",
        sale.sale_number, len(sale.items), sale.total_amount, sale.payment_method,
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def update_sale_notes(sale_id: int, notes: str | None) -> Sale:
    """Notes are the only editable field of a completed sale."""
    def _op():
        sale = get_sale(sale_id)
        sale.notes = notes or ""
        return sale

    return atomic(_op)


def delete_sale(sale_id: int) -> dict:
    return record_service.delete_record(Sale, sale_id, not_found_message="Sale not found")


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
    debtor_id: int | None = None,
    page: int = 1,
    limit: int | None = None,
) -> dict:
    """Newest-first sales with optional filters and offset pagination."""
    default_limit = current_app.config["SALES_PAGE_SIZE"]
    max_limit = current_app.config["SALES_MAX_PAGE_SIZE"]
    limit = min(max(limit or default_limit, 1), max_limit)
    page = max(page or 1, 1)

    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    if debtor_id is not None:
        query = query.filter(Sale.debtor_id == debtor_id)

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pages = (total + limit - 1) // limit if total else 0

    return {
        "items": sales,
        "total": total,
        "pages": pages,
        "current_page": page,
    }


def list_sales_between(start: datetime, end: datetime) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )


def list_sales_for_debtor(debtor_id: int) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.debtor_id == debtor_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
