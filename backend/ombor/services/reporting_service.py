# Overview: Read-only aggregates over products, sales, transactions and debtors.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Debtor, Product, Sale, Transaction, PAYMENT_METHODS
from ombor.time_utils import start_of_day, utcnow


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


GROUP_BY_FORMATS = {
    "day": ("%Y-%m-%d", "YYYY-MM-DD"),
    "month": ("%Y-%m", "YYYY-MM"),
    "year": ("%Y", "YYYY"),
}


def _period_expr(column, group_by: str):
    if group_by not in GROUP_BY_FORMATS:
        raise ReportError("group_by must be day, month, or year")
    sqlite_fmt, pg_fmt = GROUP_BY_FORMATS[group_by]
    if db.engine.dialect.name == "postgresql":
        return func.to_char(column, pg_fmt)
    return func.strftime(sqlite_fmt, column)


def _in_range(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query


def product_stats() -> dict:
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    row = db.session.query(
        func.count(Product.id).label("total"),
        func.coalesce(func.sum(case((Product.quantity < threshold, 1), else_=0)), 0).label("low"),
        func.coalesce(func.sum(case((Product.quantity <= 0, 1), else_=0)), 0).label("out"),
        func.coalesce(func.sum(Product.quantity * Product.price), 0).label("value"),
    ).one()

    return {
        "total_products": int(row.total or 0),
        "low_stock_products": int(row.low or 0),
        "out_of_stock_products": int(row.out or 0),
        "total_value": int(row.value or 0),
    }


def transaction_stats(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    def _sum_if(type_: str, column):
        return func.coalesce(func.sum(case((Transaction.type == type_, column), else_=0)), 0)

    def _count_if(type_: str):
        return func.coalesce(func.sum(case((Transaction.type == type_, 1), else_=0)), 0)

    query = db.session.query(
        _sum_if("sale", Transaction.total_amount).label("total_sales"),
        _sum_if("purchase", Transaction.total_amount).label("total_purchases"),
        func.coalesce(func.sum(Transaction.profit), 0).label("total_profit"),
        func.count(Transaction.id).label("total_transactions"),
        _count_if("sale").label("sale_count"),
        _count_if("purchase").label("purchase_count"),
        _count_if("return").label("return_count"),
    )
    row = _in_range(query, Transaction.created_at, start, end).one()

    return {
        "total_sales": int(row.total_sales or 0),
        "total_purchases": int(row.total_purchases or 0),
        "total_profit": int(row.total_profit or 0),
        "total_transactions": int(row.total_transactions or 0),
        "sale_count": int(row.sale_count or 0),
        "purchase_count": int(row.purchase_count or 0),
        "return_count": int(row.return_count or 0),
    }


def transaction_sales_report(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    group_by: str = "day",
) -> dict:
    """Sale-type transactions bucketed by day, month or year, newest period first."""
    period = _period_expr(Transaction.created_at, group_by).label("period")

    query = db.session.query(
        period,
        func.min(Transaction.created_at).label("first_at"),
        func.coalesce(func.sum(Transaction.total_amount), 0).label("total_sales"),
        func.coalesce(func.sum(Transaction.profit), 0).label("total_profit"),
        func.count(Transaction.id).label("transaction_count"),
    ).filter(Transaction.type == "sale")
    query = _in_range(query, Transaction.created_at, start, end)

    rows = query.group_by("period").order_by(period.desc()).all()
    return {
        "group_by": group_by,
        "rows": [
            {
                "period": row.period,
                "total_sales": int(row.total_sales or 0),
                "total_profit": int(row.total_profit or 0),
                "transaction_count": int(row.transaction_count or 0),
            }
            for row in rows
        ],
    }


def summarize_sales(sales: list[Sale]) -> dict:
    """Totals for an already-loaded list of sales (used by /today)."""
    by_method = {method: 0 for method in PAYMENT_METHODS}
    for sale in sales:
        by_method[sale.payment_method] = by_method.get(sale.payment_method, 0) + sale.total_amount

    return {
        "count": len(sales),
        "total_sales": sum(s.total_amount for s in sales),
        "total_items": sum(len(s.items) for s in sales),
        "payment_stats": by_method,
    }


def sales_stats(*, start: datetime | None = None, end: datetime | None = None, days: int = 7) -> dict:
    """Overview for the range, a daily series for the last `days` days, top credit debtors."""
    def _by_method(method: str):
        return func.coalesce(
            func.sum(case((Sale.payment_method == method, Sale.total_amount), else_=0)), 0
        )

    overview_query = db.session.query(
        func.coalesce(func.sum(Sale.total_amount), 0).label("total_sales"),
        func.count(Sale.id).label("count"),
        func.avg(Sale.total_amount).label("avg_sale"),
        *[_by_method(m).label(f"{m}_sales") for m in PAYMENT_METHODS],
    )
    row = _in_range(overview_query, Sale.created_at, start, end).one()

    overview = {
        "total_sales": int(row.total_sales or 0),
        "count": int(row.count or 0),
        "avg_sale": float(row.avg_sale or 0),
    }
    for method in PAYMENT_METHODS:
        overview[f"{method}_sales"] = int(getattr(row, f"{method}_sales") or 0)

    since = start_of_day(utcnow()) - timedelta(days=days - 1)
    day = _period_expr(Sale.created_at, "day").label("day")
    daily_rows = (
        db.session.query(
            day,
            func.coalesce(func.sum(Sale.total_amount), 0).label("total_sales"),
            func.count(Sale.id).label("count"),
        )
        .filter(Sale.created_at >= since)
        .group_by("day")
        .order_by(day.asc())
        .all()
    )

    debtor_rows = (
        db.session.query(
            Sale.debtor_id,
            Debtor.name,
            Debtor.phone,
            func.coalesce(func.sum(Sale.total_amount), 0).label("total_credit"),
            func.count(Sale.id).label("sale_count"),
        )
        .join(Debtor, Debtor.id == Sale.debtor_id)
        .filter(Sale.payment_method == "credit", Sale.debtor_id.isnot(None))
        .group_by(Sale.debtor_id, Debtor.name, Debtor.phone)
        .order_by(func.sum(Sale.total_amount).desc())
        .limit(10)
        .all()
    )

    return {
        "overview": overview,
        "daily_stats": [
            {"date": r.day, "total_sales": int(r.total_sales or 0), "count": int(r.count or 0)}
            for r in daily_rows
        ],
        "debtor_stats": [
            {
                "debtor_id": r.debtor_id,
                "debtor_name": r.name,
                "debtor_phone": r.phone,
                "total_credit": int(r.total_credit or 0),
                "sale_count": int(r.sale_count or 0),
            }
            for r in debtor_rows
        ],
    }
