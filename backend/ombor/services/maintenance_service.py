# Overview: Reconciliation of denormalized counters against their source rows.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Debtor, DebtorLedgerEntry, Product


def category_count_drift() -> list[dict]:
    """Categories whose product_count disagrees with the live product count."""
    live_counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .group_by(Product.category_id)
        .all()
    )
    drift = []
    for category in db.session.query(Category).order_by(Category.id.asc()).all():
        actual = int(live_counts.get(category.id, 0))
        if category.product_count != actual:
            drift.append({
                "category_id": category.id,
                "name": category.name,
                "stored": category.product_count,
                "actual": actual,
            })
    return drift


def debtor_balance_drift() -> list[dict]:
    """Debtors whose debt_amount differs from the sum of their ledger entries."""
    sums = dict(
        db.session.query(DebtorLedgerEntry.debtor_id, func.coalesce(func.sum(DebtorLedgerEntry.amount), 0))
        .group_by(DebtorLedgerEntry.debtor_id)
        .all()
    )
    drift = []
    for debtor in db.session.query(Debtor).order_by(Debtor.id.asc()).all():
        ledger_total = int(sums.get(debtor.id, 0))
        if debtor.debt_amount != ledger_total:
            drift.append({
                "debtor_id": debtor.id,
                "name": debtor.name,
                "debt_amount": debtor.debt_amount,
                "ledger_total": ledger_total,
            })
    return drift


def reconcile(*, fix: bool = False) -> dict:
    """
    Report counter drift. With fix=True, category counts are rewritten from
    the live product count. Debtor drift is only reported; which side is
    right needs a human.
    """
    categories = category_count_drift()
    debtors = debtor_balance_drift()

    if fix and categories:
        for row in categories:
            category = db.session.get(Category, row["category_id"])
            category.product_count = row["actual"]
        db.session.commit()

    return {"categories": categories, "debtors": debtors, "fixed": bool(fix and categories)}
