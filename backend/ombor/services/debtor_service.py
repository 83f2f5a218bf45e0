# Overview: Debtor CRUD and the debt ledger (balance changes + entries).
"""
Debtor ledger invariants

- Every change to Debtor.debt_amount appends exactly one DebtorLedgerEntry
  whose amount is the delta actually applied.
- Decreases are clamped at zero (manual subtract and sale refund alike), so
  debt_amount never goes negative and stays equal to the sum of entries.
- status follows debt_amount (see Debtor._sync_status).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Debtor, DebtorLedgerEntry, Sale, LEDGER_ENTRY_TYPES
from ..validation import ConflictError, NotFoundError, ValidationError
from ombor.time_utils import utcnow
from .concurrency import atomic, lock_for_update


DEBTOR_MUTABLE_FIELDS = {"name", "phone", "notes", "max_debt_amount"}
DEBT_DIRECTIONS = ("add", "subtract")


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def get_debtor(debtor_id: int) -> Debtor:
    debtor = db.session.get(Debtor, debtor_id)
    if debtor is None:
        raise NotFoundError("Debtor not found")
    return debtor


def get_debtor_locked(debtor_id: int) -> Debtor:
    debtor = lock_for_update(db.session.query(Debtor).filter_by(id=debtor_id)).first()
    if debtor is None:
        raise NotFoundError("Debtor not found")
    return debtor


def list_debtors(*, status: str | None = None, search: str | None = None) -> list[Debtor]:
    query = db.session.query(Debtor)
    if status:
        query = query.filter(Debtor.status == status)
    if search:
        pattern = _like(search.strip())
        query = query.filter(or_(
            Debtor.name.ilike(pattern, escape="\\"),
            Debtor.phone.ilike(pattern, escape="\\"),
        ))
    return query.order_by(Debtor.created_at.desc(), Debtor.id.desc()).all()


def list_active_debtors() -> list[Debtor]:
    return (
        db.session.query(Debtor)
        .filter(Debtor.debt_amount > 0)
        .order_by(Debtor.created_at.desc(), Debtor.id.desc())
        .all()
    )


def search_debtors(query_text: str | None, *, limit: int = 20) -> list[Debtor]:
    """Name/phone/notes search, biggest debts first."""
    if not query_text or not query_text.strip():
        raise ValidationError("Search query is required")
    pattern = _like(query_text.strip())
    return (
        db.session.query(Debtor)
        .filter(or_(
            Debtor.name.ilike(pattern, escape="\\"),
            Debtor.phone.ilike(pattern, escape="\\"),
            Debtor.notes.ilike(pattern, escape="\\"),
        ))
        .order_by(Debtor.debt_amount.desc(), Debtor.id.asc())
        .limit(limit)
        .all()
    )


def _ensure_phone_free(phone: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Debtor).filter(Debtor.phone == phone)
    if exclude_id is not None:
        query = query.filter(Debtor.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("A debtor with this phone number already exists")


def apply_balance_change(
    debtor: Debtor,
    delta: int,
    *,
    entry_type: str,
    notes: str = "",
    sale_id: int | None = None,
) -> DebtorLedgerEntry:
    """
    Move debtor.debt_amount by delta (clamped at zero) and record the entry.

    No commit; callers own the transaction.
    """
    if entry_type not in LEDGER_ENTRY_TYPES:
        raise ValueError(f"Unknown ledger entry type: {entry_type}")
    current = debtor.debt_amount or 0
    new_amount = max(current + delta, 0)
    applied = new_amount - current

    now = utcnow()
    debtor.debt_amount = new_amount
    debtor.last_transaction_date = now

    entry = DebtorLedgerEntry(
        debtor=debtor,
        amount=applied,
        type=entry_type,
        notes=notes or "",
        date=now,
        sale_id=sale_id,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def create_debtor(patch: dict) -> Debtor:
    def _op():
        _ensure_phone_free(patch["phone"])

        opening = patch.get("debt_amount") or 0
        debtor = Debtor(
            name=patch["name"],
            phone=patch["phone"],
            notes=patch.get("notes") or "",
            max_debt_amount=patch.get("max_debt_amount") or 0,
            debt_amount=0,
        )
        db.session.add(debtor)
        db.session.flush()

        if opening:
            apply_balance_change(debtor, opening, entry_type="adjustment", notes="Opening balance")
        return debtor

    return atomic(_op)


def update_debtor(debtor_id: int, patch: dict) -> Debtor:
    """
    Update non-financial fields. A debt_amount in the patch is treated as a
    correction and recorded as an adjustment entry.
    """
    def _op():
        debtor = get_debtor_locked(debtor_id)

        if "phone" in patch and patch["phone"] != debtor.phone:
            _ensure_phone_free(patch["phone"], exclude_id=debtor.id)

        for key, value in patch.items():
            if key in DEBTOR_MUTABLE_FIELDS:
                setattr(debtor, key, value)

        target = patch.get("debt_amount")
        if target is not None and target != debtor.debt_amount:
            apply_balance_change(
                debtor,
                target - debtor.debt_amount,
                entry_type="adjustment",
                notes=patch.get("adjustment_notes") or "Balance corrected",
            )
        return debtor

    return atomic(_op)


def delete_debtor(debtor_id: int) -> dict:
    """Delete a debtor and its ledger; their sales stay but lose the link."""
    def _op():
        debtor = get_debtor_locked(debtor_id)
        snapshot = debtor.to_dict(include_entries=False)
        db.session.query(Sale).filter(Sale.debtor_id == debtor.id).update(
            {Sale.debtor_id: None}, synchronize_session="fetch"
        )
        db.session.delete(debtor)
        return snapshot

    return atomic(_op)


def change_debt(debtor_id: int, *, amount: int, direction: str, notes: str | None = None) -> Debtor:
    """
    Manual debt adjustment (PATCH /api/debtors/<id>/debt).

    add raises the balance (adjustment entry); subtract lowers it, floored
    at zero (payment entry). The entry carries the signed delta applied.
    """
    if direction not in DEBT_DIRECTIONS:
        raise ValidationError("type must be 'add' or 'subtract'")
    if amount is None or amount <= 0:
        raise ValidationError("amount must be > 0")

    def _op():
        debtor = get_debtor_locked(debtor_id)
        if direction == "add":
            apply_balance_change(debtor, amount, entry_type="adjustment", notes=notes or "")
        else:
            apply_balance_change(debtor, -amount, entry_type="payment", notes=notes or "")
        return debtor

    return atomic(_op)


def post_credit_sale(debtor: Debtor, sale: Sale) -> None:
    """
    Charge a credit sale to its debtor.

    Runs in a SAVEPOINT inside the sale's transaction: if it fails the sale
    still commits and the failure is logged for manual follow-up.
    """
    try:
        with db.session.begin_nested():
            apply_balance_change(
                debtor,
                sale.total_amount,
                entry_type="sale",
                notes=f"Sale {sale.sale_number}",
                sale_id=sale.id,
            )
    except SQLAlchemyError:
        current_app.logger.exception(
            "Failed to post sale %s to debtor %s", sale.sale_number, debtor.id
        )
        return

    current_app.logger.info(
        "Debtor %s charged %s for sale %s (balance %s)",
        debtor.id, sale.total_amount, sale.sale_number, debtor.debt_amount,
    )


def refund_credit_sale(debtor_id: int, sale: Sale) -> None:
    """
    Take a deleted credit sale back off its debtor's balance (refund entry).

    Best-effort like post_credit_sale: a missing debtor or a failed update
    is logged and the deletion goes ahead.
    """
    debtor = lock_for_update(db.session.query(Debtor).filter_by(id=debtor_id)).first()
    if debtor is None:
        current_app.logger.warning(
            "Debtor %s not found while reversing sale %s; debt not refunded",
            debtor_id, sale.sale_number,
        )
        return

    try:
        with db.session.begin_nested():
            apply_balance_change(
                debtor,
                -sale.total_amount,
                entry_type="refund",
                notes=f"Sale cancelled: {sale.sale_number}",
                sale_id=sale.id,
            )
    except SQLAlchemyError:
        current_app.logger.exception(
            "Failed to refund sale %s to debtor %s", sale.sale_number, debtor_id
        )
        return

    current_app.logger.info(
        "Debtor %s refunded %s for deleted sale %s (balance %s)",
        debtor.id, sale.total_amount, sale.sale_number, debtor.debt_amount,
    )


def debt_stats() -> dict:
    total_debtors = db.session.query(func.count(Debtor.id)).scalar() or 0
    active_debtors = (
        db.session.query(func.count(Debtor.id)).filter(Debtor.debt_amount > 0).scalar() or 0
    )
    total_debt = db.session.query(func.coalesce(func.sum(Debtor.debt_amount), 0)).scalar() or 0

    return {
        "total_debtors": int(total_debtors),
        "active_debtors": int(active_debtors),
        "paid_debtors": int(total_debtors - active_debtors),
        "total_debt": int(total_debt),
        "average_debt": (total_debt / active_debtors) if active_debtors else 0,
    }
