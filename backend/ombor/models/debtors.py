from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from ombor.time_utils import to_utc_z, utcnow


DEBTOR_STATUSES = ("active", "paid", "overdue")
LEDGER_ENTRY_TYPES = ("sale", "payment", "adjustment", "refund")


class Debtor(db.Model):
    """
    Customer buying on credit.

    INVARIANTS:
    - status == "paid" iff debt_amount <= 0, otherwise "active"; kept in sync
      whenever debt_amount is assigned.
    - debt_amount == sum(entry.amount for entry in entries); every balance
      change goes through debtor_service, which appends the entry with the
      delta actually applied.
    """
    __tablename__ = "debtors"
    __table_args__ = (
        db.UniqueConstraint("phone", name="uq_debtors_phone"),
        db.Index("ix_debtors_debt_amount", "debt_amount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    debt_amount = db.Column(db.BigInteger, nullable=False, default=0)
    max_debt_amount = db.Column(db.BigInteger, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="paid", index=True)

    last_transaction_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    entries = db.relationship(
        "DebtorLedgerEntry",
        backref="debtor",
        order_by="DebtorLedgerEntry.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @validates("debt_amount")
    def _sync_status(self, key, value):
        self.status = "paid" if (value or 0) <= 0 else "active"
        return value

    def __repr__(self) -> str:
        return f"<Debtor id={self.id} name={self.name!r} debt_amount={self.debt_amount} status={self.status}>"

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "debt_amount": self.debt_amount,
            "status": self.status,
        }

    def to_dict(self, include_entries: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "notes": self.notes,
            "debt_amount": self.debt_amount,
            "max_debt_amount": self.max_debt_amount,
            "status": self.status,
            "last_transaction_date": to_utc_z(self.last_transaction_date) if self.last_transaction_date else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_entries:
            data["transactions"] = [e.to_dict() for e in self.entries]
        return data


class DebtorLedgerEntry(db.Model):
    """
    Append-only balance change for a debtor.

    amount is signed: positive raises the debt, negative lowers it.
    sale_id links entries created by a credit sale (or its reversal).
    """
    __tablename__ = "debtor_ledger_entries"
    __table_args__ = (
        db.Index("ix_debtor_entries_debtor_date", "debtor_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debtor_id = db.Column(db.Integer, db.ForeignKey("debtors.id"), nullable=False)

    amount = db.Column(db.BigInteger, nullable=False)
    type = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=False, default="")
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    # Plain column: the sale may be deleted later, its refund entry stays
    sale_id = db.Column(db.Integer, nullable=True, index=True)
    created_by = db.Column(db.String(64), nullable=False, default="system")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "type": self.type,
            "notes": self.notes,
            "date": to_utc_z(self.date),
            "sale_id": self.sale_id,
            "created_by": self.created_by,
        }
