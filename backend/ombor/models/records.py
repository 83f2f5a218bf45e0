from __future__ import annotations

from ..extensions import db
from ombor.time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("cash", "credit", "card", "transfer")
TRANSACTION_TYPES = ("sale", "purchase", "return")


class CommercialRecordMixin:
    """
    Shared behaviour of the two record kinds (Sale, Transaction).

    Both are facts about the past: financial fields are written once at
    creation and only ever undone by deleting the whole record through
    record_service, which reverses stock and debt first.
    """

    # -1: the record took units out of stock; +1: it put units in
    def stock_sign(self) -> int:
        raise NotImplementedError

    def credit_debtor_id(self) -> int | None:
        return None

    def label(self) -> str:
        raise NotImplementedError


class DocumentSequence(db.Model):
    """Monotonic per-type counter used for human-readable record numbers."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_document_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class Sale(CommercialRecordMixin, db.Model):
    """Point-of-sale checkout. Always removes stock."""
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_number"),
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_debtor", "debtor_id"),
        db.Index("ix_sales_payment_method", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(32), nullable=False)

    total_amount = db.Column(db.BigInteger, nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    # Only set for credit sales; cleared when the debtor is deleted
    debtor_id = db.Column(db.Integer, db.ForeignKey("debtors.id"), nullable=True)

    notes = db.Column(db.Text, nullable=False, default="")
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "SaleItem",
        backref="sale",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    debtor = db.relationship("Debtor", backref=db.backref("sales", lazy=True))

    def stock_sign(self) -> int:
        return -1

    def credit_debtor_id(self) -> int | None:
        if self.payment_method == "credit":
            return self.debtor_id
        return None

    def label(self) -> str:
        return f"Sale {self.sale_number}"

    def __repr__(self) -> str:
        return f"<Sale id={self.id} number={self.sale_number!r} total={self.total_amount} method={self.payment_method}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "items": [item.to_dict() for item in self.items],
            "items_count": len(self.items),
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "debtor_id": self.debtor_id,
            "debtor": self.debtor.summary() if self.debtor else None,
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_items_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # No FK: products may be deleted while their sales remain on record
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.BigInteger, nullable=False)
    total = db.Column(db.BigInteger, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "price": self.price,
            "total": self.total,
        }


class Transaction(CommercialRecordMixin, db.Model):
    """
    Generic stock movement with financials.

    sale removes stock; purchase and return put it back.
    profit = total_amount - total_cost, cost taken from Product.cost at
    creation time.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_created_at", "created_at"),
        db.Index("ix_transactions_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)

    total_amount = db.Column(db.BigInteger, nullable=False, default=0)
    total_cost = db.Column(db.BigInteger, nullable=False, default=0)
    profit = db.Column(db.BigInteger, nullable=False, default=0)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        order_by="TransactionItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def stock_sign(self) -> int:
        return -1 if self.type == "sale" else 1

    def label(self) -> str:
        return f"Transaction #{self.id} ({self.type})"

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} total={self.total_amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "items": [item.to_dict() for item in self.items],
            "total_amount": self.total_amount,
            "total_cost": self.total_cost,
            "profit": self.profit,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TransactionItem(db.Model):
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "position", name="uq_transaction_items_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.BigInteger, nullable=False)
    unit_cost = db.Column(db.BigInteger, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
            "unit_cost": self.unit_cost,
            "total": self.quantity * self.price,
        }
