from __future__ import annotations

from ..extensions import db
from ombor.time_utils import to_utc_z


class Category(db.Model):
    """
    Product grouping.

    product_count is denormalized: it is incremented/decremented by the
    product create/move/delete paths in catalog_service, never recomputed on
    read. `flask maintenance reconcile` repairs drift.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(32), nullable=True)
    icon = db.Column(db.String(64), nullable=True)

    product_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} product_count={self.product_count}>"

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color, "icon": self.icon}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "product_count": self.product_count,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data plus on-hand stock.

    quantity only moves through inventory_service (one delta per sale or
    transaction line, and its inverse on deletion) or an explicit product
    update. version_id guards those read-modify-write cycles.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_category", "category_id"),
        db.Index("ix_products_quantity", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    # Optional; unique when present (NULLs do not collide)
    barcode = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="dona")

    # Whole currency units
    price = db.Column(db.BigInteger, nullable=False, default=0)
    cost = db.Column(db.BigInteger, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=10)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "barcode": self.barcode, "price": self.price}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "category_id": self.category_id,
            "category": self.category.summary() if self.category else None,
            "description": self.description,
            "unit": self.unit,
            "price": self.price,
            "cost": self.cost,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
