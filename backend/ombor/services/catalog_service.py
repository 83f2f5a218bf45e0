# Overview: Category and product CRUD, keeping Category.product_count in step.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_, update

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import atomic, lock_for_update


CATEGORY_MUTABLE_FIELDS = {"name", "description", "color", "icon"}
PRODUCT_MUTABLE_FIELDS = {
    "name", "barcode", "category_id", "price", "cost", "quantity",
    "unit", "description", "min_stock",
}
PRODUCT_STATUS_FILTERS = ("all", "low-stock", "out-of-stock", "active")


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _bump_category_count(category_id: int, delta: int) -> None:
    # Single UPDATE ... SET product_count = product_count + delta; no read
    db.session.execute(
        update(Category)
        .where(Category.id == category_id)
        .values(product_count=Category.product_count + delta)
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _ensure_category_name_free(name: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(db.func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Category with this name already exists")


def create_category(patch: dict) -> Category:
    def _op():
        _ensure_category_name_free(patch["name"])
        category = Category(product_count=0)
        for key, value in patch.items():
            if key in CATEGORY_MUTABLE_FIELDS:
                setattr(category, key, value)
        db.session.add(category)
        db.session.flush()
        return category

    return atomic(_op)


def update_category(category_id: int, patch: dict) -> Category:
    def _op():
        category = get_category(category_id)
        if "name" in patch and patch["name"] != category.name:
            _ensure_category_name_free(patch["name"], exclude_id=category.id)
        for key, value in patch.items():
            if key in CATEGORY_MUTABLE_FIELDS:
                setattr(category, key, value)
        return category

    return atomic(_op)


def delete_category(category_id: int) -> None:
    """Categories can only be deleted once no product references them."""
    def _op():
        category = get_category(category_id)
        live = db.session.query(Product).filter(Product.category_id == category.id).count()
        if live:
            raise ValidationError(
                f"Category has {live} product(s); move or delete them first"
            )
        db.session.delete(category)

    atomic(_op)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(
    *,
    category_id: int | None = None,
    search: str | None = None,
    status: str | None = None,
) -> list[Product]:
    """
    Filterable product listing.

    status: low-stock (quantity below LOW_STOCK_THRESHOLD), out-of-stock
    (quantity <= 0), active (quantity > 0) or all.
    """
    query = db.session.query(Product)

    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    if search:
        pattern = _like(search.strip())
        query = query.filter(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.barcode.ilike(pattern, escape="\\"),
        ))

    if status and status != "all":
        if status not in PRODUCT_STATUS_FILTERS:
            raise ValidationError(f"status must be one of: {', '.join(PRODUCT_STATUS_FILTERS)}")
        if status == "low-stock":
            query = query.filter(Product.quantity < current_app.config["LOW_STOCK_THRESHOLD"])
        elif status == "out-of-stock":
            query = query.filter(Product.quantity <= 0)
        elif status == "active":
            query = query.filter(Product.quantity > 0)

    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def list_low_stock_products() -> list[Product]:
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    return (
        db.session.query(Product)
        .filter(Product.quantity < threshold)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def find_by_barcode(barcode: str) -> Product | None:
    return db.session.query(Product).filter(Product.barcode == barcode.strip()).first()


def _ensure_barcode_free(barcode: str | None, *, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = db.session.query(Product).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        if exclude_id is None:
            raise ConflictError("Barcode already exists")
        raise ConflictError("Barcode already exists for another product")


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise ValidationError("Category not found")
    return category


def create_product(patch: dict) -> Product:
    """Create a product and count it against its category."""
    def _op():
        _ensure_barcode_free(patch.get("barcode"))
        _require_category(patch["category_id"])

        product = Product(
            unit=current_app.config["DEFAULT_UNIT"],
            min_stock=current_app.config["DEFAULT_MIN_STOCK"],
        )
        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS and value is not None:
                setattr(product, key, value)

        db.session.add(product)
        db.session.flush()
        _bump_category_count(product.category_id, 1)
        return product

    product = atomic(_op)
    db.session.refresh(product)
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """
    Update a product. Moving it to another category moves the count too.

    A quantity in the patch overwrites on-hand stock directly (a manual
    stock count correction); no sale or transaction is recorded for it.
    """
    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")

        if "barcode" in patch and patch["barcode"] != product.barcode:
            _ensure_barcode_free(patch["barcode"], exclude_id=product.id)

        old_category_id = product.category_id
        new_category_id = patch.get("category_id") or old_category_id
        if new_category_id != old_category_id:
            _require_category(new_category_id)

        for key, value in patch.items():
            if key not in PRODUCT_MUTABLE_FIELDS:
                continue
            # Required columns keep their value when the client sends null
            if value is None and key not in {"barcode", "description"}:
                continue
            setattr(product, key, value)

        db.session.flush()
        if new_category_id != old_category_id:
            _bump_category_count(old_category_id, -1)
            _bump_category_count(new_category_id, 1)
        return product

    product = atomic(_op)
    db.session.refresh(product)
    return product


def delete_product(product_id: int) -> None:
    """
    Delete a product and uncount it from its category.

    Sales and transactions that reference it keep their line snapshots;
    reversing them later skips the missing product.
    """
    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        category_id = product.category_id
        db.session.delete(product)
        db.session.flush()
        _bump_category_count(category_id, -1)

    atomic(_op)
