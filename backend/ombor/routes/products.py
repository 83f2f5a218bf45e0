# Overview: Flask API routes for products; parses input and returns JSON envelopes.

from flask import Blueprint, request

from ..envelope import from_domain_error, ok, ok_list, server_error
from ..models import Product
from ..services import catalog_service, reporting_service
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from . import int_arg, json_body

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "barcode", "category_id", "price", "cost", "quantity",
        "unit", "description", "min_stock",
    },
    required_on_create={"name", "category_id", "price", "cost", "quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_payload() -> dict:
    payload = json_body()
    # Front-end sends the category as "category" (id or populated object)
    if "category_id" not in payload and "category" in payload:
        category = payload["category"]
        payload["category_id"] = category.get("id") if isinstance(category, dict) else category
    return payload


@products_bp.get("")
def list_products():
    """
    Query params:
    - category: int (optional)
    - search: str (optional) - name or barcode contains, case-insensitive
    - status: all | low-stock | out-of-stock | active
    """
    try:
        products = catalog_service.list_products(
            category_id=int_arg("category"),
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return from_domain_error(e)
    return ok_list([p.to_dict() for p in products])


@products_bp.get("/low-stock")
def low_stock_products():
    products = catalog_service.list_low_stock_products()
    return ok_list([p.to_dict() for p in products])


@products_bp.get("/stats")
def product_stats():
    try:
        stats = reporting_service.product_stats()
    except Exception as e:
        return server_error(e, "Failed to compute product stats")
    return ok(stats)


@products_bp.get("/barcode/<string:barcode>")
def product_by_barcode(barcode: str):
    """Scanner lookup: a miss is a normal answer (200, exists=false), not an error."""
    product = catalog_service.find_by_barcode(barcode)
    if product is None:
        return ok(message="Product not found", success=False, exists=False)
    return ok(product.to_dict(), exists=True)


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError as e:
        return from_domain_error(e)
    return ok(product.to_dict())


@products_bp.post("")
def create_product_route():
    try:
        patch = validate_payload(model=Product, payload=_product_payload(), policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to create product")
    return ok(product.to_dict(), message="Product created successfully", http_status=201)


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    try:
        patch = validate_payload(model=Product, payload=_product_payload(), policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(product_id, patch)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to update product")
    return ok(product.to_dict(), message="Product updated successfully")


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except NotFoundError as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to delete product")
    return ok(message="Product deleted successfully")
