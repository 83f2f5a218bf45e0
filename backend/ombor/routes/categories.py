# Overview: Flask API routes for categories; parses input and returns JSON envelopes.

from flask import Blueprint

from ..envelope import from_domain_error, ok, ok_list, server_error
from ..models import Category
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from . import json_body

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "color", "icon"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    categories = catalog_service.list_categories()
    return ok_list([c.to_dict() for c in categories])


@categories_bp.get("/<int:category_id>")
def get_category(category_id: int):
    try:
        category = catalog_service.get_category(category_id)
    except NotFoundError as e:
        return from_domain_error(e)
    return ok(category.to_dict())


@categories_bp.post("")
def create_category_route():
    try:
        patch = validate_payload(model=Category, payload=json_body(), policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to create category")
    return ok(category.to_dict(), message="Category created successfully", http_status=201)


@categories_bp.put("/<int:category_id>")
def update_category_route(category_id: int):
    try:
        patch = validate_payload(model=Category, payload=json_body(), policy=CATEGORY_POLICY, partial=True)
        category = catalog_service.update_category(category_id, patch)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to update category")
    return ok(category.to_dict(), message="Category updated successfully")


@categories_bp.delete("/<int:category_id>")
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to delete category")
    return ok(message="Category deleted successfully")
