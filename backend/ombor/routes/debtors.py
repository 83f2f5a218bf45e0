# Overview: Flask API routes for debtors and their debt ledger.

from flask import Blueprint, request

from ..envelope import from_domain_error, ok, ok_list, server_error
from ..models import Debtor, DEBTOR_STATUSES
from ..services import debtor_service
from ..services.debtor_service import DEBT_DIRECTIONS
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    enforce_rules_debtor,
    parse_choice,
    validate_payload,
)
from . import json_body

DEBTOR_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "notes", "debt_amount", "max_debt_amount"},
    required_on_create={"name", "phone"},
)

debtors_bp = Blueprint("debtors", __name__, url_prefix="/api/debtors")


@debtors_bp.get("")
def list_debtors():
    """Query params: status (active|paid|overdue), search (name or phone)."""
    try:
        status = request.args.get("status")
        if status:
            status = parse_choice(status, field="status", choices=DEBTOR_STATUSES)
        debtors = debtor_service.list_debtors(status=status, search=request.args.get("search"))
    except ValidationError as e:
        return from_domain_error(e)
    return ok_list([d.to_dict() for d in debtors])


@debtors_bp.get("/active")
def active_debtors():
    debtors = debtor_service.list_active_debtors()
    return ok_list([d.to_dict() for d in debtors])


@debtors_bp.get("/search")
def search_debtors():
    try:
        debtors = debtor_service.search_debtors(request.args.get("query"))
    except ValidationError as e:
        return from_domain_error(e)
    return ok_list([d.to_dict() for d in debtors])


@debtors_bp.get("/stats/totals")
def debt_totals():
    try:
        stats = debtor_service.debt_stats()
    except Exception as e:
        return server_error(e, "Failed to compute debtor stats")
    return ok(stats)


@debtors_bp.get("/<int:debtor_id>")
def get_debtor(debtor_id: int):
    try:
        debtor = debtor_service.get_debtor(debtor_id)
    except NotFoundError as e:
        return from_domain_error(e)
    return ok(debtor.to_dict())


@debtors_bp.post("")
def create_debtor_route():
    try:
        patch = validate_payload(model=Debtor, payload=json_body(), policy=DEBTOR_POLICY, partial=False)
        enforce_rules_debtor(patch)
        debtor = debtor_service.create_debtor(patch)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to create debtor")
    return ok(debtor.to_dict(), message="Debtor created successfully", http_status=201)


@debtors_bp.put("/<int:debtor_id>")
def update_debtor_route(debtor_id: int):
    """
    Update debtor details. Sending debt_amount records the difference as an
    adjustment entry (optional adjustment_notes).
    """
    try:
        payload = json_body()
        patch = validate_payload(model=Debtor, payload=payload, policy=DEBTOR_POLICY, partial=True)
        enforce_rules_debtor(patch)
        if payload.get("adjustment_notes"):
            patch["adjustment_notes"] = str(payload["adjustment_notes"]).strip()
        debtor = debtor_service.update_debtor(debtor_id, patch)
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to update debtor")
    return ok(debtor.to_dict(), message="Debtor updated successfully")


@debtors_bp.delete("/<int:debtor_id>")
def delete_debtor_route(debtor_id: int):
    try:
        deleted = debtor_service.delete_debtor(debtor_id)
    except NotFoundError as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to delete debtor")
    return ok(deleted, message="Debtor deleted successfully")


@debtors_bp.patch("/<int:debtor_id>/debt")
def change_debt_route(debtor_id: int):
    """
    Body: {amount: int > 0, type: "add" | "subtract", notes?}

    subtract never takes the balance below zero.
    """
    try:
        payload = json_body()
        direction = parse_choice(payload.get("type"), field="type", choices=DEBT_DIRECTIONS)
        if payload.get("amount") is None:
            raise ValidationError("amount is required")
        amount = abs(coerce_int("amount", payload["amount"]))
        debtor = debtor_service.change_debt(
            debtor_id,
            amount=amount,
            direction=direction,
            notes=(payload.get("notes") or "").strip(),
        )
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to update debt")

    verb = "added" if direction == "add" else "reduced"
    return ok(debtor.to_dict(), message=f"Debt {verb} successfully")
