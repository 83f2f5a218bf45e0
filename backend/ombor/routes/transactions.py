# Overview: Flask API routes for transactions; parses input and returns JSON envelopes.

from flask import Blueprint, request

from ..envelope import from_domain_error, ok, ok_list, server_error
from ..models import TRANSACTION_TYPES
from ..services import reporting_service, transaction_service
from ..services.reporting_service import ReportError
from ..validation import NotFoundError, ValidationError, parse_choice, parse_line_items
from ombor.time_utils import day_bounds
from . import date_range_args, json_body

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
def list_transactions():
    """
    Query params:
    - start_date, end_date: ISO-8601 (optional, inclusive)
    - type: sale | purchase | return (optional)
    """
    try:
        start, end = date_range_args()
        tx_type = request.args.get("type")
        if tx_type:
            tx_type = parse_choice(tx_type, field="type", choices=TRANSACTION_TYPES)
        transactions = transaction_service.list_transactions(start=start, end=end, type=tx_type)
    except ValidationError as e:
        return from_domain_error(e)
    return ok_list([t.to_dict() for t in transactions])


@transactions_bp.get("/today")
def today_transactions():
    start, end = day_bounds()
    transactions = transaction_service.list_transactions_between(start, end)
    return ok_list([t.to_dict() for t in transactions])


@transactions_bp.get("/stats")
def transaction_stats():
    try:
        start, end = date_range_args()
        stats = reporting_service.transaction_stats(start=start, end=end)
    except ValidationError as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to compute transaction stats")
    return ok(stats)


@transactions_bp.get("/report/sales")
def sales_report():
    """Sale-type transactions grouped by group_by=day|month|year."""
    try:
        start, end = date_range_args()
        report = reporting_service.transaction_sales_report(
            start=start,
            end=end,
            group_by=request.args.get("group_by", "day"),
        )
    except ValidationError as e:
        return from_domain_error(e)
    except ReportError as e:
        return from_domain_error(ValidationError(str(e)))
    except Exception as e:
        return server_error(e, "Failed to build sales report")
    return ok(report)


@transactions_bp.get("/<int:transaction_id>")
def get_transaction(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(transaction_id)
    except NotFoundError as e:
        return from_domain_error(e)
    return ok(tx.to_dict())


@transactions_bp.post("")
def create_transaction_route():
    """
    Body: {type, items: [{product, quantity, price}], customer_name?, customer_phone?, notes?}
    """
    try:
        payload = json_body()
        tx = transaction_service.create_transaction(
            type=parse_choice(payload.get("type"), field="type", choices=TRANSACTION_TYPES),
            items=parse_line_items(payload.get("items")),
            customer_name=(payload.get("customer_name") or "").strip() or None,
            customer_phone=(payload.get("customer_phone") or "").strip() or None,
            notes=(payload.get("notes") or "").strip() or None,
        )
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to create transaction")
    return ok(tx.to_dict(), message="Transaction created successfully", http_status=201)


@transactions_bp.put("/<int:transaction_id>")
def update_transaction_route(transaction_id: int):
    """Only customer_name, customer_phone and notes are editable."""
    try:
        tx = transaction_service.update_transaction_info(transaction_id, json_body())
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to update transaction")
    return ok(tx.to_dict(), message="Transaction updated successfully")


@transactions_bp.delete("/<int:transaction_id>")
def delete_transaction_route(transaction_id: int):
    try:
        transaction_service.delete_transaction(transaction_id)
    except NotFoundError as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to delete transaction")
    return ok(message="Transaction deleted successfully")
