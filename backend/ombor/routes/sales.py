# Overview: Flask API routes for sales; parses input and returns JSON envelopes.

from flask import Blueprint, request

from ..envelope import from_domain_error, ok, ok_list, server_error
from ..models import PAYMENT_METHODS
from ..services import debtor_service, reporting_service, sales_service
from ..validation import NotFoundError, ValidationError, coerce_int, parse_choice, parse_line_items
from ombor.time_utils import day_bounds
from . import date_range_args, int_arg, json_body

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales():
    """
    Query params:
    - start_date, end_date: ISO-8601 (optional, inclusive)
    - payment_method: cash | credit | card | transfer (optional)
    - debtor_id: int (optional)
    - page: int (default 1), limit: int (default SALES_PAGE_SIZE)
    """
    try:
        start, end = date_range_args()
        method = request.args.get("payment_method")
        if method:
            method = parse_choice(method, field="payment_method", choices=PAYMENT_METHODS)
        result = sales_service.list_sales(
            start=start,
            end=end,
            payment_method=method,
            debtor_id=int_arg("debtor_id"),
            page=int_arg("page") or 1,
            limit=int_arg("limit"),
        )
    except ValidationError as e:
        return from_domain_error(e)

    sales = [s.to_dict() for s in result["items"]]
    return ok_list(
        sales,
        total=result["total"],
        pages=result["pages"],
        current_page=result["current_page"],
    )


@sales_bp.get("/today")
def today_sales():
    start, end = day_bounds()
    sales = sales_service.list_sales_between(start, end)
    summary = reporting_service.summarize_sales(sales)
    return ok_list(
        [s.to_dict() for s in sales],
        total_sales=summary["total_sales"],
        total_items=summary["total_items"],
        payment_stats=summary["payment_stats"],
    )


@sales_bp.get("/stats")
def sales_stats():
    try:
        start, end = date_range_args()
        stats = reporting_service.sales_stats(start=start, end=end)
    except ValidationError as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to compute sales stats")
    return ok(stats)


@sales_bp.get("/debtor/<int:debtor_id>")
def sales_for_debtor(debtor_id: int):
    try:
        debtor = debtor_service.get_debtor(debtor_id)
    except NotFoundError as e:
        return from_domain_error(e)

    sales = sales_service.list_sales_for_debtor(debtor.id)
    return ok({
        "debtor": debtor.summary(),
        "sales": [s.to_dict() for s in sales],
        "count": len(sales),
        "total_amount": sum(s.total_amount for s in sales),
    })


@sales_bp.get("/<int:sale_id>")
def get_sale(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return from_domain_error(e)
    return ok(sale.to_dict())


@sales_bp.post("")
def create_sale_route():
    """
    Body: {items: [{product, quantity, price?}], payment_method, debtor_id?, notes?}

    payment_method=credit requires debtor_id and adds the total to that
    debtor's balance.
    """
    try:
        payload = json_body()
        method = parse_choice(
            payload.get("payment_method"), field="payment_method",
            choices=PAYMENT_METHODS, default="cash",
        )
        debtor_id = None
        if method == "credit" and payload.get("debtor_id") not in (None, ""):
            debtor_id = coerce_int("debtor_id", payload["debtor_id"])

        sale = sales_service.create_sale(
            items=parse_line_items(payload.get("items")),
            payment_method=method,
            debtor_id=debtor_id,
            notes=(payload.get("notes") or "").strip(),
        )
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to create sale")
    return ok(sale.to_dict(), message="Sale completed successfully", http_status=201)


@sales_bp.put("/<int:sale_id>")
def update_sale_route(sale_id: int):
    """Only notes are editable on a completed sale."""
    try:
        payload = json_body()
        sale = sales_service.update_sale_notes(sale_id, (payload.get("notes") or "").strip())
    except (ValidationError, NotFoundError) as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to update sale")
    return ok(sale.to_dict(), message="Sale updated successfully")


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """Delete a sale, returning its items to stock and its credit to the debtor."""
    try:
        sales_service.delete_sale(sale_id)
    except NotFoundError as e:
        return from_domain_error(e)
    except Exception as e:
        return server_error(e, "Failed to delete sale")
    return ok(message="Sale deleted and items returned to stock")
