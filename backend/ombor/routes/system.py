# backend/ombor/routes/system.py
"""
Service banner, smoke-test and health endpoints.
"""

import time
from flask import Blueprint, current_app
from ..envelope import fail, ok
from ..extensions import db
from ..models import Category, Debtor, Product, Sale, Transaction
from ombor.time_utils import utcnow, to_utc_z
from ombor import __version__

system_bp = Blueprint("system", __name__)

API_ENDPOINTS = {
    "categories": "/api/categories",
    "products": "/api/products",
    "transactions": "/api/transactions",
    "sales": "/api/sales",
    "debtors": "/api/debtors",
    "test": "/api/test",
    "health": "/api/health",
}


def check_database_health() -> dict:
    """
    Check database connectivity with a row count per core table.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "categories": db.session.query(Category).count(),
            "products": db.session.query(Product).count(),
            "sales": db.session.query(Sale).count(),
            "transactions": db.session.query(Transaction).count(),
            "debtors": db.session.query(Debtor).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/")
def index():
    return ok(
        message="Ombor shop API",
        version=__version__,
        status="running",
        timestamp=to_utc_z(utcnow()),
        endpoints=API_ENDPOINTS,
    )


@system_bp.get("/api/test")
def api_test():
    return ok(message="Backend is running", time=to_utc_z(utcnow()))


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "version": __version__,
        "checks": {"database": database},
    }
    if not healthy:
        return fail("Service unhealthy", http_status=503, data=body)
    return ok(body)
