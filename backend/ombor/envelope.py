# Overview: JSON response envelope shared by every API route.
"""
All API responses use one shape:

    {"success": bool, "data": ..., "message": str, "error": str, "details": {...}}

Only the keys that carry something are emitted. List endpoints add "count"
next to "data".
"""

from __future__ import annotations

import traceback
from typing import Any

from flask import current_app, jsonify

from .validation import NotFoundError, ValidationError


def ok(data: Any = None, *, message: str | None = None, http_status: int = 200, **extra):
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), http_status


def ok_list(items: list, *, http_status: int = 200, **extra):
    return ok(items, http_status=http_status, count=len(items), **extra)


def fail(message: str, *, http_status: int = 400, details: dict | None = None, **extra):
    body: dict[str, Any] = {"success": False, "message": message}
    if details:
        body["details"] = details
    body.update(extra)
    return jsonify(body), http_status


def from_domain_error(exc: Exception):
    """Map a NotFoundError / ValidationError to its 4xx envelope."""
    if isinstance(exc, NotFoundError):
        return fail(str(exc), http_status=404)
    if isinstance(exc, ValidationError):
        return fail(str(exc), http_status=400, details=exc.details)
    raise exc


def server_error(exc: Exception, log_message: str):
    """Log an unexpected failure and hide it behind a generic 500."""
    current_app.logger.exception(log_message)
    extra = {}
    if current_app.config.get("OMBOR_ENV") == "development":
        extra["error"] = str(exc)
        extra["stack"] = traceback.format_exc()
    return fail("Internal server error", http_status=500, **extra)
