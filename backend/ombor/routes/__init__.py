# Overview: Small request-parsing helpers shared by the API blueprints.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import request

from ..validation import ValidationError, coerce_int
from ombor.time_utils import parse_iso_datetime


def date_arg(name: str) -> datetime | None:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


def date_range_args() -> tuple[datetime | None, datetime | None]:
    start, end = date_arg("start_date"), date_arg("end_date")
    # A bare date as end_date means "through the end of that day"
    raw_end = request.args.get("end_date") or ""
    if end is not None and len(raw_end.strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw in (None, "", "null", "undefined"):
        return None
    return coerce_int(name, raw)


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
