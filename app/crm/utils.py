from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation

from flask import request

from app.crm.errors import ValidationError


def json_payload() -> dict:
    """Request body as a dict; anything else is a validation error."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def required_arg(name: str) -> str:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        raise ValidationError(f"Query parameter {name!r} is required.")
    return raw


def int_arg(name: str) -> int:
    raw = required_arg(name)
    try:
        return int(raw)
    except ValueError as e:
        raise ValidationError(f"Query parameter {name!r} must be an integer.") from e


def decimal_arg(name: str) -> Decimal:
    raw = required_arg(name)
    try:
        value = Decimal(raw)
    except InvalidOperation as e:
        raise ValidationError(f"Query parameter {name!r} must be a decimal.") from e
    if not value.is_finite():
        raise ValidationError(f"Query parameter {name!r} must be a decimal.")
    return value


def datetime_arg(name: str) -> datetime:
    raw = required_arg(name)
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError(f"Query parameter {name!r} must be an ISO datetime.") from e
