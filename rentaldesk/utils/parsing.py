from datetime import date, datetime

from flask import request

from ..errors import ValidationError


def get_payload():
    return request.get_json(silent=True) or {}


def require_fields(data, *fields):
    for field in fields:
        if field not in data or data[field] is None or data[field] == "":
            raise ValidationError(f"{field} is required", field=field)


def parse_date(value, field="date"):
    """Parse a YYYY-MM-DD string; ``None`` and empty strings give ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid {field} format. Use YYYY-MM-DD", field=field, value=value)


def parse_int(value, field):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)


def pagination():
    limit = max(1, min(request.args.get("limit", default=50, type=int), 200))
    offset = max(0, request.args.get("offset", default=0, type=int))
    return limit, offset
