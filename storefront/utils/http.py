"""Request parsing helpers shared by the blueprints."""
from flask import request

from storefront.exceptions import ValidationError
from storefront.utils.formatters import parse_id


def get_json_body():
    """JSON object body of the current request, or a 400."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body.")
    return data


def require_id(value, label='Order id'):
    """Positive integer id from a path or body value, or a 400."""
    parsed = parse_id(value)
    if parsed is None:
        raise ValidationError(f"{label} is required.")
    return parsed


def require_bool(data, key):
    value = data.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean.")
    return value
