# products/services/validation.py

"""
Input guards shared by the stock and sales services.

Errors are Django ValidationErrors keyed by field, each carrying a code
(a plain dict message would drop it).
"""

from __future__ import annotations

from django.core.exceptions import ValidationError


def field_error(field_name: str, message: str, *, code: str, params: dict | None = None):
    return ValidationError({field_name: ValidationError(message, code=code, params=params)})


def require_actor(actor_id) -> str:
    """
    Every mutation is stamped with an explicit actor. There is no fallback
    account: a missing actor is a validation error.
    """
    actor = str(actor_id or "").strip()
    if not actor:
        raise field_error("actor_id", "actor_id is required", code="actor_required")
    return actor


def require_positive_int(value, *, field_name: str) -> int:
    if value is None or value == "" or isinstance(value, bool):
        raise field_error(field_name, f"{field_name} is required", code="required")
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise field_error(field_name, f"{field_name} must be an integer", code="invalid")
    if str(value).strip() != str(v) and not isinstance(value, int):
        raise field_error(field_name, f"{field_name} must be a whole number", code="invalid")
    if v <= 0:
        raise field_error(field_name, f"{field_name} must be greater than zero", code="invalid")
    return v
