# backend/request_context.py

"""
Request helpers shared by the API views.
"""

from __future__ import annotations


def actor_id_for(request) -> str:
    """
    Actor for ledger / audit fields.

    Authenticated user pk wins; a body-supplied actor_id is accepted only
    when the request carries no user (service-to-service calls in dev).
    """
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return str(user.pk)

    data = getattr(request, "data", None) or {}
    return str(data.get("actor_id") or "").strip()


def query_flag(request, name: str, default: str = "") -> bool:
    raw = (request.query_params.get(name) or default).strip().lower()
    return raw in ("1", "true", "yes")
