"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: int | None = None,
    company_id: int | None = None,
    route: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never contents or tokens)."""
    context: dict[str, Any] = {}
    if user_id is not None:
        context["user_id"] = user_id
    if company_id is not None:
        context["company_id"] = company_id
    if route:
        context["route"] = route
    return context
