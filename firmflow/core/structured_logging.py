"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    org_id: str | None = None,
    service_id: str | None = None,
    request_id: str | None = None,
    action: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if org_id:
        context["org_id"] = org_id
    if service_id:
        context["service_id"] = service_id
    if request_id:
        context["request_id"] = request_id
    if action:
        context["action"] = action
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def configure_logging(level: str) -> None:
    """Set the root log level once at startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
