"""Structured logging helpers (PII-safe)."""

import ipaddress
from typing import Any


def mask_ip(ip_address: str | None) -> str | None:
    """Mask IP for logs to avoid storing raw PII."""
    if not ip_address:
        return None
    try:
        ip_obj = ipaddress.ip_address(ip_address)
    except ValueError:
        return None
    if isinstance(ip_obj, ipaddress.IPv4Address):
        network = ipaddress.ip_network(f"{ip_address}/24", strict=False)
        return f"{network.network_address}/24"
    network = ipaddress.ip_network(f"{ip_address}/64", strict=False)
    return f"{network.network_address}/64"


def build_log_context(
    *,
    user_id: str | None = None,
    workspace_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if workspace_id:
        context["workspace_id"] = workspace_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
