"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    hook_id: str | None = None,
    table_id: str | None = None,
    event: str | None = None,
    operation: str | None = None,
    notification_type: str | None = None,
    base_id: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict for webhook invocations."""
    context: dict[str, Any] = {}
    if hook_id:
        context["hook_id"] = hook_id
    if table_id:
        context["table_id"] = table_id
    if event:
        context["event"] = event
    if operation:
        context["operation"] = operation
    if notification_type:
        context["notification_type"] = notification_type
    if base_id:
        context["base_id"] = base_id
    return context
