"""Notification channel interfaces."""

from __future__ import annotations

from typing import Any, Protocol


class EmailAdapter(Protocol):
    async def mail_send(self, payload: dict[str, Any]) -> Any:
        """Send `{to, subject, html}`; the return value is logged as the response."""


class NotificationAdapter(Protocol):
    async def send_message(self, body: Any, payload: dict[str, Any]) -> Any:
        """Deliver a templated body plus the templated channel settings."""
