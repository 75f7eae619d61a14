"""Notification channel registry."""

from __future__ import annotations

from app.core.errors import WebhookDeliveryError
from app.services.webhooks.base import EmailAdapter, NotificationAdapter


class NotificationPluginRegistry:
    """Email adapter plus named plugin channels (Slack, Teams, ...)."""

    def __init__(
        self,
        email: EmailAdapter | None = None,
        adapters: dict[str, NotificationAdapter] | None = None,
    ) -> None:
        self._email = email
        self._adapters: dict[str, NotificationAdapter] = dict(adapters or {})

    def register(self, name: str, adapter: NotificationAdapter) -> None:
        self._adapters[name] = adapter

    def email_adapter(self) -> EmailAdapter:
        if self._email is None:
            raise WebhookDeliveryError("No email adapter is configured")
        return self._email

    def webhook_notification_adapter(self, name: str) -> NotificationAdapter:
        adapter = self._adapters.get(name)
        if not adapter:
            raise WebhookDeliveryError(f"Unknown notification channel: {name}")
        return adapter


_REGISTRY = NotificationPluginRegistry()


def get_registry() -> NotificationPluginRegistry:
    return _REGISTRY
