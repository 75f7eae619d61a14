"""Error taxonomy for query building and webhook dispatch."""

from __future__ import annotations


class InvalidFieldTypeError(ValueError):
    """A column of the wrong kind was passed where a lookup/relation was required."""

    error_code = "INVALID_FIELD_TYPE"


class UnsupportedOperationError(Exception):
    """No aggregation/serialization strategy exists for this dialect or column type."""

    error_code = "NOT_IMPLEMENTED"


class TemplateRenderError(Exception):
    """Template could not be compiled or rendered. Never leaves the template service."""


class WebhookDeliveryError(Exception):
    """An outbound channel could not deliver the webhook."""

    error_code = "WEBHOOK_DELIVERY_FAILED"


class WebhookSecurityError(WebhookDeliveryError):
    """Delivery was refused because the target resolves to a private network."""

    error_code = "WEBHOOK_PRIVATE_NETWORK"
