"""Webhook enums."""

from enum import Enum


class HookVersion(str, Enum):
    V1 = "v1"
    V2 = "v2"


class HookEvent(str, Enum):
    """When the hook fires relative to the mutation."""

    AFTER = "after"
    BEFORE = "before"
    MANUAL = "manual"


class HookOperation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    BULK_INSERT = "bulkInsert"
    BULK_UPDATE = "bulkUpdate"
    BULK_DELETE = "bulkDelete"
    TRIGGER = "trigger"


class NotificationType(str, Enum):
    """Built-in delivery channels. Any other value names a plugin."""

    EMAIL = "Email"
    URL = "URL"


class AutomationLogLevel(str, Enum):
    ERROR = "ERROR"
    ALL = "ALL"


class HookDeliveryStatus(str, Enum):
    """Terminal state of one webhook invocation."""

    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"
