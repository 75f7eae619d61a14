"""Enum definitions for application constants."""

from app.db.enums.columns import (
    DATE_UI_TYPES,
    RELATION_UI_TYPES,
    USER_UI_TYPES,
    ClientType,
    RelationTypes,
    RollupFunction,
    UITypes,
)
from app.db.enums.filters import (
    EMPTY_OPS,
    FUTURE_RANGE_SUB_OPS,
    NOT_EMPTY_OPS,
    PAST_RANGE_SUB_OPS,
    ComparisonOp,
    ComparisonSubOp,
    LogicalOp,
)
from app.db.enums.hooks import (
    AutomationLogLevel,
    HookDeliveryStatus,
    HookEvent,
    HookOperation,
    HookVersion,
    NotificationType,
)

__all__ = [
    "AutomationLogLevel",
    "ClientType",
    "ComparisonOp",
    "ComparisonSubOp",
    "DATE_UI_TYPES",
    "EMPTY_OPS",
    "FUTURE_RANGE_SUB_OPS",
    "HookDeliveryStatus",
    "HookEvent",
    "HookOperation",
    "HookVersion",
    "LogicalOp",
    "NOT_EMPTY_OPS",
    "NotificationType",
    "PAST_RANGE_SUB_OPS",
    "RELATION_UI_TYPES",
    "RelationTypes",
    "RollupFunction",
    "USER_UI_TYPES",
    "UITypes",
]
