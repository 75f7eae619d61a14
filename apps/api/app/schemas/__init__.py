"""Pydantic schemas for metadata, filters and hooks."""

from app.schemas.filter import Filter
from app.schemas.hook import (
    Hook,
    HookLogRead,
    HookLogRecord,
    HookNotification,
    HookTestRequest,
    HookTestResponse,
)
from app.schemas.meta import Column, Model, NcContext, Source

__all__ = [
    # Meta
    "NcContext",
    "Source",
    "Model",
    "Column",
    # Filter
    "Filter",
    # Hook
    "Hook",
    "HookNotification",
    "HookLogRecord",
    "HookLogRead",
    "HookTestRequest",
    "HookTestResponse",
]
