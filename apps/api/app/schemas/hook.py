"""Pydantic schemas for webhooks and hook logs."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.db.enums import HookVersion
from app.schemas.filter import Filter
from app.schemas.meta import Model


class HookNotification(BaseModel):
    """Delivery channel config: `type` is Email, URL or a plugin name."""

    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class Hook(BaseModel):
    id: str
    title: str = ""
    fk_model_id: str | None = None
    version: str = HookVersion.V2.value
    event: str = "after"
    operation: str = "insert"
    condition: bool = False
    active: bool = True
    notification: HookNotification | str | None = None

    def parsed_notification(self) -> HookNotification | None:
        """Notification config, decoding the JSON string form when stored that way."""
        if self.notification is None:
            return None
        if isinstance(self.notification, HookNotification):
            return self.notification
        return HookNotification.model_validate(json.loads(self.notification))


class HookLogRecord(BaseModel):
    """One append-only invocation record."""

    fk_hook_id: str
    base_id: str | None = None
    fk_workspace_id: str | None = None
    event: str | None = None
    operation: str | None = None
    type: str | None = None
    payload: str | None = None
    response: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    error: str | None = None
    triggered_by: str | None = None
    conditions: str | None = None
    execution_time: str | None = None
    test_call: bool = False


# =============================================================================
# API
# =============================================================================

class HookTestRequest(BaseModel):
    hook: Hook
    table: Model
    prev_data: dict[str, Any] | None = None
    data: dict[str, Any] | list[dict[str, Any]] | None = None
    user_email: str | None = None
    filters: list[Filter] | None = None


class HookTestResponse(BaseModel):
    status: str


class HookLogRead(BaseModel):
    id: str
    fk_hook_id: str
    base_id: str | None = None
    event: str | None = None
    operation: str | None = None
    type: str | None = None
    payload: str | None = None
    response: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    triggered_by: str | None = None
    conditions: str | None = None
    execution_time: str | None = None
    test_call: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
