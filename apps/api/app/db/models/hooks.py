"""SQLAlchemy ORM models for webhook invocation logs."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class HookLog(Base):
    """
    One webhook invocation.

    Append-only. Rows are written in the background after delivery, so a
    missing row never means the hook did not fire.
    """

    __tablename__ = "nc_hook_logs_v2"
    __table_args__ = (
        Index("idx_hook_logs_hook_created", "fk_hook_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    fk_hook_id: Mapped[str] = mapped_column(String(64), nullable=False)
    base_id: Mapped[str | None] = mapped_column(String(64))
    fk_workspace_id: Mapped[str | None] = mapped_column(String(64))
    event: Mapped[str | None] = mapped_column(String(32))
    operation: Mapped[str | None] = mapped_column(String(32))
    type: Mapped[str | None] = mapped_column(String(64))
    payload: Mapped[str | None] = mapped_column(Text)
    response: Mapped[str | None] = mapped_column(Text)
    error_code: Mapped[str | None] = mapped_column(String(64))
    error_message: Mapped[str | None] = mapped_column(Text)
    error: Mapped[str | None] = mapped_column(Text)
    triggered_by: Mapped[str | None] = mapped_column(String(255))
    conditions: Mapped[str | None] = mapped_column(Text)
    execution_time: Mapped[str | None] = mapped_column(String(32))
    test_call: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
