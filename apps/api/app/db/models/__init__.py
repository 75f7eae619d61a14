"""SQLAlchemy ORM models."""

from app.db.models.hooks import HookLog

__all__ = ["HookLog"]
