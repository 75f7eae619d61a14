"""FastAPI dependencies for database and webhook services."""

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.meta_service import CachedMetaStore, InMemoryMetaStore, MetaStore
from app.services.webhook_dispatch_service import WebhookDispatcher

# Process-wide metadata snapshot; deployments replace it with a real store
_meta_store = CachedMetaStore(InMemoryMetaStore())


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_meta_store() -> MetaStore:
    return _meta_store


def get_webhook_dispatcher(meta: MetaStore = Depends(get_meta_store)) -> WebhookDispatcher:
    return WebhookDispatcher(meta)
