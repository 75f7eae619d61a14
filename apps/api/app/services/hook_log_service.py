"""Hook log persistence and filter-tree normalization."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Protocol

import anyio
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import HookLog
from app.db.session import SessionLocal
from app.schemas.filter import Filter
from app.schemas.hook import HookLogRecord
from app.schemas.meta import NcContext
from app.services.meta_service import MetaStore

logger = logging.getLogger(__name__)


class HookLogSink(Protocol):
    async def insert(self, record: HookLogRecord) -> None: ...


class SqlHookLogSink:
    """Writes hook logs through a sync session factory in a worker thread."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    async def insert(self, record: HookLogRecord) -> None:
        await anyio.to_thread.run_sync(self._insert_sync, record)

    def _insert_sync(self, record: HookLogRecord) -> None:
        with self._session_factory() as db:
            db.add(HookLog(**record.model_dump()))
            db.commit()


def list_hook_logs(db: Session, hook_id: str, *, limit: int = 25, offset: int = 0) -> list[HookLog]:
    """Most recent logs for a hook."""
    return list(
        db.execute(
            select(HookLog)
            .where(HookLog.fk_hook_id == hook_id)
            .order_by(HookLog.created_at.desc(), HookLog.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars()
    )


# =============================================================================
# Filter trees
# =============================================================================

async def load_filter_tree(meta: MetaStore, context: NcContext, filters: list[Filter]) -> list[Filter]:
    """Copies of `filters` with every group's children attached."""
    loaded: list[Filter] = []
    for filter_ in filters:
        if filter_.is_group:
            children = filter_.children
            if children is None:
                children = await meta.get_filter_children(context, filter_)
            filter_ = filter_.model_copy(
                update={"children": await load_filter_tree(meta, context, children)}
            )
        loaded.append(filter_)
    return loaded


def flatten_filters(filters: list[Filter], parent_id: str | None = None) -> list[Filter]:
    """
    Flatten a filter tree, linking children by fk_parent_id.

    Groups without an id get a generated one so their children stay attached.
    """
    flat: list[Filter] = []
    for filter_ in filters:
        node = filter_.model_copy(update={"children": None})
        if parent_id and not node.fk_parent_id:
            node.fk_parent_id = parent_id
        flat.append(node)
        if node.is_group:
            if not node.id:
                node.id = str(uuid.uuid4())
            flat.extend(flatten_filters(filter_.children or [], node.id))
    return flat


def build_filter_tree(flat: list[Filter]) -> list[Filter]:
    """Inverse of flatten_filters; unknown parents become roots."""
    nodes = {f.id: f.model_copy(update={"children": [] if f.is_group else None}) for f in flat if f.id}
    roots: list[Filter] = []
    for filter_ in flat:
        node = nodes.get(filter_.id) if filter_.id else filter_.model_copy()
        parent = nodes.get(filter_.fk_parent_id) if filter_.fk_parent_id else None
        if parent is not None and parent is not node:
            if parent.children is None:
                parent.children = []
            parent.children.append(node)
        else:
            roots.append(node)
    return roots


def _dump(filter_: Filter) -> dict[str, Any]:
    data = filter_.model_dump(exclude={"children"}, exclude_none=True)
    if filter_.is_group:
        data["children"] = [_dump(child) for child in filter_.children or []]
    return data


def normalize_filter_tree(filters: list[Filter]) -> dict[str, Any]:
    """Filter tree as stored in failure logs: rebuilt, then nested under an AND root."""
    tree = build_filter_tree(flatten_filters(filters))
    return {"group_operator": "AND", "filters": [_dump(f) for f in tree]}
