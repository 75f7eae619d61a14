"""Metadata access: the accessor contract plus in-memory and memoizing stores."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Protocol

from app.schemas.filter import Filter
from app.schemas.meta import Column, ColumnOptions, Model, NcContext, RelationOptions, Source

logger = logging.getLogger(__name__)


class MetaNotFoundError(LookupError):
    """Requested metadata entity does not exist in the given context."""


class MetaStore(Protocol):
    async def get_column(self, context: NcContext, column_id: str) -> Column: ...

    async def get_col_options(self, context: NcContext, column: Column) -> ColumnOptions | None: ...

    async def get_model(self, context: NcContext, model_id: str) -> Model: ...

    async def get_columns(self, context: NcContext, model_id: str) -> list[Column]: ...

    async def get_related_table(self, context: NcContext, options: RelationOptions) -> Model: ...

    async def get_source(self, context: NcContext, source_id: str) -> Source | None: ...

    async def get_hook_filters(self, context: NcContext, hook_id: str) -> list[Filter]: ...

    async def get_filter_children(self, context: NcContext, filter_: Filter) -> list[Filter]: ...


def _key(context: NcContext, entity_id: str) -> tuple[str, str, str]:
    return (context.workspace_id, context.base_id, entity_id)


class InMemoryMetaStore:
    """
    Metadata snapshots held in dictionaries.

    Entities are keyed by (workspace, base, id), so a lookup made with the wrong
    context fails the same way a scoped metadata query would.
    """

    def __init__(self) -> None:
        self._models: dict[tuple[str, str, str], Model] = {}
        self._columns: dict[tuple[str, str, str], Column] = {}
        self._sources: dict[tuple[str, str, str], Source] = {}
        self._filters: dict[tuple[str, str, str], Filter] = {}

    def add_source(self, context: NcContext, source: Source) -> Source:
        self._sources[_key(context, source.id)] = source
        return source

    def add_model(self, context: NcContext, model: Model) -> Model:
        self._models[_key(context, model.id)] = model
        for column in model.columns:
            self._columns[_key(context, column.id)] = column
        return model

    def add_filters(self, context: NcContext, filters: list[Filter]) -> None:
        """Register filters flat; nesting is expressed through fk_parent_id."""
        for filter_ in filters:
            if not filter_.id:
                raise ValueError("Stored filters need an id")
            self._filters[_key(context, filter_.id)] = filter_

    async def get_column(self, context: NcContext, column_id: str) -> Column:
        column = self._columns.get(_key(context, column_id))
        if column is None:
            raise MetaNotFoundError(f"Column {column_id} not found in base {context.base_id}")
        return column

    async def get_col_options(self, context: NcContext, column: Column) -> ColumnOptions | None:
        return column.col_options

    async def get_model(self, context: NcContext, model_id: str) -> Model:
        model = self._models.get(_key(context, model_id))
        if model is None:
            raise MetaNotFoundError(f"Table {model_id} not found in base {context.base_id}")
        return model

    async def get_columns(self, context: NcContext, model_id: str) -> list[Column]:
        model = await self.get_model(context, model_id)
        return list(model.columns)

    async def get_related_table(self, context: NcContext, options: RelationOptions) -> Model:
        return await self.get_model(context.with_base(options.fk_related_base_id), options.fk_related_model_id)

    async def get_source(self, context: NcContext, source_id: str) -> Source | None:
        return self._sources.get(_key(context, source_id))

    async def get_hook_filters(self, context: NcContext, hook_id: str) -> list[Filter]:
        return [
            f
            for (ws, base, _), f in self._filters.items()
            if ws == context.workspace_id
            and base == context.base_id
            and f.fk_hook_id == hook_id
            and f.fk_parent_id is None
        ]

    async def get_filter_children(self, context: NcContext, filter_: Filter) -> list[Filter]:
        return [
            f
            for (ws, base, _), f in self._filters.items()
            if ws == context.workspace_id and base == context.base_id and f.fk_parent_id == filter_.id
        ]


class CachedMetaStore:
    """
    Memoizing wrapper with at most one in-flight fetch per (context, kind, id).

    Filters are never cached; they are edited independently of table schema.
    """

    def __init__(self, inner: MetaStore) -> None:
        self._inner = inner
        self._values: dict[Hashable, Any] = {}
        self._inflight: dict[Hashable, asyncio.Future] = {}

    async def _memo(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        if key in self._values:
            return self._values[key]
        pending = self._inflight.get(key)
        if pending is not None:
            return await pending

        task = asyncio.ensure_future(factory())
        self._inflight[key] = task
        try:
            value = await task
        finally:
            self._inflight.pop(key, None)
        self._values[key] = value
        return value

    def invalidate(self) -> None:
        self._values.clear()

    async def get_column(self, context: NcContext, column_id: str) -> Column:
        return await self._memo(
            ("column", context, column_id), lambda: self._inner.get_column(context, column_id)
        )

    async def get_col_options(self, context: NcContext, column: Column) -> ColumnOptions | None:
        return await self._memo(
            ("col_options", context, column.id),
            lambda: self._inner.get_col_options(context, column),
        )

    async def get_model(self, context: NcContext, model_id: str) -> Model:
        return await self._memo(
            ("model", context, model_id), lambda: self._inner.get_model(context, model_id)
        )

    async def get_columns(self, context: NcContext, model_id: str) -> list[Column]:
        return await self._memo(
            ("columns", context, model_id), lambda: self._inner.get_columns(context, model_id)
        )

    async def get_related_table(self, context: NcContext, options: RelationOptions) -> Model:
        related_context = context.with_base(options.fk_related_base_id)
        return await self.get_model(related_context, options.fk_related_model_id)

    async def get_source(self, context: NcContext, source_id: str) -> Source | None:
        return await self._memo(
            ("source", context, source_id), lambda: self._inner.get_source(context, source_id)
        )

    async def get_hook_filters(self, context: NcContext, hook_id: str) -> list[Filter]:
        return await self._inner.get_hook_filters(context, hook_id)

    async def get_filter_children(self, context: NcContext, filter_: Filter) -> list[Filter]:
        return await self._inner.get_filter_children(context, filter_)
