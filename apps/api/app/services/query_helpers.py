"""Shared helpers for computed-column SQL generation."""

from __future__ import annotations

from dataclasses import dataclass

import sqlalchemy as sa
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Dialect
from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.selectable import Alias, TableClause

from app.core.errors import UnsupportedOperationError
from app.db.enums import ClientType, UITypes
from app.schemas.meta import Column, Model, Source

# Separator for sqlite lookup aggregation; values containing it cannot be split back.
LOOKUP_VAL_SEPARATOR = "___"

LOOKUP_ALIAS_PREFIX = "__lk_slt_"

# Terminal types rendered through serialize_column_select
SERIALIZED_DATE_UI_TYPES = frozenset(
    {UITypes.DATE_TIME, UITypes.CREATED_TIME, UITypes.LAST_MODIFIED_TIME}
)


class AliasGenerator:
    """Monotonic alias source; one instance per top-level query build."""

    def __init__(self, prefix: str = LOOKUP_ALIAS_PREFIX) -> None:
        self.prefix = prefix
        self._counter = 0

    def __call__(self) -> str:
        alias = f"{self.prefix}{self._counter}"
        self._counter += 1
        return alias


@dataclass(frozen=True)
class DbDialect:
    """Dialect predicates for a source's client type."""

    client: str | None

    @property
    def is_pg(self) -> bool:
        return self.client == ClientType.PG.value

    @property
    def is_mysql(self) -> bool:
        return self.client in (ClientType.MYSQL.value, ClientType.MYSQL_LEGACY.value)

    @property
    def is_sqlite(self) -> bool:
        return self.client == ClientType.SQLITE.value

    @property
    def sa_dialect(self) -> Dialect:
        if self.is_pg:
            return postgresql.dialect()
        if self.is_mysql:
            return mysql.dialect()
        if self.is_sqlite:
            return sqlite.dialect()
        return DefaultDialect()

    def quote(self, identifier: str) -> str:
        return self.sa_dialect.identifier_preparer.quote(identifier)


def dialect_for(source: Source | None) -> DbDialect:
    return DbDialect(source.type if source else None)


def resolve_dialect(source: Source | None) -> DbDialect:
    """Dialect for a source that must support lookup aggregation."""
    dialect = dialect_for(source)
    if not (dialect.is_pg or dialect.is_mysql or dialect.is_sqlite):
        raise UnsupportedOperationError(
            f"Lookup aggregation is not supported for {dialect.client or 'unknown'} sources"
        )
    return dialect


class TablePathResolver:
    """Maps logical tables to dialect-qualified physical references."""

    def __init__(self, source: Source | None) -> None:
        self.source = source
        self.dialect = dialect_for(source)

    @property
    def schema(self) -> str | None:
        if self.source is not None and self.dialect.is_pg:
            return self.source.schema_name
        return None

    def table(self, model: Model, alias: str | None = None) -> TableClause | Alias:
        """Table clause carrying the model's physical columns, optionally aliased."""
        columns = [sa.column(c.column_name) for c in model.columns if c.column_name]
        clause = sa.table(model.table_name, *columns, schema=self.schema)
        return clause.alias(alias) if alias else clause

    def tn_path(self, table_name: str) -> list[str]:
        """Path parts of a physical table (schema first when present)."""
        return [self.schema, table_name] if self.schema else [table_name]

    def ref(self, prefix: str | list[str], column_name: str) -> ColumnElement:
        """
        Column reference rendered as quoted text.

        Used to correlate with a table of the enclosing query, which must not be
        pulled into the subquery's own FROM list.
        """
        parts = [prefix] if isinstance(prefix, str) else list(prefix)
        parts.append(column_name)
        return sa.literal_column(".".join(self.dialect.quote(p) for p in parts))

    def root_ref(self, root_alias: str | None, model: Model, column_name: str) -> ColumnElement:
        if root_alias:
            return self.ref(root_alias, column_name)
        return self.ref(self.tn_path(model.table_name), column_name)


def serialize_column_select(
    dialect: DbDialect, expression: ColumnElement, column: Column
) -> ColumnElement:
    """Select expression that renders date/time values as UTC strings."""
    if column.uidt not in SERIALIZED_DATE_UI_TYPES:
        return expression
    if dialect.is_pg:
        return sa.func.concat(
            sa.func.to_char(sa.func.timezone("UTC", expression), "YYYY-MM-DD HH24:MI:SS"),
            "+00:00",
        )
    if dialect.is_mysql:
        return sa.func.DATE_FORMAT(expression, "%Y-%m-%d %H:%i:%s+00:00")
    if dialect.is_sqlite:
        return sa.func.strftime("%Y-%m-%d %H:%M:%S+00:00", expression)
    return expression


def compile_sql(query: sa.Select, dialect: DbDialect) -> str:
    """Render a query with inlined literals (diagnostics and tests)."""
    if not (dialect.is_pg or dialect.is_mysql or dialect.is_sqlite):
        raise UnsupportedOperationError(f"SQL rendering is not supported for {dialect.client}")
    return str(query.compile(dialect=dialect.sa_dialect, compile_kwargs={"literal_binds": True}))
