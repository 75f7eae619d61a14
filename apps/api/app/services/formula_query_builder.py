"""Formula columns rendered as dialect SQL via sqlglot."""

from __future__ import annotations

import logging
import re

import sqlalchemy as sa
import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError
from sqlalchemy.sql import ColumnElement

from app.core.errors import InvalidFieldTypeError, UnsupportedOperationError
from app.db.enums import UITypes
from app.schemas.meta import Column, FormulaOptions, Model, NcContext, Source
from app.services.meta_service import MetaStore
from app.services.query_helpers import DbDialect, TablePathResolver, resolve_dialect

logger = logging.getLogger(__name__)

FIELD_REF_PATTERN = re.compile(r"\{([^{}]+)\}")

_PLACEHOLDER = "__nc_ref_{}"


def sqlglot_dialect(dialect: DbDialect) -> str:
    if dialect.is_pg:
        return "postgres"
    if dialect.is_mysql:
        return "mysql"
    return "sqlite"


class FormulaQueryBuilder:
    """
    Translates `{Title}` formulas into SQL against an aliased table.

    Referenced formula columns are inlined; any other computed column is
    rejected.
    """

    def __init__(self, meta: MetaStore, source: Source | None) -> None:
        self.meta = meta
        self.paths = TablePathResolver(source)

    async def build(
        self,
        context: NcContext,
        column: Column,
        model: Model,
        alias: str | None = None,
    ) -> ColumnElement:
        dialect = resolve_dialect(self.paths.source)
        tree = await self._expression(context, column, model, alias, seen=set())
        sql = tree.sql(dialect=sqlglot_dialect(dialect))
        logger.debug("Formula column %s rendered as %s", column.id, sql)
        return sa.literal_column(sql)

    async def _expression(
        self,
        context: NcContext,
        column: Column,
        model: Model,
        alias: str | None,
        seen: set[str],
    ) -> exp.Expression:
        if column.id in seen:
            raise UnsupportedOperationError(f"Formula {column.title!r} references itself")
        seen = seen | {column.id}

        options = await self.meta.get_col_options(context, column)
        if not isinstance(options, FormulaOptions):
            raise InvalidFieldTypeError(f"Column {column.title!r} is not a formula column")

        columns = await self.meta.get_columns(context, model.id)
        by_title = {c.title: c for c in columns}

        references: dict[str, Column] = {}

        def substitute(match: re.Match) -> str:
            title = match.group(1).strip()
            if title not in by_title:
                raise UnsupportedOperationError(f"Formula references unknown field {title!r}")
            placeholder = _PLACEHOLDER.format(len(references))
            references[placeholder] = by_title[title]
            return placeholder

        text = FIELD_REF_PATTERN.sub(substitute, options.formula)
        try:
            tree = sqlglot.parse_one(text)
        except ParseError as e:
            raise UnsupportedOperationError(
                f"Formula {column.title!r} could not be parsed: {e}"
            ) from e
        if tree is None:
            raise UnsupportedOperationError(f"Formula {column.title!r} is empty")

        replacements = {
            placeholder: await self._reference(context, referenced, model, alias, seen)
            for placeholder, referenced in references.items()
        }

        def replace(node: exp.Expression) -> exp.Expression:
            if isinstance(node, exp.Column) and node.name in replacements:
                return replacements[node.name].copy()
            return node

        return tree.transform(replace)

    async def _reference(
        self,
        context: NcContext,
        column: Column,
        model: Model,
        alias: str | None,
        seen: set[str],
    ) -> exp.Expression:
        if column.uidt == UITypes.FORMULA:
            return exp.Paren(this=await self._expression(context, column, model, alias, seen))
        if column.is_virtual:
            raise UnsupportedOperationError(
                f"Formula reference to computed column {column.title!r} is not supported"
            )
        if alias:
            return exp.column(column.column_name, table=alias, quoted=True)
        schema = self.paths.schema
        return exp.column(column.column_name, table=model.table_name, db=schema, quoted=True)
