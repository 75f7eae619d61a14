"""Correlated subqueries selecting Lookup and LinkToAnotherRecord values."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

import sqlalchemy as sa
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.selectable import FromClause

from app.core.errors import UnsupportedOperationError
from app.db.enums import RelationTypes, UITypes
from app.schemas.meta import BarcodeOptions, Column, Model, NcContext, QrCodeOptions, Source
from app.services.formula_query_builder import FormulaQueryBuilder
from app.services.meta_service import MetaStore
from app.services.query_helpers import (
    LOOKUP_VAL_SEPARATOR,
    SERIALIZED_DATE_UI_TYPES,
    AliasGenerator,
    DbDialect,
    TablePathResolver,
    compile_sql,
    resolve_dialect,
    serialize_column_select,
)
from app.services.relation_resolver import RelationResolver, ResolvedRelation
from app.services.rollup_query_builder import RollupQueryBuilder

logger = logging.getLogger(__name__)


def _no_cte(query: sa.Select) -> sa.Select:
    return query


@dataclass
class LookupSelect:
    """A built lookup query plus the hook for attaching CTEs to the outer query."""

    query: sa.Select
    apply_cte: Callable[[sa.Select], sa.Select] = field(default=_no_cte)
    aggregated: bool = False

    def to_sql(self, dialect: DbDialect) -> str:
        return compile_sql(self.query, dialect)


@dataclass
class _Chain:
    """Mutable state while walking the hops of one lookup."""

    from_clause: FromClause
    conditions: list[ColumnElement]
    prev: FromClause
    prev_alias: str
    is_bt_lookup: bool = True


class LookupQueryBuilder:
    """
    Generates the select used to sort, group or aggregate by a lookup column.

    When every hop is belongs-to the select yields at most one row and is
    returned as is. Any has-many or many-to-many hop fans out, and the
    select is wrapped in a dialect aggregate: a JSON array string on pg and
    mysql, a `___`-separated string on sqlite.
    """

    def __init__(
        self,
        meta: MetaStore,
        source: Source | None = None,
        rollup_builder: RollupQueryBuilder | None = None,
        formula_builder: FormulaQueryBuilder | None = None,
    ) -> None:
        self.meta = meta
        self.source = source
        self.resolver = RelationResolver(meta)
        self.rollup_builder = rollup_builder
        self.formula_builder = formula_builder

    async def build(
        self,
        context: NcContext,
        column: Column,
        *,
        model: Model,
        alias: str | None = None,
        is_aggregation: bool = False,
    ) -> LookupSelect:
        """
        Build the select for `column` of `model`.

        `alias` names the outer query's reference to `model`; without it the
        subquery correlates with the physical table path.
        """
        source = self.source
        if source is None:
            source = await self.meta.get_source(context, model.source_id)
        paths = TablePathResolver(source)
        aliases = AliasGenerator()

        hop = await self.resolver.resolve_entry(context, column)
        relation = await self.resolver.resolve(context, hop.relation_column)
        chain = self._first_hop(paths, aliases, relation, alias)

        lookup_column, lookup_context = await self.resolver.next_lookup_target(context, hop, relation)
        lookup_column = await self._value_column(lookup_context, lookup_column)

        while lookup_column.uidt in (UITypes.LOOKUP, UITypes.LINK_TO_ANOTHER_RECORD):
            nested_alias = aliases()
            nested_hop = await self.resolver.resolve_entry(lookup_context, lookup_column)
            nested = await self.resolver.resolve(lookup_context, nested_hop.relation_column)
            self._nested_hop(paths, aliases, chain, nested, nested_alias)
            lookup_column, lookup_context = await self.resolver.next_lookup_target(
                lookup_context, nested_hop, nested
            )
            lookup_column = await self._value_column(lookup_context, lookup_column)

        value = await self._terminal_value(
            paths, aliases, chain, lookup_context, lookup_column, is_aggregation
        )
        query = sa.select(value).select_from(chain.from_clause).where(*chain.conditions)

        if chain.is_bt_lookup:
            return LookupSelect(query=query)

        dialect = resolve_dialect(source)
        subquery = query.subquery(aliases())
        aggregated = subquery.c[lookup_column.id]
        if dialect.is_pg:
            expression = sa.cast(sa.func.json_agg(aggregated), sa.Text)
        elif dialect.is_mysql:
            expression = sa.cast(sa.func.JSON_ARRAYAGG(aggregated), sa.CHAR)
        else:
            expression = sa.func.group_concat(aggregated, LOOKUP_VAL_SEPARATOR)

        logger.debug("Lookup column %s aggregated for %s", column.id, dialect.client)
        return LookupSelect(
            query=sa.select(expression.label(lookup_column.id)).select_from(subquery),
            aggregated=True,
        )

    def _first_hop(
        self,
        paths: TablePathResolver,
        aliases: AliasGenerator,
        relation: ResolvedRelation,
        root_alias: str | None,
    ) -> _Chain:
        alias = aliases()

        if relation.type == RelationTypes.BELONGS_TO:
            target = paths.table(relation.parent_model, alias)
            outer = paths.root_ref(root_alias, relation.child_model, relation.child_column.column_name)
            return _Chain(
                from_clause=target,
                conditions=[target.c[relation.parent_column.column_name] == outer],
                prev=target,
                prev_alias=alias,
            )

        if relation.type == RelationTypes.HAS_MANY:
            target = paths.table(relation.child_model, alias)
            outer = paths.root_ref(root_alias, relation.parent_model, relation.parent_column.column_name)
            return _Chain(
                from_clause=target,
                conditions=[target.c[relation.child_column.column_name] == outer],
                prev=target,
                prev_alias=alias,
                is_bt_lookup=False,
            )

        target = paths.table(relation.parent_model, alias)
        junction = paths.table(relation.junction_model, aliases())
        outer = paths.root_ref(root_alias, relation.child_model, relation.child_column.column_name)
        return _Chain(
            from_clause=target.join(
                junction,
                junction.c[relation.junction_parent_column.column_name]
                == target.c[relation.parent_column.column_name],
            ),
            conditions=[junction.c[relation.junction_child_column.column_name] == outer],
            prev=target,
            prev_alias=alias,
            is_bt_lookup=False,
        )

    def _nested_hop(
        self,
        paths: TablePathResolver,
        aliases: AliasGenerator,
        chain: _Chain,
        relation: ResolvedRelation,
        nested_alias: str,
    ) -> None:
        prev = chain.prev

        if relation.type == RelationTypes.BELONGS_TO:
            nested = paths.table(relation.parent_model, nested_alias)
            chain.from_clause = chain.from_clause.join(
                nested,
                nested.c[relation.parent_column.column_name]
                == prev.c[relation.child_column.column_name],
            )
        elif relation.type == RelationTypes.HAS_MANY:
            chain.is_bt_lookup = False
            nested = paths.table(relation.child_model, nested_alias)
            chain.from_clause = chain.from_clause.join(
                nested,
                nested.c[relation.child_column.column_name]
                == prev.c[relation.parent_column.column_name],
            )
        else:
            chain.is_bt_lookup = False
            junction = paths.table(relation.junction_model, aliases())
            nested = paths.table(relation.parent_model, nested_alias)
            chain.from_clause = chain.from_clause.join(
                junction,
                junction.c[relation.junction_child_column.column_name]
                == prev.c[relation.child_column.column_name],
            ).join(
                nested,
                junction.c[relation.junction_parent_column.column_name]
                == nested.c[relation.parent_column.column_name],
            )

        chain.prev = nested
        chain.prev_alias = nested_alias

    async def _value_column(self, context: NcContext, column: Column) -> Column:
        """QrCode and Barcode columns surface the column they encode."""
        if column.uidt not in (UITypes.QR_CODE, UITypes.BARCODE):
            return column
        options = await self.meta.get_col_options(context, column)
        if not isinstance(options, (QrCodeOptions, BarcodeOptions)):
            raise UnsupportedOperationError(f"Column {column.title!r} has no value column")
        return await self.meta.get_column(context, options.fk_value_column_id)

    async def _terminal_value(
        self,
        paths: TablePathResolver,
        aliases: AliasGenerator,
        chain: _Chain,
        context: NcContext,
        column: Column,
        is_aggregation: bool,
    ) -> ColumnElement:
        if column.uidt in (UITypes.ROLLUP, UITypes.LINKS):
            rollup_builder = self.rollup_builder or RollupQueryBuilder(self.meta, paths.source)
            subquery = await rollup_builder.build(context, column, chain.prev_alias, aliases)
            return subquery.label(column.id)

        if column.uidt == UITypes.FORMULA:
            formula_builder = self.formula_builder or FormulaQueryBuilder(self.meta, paths.source)
            model = await self.meta.get_model(context, column.fk_model_id)
            expression = await formula_builder.build(context, column, model, chain.prev_alias)
            return expression.label(column.id)

        if column.uidt == UITypes.ATTACHMENT and not is_aggregation:
            raise UnsupportedOperationError("Group by using attachment column is not supported")

        if column.is_virtual:
            raise UnsupportedOperationError(
                f"Lookup of {column.uidt.value} column {column.title!r} is not supported"
            )

        expression = chain.prev.c[column.column_name]
        if column.uidt in SERIALIZED_DATE_UI_TYPES:
            expression = serialize_column_select(paths.dialect, expression, column)
        return expression.label(column.id)
