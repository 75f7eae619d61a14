"""Correlated scalar subqueries for Rollup and Links columns."""

from __future__ import annotations

import logging
from typing import Callable

import sqlalchemy as sa
from sqlalchemy.sql import ColumnElement

from app.core.errors import InvalidFieldTypeError, UnsupportedOperationError
from app.db.enums import RelationTypes, RollupFunction, UITypes
from app.schemas.meta import Column, NcContext, RollupOptions, Source
from app.services.meta_service import MetaStore
from app.services.query_helpers import AliasGenerator, TablePathResolver
from app.services.relation_resolver import RelationResolver, ResolvedRelation

logger = logging.getLogger(__name__)

ROLLUP_ALIAS_PREFIX = "__rl_slt_"

_FUNCTIONS: dict[RollupFunction, Callable[[ColumnElement], ColumnElement]] = {
    RollupFunction.COUNT: lambda c: sa.func.count(c),
    RollupFunction.MIN: lambda c: sa.func.min(c),
    RollupFunction.MAX: lambda c: sa.func.max(c),
    RollupFunction.AVG: lambda c: sa.func.avg(c),
    RollupFunction.SUM: lambda c: sa.func.sum(c),
    RollupFunction.COUNT_DISTINCT: lambda c: sa.func.count(sa.distinct(c)),
    RollupFunction.SUM_DISTINCT: lambda c: sa.func.sum(sa.distinct(c)),
    RollupFunction.AVG_DISTINCT: lambda c: sa.func.avg(sa.distinct(c)),
}


class RollupQueryBuilder:
    """
    Builds `(SELECT fn(x) FROM related ... WHERE <correlation>)` for one column.

    The subquery correlates with the table that owns the rollup column, either
    through `alias` or through the physical table path.
    """

    def __init__(self, meta: MetaStore, source: Source | None) -> None:
        self.meta = meta
        self.resolver = RelationResolver(meta)
        self.paths = TablePathResolver(source)

    async def build(
        self,
        context: NcContext,
        column: Column,
        alias: str | None = None,
        aliases: AliasGenerator | None = None,
    ) -> sa.ScalarSelect:
        aliases = aliases or AliasGenerator(ROLLUP_ALIAS_PREFIX)

        if column.uidt == UITypes.ROLLUP:
            options = await self.meta.get_col_options(context, column)
            if not isinstance(options, RollupOptions):
                raise InvalidFieldTypeError(f"Rollup column {column.title!r} has no rollup options")
            relation_column = await self.meta.get_column(context, options.fk_relation_column_id)
            relation = await self.resolver.resolve(context, relation_column)
            rollup_column = await self.meta.get_column(
                relation.ref_context, options.fk_rollup_column_id
            )
            function = _FUNCTIONS.get(options.rollup_function)
            if function is None:
                raise UnsupportedOperationError(
                    f"Rollup function {options.rollup_function} is not supported"
                )
        elif column.uidt == UITypes.LINKS:
            relation = await self.resolver.resolve(context, column)
            rollup_column = None
            function = None
        else:
            raise InvalidFieldTypeError(f"Column {column.title!r} is not a rollup or links column")

        target, from_clause, condition = self._related_rows(relation, alias, aliases)

        if rollup_column is None:
            value = sa.func.count()
        else:
            if rollup_column.is_virtual:
                raise UnsupportedOperationError(
                    f"Rollup over computed column {rollup_column.title!r} is not supported"
                )
            value = function(target.c[rollup_column.column_name])

        logger.debug("Built rollup subquery for column %s (%s)", column.id, relation.type.value)
        return sa.select(value).select_from(from_clause).where(condition).scalar_subquery()

    def _related_rows(self, relation: ResolvedRelation, alias: str | None, aliases: AliasGenerator):
        """(target table, FROM clause, correlation condition) for the related side."""
        if relation.type == RelationTypes.HAS_MANY:
            target = self.paths.table(relation.child_model, aliases())
            outer = self.paths.root_ref(alias, relation.parent_model, relation.parent_column.column_name)
            return target, target, target.c[relation.child_column.column_name] == outer

        outer = self.paths.root_ref(alias, relation.child_model, relation.child_column.column_name)
        target = self.paths.table(relation.parent_model, aliases())
        if relation.type == RelationTypes.BELONGS_TO:
            return target, target, target.c[relation.parent_column.column_name] == outer

        junction = self.paths.table(relation.junction_model, aliases())
        from_clause = target.join(
            junction,
            junction.c[relation.junction_parent_column.column_name]
            == target.c[relation.parent_column.column_name],
        )
        return target, from_clause, junction.c[relation.junction_child_column.column_name] == outer
