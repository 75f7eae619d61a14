"""Relation metadata resolution for lookup/relation columns."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.errors import InvalidFieldTypeError
from app.db.enums import RELATION_UI_TYPES, RelationTypes, UITypes
from app.schemas.meta import Column, LookupOptions, Model, NcContext, RelationOptions
from app.services.meta_service import MetaStore

logger = logging.getLogger(__name__)


@dataclass
class ResolvedRelation:
    """
    Both ends of one relation hop.

    `type` is already normalized: one-to-one never appears here.
    `ref_context` is the scope of the related (far) side.
    """

    type: RelationTypes
    relation_column: Column
    options: RelationOptions
    child_column: Column
    parent_column: Column
    child_model: Model
    parent_model: Model
    parent_context: NcContext
    child_context: NcContext
    ref_context: NcContext
    mm_context: NcContext
    junction_model: Model | None = None
    junction_child_column: Column | None = None
    junction_parent_column: Column | None = None

    @property
    def is_fan_out(self) -> bool:
        """True when one source row may match many related rows."""
        return self.type != RelationTypes.BELONGS_TO

    @property
    def target_model(self) -> Model:
        return self.child_model if self.type == RelationTypes.HAS_MANY else self.parent_model


@dataclass
class LookupHop:
    """The relation column to traverse and, for lookups, what to surface after it."""

    relation_column: Column
    lookup_options: LookupOptions | None


def normalize_relation_type(relation_type: RelationTypes, relation_column: Column) -> RelationTypes:
    """One-to-one is stored symmetrically; the `bt` marker picks the query direction."""
    if relation_type == RelationTypes.ONE_TO_ONE:
        return RelationTypes.BELONGS_TO if relation_column.meta.get("bt") else RelationTypes.HAS_MANY
    return relation_type


class RelationResolver:
    def __init__(self, meta: MetaStore) -> None:
        self.meta = meta

    async def relation_options(self, context: NcContext, relation_column: Column) -> RelationOptions:
        options = await self.meta.get_col_options(context, relation_column)
        if not isinstance(options, RelationOptions):
            raise InvalidFieldTypeError(
                f"Column {relation_column.title!r} is not a relation column"
            )
        return options

    async def resolve_entry(self, context: NcContext, column: Column) -> LookupHop:
        """Relation hop behind a Lookup or LinkToAnotherRecord column."""
        if column.uidt == UITypes.LOOKUP:
            options = await self.meta.get_col_options(context, column)
            if not isinstance(options, LookupOptions):
                raise InvalidFieldTypeError(f"Lookup column {column.title!r} has no lookup options")
            relation_column = await self.meta.get_column(context, options.fk_relation_column_id)
            return LookupHop(relation_column=relation_column, lookup_options=options)
        if column.uidt == UITypes.LINK_TO_ANOTHER_RECORD:
            return LookupHop(relation_column=column, lookup_options=None)
        raise InvalidFieldTypeError("Invalid field type")

    def related_contexts(
        self, context: NcContext, relation_type: RelationTypes, options: RelationOptions
    ) -> tuple[NcContext, NcContext, NcContext, NcContext]:
        """(parent, child, ref, mm) contexts for a relation defined in `context`."""
        ref_context = context.with_base(options.fk_related_base_id)
        mm_context = context.with_base(options.fk_mm_base_id)
        if relation_type == RelationTypes.HAS_MANY:
            return context, ref_context, ref_context, mm_context
        # belongs-to and many-to-many: the current table is the child side
        return ref_context, context, ref_context, mm_context

    async def resolve(self, context: NcContext, relation_column: Column) -> ResolvedRelation:
        """Resolve both ends (and the junction, for many-to-many) of a relation column."""
        if relation_column.uidt not in RELATION_UI_TYPES:
            raise InvalidFieldTypeError(
                f"Column {relation_column.title!r} ({relation_column.uidt.value}) is not a relation"
            )
        options = await self.relation_options(context, relation_column)
        relation_type = normalize_relation_type(options.type, relation_column)
        parent_context, child_context, ref_context, mm_context = self.related_contexts(
            context, relation_type, options
        )

        child_column = await self.meta.get_column(child_context, options.fk_child_column_id)
        parent_column = await self.meta.get_column(parent_context, options.fk_parent_column_id)
        child_model = await self.meta.get_model(child_context, child_column.fk_model_id)
        parent_model = await self.meta.get_model(parent_context, parent_column.fk_model_id)

        resolved = ResolvedRelation(
            type=relation_type,
            relation_column=relation_column,
            options=options,
            child_column=child_column,
            parent_column=parent_column,
            child_model=child_model,
            parent_model=parent_model,
            parent_context=parent_context,
            child_context=child_context,
            ref_context=ref_context,
            mm_context=mm_context,
        )

        if relation_type == RelationTypes.MANY_TO_MANY:
            if not (
                options.fk_mm_model_id
                and options.fk_mm_child_column_id
                and options.fk_mm_parent_column_id
            ):
                raise InvalidFieldTypeError(
                    f"Many-to-many column {relation_column.title!r} has no junction table"
                )
            resolved.junction_model = await self.meta.get_model(mm_context, options.fk_mm_model_id)
            resolved.junction_child_column = await self.meta.get_column(
                mm_context, options.fk_mm_child_column_id
            )
            resolved.junction_parent_column = await self.meta.get_column(
                mm_context, options.fk_mm_parent_column_id
            )

        logger.debug(
            "Resolved relation %s as %s (ref base %s)",
            relation_column.id,
            relation_type.value,
            ref_context.base_id,
        )
        return resolved

    async def get_display_value_column(self, context: NcContext, relation_column: Column) -> Column:
        """Primary-value column of the related table, else its first column."""
        options = await self.relation_options(context, relation_column)
        related = await self.meta.get_related_table(context, options)
        columns = await self.meta.get_columns(context.with_base(options.fk_related_base_id), related.id)
        if not columns:
            raise InvalidFieldTypeError(f"Related table {related.title!r} has no columns")
        return next((c for c in columns if c.pv), columns[0])

    async def next_lookup_target(
        self, context: NcContext, hop: LookupHop, relation: ResolvedRelation
    ) -> tuple[Column, NcContext]:
        """Column surfaced after crossing `relation`, and the context it lives in."""
        if hop.lookup_options is not None:
            column = await self.meta.get_column(
                relation.ref_context, hop.lookup_options.fk_lookup_column_id
            )
        else:
            column = await self.get_display_value_column(context, hop.relation_column)
        return column, relation.ref_context
