"""Pydantic schemas for table/column metadata snapshots."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from app.db.enums import RelationTypes, RollupFunction, UITypes


class NcContext(BaseModel):
    """Tenant scope threaded through every metadata lookup."""

    model_config = ConfigDict(frozen=True)

    workspace_id: str = "default"
    base_id: str

    def with_base(self, base_id: str | None) -> "NcContext":
        """Context for another base in the same workspace (self when unchanged)."""
        if not base_id or base_id == self.base_id:
            return self
        return NcContext(workspace_id=self.workspace_id, base_id=base_id)


# =============================================================================
# Column options (one variant per column kind)
# =============================================================================

class RelationOptions(BaseModel):
    """LinkToAnotherRecord / Links options."""

    kind: Literal["relation"] = "relation"
    type: RelationTypes
    fk_child_column_id: str
    fk_parent_column_id: str
    fk_related_model_id: str
    fk_mm_model_id: str | None = None
    fk_mm_child_column_id: str | None = None
    fk_mm_parent_column_id: str | None = None
    # Set when the related table lives in another base
    fk_related_base_id: str | None = None
    fk_mm_base_id: str | None = None


class LookupOptions(BaseModel):
    kind: Literal["lookup"] = "lookup"
    fk_relation_column_id: str
    fk_lookup_column_id: str


class RollupOptions(BaseModel):
    kind: Literal["rollup"] = "rollup"
    fk_relation_column_id: str
    fk_rollup_column_id: str
    rollup_function: RollupFunction


class FormulaOptions(BaseModel):
    """Formula text; field references are written as {Title}."""

    kind: Literal["formula"] = "formula"
    formula: str


class BarcodeOptions(BaseModel):
    kind: Literal["barcode"] = "barcode"
    fk_value_column_id: str


class QrCodeOptions(BaseModel):
    kind: Literal["qrcode"] = "qrcode"
    fk_value_column_id: str


ColumnOptions = Annotated[
    Union[
        RelationOptions,
        LookupOptions,
        RollupOptions,
        FormulaOptions,
        BarcodeOptions,
        QrCodeOptions,
    ],
    Field(discriminator="kind"),
]


# =============================================================================
# Entities
# =============================================================================

class Column(BaseModel):
    id: str
    title: str
    column_name: str | None = None
    uidt: UITypes
    fk_model_id: str
    pv: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)
    col_options: ColumnOptions | None = None

    @property
    def is_virtual(self) -> bool:
        """Virtual columns have no physical column of their own."""
        return self.column_name is None


class Model(BaseModel):
    """A table: logical title plus physical table name."""

    id: str
    title: str
    table_name: str
    source_id: str
    base_id: str
    columns: list[Column] = Field(default_factory=list)


class Source(BaseModel):
    """A configured database connection."""

    id: str
    type: str
    schema_name: str | None = None
    is_meta: bool = False
