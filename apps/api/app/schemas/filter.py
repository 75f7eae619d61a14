"""Pydantic schemas for filter trees."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class Filter(BaseModel):
    """
    One node of a boolean filter tree.

    Groups carry `children`; leaves reference a column through `fk_column_id`.
    `logical_op` combines this node with the running result of its earlier
    siblings (the first sibling is implicitly `and`).
    """

    id: str | None = None
    fk_parent_id: str | None = None
    fk_hook_id: str | None = None
    is_group: bool = False
    children: list[Filter] | None = None
    logical_op: str | None = None
    comparison_op: str | None = None
    comparison_sub_op: str | None = None
    value: Any = None
    fk_column_id: str | None = None


Filter.model_rebuild()
