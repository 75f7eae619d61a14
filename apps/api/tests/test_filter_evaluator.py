"""Tests for webhook condition evaluation."""

from datetime import datetime, timezone

import pytest

from app.db.enums import UITypes
from app.schemas.filter import Filter
from app.schemas.meta import Column, Model, NcContext
from app.services.filter_evaluator import FilterEvaluator, loose_equals, to_number
from app.services.meta_service import InMemoryMetaStore

NOW = datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)


def _people_meta(context: NcContext) -> InMemoryMetaStore:
    def column(id: str, title: str, uidt: UITypes, **kwargs) -> Column:
        return Column(id=id, title=title, uidt=uidt, fk_model_id="tbl_people", column_name=id, **kwargs)

    meta = InMemoryMetaStore()
    meta.add_model(
        context,
        Model(
            id="tbl_people",
            title="People",
            table_name="people",
            source_id="src_1",
            base_id=context.base_id,
            columns=[
                column("name", "Name", UITypes.SINGLE_LINE_TEXT),
                column("active", "Active", UITypes.CHECKBOX),
                column("age", "Age", UITypes.NUMBER),
                column("owner", "Owner", UITypes.USER),
                column("due", "Due", UITypes.DATE),
                column("seen", "Seen", UITypes.DATE_TIME),
                column("month", "Month", UITypes.DATE, meta={"date_format": "YYYY-MM"}),
                column("tags", "Tags", UITypes.MULTI_SELECT),
            ],
        ),
    )
    return meta


def leaf(column_id: str, op: str, value=None, *, logical_op: str | None = None, sub_op: str | None = None) -> Filter:
    return Filter(
        fk_column_id=column_id,
        comparison_op=op,
        comparison_sub_op=sub_op,
        value=value,
        logical_op=logical_op,
    )


@pytest.fixture
def evaluator(context) -> FilterEvaluator:
    return FilterEvaluator(_people_meta(context), now=lambda: NOW)


# =============================================================================
# Folding
# =============================================================================

@pytest.mark.asyncio
async def test_empty_filter_list_matches(evaluator, context):
    assert await evaluator.evaluate(context, [], {"Name": "Ann"}) is True


@pytest.mark.asyncio
async def test_or_and_not_fold_left_to_right(evaluator, context):
    record = {"Name": "Ann", "Age": 30, "Active": False}
    filters = [
        leaf("name", "eq", "Ann"),
        leaf("age", "eq", 99, logical_op="or"),
        leaf("active", "checked", logical_op="not"),
    ]

    assert await evaluator.evaluate(context, filters, record) is True


@pytest.mark.asyncio
async def test_not_with_matching_filter_fails(evaluator, context):
    filters = [leaf("name", "eq", "Ann"), leaf("age", "gt", 18, logical_op="not")]

    assert await evaluator.evaluate(context, filters, {"Name": "Ann", "Age": 30}) is False


def _yes(logical_op: str | None = None) -> Filter:
    return leaf("name", "eq", "Ann", logical_op=logical_op)


def _no(logical_op: str | None = None) -> Filter:
    return leaf("name", "eq", "Bob", logical_op=logical_op)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filters, expected",
    [
        ([_yes(), _yes("and")], True),
        ([_yes(), _no("not")], True),
        ([_no(), _yes("or")], True),
        ([_yes(), _no("or"), _no("not")], True),
        ([_yes(), _yes("and"), _no()], False),
        ([_no(), _yes("or"), _yes("not")], False),
        ([_yes(), _yes(), _yes(), _yes(), _yes()], True),
        ([_yes(), _yes(), _no(), _yes(), _yes()], False),
        ([_yes(), _no("and"), _yes("or"), _yes("not"), _no("or")], False),
        ([_no(), _yes("or"), _yes("and"), _no("not"), _yes("and")], True),
        ([_no(), _no("or"), _no("or"), _no("or"), _yes("or")], True),
    ],
)
async def test_sibling_fold(evaluator, context, filters, expected):
    assert await evaluator.evaluate(context, filters, {"Name": "Ann"}) is expected


@pytest.mark.asyncio
async def test_group_children_loaded_from_store(context):
    meta = _people_meta(context)
    meta.add_filters(
        context,
        [
            Filter(id="g1", fk_hook_id="hk", is_group=True),
            Filter(id="f1", fk_hook_id="hk", fk_parent_id="g1", fk_column_id="name", comparison_op="eq", value="Ann"),
            Filter(
                id="f2",
                fk_hook_id="hk",
                fk_parent_id="g1",
                fk_column_id="age",
                comparison_op="lt",
                value=18,
                logical_op="or",
            ),
        ],
    )
    evaluator = FilterEvaluator(meta, now=lambda: NOW)
    roots = await meta.get_hook_filters(context, "hk")

    assert [f.id for f in roots] == ["g1"]
    assert await evaluator.evaluate(context, roots, {"Name": "Bob", "Age": 12}) is True
    assert await evaluator.evaluate(context, roots, {"Name": "Bob", "Age": 40}) is False


# =============================================================================
# Value comparisons
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "flt, record, expected",
    [
        (leaf("name", "eq", "Ann"), {}, False),
        (leaf("name", "neq", "Ann"), {"Name": "Bob"}, True),
        (leaf("name", "like", "AN"), {"Name": "Joanna"}, True),
        (leaf("name", "nlike", "AN"), {"Name": "Joanna"}, False),
        (leaf("name", "blank"), {"Name": ""}, True),
        (leaf("name", "notempty"), {"Name": None}, False),
        (leaf("age", "eq", 30), {"Age": "30"}, True),
        (leaf("age", "gte", 18), {"Age": 18}, True),
        (leaf("age", "lt", 18), {"Age": "abc"}, False),
        (leaf("active", "eq", True), {"Active": 1}, True),
        (leaf("active", "notchecked"), {"Active": False}, True),
        (leaf("name", "null"), {"Name": None}, True),
        (leaf("tags", "anyof", "b, z"), {"Tags": "a,b"}, True),
        (leaf("tags", "allof", "a,c"), {"Tags": "a,b"}, False),
        (leaf("tags", "nanyof", "z"), {"Tags": ["a", "b"]}, True),
    ],
)
async def test_value_comparisons(evaluator, context, flt, record, expected):
    assert await evaluator.evaluate(context, [flt], record) is expected


@pytest.mark.asyncio
async def test_unknown_operator_does_not_match(evaluator, context):
    assert not await evaluator.evaluate(context, [leaf("name", "regex", "A.*")], {"Name": "Ann"})


# =============================================================================
# Users
# =============================================================================

@pytest.mark.asyncio
async def test_user_any_of_and_all_of(evaluator, context):
    record = {"Owner": [{"id": "u1", "email": "a@x.io"}, {"id": "u2"}]}

    assert await evaluator.evaluate(context, [leaf("owner", "anyof", "u2, u3")], record) is True
    assert await evaluator.evaluate(context, [leaf("owner", "allof", "u1,u3")], record) is False
    assert await evaluator.evaluate(context, [leaf("owner", "notempty")], record) is True
    assert await evaluator.evaluate(context, [leaf("owner", "empty")], {"Owner": None}) is True


@pytest.mark.asyncio
async def test_user_any_of_matches_but_all_of_needs_every_id(evaluator, context):
    record = {"Owner": [{"id": "u1"}, {"id": "u2"}]}

    assert await evaluator.evaluate(context, [leaf("owner", "anyof", "u2, u3")], record) is True
    assert await evaluator.evaluate(context, [leaf("owner", "allof", "u2, u3")], record) is False


@pytest.mark.asyncio
async def test_user_with_unsupported_operator_is_false(evaluator, context):
    assert await evaluator.evaluate(context, [leaf("owner", "like", "u1")], {"Owner": {"id": "u1"}}) is False


# =============================================================================
# Dates
# =============================================================================

@pytest.mark.asyncio
async def test_date_today(evaluator, context):
    flt = leaf("due", "eq", sub_op="today")

    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-18"}) is True
    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-17"}) is False


@pytest.mark.asyncio
async def test_date_exact_and_ordering(evaluator, context):
    record = {"Due": "2026-10-10"}

    assert await evaluator.evaluate(context, [leaf("due", "eq", "2026-10-10", sub_op="exactDate")], record) is True
    assert await evaluator.evaluate(context, [leaf("due", "lt", sub_op="today")], record) is True
    assert await evaluator.evaluate(context, [leaf("due", "gt", sub_op="yesterday")], record) is False


@pytest.mark.asyncio
async def test_days_ago_without_value_is_undetermined(evaluator, context):
    flt = leaf("due", "eq", None, sub_op="daysAgo")

    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-15"}) is None


@pytest.mark.asyncio
async def test_days_ago_with_value(evaluator, context):
    flt = leaf("due", "eq", 3, sub_op="daysAgo")

    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-15"}) is True


@pytest.mark.asyncio
async def test_is_within_past_week_is_inclusive(evaluator, context):
    flt = leaf("due", "isWithin", sub_op="pastWeek")

    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-11"}) is True
    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-18"}) is True
    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-01"}) is False


@pytest.mark.asyncio
async def test_is_within_next_number_of_days(evaluator, context):
    flt = leaf("due", "isWithin", 5, sub_op="nextNumberOfDays")

    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-22"}) is True
    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-25"}) is False


@pytest.mark.asyncio
@pytest.mark.parametrize("client", ["mysql2", "pg"])
async def test_is_within_datetime_column_per_client(evaluator, context, client):
    flt = leaf("seen", "isWithin", sub_op="pastWeek")

    assert await evaluator.evaluate(context, [flt], {"Seen": "2026-10-12 08:00:00"}, client=client) is True
    assert await evaluator.evaluate(context, [flt], {"Seen": "2026-10-18T09:30:00+00:00"}, client=client) is True
    assert await evaluator.evaluate(context, [flt], {"Seen": "2026-10-20 09:00:00"}, client=client) is False
    assert await evaluator.evaluate(context, [flt], {"Seen": "2026-10-05 09:00:00"}, client=client) is False


@pytest.mark.asyncio
async def test_month_only_column_compares_by_month(evaluator, context):
    flt = leaf("month", "eq", sub_op="today")

    assert await evaluator.evaluate(context, [flt], {"Month": "2026-10"}) is True


@pytest.mark.asyncio
async def test_unparseable_date_does_not_match(evaluator, context):
    flt = leaf("due", "gt", sub_op="yesterday")

    assert await evaluator.evaluate(context, [flt], {"Due": "not a date"}) is False


# =============================================================================
# Coercions
# =============================================================================

def test_to_number_coercions():
    assert to_number(None) == 0
    assert to_number("") == 0
    assert to_number(" 4.5 ") == 4.5
    assert to_number(True) == 1
    assert to_number("4px") != to_number("4px")  # NaN


def test_loose_equals():
    assert loose_equals(1, "1")
    assert loose_equals(None, None)
    assert not loose_equals(None, 0)
    assert loose_equals(True, 1)
    assert not loose_equals("a", "A")


@pytest.mark.asyncio
@pytest.mark.parametrize("sub_op", ["daysAgo", "daysFromNow", "pastNumberOfDays", "nextNumberOfDays"])
async def test_out_of_range_day_count_does_not_match(evaluator, context, sub_op):
    op = "isWithin" if sub_op.endswith("NumberOfDays") else "eq"
    flt = leaf("due", op, "9999999", sub_op=sub_op)

    assert await evaluator.evaluate(context, [flt], {"Due": "2026-10-01"}) is False


@pytest.mark.asyncio
async def test_out_of_range_epoch_value_does_not_match(evaluator, context):
    flt = leaf("due", "gt", sub_op="yesterday")

    assert await evaluator.evaluate(context, [flt], {"Due": 10**20}) is False
