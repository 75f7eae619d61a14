"""Webhook condition evaluation against record payloads."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, tzinfo
from typing import Any, Callable

from app.db.enums import (
    DATE_UI_TYPES,
    EMPTY_OPS,
    FUTURE_RANGE_SUB_OPS,
    NOT_EMPTY_OPS,
    PAST_RANGE_SUB_OPS,
    USER_UI_TYPES,
    ComparisonOp,
    ComparisonSubOp,
    LogicalOp,
    UITypes,
)
from app.schemas.filter import Filter
from app.schemas.meta import Column, NcContext
from app.services.meta_service import MetaStore
from app.utils.datetime_parsing import (
    first_of_month,
    format_now,
    is_date_month_format,
    parse_date_value,
    shift,
)

logger = logging.getLogger(__name__)

# Marks a key absent from the record, which differs from an explicit None.
_MISSING = object()

_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Sub-ops that cannot resolve a boundary without a filter value
_VALUE_REQUIRED_SUB_OPS = frozenset(
    {
        ComparisonSubOp.DAYS_AGO.value,
        ComparisonSubOp.DAYS_FROM_NOW.value,
        ComparisonSubOp.EXACT_DATE.value,
        ComparisonSubOp.PAST_NUMBER_OF_DAYS.value,
        ComparisonSubOp.NEXT_NUMBER_OF_DAYS.value,
    }
)

_ORDERING_OPS = frozenset(
    {
        ComparisonOp.GT.value,
        ComparisonOp.LT.value,
        ComparisonOp.LTE.value,
        ComparisonOp.LE.value,
        ComparisonOp.GTE.value,
        ComparisonOp.GE.value,
        ComparisonOp.IS_WITHIN.value,
    }
)


class _MissingComparisonValue(Exception):
    """A relative date sub-op needs a value the filter does not have."""


def _local_now() -> datetime:
    return datetime.now().astimezone()


def to_number(value: Any) -> float:
    """Numeric coercion with unary-plus semantics: None and "" are 0, junk is NaN."""
    if value is _MISSING:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if _NUMBER_PATTERN.match(text):
            return float(text)
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
    return math.nan


def is_truthy(value: Any) -> bool:
    if value is _MISSING or value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def to_display_string(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join("" if v is None else to_display_string(v) for v in value)
    return str(value)


def loose_equals(left: Any, right: Any) -> bool:
    """Equality that coerces between numbers, numeric strings and booleans."""
    if left is _MISSING:
        left = None
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        if isinstance(left, bool) and isinstance(right, bool):
            return left == right
        return to_number(left) == to_number(right)
    left_num = isinstance(left, (int, float))
    right_num = isinstance(right, (int, float))
    if left_num and isinstance(right, str) or right_num and isinstance(left, str):
        return to_number(left) == to_number(right)
    return left == right


def is_blank(value: Any) -> bool:
    return value is _MISSING or value is None or value == ""


def _split_values(value: Any) -> list[str]:
    """Comma-separated filter values, trimmed."""
    if value is None:
        return []
    return [item.strip() for item in str(value).split(",")]


def _record_values(value: Any) -> list[str]:
    """Comma-separated record values, untrimmed."""
    if value is _MISSING or value is None:
        return []
    if isinstance(value, list):
        return [to_display_string(v) for v in value]
    return str(value).split(",")


def _user_ids(value: Any) -> list[str]:
    if isinstance(value, list):
        return [user.get("id") for user in value if isinstance(user, dict)]
    if isinstance(value, dict) and value.get("id"):
        return [value["id"]]
    return []


def _same_day(left: datetime | None, right: datetime | None) -> bool:
    if left is None or right is None:
        return False
    return left.date() == right.date()


class FilterEvaluator:
    """
    Evaluates a filter tree against one record.

    Records are keyed by column title. Groups recurse; children are loaded
    from metadata when the group does not carry them already.
    """

    def __init__(self, meta: MetaStore, now: Callable[[], datetime] | None = None) -> None:
        self.meta = meta
        self._now = now or _local_now

    async def evaluate(
        self,
        context: NcContext,
        filters: list[Filter],
        record: dict[str, Any],
        *,
        client: str | None = None,
    ) -> bool | None:
        """
        Fold `filters` left to right.

        Returns None when a relative date filter is missing its value; callers
        treat that as not matching.
        """
        if not filters:
            return True

        is_valid: bool | None = None
        for filter_ in filters:
            if filter_.is_group:
                children = filter_.children
                if children is None:
                    children = await self.meta.get_filter_children(context, filter_)
                res = await self.evaluate(context, children, record, client=client)
            else:
                try:
                    res = await self._evaluate_leaf(context, filter_, record, client)
                except _MissingComparisonValue:
                    logger.debug("Filter %s has no value for %s", filter_.id, filter_.comparison_sub_op)
                    return None

            if filter_.logical_op == LogicalOp.OR.value:
                is_valid = is_valid or bool(res)
            elif filter_.logical_op == LogicalOp.NOT.value:
                is_valid = is_valid and not res
            else:
                is_valid = (True if is_valid is None else is_valid) and res
        return is_valid

    async def _evaluate_leaf(
        self,
        context: NcContext,
        filter_: Filter,
        record: dict[str, Any],
        client: str | None,
    ) -> bool | None:
        column = await self.meta.get_column(context, filter_.fk_column_id)
        value = record.get(column.title, _MISSING)

        if column.uidt in DATE_UI_TYPES and filter_.comparison_op not in EMPTY_OPS | NOT_EMPTY_OPS:
            return self._compare_date(column, filter_, value, client)
        if column.uidt in USER_UI_TYPES:
            return self._compare_users(filter_, value)
        return self._compare_value(filter_, value)

    def _compare_date(
        self, column: Column, filter_: Filter, value: Any, client: str | None
    ) -> bool | None:
        current = self._now()
        tz = current.tzinfo
        now = current.replace(tzinfo=None)
        data_val = parse_date_value(value, tz)
        filter_val: Any = filter_.value

        if is_date_month_format(column.meta.get("date_format")):
            now = first_of_month(now)
            if data_val is not None:
                data_val = first_of_month(data_val)

        res: bool | None = None
        if is_truthy(filter_val):
            res = _same_day(parse_date_value(filter_val, tz), data_val)

        sub_op = filter_.comparison_sub_op
        if sub_op in _VALUE_REQUIRED_SUB_OPS and not is_truthy(filter_val):
            raise _MissingComparisonValue(sub_op)
        boundary = self._resolve_boundary(now, sub_op, filter_val, tz)

        if not is_truthy(value):
            return res

        op = filter_.comparison_op
        if op == ComparisonOp.EQ.value:
            return _same_day(data_val, boundary)
        if op == ComparisonOp.NEQ.value:
            return not _same_day(data_val, boundary)
        if data_val is None or boundary is None:
            return False if op in _ORDERING_OPS else res
        if op == ComparisonOp.GT.value:
            return data_val.date() > boundary.date()
        if op == ComparisonOp.LT.value:
            return data_val.date() < boundary.date()
        if op in (ComparisonOp.LTE.value, ComparisonOp.LE.value):
            return data_val.date() <= boundary.date()
        if op in (ComparisonOp.GTE.value, ComparisonOp.GE.value):
            return data_val.date() >= boundary.date()
        if op == ComparisonOp.IS_WITHIN.value:
            anchor = parse_date_value(
                format_now(current, client, date_only=column.uidt == UITypes.DATE), tz
            )
            if sub_op in PAST_RANGE_SUB_OPS:
                return boundary.date() <= data_val.date() <= anchor.date()
            if sub_op in FUTURE_RANGE_SUB_OPS:
                return anchor.date() <= data_val.date() <= boundary.date()
        return res

    def _resolve_boundary(
        self, now: datetime, sub_op: str | None, filter_val: Any, tz: tzinfo | None
    ) -> datetime | None:
        """Comparison date for a sub-op; a plain filter value when there is none."""
        if sub_op == ComparisonSubOp.TODAY.value:
            return now
        if sub_op == ComparisonSubOp.TOMORROW.value:
            return shift(now, days=1)
        if sub_op == ComparisonSubOp.YESTERDAY.value:
            return shift(now, days=-1)
        if sub_op in (ComparisonSubOp.ONE_WEEK_AGO.value, ComparisonSubOp.PAST_WEEK.value):
            return shift(now, weeks=-1)
        if sub_op in (ComparisonSubOp.ONE_WEEK_FROM_NOW.value, ComparisonSubOp.NEXT_WEEK.value):
            return shift(now, weeks=1)
        if sub_op in (ComparisonSubOp.ONE_MONTH_AGO.value, ComparisonSubOp.PAST_MONTH.value):
            return shift(now, months=-1)
        if sub_op in (ComparisonSubOp.ONE_MONTH_FROM_NOW.value, ComparisonSubOp.NEXT_MONTH.value):
            return shift(now, months=1)
        if sub_op == ComparisonSubOp.PAST_YEAR.value:
            return shift(now, years=-1)
        if sub_op == ComparisonSubOp.NEXT_YEAR.value:
            return shift(now, years=1)
        if sub_op in (ComparisonSubOp.DAYS_AGO.value, ComparisonSubOp.PAST_NUMBER_OF_DAYS.value):
            return self._shift_days(now, -to_number(filter_val))
        if sub_op in (ComparisonSubOp.DAYS_FROM_NOW.value, ComparisonSubOp.NEXT_NUMBER_OF_DAYS.value):
            return self._shift_days(now, to_number(filter_val))
        return parse_date_value(filter_val, tz)

    @staticmethod
    def _shift_days(now: datetime, days: float) -> datetime | None:
        if math.isnan(days) or math.isinf(days):
            return None
        try:
            return shift(now, days=days)
        except (OverflowError, ValueError, OSError):
            return None

    def _compare_users(self, filter_: Filter, value: Any) -> bool:
        user_ids = _user_ids(value)
        wanted = _split_values(filter_.value)
        op = filter_.comparison_op

        if op == ComparisonOp.ANY_OF.value:
            return any(user_id in wanted for user_id in user_ids)
        if op == ComparisonOp.NANY_OF.value:
            return not any(user_id in wanted for user_id in user_ids)
        if op == ComparisonOp.ALL_OF.value:
            return all(user_id in user_ids for user_id in wanted)
        if op == ComparisonOp.NALL_OF.value:
            return not all(user_id in user_ids for user_id in wanted)
        if op in EMPTY_OPS:
            return not user_ids
        if op in NOT_EMPTY_OPS:
            return bool(user_ids)
        # Other operators are not defined for user fields
        return False

    def _compare_value(self, filter_: Filter, value: Any) -> bool | None:
        expected = filter_.value
        op = filter_.comparison_op

        coerced = value
        if isinstance(expected, bool):
            coerced = is_truthy(value)
        elif isinstance(expected, (int, float)):
            coerced = to_number(value)

        if op == ComparisonOp.EQ.value:
            return loose_equals(coerced, expected)
        if op == ComparisonOp.NEQ.value:
            return not loose_equals(coerced, expected)
        if op in (ComparisonOp.LIKE.value, ComparisonOp.NLIKE.value):
            if is_blank(value) and value != "":
                return False
            if expected is None:
                return op == ComparisonOp.NLIKE.value
            found = str(expected).lower() in to_display_string(value).lower()
            return found if op == ComparisonOp.LIKE.value else not found
        if op in EMPTY_OPS:
            return is_blank(value)
        if op in NOT_EMPTY_OPS:
            return not is_blank(value)
        if op == ComparisonOp.CHECKED.value:
            return is_truthy(value)
        if op == ComparisonOp.NOT_CHECKED.value:
            return not is_truthy(value)
        if op == ComparisonOp.NULL.value:
            return value is None
        if op == ComparisonOp.NOT_NULL.value:
            return value is not None
        if op in (
            ComparisonOp.ALL_OF.value,
            ComparisonOp.ANY_OF.value,
            ComparisonOp.NALL_OF.value,
            ComparisonOp.NANY_OF.value,
        ):
            wanted = _split_values(expected)
            present = _record_values(value)
            if op == ComparisonOp.ALL_OF.value:
                return all(item in present for item in wanted)
            if op == ComparisonOp.ANY_OF.value:
                return any(item in present for item in wanted)
            if op == ComparisonOp.NALL_OF.value:
                return not all(item in present for item in wanted)
            return not any(item in present for item in wanted)
        if op == ComparisonOp.LT.value:
            return to_number(value) < to_number(expected)
        if op in (ComparisonOp.LTE.value, ComparisonOp.LE.value):
            return to_number(value) <= to_number(expected)
        if op == ComparisonOp.GT.value:
            return to_number(value) > to_number(expected)
        if op in (ComparisonOp.GTE.value, ComparisonOp.GE.value):
            return to_number(value) >= to_number(expected)
        return None
