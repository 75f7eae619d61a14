"""Filter enums."""

from enum import Enum


class LogicalOp(str, Enum):
    """How a filter combines with the running result of its siblings."""

    AND = "and"
    OR = "or"
    NOT = "not"


class ComparisonOp(str, Enum):
    """Leaf comparison operators."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    GE = "ge"
    LTE = "lte"
    LE = "le"
    LIKE = "like"
    NLIKE = "nlike"
    EMPTY = "empty"
    BLANK = "blank"
    NOT_EMPTY = "notempty"
    NOT_BLANK = "notblank"
    CHECKED = "checked"
    NOT_CHECKED = "notchecked"
    NULL = "null"
    NOT_NULL = "notnull"
    ALL_OF = "allof"
    ANY_OF = "anyof"
    NALL_OF = "nallof"
    NANY_OF = "nanyof"
    IS_WITHIN = "isWithin"


class ComparisonSubOp(str, Enum):
    """Relative date sub-operators."""

    TODAY = "today"
    TOMORROW = "tomorrow"
    YESTERDAY = "yesterday"
    ONE_WEEK_AGO = "oneWeekAgo"
    ONE_WEEK_FROM_NOW = "oneWeekFromNow"
    ONE_MONTH_AGO = "oneMonthAgo"
    ONE_MONTH_FROM_NOW = "oneMonthFromNow"
    DAYS_AGO = "daysAgo"
    DAYS_FROM_NOW = "daysFromNow"
    EXACT_DATE = "exactDate"
    PAST_WEEK = "pastWeek"
    PAST_MONTH = "pastMonth"
    PAST_YEAR = "pastYear"
    NEXT_WEEK = "nextWeek"
    NEXT_MONTH = "nextMonth"
    NEXT_YEAR = "nextYear"
    PAST_NUMBER_OF_DAYS = "pastNumberOfDays"
    NEXT_NUMBER_OF_DAYS = "nextNumberOfDays"


# Sets hold plain values; operators arrive as strings.
EMPTY_OPS = frozenset({ComparisonOp.EMPTY.value, ComparisonOp.BLANK.value})
NOT_EMPTY_OPS = frozenset({ComparisonOp.NOT_EMPTY.value, ComparisonOp.NOT_BLANK.value})

PAST_RANGE_SUB_OPS = frozenset(
    {
        ComparisonSubOp.PAST_WEEK.value,
        ComparisonSubOp.PAST_MONTH.value,
        ComparisonSubOp.PAST_YEAR.value,
        ComparisonSubOp.PAST_NUMBER_OF_DAYS.value,
    }
)
FUTURE_RANGE_SUB_OPS = frozenset(
    {
        ComparisonSubOp.NEXT_WEEK.value,
        ComparisonSubOp.NEXT_MONTH.value,
        ComparisonSubOp.NEXT_YEAR.value,
        ComparisonSubOp.NEXT_NUMBER_OF_DAYS.value,
    }
)
