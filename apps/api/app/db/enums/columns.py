"""Column and relation enums."""

from enum import Enum


class UITypes(str, Enum):
    """Semantic column types."""

    ID = "ID"
    FOREIGN_KEY = "ForeignKey"
    SINGLE_LINE_TEXT = "SingleLineText"
    LONG_TEXT = "LongText"
    NUMBER = "Number"
    DECIMAL = "Decimal"
    CURRENCY = "Currency"
    PERCENT = "Percent"
    RATING = "Rating"
    CHECKBOX = "Checkbox"
    EMAIL = "Email"
    URL = "URL"
    PHONE_NUMBER = "PhoneNumber"
    SINGLE_SELECT = "SingleSelect"
    MULTI_SELECT = "MultiSelect"
    JSON = "JSON"
    DATE = "Date"
    DATE_TIME = "DateTime"
    TIME = "Time"
    YEAR = "Year"
    CREATED_TIME = "CreatedTime"
    LAST_MODIFIED_TIME = "LastModifiedTime"
    ATTACHMENT = "Attachment"
    USER = "User"
    CREATED_BY = "CreatedBy"
    LAST_MODIFIED_BY = "LastModifiedBy"
    LOOKUP = "Lookup"
    ROLLUP = "Rollup"
    FORMULA = "Formula"
    LINK_TO_ANOTHER_RECORD = "LinkToAnotherRecord"
    LINKS = "Links"
    QR_CODE = "QrCode"
    BARCODE = "Barcode"


# Columns whose value is a date/time; filters compare these by calendar day.
DATE_UI_TYPES = frozenset(
    {UITypes.DATE, UITypes.DATE_TIME, UITypes.CREATED_TIME, UITypes.LAST_MODIFIED_TIME}
)

# Columns whose value is one user object or a list of them.
USER_UI_TYPES = frozenset({UITypes.USER, UITypes.CREATED_BY, UITypes.LAST_MODIFIED_BY})

# Columns that carry relation options.
RELATION_UI_TYPES = frozenset({UITypes.LINK_TO_ANOTHER_RECORD, UITypes.LINKS})


class RelationTypes(str, Enum):
    """Relation kinds stored on LinkToAnotherRecord/Links columns."""

    BELONGS_TO = "bt"
    HAS_MANY = "hm"
    MANY_TO_MANY = "mm"
    ONE_TO_ONE = "oo"


class RollupFunction(str, Enum):
    """Aggregate functions available to rollup columns."""

    COUNT = "count"
    MIN = "min"
    MAX = "max"
    AVG = "avg"
    SUM = "sum"
    COUNT_DISTINCT = "countDistinct"
    SUM_DISTINCT = "sumDistinct"
    AVG_DISTINCT = "avgDistinct"


class ClientType(str, Enum):
    """Database dialect identifiers as stored on a Source."""

    PG = "pg"
    MYSQL = "mysql2"
    MYSQL_LEGACY = "mysql"
    SQLITE = "sqlite3"
    MSSQL = "mssql"
    SNOWFLAKE = "snowflake"
    DATABRICKS = "databricks"
