"""
Test configuration and fixtures.

Provides:
- A throwaway sqlite metadata database for hook logs
- A sample base (customers, orders, countries, regions, tags) in an
  in-memory metadata store, for any source type
- Fake delivery collaborators for webhook tests
"""
import os
import tempfile
import uuid
from typing import Any, Callable, Generator

import pytest
from sqlalchemy.orm import Session

# Point the app at a private sqlite file before anything imports the engine
os.environ["DATABASE_URL"] = (
    f"sqlite:///{os.path.join(tempfile.gettempdir(), f'nc_test_{uuid.uuid4().hex}.db')}"
)
os.environ.setdefault("NC_AUTOMATION_LOG_LEVEL", "")

from app.db.base import Base
from app.db.enums import RelationTypes, RollupFunction, UITypes
from app.db.session import SessionLocal, engine
from app.schemas.hook import HookLogRecord
from app.schemas.meta import (
    Column,
    FormulaOptions,
    LookupOptions,
    Model,
    NcContext,
    QrCodeOptions,
    RelationOptions,
    RollupOptions,
    Source,
)
from app.services.meta_service import InMemoryMetaStore


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Session against the test database; hook log rows are cleared afterwards."""
    session = SessionLocal()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


# =============================================================================
# Metadata Fixtures
# =============================================================================

BASE_ID = "base_1"


def col(
    id: str,
    title: str,
    uidt: UITypes,
    model_id: str,
    column_name: str | None = None,
    **kwargs: Any,
) -> Column:
    return Column(id=id, title=title, uidt=uidt, fk_model_id=model_id, column_name=column_name, **kwargs)


def _sales_models(source_id: str, base_id: str) -> list[Model]:
    regions = Model(
        id="tbl_regions",
        title="Regions",
        table_name="regions",
        source_id=source_id,
        base_id=base_id,
        columns=[
            col("r_id", "Id", UITypes.ID, "tbl_regions", "id"),
            col("r_name", "Name", UITypes.SINGLE_LINE_TEXT, "tbl_regions", "name", pv=True),
        ],
    )
    countries = Model(
        id="tbl_countries",
        title="Countries",
        table_name="countries",
        source_id=source_id,
        base_id=base_id,
        columns=[
            col("k_id", "Id", UITypes.ID, "tbl_countries", "id"),
            col("k_name", "Name", UITypes.SINGLE_LINE_TEXT, "tbl_countries", "name", pv=True),
            col("k_region_id", "RegionId", UITypes.FOREIGN_KEY, "tbl_countries", "region_id"),
            col(
                "k_region",
                "Region",
                UITypes.LINK_TO_ANOTHER_RECORD,
                "tbl_countries",
                col_options=RelationOptions(
                    type=RelationTypes.BELONGS_TO,
                    fk_child_column_id="k_region_id",
                    fk_parent_column_id="r_id",
                    fk_related_model_id="tbl_regions",
                ),
            ),
            col(
                "k_region_name",
                "Region Name",
                UITypes.LOOKUP,
                "tbl_countries",
                col_options=LookupOptions(fk_relation_column_id="k_region", fk_lookup_column_id="r_name"),
            ),
        ],
    )
    customers = Model(
        id="tbl_customers",
        title="Customers",
        table_name="customers",
        source_id=source_id,
        base_id=base_id,
        columns=[
            col("c_id", "Id", UITypes.ID, "tbl_customers", "id"),
            col("c_name", "Name", UITypes.SINGLE_LINE_TEXT, "tbl_customers", "name", pv=True),
            col("c_country_id", "CountryId", UITypes.FOREIGN_KEY, "tbl_customers", "country_id"),
            col("c_files", "Files", UITypes.ATTACHMENT, "tbl_customers", "files"),
            col("c_created", "Created", UITypes.DATE_TIME, "tbl_customers", "created_at"),
            col(
                "c_country",
                "Country",
                UITypes.LINK_TO_ANOTHER_RECORD,
                "tbl_customers",
                col_options=RelationOptions(
                    type=RelationTypes.BELONGS_TO,
                    fk_child_column_id="c_country_id",
                    fk_parent_column_id="k_id",
                    fk_related_model_id="tbl_countries",
                ),
            ),
            col(
                "c_orders",
                "Orders",
                UITypes.LINK_TO_ANOTHER_RECORD,
                "tbl_customers",
                col_options=RelationOptions(
                    type=RelationTypes.HAS_MANY,
                    fk_child_column_id="o_customer_id",
                    fk_parent_column_id="c_id",
                    fk_related_model_id="tbl_orders",
                ),
            ),
            col(
                "c_order_count",
                "Order Count",
                UITypes.LINKS,
                "tbl_customers",
                col_options=RelationOptions(
                    type=RelationTypes.HAS_MANY,
                    fk_child_column_id="o_customer_id",
                    fk_parent_column_id="c_id",
                    fk_related_model_id="tbl_orders",
                ),
            ),
            col(
                "c_tags",
                "Tags",
                UITypes.LINK_TO_ANOTHER_RECORD,
                "tbl_customers",
                col_options=RelationOptions(
                    type=RelationTypes.MANY_TO_MANY,
                    fk_child_column_id="c_id",
                    fk_parent_column_id="t_id",
                    fk_related_model_id="tbl_tags",
                    fk_mm_model_id="tbl_customer_tags",
                    fk_mm_child_column_id="ct_customer_id",
                    fk_mm_parent_column_id="ct_tag_id",
                ),
            ),
            col(
                "c_order_total",
                "Order Total",
                UITypes.ROLLUP,
                "tbl_customers",
                col_options=RollupOptions(
                    fk_relation_column_id="c_orders",
                    fk_rollup_column_id="o_amount",
                    rollup_function=RollupFunction.SUM,
                ),
            ),
            col(
                "c_country_name",
                "Country Name",
                UITypes.LOOKUP,
                "tbl_customers",
                col_options=LookupOptions(fk_relation_column_id="c_country", fk_lookup_column_id="k_name"),
            ),
            col(
                "c_country_region",
                "Country Region",
                UITypes.LOOKUP,
                "tbl_customers",
                col_options=LookupOptions(
                    fk_relation_column_id="c_country", fk_lookup_column_id="k_region_name"
                ),
            ),
            col(
                "c_order_numbers",
                "Order Numbers",
                UITypes.LOOKUP,
                "tbl_customers",
                col_options=LookupOptions(fk_relation_column_id="c_orders", fk_lookup_column_id="o_number"),
            ),
            col(
                "c_tag_names",
                "Tag Names",
                UITypes.LOOKUP,
                "tbl_customers",
                col_options=LookupOptions(fk_relation_column_id="c_tags", fk_lookup_column_id="t_name"),
            ),
            col(
                "c_name_upper",
                "Upper Name",
                UITypes.FORMULA,
                "tbl_customers",
                col_options=FormulaOptions(formula="UPPER({Name})"),
            ),
        ],
    )
    orders = Model(
        id="tbl_orders",
        title="Orders",
        table_name="orders",
        source_id=source_id,
        base_id=base_id,
        columns=[
            col("o_id", "Id", UITypes.ID, "tbl_orders", "id"),
            col("o_number", "Number", UITypes.SINGLE_LINE_TEXT, "tbl_orders", "order_no", pv=True),
            col("o_amount", "Amount", UITypes.NUMBER, "tbl_orders", "amount"),
            col("o_customer_id", "CustomerId", UITypes.FOREIGN_KEY, "tbl_orders", "customer_id"),
            col(
                "o_qr",
                "Order QR",
                UITypes.QR_CODE,
                "tbl_orders",
                col_options=QrCodeOptions(fk_value_column_id="o_number"),
            ),
            col(
                "o_customer",
                "Customer",
                UITypes.LINK_TO_ANOTHER_RECORD,
                "tbl_orders",
                col_options=RelationOptions(
                    type=RelationTypes.BELONGS_TO,
                    fk_child_column_id="o_customer_id",
                    fk_parent_column_id="c_id",
                    fk_related_model_id="tbl_customers",
                ),
            ),
            col(
                "o_customer_country",
                "Customer Country",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(
                    fk_relation_column_id="o_customer", fk_lookup_column_id="c_country_name"
                ),
            ),
            col(
                "o_customer_region",
                "Customer Region",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(
                    fk_relation_column_id="o_customer", fk_lookup_column_id="c_country_region"
                ),
            ),
            col(
                "o_customer_files",
                "Customer Files",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(fk_relation_column_id="o_customer", fk_lookup_column_id="c_files"),
            ),
            col(
                "o_customer_created",
                "Customer Created",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(
                    fk_relation_column_id="o_customer", fk_lookup_column_id="c_created"
                ),
            ),
            col(
                "o_customer_upper",
                "Customer Upper Name",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(
                    fk_relation_column_id="o_customer", fk_lookup_column_id="c_name_upper"
                ),
            ),
            col(
                "o_customer_orders",
                "Customer Order Count",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(
                    fk_relation_column_id="o_customer", fk_lookup_column_id="c_order_count"
                ),
            ),
            col(
                "o_customer_order_numbers",
                "Customer Order Numbers",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(
                    fk_relation_column_id="o_customer", fk_lookup_column_id="c_order_numbers"
                ),
            ),
            col(
                "o_customer_tags",
                "Customer Tags",
                UITypes.LOOKUP,
                "tbl_orders",
                col_options=LookupOptions(fk_relation_column_id="o_customer", fk_lookup_column_id="c_tag_names"),
            ),
            col(
                "o_double",
                "Double",
                UITypes.FORMULA,
                "tbl_orders",
                col_options=FormulaOptions(formula="{Amount} * 2"),
            ),
            col(
                "o_double_plus",
                "Double Plus",
                UITypes.FORMULA,
                "tbl_orders",
                col_options=FormulaOptions(formula="{Double} + 1"),
            ),
            col(
                "o_loop",
                "Loop",
                UITypes.FORMULA,
                "tbl_orders",
                col_options=FormulaOptions(formula="{Loop} + 1"),
            ),
        ],
    )
    tags = Model(
        id="tbl_tags",
        title="Tags",
        table_name="tags",
        source_id=source_id,
        base_id=base_id,
        columns=[
            col("t_id", "Id", UITypes.ID, "tbl_tags", "id"),
            col("t_name", "Name", UITypes.SINGLE_LINE_TEXT, "tbl_tags", "name", pv=True),
        ],
    )
    customer_tags = Model(
        id="tbl_customer_tags",
        title="CustomerTags",
        table_name="customer_tags",
        source_id=source_id,
        base_id=base_id,
        columns=[
            col("ct_customer_id", "CustomerId", UITypes.FOREIGN_KEY, "tbl_customer_tags", "customer_id"),
            col("ct_tag_id", "TagId", UITypes.FOREIGN_KEY, "tbl_customer_tags", "tag_id"),
        ],
    )
    return [regions, countries, customers, orders, tags, customer_tags]


@pytest.fixture
def context() -> NcContext:
    return NcContext(base_id=BASE_ID)


@pytest.fixture
def sales_meta(context: NcContext) -> Callable[..., InMemoryMetaStore]:
    """Factory: sample sales base whose source uses `source_type`."""

    def build(source_type: str = "sqlite3", schema_name: str | None = None) -> InMemoryMetaStore:
        meta = InMemoryMetaStore()
        meta.add_source(context, Source(id="src_1", type=source_type, schema_name=schema_name))
        for model in _sales_models("src_1", context.base_id):
            meta.add_model(context, model)
        return meta

    return build


# =============================================================================
# Webhook Fakes
# =============================================================================

class RecordingLogSink:
    """Hook log sink that keeps records in memory."""

    def __init__(self) -> None:
        self.records: list[HookLogRecord] = []

    async def insert(self, record: HookLogRecord) -> None:
        self.records.append(record)


class FailingLogSink:
    async def insert(self, record: HookLogRecord) -> None:
        raise RuntimeError("log store unavailable")


@pytest.fixture
def log_sink() -> RecordingLogSink:
    return RecordingLogSink()


@pytest.fixture
def public_dns(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every hostname resolves to a public address."""

    def fake_getaddrinfo(host: str, port: int, type=None):  # noqa: A002 - match socket API
        return [(2, 1, 6, "", ("93.184.216.34", port))]

    monkeypatch.setattr("app.core.url_validation.socket.getaddrinfo", fake_getaddrinfo)


@pytest.fixture
def private_dns(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every hostname resolves to an RFC1918 address."""

    def fake_getaddrinfo(host: str, port: int, type=None):  # noqa: A002 - match socket API
        return [(2, 1, 6, "", ("10.0.0.5", port))]

    monkeypatch.setattr("app.core.url_validation.socket.getaddrinfo", fake_getaddrinfo)


@pytest.fixture
def failing_log_sink() -> FailingLogSink:
    return FailingLogSink()
