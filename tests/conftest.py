from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine, text

from dbmd.models import (
    CaseSensitivity,
    ColumnRow,
    Field,
    ForeignKey,
    ForeignKeyComponent,
    ImportedKeyRow,
    PrimaryKeyRow,
    ProductInfo,
    RelationRow,
    RelId,
    RelMetadata,
    RelType,
    StoredDatabaseMetadata,
)


class FakeMetadataSource:
    """In-memory MetadataSource that records how its cursors are used."""

    def __init__(
        self,
        relations: Sequence[RelationRow],
        columns: Sequence[ColumnRow],
        primary_keys: Optional[Dict[RelId, List[PrimaryKeyRow]]] = None,
        imported_keys: Optional[Dict[RelId, List[ImportedKeyRow]]] = None,
        case_sensitivity: CaseSensitivity = CaseSensitivity.INSENSITIVE_STORED_LOWER,
        product: Optional[ProductInfo] = None,
    ) -> None:
        self._relations = list(relations)
        self._columns = list(columns)
        self._primary_keys = primary_keys or {}
        self._imported_keys = imported_keys or {}
        self.case_sensitivity = case_sensitivity
        self.product = product or ProductInfo("FakeDB", "1.2", 1, 2)
        self.requested_schemas: List[Optional[str]] = []
        self.primary_key_requests: List[RelId] = []
        self.imported_key_requests: List[RelId] = []
        self.closed: List[str] = []

    def stores_lower_case_identifiers(self) -> bool:
        return self.case_sensitivity is CaseSensitivity.INSENSITIVE_STORED_LOWER

    def stores_upper_case_identifiers(self) -> bool:
        return self.case_sensitivity is CaseSensitivity.INSENSITIVE_STORED_UPPER

    def stores_mixed_case_identifiers(self) -> bool:
        return self.case_sensitivity is CaseSensitivity.INSENSITIVE_STORED_MIXED

    def relations(self, schema: Optional[str], kinds: Sequence[RelType]) -> Iterator[RelationRow]:
        self.requested_schemas.append(schema)
        rows = [r for r in self._relations if r.kind in kinds and (schema is None or r.schema == schema)]
        return self._cursor("relations", rows)

    def columns(self, schema: Optional[str]) -> Iterator[ColumnRow]:
        rows = [c for c in self._columns if schema is None or c.schema == schema]
        return self._cursor("columns", rows)

    def primary_keys(self, rel_id: RelId) -> Iterator[PrimaryKeyRow]:
        self.primary_key_requests.append(rel_id)
        return self._cursor(f"pk:{rel_id}", self._primary_keys.get(rel_id, []))

    def imported_keys(self, rel_id: RelId) -> Iterator[ImportedKeyRow]:
        self.imported_key_requests.append(rel_id)
        return self._cursor(f"fk:{rel_id}", self._imported_keys.get(rel_id, []))

    def product_info(self) -> ProductInfo:
        return self.product

    def _cursor(self, name: str, rows):
        try:
            for row in rows:
                if isinstance(row, Exception):
                    raise row
                yield row
        finally:
            self.closed.append(name)


def column(table: str, name: str, type_code: int = 4, type_name: str = "int4", *, schema: Optional[str] = None, **kwargs) -> ColumnRow:
    return ColumnRow(schema, table, name, type_code, type_name, **kwargs)


def imported_key(
    fk_name: Optional[str],
    key_seq: int,
    fk_column: str,
    pk_table: str,
    pk_column: str,
    pk_schema: Optional[str] = None,
) -> ImportedKeyRow:
    return ImportedKeyRow(fk_name, key_seq, fk_column, pk_schema, pk_table, pk_column)


@pytest.fixture
def orders_source() -> FakeMetadataSource:
    orders = RelId(name="orders")
    order_items = RelId(name="order_items")
    return FakeMetadataSource(
        relations=[
            RelationRow(None, "archive", RelType.TABLE),
            RelationRow(None, "orders", RelType.TABLE, "Customer orders"),
            RelationRow(None, "order_items", RelType.TABLE),
            RelationRow(None, "order_items_view", RelType.VIEW),
        ],
        columns=[
            column("archive", "id"),
            column("order_items", "order_id", nullable=0, column_size=10, decimal_digits=0, num_prec_radix=10),
            column("order_items", "line_no", nullable=0, column_size=10, decimal_digits=0, num_prec_radix=10),
            column("order_items", "archive_id", nullable=1),
            column("order_items_view", "order_id"),
            column("orders", "id", nullable=0, column_size=10, decimal_digits=0, num_prec_radix=10),
            column("orders", "reference", 12, "varchar", column_size=40, nullable=1),
            column("orders", "placed", 91, "date", nullable=2),
        ],
        primary_keys={
            orders: [PrimaryKeyRow("id", 1)],
            order_items: [PrimaryKeyRow("line_no", 2), PrimaryKeyRow("order_id", 1)],
        },
        imported_keys={
            order_items: [
                imported_key("fk_items_archive", 1, "archive_id", "archive", "id"),
                imported_key("fk_items_order", 1, "order_id", "orders", "id"),
            ],
        },
    )


@pytest.fixture(autouse=True)
def _clear_dbmd_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DBMD_DB_URL", "DBMD_DB_USERNAME", "DBMD_DB_PASSWORD", "DBMD_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)


SQLITE_DDL = [
    "CREATE TABLE customers (id INTEGER PRIMARY KEY, name VARCHAR(100) NOT NULL, created DATE)",
    "CREATE TABLE orders ("
    " id INTEGER NOT NULL,"
    " customer_id INTEGER NOT NULL,"
    " total NUMERIC(10, 2),"
    " note TEXT,"
    " PRIMARY KEY (id),"
    " CONSTRAINT fk_orders_customer FOREIGN KEY (customer_id) REFERENCES customers (id))",
    "CREATE TABLE order_items ("
    " order_id INTEGER NOT NULL,"
    " line_no INTEGER NOT NULL,"
    " qty SMALLINT,"
    " PRIMARY KEY (order_id, line_no),"
    " CONSTRAINT fk_items_order FOREIGN KEY (order_id) REFERENCES orders (id))",
    "CREATE VIEW order_totals AS SELECT id, total FROM orders",
]


@pytest.fixture
def sqlite_db(tmp_path):
    """Path to a small SQLite database with customers, orders, order_items and a view."""
    db_path = tmp_path / "shop.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        for statement in SQLITE_DDL:
            conn.execute(text(statement))
    engine.dispose()
    return db_path


@pytest.fixture
def sqlite_engine(sqlite_db):
    engine = create_engine(f"sqlite:///{sqlite_db}")
    yield engine
    engine.dispose()


@pytest.fixture
def sample_metadata():
    orders = RelId(schema_name="public", name="orders")
    items = RelId(schema_name="public", name="order_items")
    return StoredDatabaseMetadata(
        dbms_name="PostgreSQL",
        dbms_version="16.2",
        major_version=16,
        minor_version=2,
        case_sensitivity=CaseSensitivity.INSENSITIVE_STORED_LOWER,
        relation_metadatas=(
            RelMetadata(
                relation_id=orders,
                relation_type=RelType.TABLE,
                fields=(
                    Field(name="id", database_type="int4", jdbc_type_code=4, nullable=False,
                          primary_key_part_number=1, precision=10, precision_radix=10, fractional_digits=0),
                    Field(name="reference", database_type="varchar", jdbc_type_code=12, nullable=True, length=40),
                ),
                comment="Customer orders",
            ),
            RelMetadata(
                relation_id=items,
                relation_type=RelType.TABLE,
                fields=(
                    Field(name="order_id", database_type="int4", jdbc_type_code=4, primary_key_part_number=1),
                    Field(name="line_no", database_type="int4", jdbc_type_code=4, primary_key_part_number=2),
                    Field(name="replaces_order_id", database_type="int4", jdbc_type_code=4),
                ),
            ),
        ),
        foreign_keys=(
            ForeignKey(
                constraint_name="fk_items_order",
                foreign_key_relation_id=items,
                primary_key_relation_id=orders,
                foreign_key_components=(
                    ForeignKeyComponent(foreign_key_field_name="order_id", primary_key_field_name="id"),
                ),
            ),
            ForeignKey(
                constraint_name="fk_items_replaced_order",
                foreign_key_relation_id=items,
                primary_key_relation_id=orders,
                foreign_key_components=(
                    ForeignKeyComponent(foreign_key_field_name="replaces_order_id", primary_key_field_name="id"),
                ),
            ),
        ),
    )
