"""Metadata source capability and its SQLAlchemy Inspector implementation."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from sqlalchemy import inspect
from sqlalchemy import types as sqltypes
from sqlalchemy.engine import Connection, Engine, Inspector
from sqlalchemy.engine.reflection import ObjectKind
from sqlalchemy.exc import CompileError

from dbmd.models import (
    ColumnRow,
    ImportedKeyRow,
    PrimaryKeyRow,
    ProductInfo,
    RelationRow,
    RelId,
    RelType,
)
from dbmd.schema_pipeline.field_types import (
    COLUMN_NO_NULLS,
    COLUMN_NULLABLE,
    COLUMN_NULLABLE_UNKNOWN,
    JdbcType,
    is_numeric_type,
)
from dbmd.utils.logger import setup_logging

logger = setup_logging(__name__)


class MetadataSource(Protocol):
    """Raw introspection cursors consumed by the extraction pipeline.

    Every cursor is an iterator; callers close it once consumed. Column rows
    must be contiguous per relation and imported-key rows ordered by key
    sequence within each constraint.
    """

    def stores_lower_case_identifiers(self) -> bool: ...

    def stores_upper_case_identifiers(self) -> bool: ...

    def stores_mixed_case_identifiers(self) -> bool: ...

    def relations(self, schema: Optional[str], kinds: Sequence[RelType]) -> Iterator[RelationRow]: ...

    def columns(self, schema: Optional[str]) -> Iterator[ColumnRow]: ...

    def primary_keys(self, rel_id: RelId) -> Iterator[PrimaryKeyRow]: ...

    def imported_keys(self, rel_id: RelId) -> Iterator[ImportedKeyRow]: ...

    def product_info(self) -> ProductInfo: ...


class SqlAlchemyMetadataSource:
    """Metadata source backed by a SQLAlchemy Inspector."""

    SYSTEM_SCHEMAS: Sequence[str] = (
        "information_schema",
        "pg_catalog",
        "pg_toast",
        "sys",
        "mysql",
        "performance_schema",
        "guest",
        "db_owner",
        "db_accessadmin",
        "db_securityadmin",
        "db_ddladmin",
        "db_backupoperator",
        "db_datareader",
        "db_datawriter",
        "db_denydatareader",
        "db_denydatawriter",
    )

    PRODUCT_NAMES: Dict[str, str] = {
        "postgresql": "PostgreSQL",
        "mysql": "MySQL",
        "mariadb": "MariaDB",
        "sqlite": "SQLite",
        "oracle": "Oracle",
        "mssql": "Microsoft SQL Server",
    }

    LOWER_CASE_DIALECTS = frozenset({"postgresql"})
    MIXED_CASE_DIALECTS = frozenset({"sqlite", "mssql"})
    MYSQL_DIALECTS = frozenset({"mysql", "mariadb"})

    def __init__(self, bind: Connection | Engine) -> None:
        self.inspector: Inspector = inspect(bind)
        self.dialect = self.inspector.dialect
        logger.debug("Initialised SqlAlchemyMetadataSource for dialect %s", self.dialect.name)

    # ------------------------------------------------------------------
    # Identifier storage
    # ------------------------------------------------------------------

    def stores_lower_case_identifiers(self) -> bool:
        if self.dialect.name in self.MYSQL_DIALECTS:
            return self._mysql_casing() == 1
        return self.dialect.name in self.LOWER_CASE_DIALECTS

    def stores_upper_case_identifiers(self) -> bool:
        # Dialects needing name normalization (Oracle, DB2, Firebird) store unquoted names upper case.
        return bool(getattr(self.dialect, "requires_name_normalize", False))

    def stores_mixed_case_identifiers(self) -> bool:
        if self.dialect.name in self.MYSQL_DIALECTS:
            return self._mysql_casing() != 1
        return self.dialect.name in self.MIXED_CASE_DIALECTS

    def _mysql_casing(self) -> int:
        # lower_case_table_names as detected by the dialect on connect: 0, 1 or 2.
        return int(getattr(self.dialect, "_casing", 0) or 0)

    # ------------------------------------------------------------------
    # Cursors
    # ------------------------------------------------------------------

    def relations(self, schema: Optional[str], kinds: Sequence[RelType]) -> Iterator[RelationRow]:
        schemas = self._schemas(schema)
        for kind in (RelType.TABLE, RelType.VIEW):
            if kind not in kinds:
                continue
            for schema_name in schemas:
                names = (
                    self.inspector.get_table_names(schema=schema_name)
                    if kind is RelType.TABLE
                    else self.inspector.get_view_names(schema=schema_name)
                )
                for name in sorted(names):
                    yield RelationRow(schema_name, name, kind, self._table_comment(name, schema_name))

    def columns(self, schema: Optional[str]) -> Iterator[ColumnRow]:
        for schema_name in self._schemas(schema):
            by_relation = self.inspector.get_multi_columns(
                schema=schema_name, kind=ObjectKind.TABLE | ObjectKind.VIEW
            )
            for key in sorted(by_relation, key=lambda key: key[1]):
                for col in by_relation[key]:
                    yield self._column_row(schema_name, key[1], col)

    def primary_keys(self, rel_id: RelId) -> Iterator[PrimaryKeyRow]:
        pk = self.inspector.get_pk_constraint(rel_id.name, schema=rel_id.schema_name)
        for seq, column_name in enumerate(pk.get("constrained_columns") or [], start=1):
            yield PrimaryKeyRow(column_name, seq)

    def imported_keys(self, rel_id: RelId) -> Iterator[ImportedKeyRow]:
        for fk in self.inspector.get_foreign_keys(rel_id.name, schema=rel_id.schema_name):
            # Dialects omit the referred schema when it is the owning table's schema.
            pk_schema = fk.get("referred_schema") or rel_id.schema_name
            pairs = zip(fk["constrained_columns"], fk["referred_columns"])
            for seq, (fk_column, pk_column) in enumerate(pairs, start=1):
                yield ImportedKeyRow(
                    fk_name=fk.get("name"),
                    key_seq=seq,
                    fk_column_name=fk_column,
                    pk_schema=pk_schema,
                    pk_table=fk["referred_table"],
                    pk_column_name=pk_column,
                )

    def product_info(self) -> ProductInfo:
        version_info = tuple(self.dialect.server_version_info or ())
        numbers = [part for part in version_info if isinstance(part, int)]
        return ProductInfo(
            name=self.PRODUCT_NAMES.get(self.dialect.name, self.dialect.name),
            version=".".join(str(part) for part in version_info),
            major_version=numbers[0] if len(numbers) > 0 else None,
            minor_version=numbers[1] if len(numbers) > 1 else None,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _schemas(self, schema: Optional[str]) -> List[str]:
        if schema is not None:
            return [schema]
        return [
            name
            for name in self.inspector.get_schema_names()
            if name.lower() not in self.SYSTEM_SCHEMAS
            and not name.lower().startswith(("pg_temp_", "pg_toast_temp_"))
        ]

    def _table_comment(self, name: str, schema: Optional[str]) -> Optional[str]:
        try:
            comment = self.inspector.get_table_comment(name, schema=schema)
        except NotImplementedError:
            return None
        return comment.get("text") if comment else None

    def _column_row(self, schema: Optional[str], table_name: str, col: Dict[str, Any]) -> ColumnRow:
        sa_type = col["type"]
        type_code = jdbc_type_code(sa_type)
        nullable = col.get("nullable")
        return ColumnRow(
            schema=schema,
            table_name=table_name,
            column_name=col["name"],
            type_code=type_code,
            type_name=native_type_name(sa_type, self.dialect),
            column_size=column_size(sa_type, type_code),
            nullable=(
                COLUMN_NULLABLE_UNKNOWN if nullable is None
                else COLUMN_NULLABLE if nullable
                else COLUMN_NO_NULLS
            ),
            decimal_digits=decimal_digits(sa_type, type_code),
            num_prec_radix=10 if is_numeric_type(type_code) else None,
            comment=col.get("comment"),
        )


# ------------------------------------------------------------------
# SQLAlchemy type -> JDBC type code mapping
# ------------------------------------------------------------------

_INTEGER_SIZES = {
    JdbcType.TINYINT: 3,
    JdbcType.SMALLINT: 5,
    JdbcType.INTEGER: 10,
    JdbcType.BIGINT: 19,
}

_FLOAT_SIZES = {
    JdbcType.REAL: 8,
    JdbcType.FLOAT: 17,
    JdbcType.DOUBLE: 17,
}


def jdbc_type_code(sa_type: sqltypes.TypeEngine) -> int:
    """Map a reflected SQLAlchemy type to the closest java.sql.Types code."""
    if isinstance(sa_type, sqltypes.NullType):
        return JdbcType.OTHER
    if isinstance(sa_type, sqltypes.Boolean):
        return JdbcType.BOOLEAN
    if isinstance(sa_type, (sqltypes.JSON, sqltypes.Interval)):
        return JdbcType.OTHER
    if isinstance(sa_type, sqltypes.ARRAY):
        return JdbcType.ARRAY
    if isinstance(sa_type, sqltypes.Enum):
        return JdbcType.OTHER
    if isinstance(sa_type, sqltypes.String):
        return _string_type_code(sa_type)
    if isinstance(sa_type, sqltypes.Integer):
        return _integer_type_code(sa_type)
    if isinstance(sa_type, sqltypes.Float):
        if isinstance(sa_type, sqltypes.Double):
            return JdbcType.DOUBLE
        if isinstance(sa_type, sqltypes.REAL):
            return JdbcType.REAL
        return JdbcType.FLOAT
    if isinstance(sa_type, sqltypes.Numeric):
        return JdbcType.DECIMAL if isinstance(sa_type, sqltypes.DECIMAL) else JdbcType.NUMERIC
    if isinstance(sa_type, sqltypes.DateTime):
        return JdbcType.TIMESTAMP
    if isinstance(sa_type, sqltypes.Date):
        return JdbcType.DATE
    if isinstance(sa_type, sqltypes.Time):
        return JdbcType.TIME
    if isinstance(sa_type, sqltypes.BLOB):
        return JdbcType.BLOB
    if isinstance(sa_type, sqltypes.VARBINARY):
        return JdbcType.VARBINARY
    if isinstance(sa_type, sqltypes.BINARY):
        return JdbcType.BINARY
    if isinstance(sa_type, sqltypes.LargeBinary):
        return JdbcType.LONGVARBINARY
    return JdbcType.OTHER


def _string_type_code(sa_type: sqltypes.String) -> int:
    if isinstance(sa_type, sqltypes.NCHAR):
        return JdbcType.NCHAR
    if isinstance(sa_type, sqltypes.CHAR):
        return JdbcType.CHAR
    if isinstance(sa_type, sqltypes.NVARCHAR):
        return JdbcType.NVARCHAR
    if isinstance(sa_type, sqltypes.CLOB):
        return JdbcType.CLOB
    if isinstance(sa_type, sqltypes.Text):
        return JdbcType.LONGVARCHAR
    return JdbcType.VARCHAR


def _integer_type_code(sa_type: sqltypes.Integer) -> int:
    if isinstance(sa_type, sqltypes.SmallInteger):
        return JdbcType.SMALLINT
    if isinstance(sa_type, sqltypes.BigInteger):
        return JdbcType.BIGINT
    if getattr(sa_type, "__visit_name__", "").upper() == "TINYINT":
        return JdbcType.TINYINT
    return JdbcType.INTEGER


def column_size(sa_type: sqltypes.TypeEngine, type_code: int) -> Optional[int]:
    if type_code in _INTEGER_SIZES:
        return _INTEGER_SIZES[JdbcType(type_code)]
    if type_code in _FLOAT_SIZES:
        return getattr(sa_type, "precision", None) or _FLOAT_SIZES[JdbcType(type_code)]
    if isinstance(sa_type, sqltypes.Numeric):
        return sa_type.precision
    if isinstance(sa_type, sqltypes.Enum):
        return None
    return getattr(sa_type, "length", None)


def decimal_digits(sa_type: sqltypes.TypeEngine, type_code: int) -> Optional[int]:
    if type_code in _INTEGER_SIZES:
        return 0
    if isinstance(sa_type, sqltypes.Numeric):
        return getattr(sa_type, "scale", None)
    return None


_TYPE_MODIFIERS = re.compile(r"\([^)]*\)")


def native_type_name(sa_type: sqltypes.TypeEngine, dialect: Any) -> str:
    """Database type name without length/precision modifiers, e.g. ``VARCHAR``."""
    try:
        compiled = sa_type.compile(dialect=dialect)
    except CompileError:
        compiled = type(sa_type).__name__.upper()
    return " ".join(_TYPE_MODIFIERS.sub("", compiled).split())


__all__ = [
    "MetadataSource",
    "SqlAlchemyMetadataSource",
    "jdbc_type_code",
    "column_size",
    "decimal_digits",
    "native_type_name",
]
