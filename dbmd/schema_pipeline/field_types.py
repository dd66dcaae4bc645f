"""JDBC type codes and the column-row to Field classification rules."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional

from dbmd.models import ColumnRow, DateMapping, Field


class JdbcType(IntEnum):
    """Type codes as numbered by ``java.sql.Types``."""

    BIT = -7
    TINYINT = -6
    BIGINT = -5
    LONGVARBINARY = -4
    VARBINARY = -3
    BINARY = -2
    LONGVARCHAR = -1
    NULL = 0
    CHAR = 1
    NUMERIC = 2
    DECIMAL = 3
    INTEGER = 4
    SMALLINT = 5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    VARCHAR = 12
    BOOLEAN = 16
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    OTHER = 1111
    JAVA_OBJECT = 2000
    ARRAY = 2003
    BLOB = 2004
    CLOB = 2005
    SQLXML = 2009
    NCHAR = -15
    NVARCHAR = -9
    LONGNVARCHAR = -16
    NCLOB = 2011
    TIME_WITH_TIMEZONE = 2013
    TIMESTAMP_WITH_TIMEZONE = 2014


# ResultSetMetaData / DatabaseMetaData nullability codes.
COLUMN_NO_NULLS = 0
COLUMN_NULLABLE = 1
COLUMN_NULLABLE_UNKNOWN = 2

CHAR_TYPE_CODES = frozenset({JdbcType.CHAR, JdbcType.VARCHAR, JdbcType.LONGVARCHAR})

NUMERIC_TYPE_CODES = frozenset({
    JdbcType.TINYINT,
    JdbcType.SMALLINT,
    JdbcType.INTEGER,
    JdbcType.BIGINT,
    JdbcType.FLOAT,
    JdbcType.REAL,
    JdbcType.DOUBLE,
    JdbcType.DECIMAL,
    JdbcType.NUMERIC,
})

# Oracle reports its XMLTYPE with the proprietary OPAQUE code 2007.
XML_TYPE_NAMES = frozenset({"XMLTYPE", "SYS.XMLTYPE"})


def is_char_type(type_code: int) -> bool:
    return type_code in CHAR_TYPE_CODES


def is_numeric_type(type_code: int) -> bool:
    return type_code in NUMERIC_TYPE_CODES


def resolve_date_type_code(type_code: int, type_name: str, date_mapping: DateMapping) -> int:
    """Apply the date mapping policy to a DATE or TIMESTAMP coded column."""
    if type_name.upper() == "DATE":
        if date_mapping is DateMapping.AS_TIMESTAMP:
            return JdbcType.TIMESTAMP
        if date_mapping is DateMapping.AS_DATE:
            return JdbcType.DATE
    return type_code


def normalize_type_code(type_code: int, type_name: str, date_mapping: DateMapping) -> int:
    if type_code in (JdbcType.DATE, JdbcType.TIMESTAMP):
        return resolve_date_type_code(type_code, type_name, date_mapping)
    if type_name in XML_TYPE_NAMES:
        return JdbcType.SQLXML
    return type_code


def nullable_from_code(code: Optional[int]) -> Optional[bool]:
    if code == COLUMN_NULLABLE:
        return True
    if code == COLUMN_NO_NULLS:
        return False
    return None


def make_field(
    row: ColumnRow,
    primary_key_part_number: Optional[int] = None,
    date_mapping: DateMapping = DateMapping.DRIVER_REPORTED,
) -> Field:
    """Derive the stored Field for one column row.

    Character codes get a length, numeric codes get precision, radix and
    fractional digits; every other code gets neither.
    """
    type_code = int(normalize_type_code(row.type_code, row.type_name, date_mapping))
    numeric = is_numeric_type(type_code)
    return Field(
        name=row.column_name,
        database_type=row.type_name,
        jdbc_type_code=type_code,
        nullable=nullable_from_code(row.nullable),
        primary_key_part_number=primary_key_part_number,
        length=row.column_size if is_char_type(type_code) else None,
        precision=row.column_size if numeric else None,
        precision_radix=row.num_prec_radix if numeric else None,
        fractional_digits=row.decimal_digits if numeric else None,
        comment=row.comment,
    )


__all__ = [
    "JdbcType",
    "COLUMN_NO_NULLS",
    "COLUMN_NULLABLE",
    "COLUMN_NULLABLE_UNKNOWN",
    "CHAR_TYPE_CODES",
    "NUMERIC_TYPE_CODES",
    "is_char_type",
    "is_numeric_type",
    "resolve_date_type_code",
    "normalize_type_code",
    "nullable_from_code",
    "make_field",
]
