"""Data models used across the metadata fetcher.

The pydantic models describe the stored database metadata artifact, the only
document written at the boundary. Their camelCase aliases are the wire names
read by downstream generators. The dataclasses further down are the raw cursor
rows and settings passed between pipeline stages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CaseSensitivity(str, Enum):
    """How the database stores unquoted identifiers."""

    SENSITIVE = "SENSITIVE"
    INSENSITIVE_STORED_LOWER = "INSENSITIVE_STORED_LOWER"
    INSENSITIVE_STORED_UPPER = "INSENSITIVE_STORED_UPPER"
    INSENSITIVE_STORED_MIXED = "INSENSITIVE_STORED_MIXED"


class RelType(str, Enum):
    TABLE = "Table"
    VIEW = "View"


class DateMapping(str, Enum):
    """Policy for columns whose driver-reported code is DATE or TIMESTAMP."""

    DRIVER_REPORTED = "driver-reported"
    AS_TIMESTAMP = "as-timestamp"
    AS_DATE = "as-date"


class _StoredModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class RelId(_StoredModel):
    """Relation identifier: optional schema plus relation name."""

    schema_name: Optional[str] = None
    name: str

    # "schema" shadows a BaseModel attribute, so the wire name is set explicitly.
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=lambda field_name: "schema" if field_name == "schema_name" else to_camel(field_name),
    )

    @property
    def id_string(self) -> str:
        return self.name if self.schema_name is None else f"{self.schema_name}.{self.name}"

    def __str__(self) -> str:
        return self.id_string


class Field(_StoredModel):
    """Normalized metadata for one column of a relation."""

    name: str
    database_type: str
    jdbc_type_code: Optional[int] = None
    nullable: Optional[bool] = None
    primary_key_part_number: Optional[int] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    precision_radix: Optional[int] = None
    fractional_digits: Optional[int] = None
    comment: Optional[str] = None

    @model_validator(mode="after")
    def _length_excludes_numeric_attributes(self) -> "Field":
        numeric = (self.precision, self.precision_radix, self.fractional_digits)
        if self.length is not None and any(value is not None for value in numeric):
            raise ValueError(f"Field '{self.name}' cannot carry both a length and numeric precision attributes")
        return self


class RelMetadata(_StoredModel):
    relation_id: RelId
    relation_type: RelType
    fields: Tuple[Field, ...] = ()
    comment: Optional[str] = None

    def primary_key_fields(self) -> List[Field]:
        """Fields that are part of the primary key, ordered by part number."""
        pk_fields = [f for f in self.fields if f.primary_key_part_number is not None]
        pk_fields.sort(key=lambda f: f.primary_key_part_number)
        return pk_fields


class ForeignKeyComponent(_StoredModel):
    foreign_key_field_name: str
    primary_key_field_name: str


class ForeignKey(_StoredModel):
    constraint_name: Optional[str] = None
    foreign_key_relation_id: RelId
    primary_key_relation_id: RelId
    foreign_key_components: Tuple[ForeignKeyComponent, ...]

    @field_validator("foreign_key_components")
    @classmethod
    def _require_components(cls, value: Tuple[ForeignKeyComponent, ...]) -> Tuple[ForeignKeyComponent, ...]:
        if not value:
            raise ValueError("A foreign key requires at least one component")
        return value

    @property
    def foreign_key_field_names(self) -> List[str]:
        return [comp.foreign_key_field_name for comp in self.foreign_key_components]


class StoredDatabaseMetadata(_StoredModel):
    """Aggregate root of one extraction run."""

    dbms_name: str
    dbms_version: str
    major_version: Optional[int] = None
    minor_version: Optional[int] = None
    case_sensitivity: CaseSensitivity
    relation_metadatas: Tuple[RelMetadata, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = ()


# ---------------------------------------------------------------------
# Raw cursor rows and pipeline settings
# ---------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class RelationRow:
    schema: Optional[str]
    name: str
    kind: RelType
    comment: Optional[str] = None

    @property
    def rel_id(self) -> RelId:
        return RelId(schema_name=self.schema, name=self.name)


@dataclass(slots=True, frozen=True)
class ColumnRow:
    schema: Optional[str]
    table_name: str
    column_name: str
    type_code: int
    type_name: str
    column_size: Optional[int] = None
    nullable: Optional[int] = None
    decimal_digits: Optional[int] = None
    num_prec_radix: Optional[int] = None
    comment: Optional[str] = None

    @property
    def rel_id(self) -> RelId:
        return RelId(schema_name=self.schema, name=self.table_name)


@dataclass(slots=True, frozen=True)
class PrimaryKeyRow:
    column_name: str
    key_seq: int


@dataclass(slots=True, frozen=True)
class ImportedKeyRow:
    fk_name: Optional[str]
    key_seq: int
    fk_column_name: str
    pk_schema: Optional[str]
    pk_table: str
    pk_column_name: str

    @property
    def pk_rel_id(self) -> RelId:
        return RelId(schema_name=self.pk_schema, name=self.pk_table)


@dataclass(slots=True, frozen=True)
class ProductInfo:
    name: str
    version: str
    major_version: Optional[int] = None
    minor_version: Optional[int] = None


@dataclass(slots=True, frozen=True)
class ExtractionSettings:
    schema: Optional[str] = None
    include_views: bool = True
    include_foreign_keys: bool = True
    date_mapping: DateMapping = DateMapping.DRIVER_REPORTED


# ---------------------------------------------------------------------
# Connection configuration
# ---------------------------------------------------------------------


class ConnectionProperties(BaseModel):
    """Connection settings read from a properties file and the environment."""

    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    schema_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("url must not be empty")
        return value.strip()

    @field_validator("username", "password", "schema_name")
    @classmethod
    def _blank_as_missing(cls, value: Optional[str]) -> Optional[str]:
        return value if value else None


__all__ = [
    "CaseSensitivity",
    "RelType",
    "DateMapping",
    "RelId",
    "Field",
    "RelMetadata",
    "ForeignKeyComponent",
    "ForeignKey",
    "StoredDatabaseMetadata",
    "RelationRow",
    "ColumnRow",
    "PrimaryKeyRow",
    "ImportedKeyRow",
    "ProductInfo",
    "ExtractionSettings",
    "ConnectionProperties",
]
