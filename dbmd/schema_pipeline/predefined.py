"""Metadata fetch through a predefined, dialect-specific SQL query.

Each query lives in ``dbmd/queries/<db-type>-dbmd.sql`` and returns the whole
stored metadata document as a single JSON value in one row and one column.
"""

from __future__ import annotations

from importlib import resources
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from dbmd.exceptions import MetadataSourceError
from dbmd.models import StoredDatabaseMetadata
from dbmd.schema_pipeline.relation_filter import (
    DEFAULT_EXCLUDE_REGEX,
    DEFAULT_INCLUDE_REGEX,
    compile_pattern,
)
from dbmd.utils.logger import setup_logging

logger = setup_logging(__name__)

QUERY_RESOURCE_DIR = "queries"

def predefined_query_name(database_type: str) -> str:
    return f"{database_type.lower()}-dbmd.sql"

def load_predefined_query(database_type: str) -> Optional[str]:
    """Return the predefined metadata query for ``database_type``, if one is shipped."""
    resource = resources.files("dbmd") / QUERY_RESOURCE_DIR / predefined_query_name(database_type)
    if not resource.is_file():
        return None
    return resource.read_text(encoding="utf-8")

class PredefinedQueryFetcher:
    """Run a predefined metadata query over a borrowed connection."""

    def __init__(self, connection: Connection, sql: str) -> None:
        self.connection = connection
        self.sql = sql

    def fetch(self, include_regex: Optional[str] = None, exclude_regex: Optional[str] = None) -> StoredDatabaseMetadata:
        include_regex = DEFAULT_INCLUDE_REGEX if include_regex is None else include_regex
        exclude_regex = DEFAULT_EXCLUDE_REGEX if exclude_regex is None else exclude_regex
        compile_pattern(include_regex, option="include pattern")
        compile_pattern(exclude_regex, option="exclude pattern")

        logger.info("Running predefined metadata query")
        try:
            result = self.connection.execute(
                text(self.sql),
                {"relIncludePat": include_regex, "relExcludePat": exclude_regex},
            )
            rows = result.all()
        except SQLAlchemyError as exc:
            raise MetadataSourceError(f"Predefined metadata query failed: {exc}") from exc

        return parse_metadata_document(_single_value(rows))

def _single_value(rows: Any) -> Any:
    if len(rows) != 1:
        raise MetadataSourceError(f"Expected exactly one row from the metadata query, got {len(rows)}")
    row = rows[0]
    if len(row) != 1:
        raise MetadataSourceError(f"Expected exactly one column in the metadata query result, got {len(row)}")
    return row[0]

def parse_metadata_document(document: Any) -> StoredDatabaseMetadata:
    """Validate a metadata document given as JSON text or already-decoded JSON."""
    try:
        if isinstance(document, (str, bytes)):
            return StoredDatabaseMetadata.model_validate_json(document)
        return StoredDatabaseMetadata.model_validate(document)
    except ValidationError as exc:
        raise MetadataSourceError(f"Metadata document does not match the stored model: {exc}") from exc


__all__ = [
    "QUERY_RESOURCE_DIR",
    "predefined_query_name",
    "load_predefined_query",
    "PredefinedQueryFetcher",
    "parse_metadata_document",
]
