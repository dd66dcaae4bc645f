"""Orchestrator that selects a fetch strategy, extracts metadata and writes it."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional, Protocol, Union

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from dbmd.config import create_metadata_engine
from dbmd.exceptions import MetadataSourceError
from dbmd.models import ConnectionProperties, ExtractionSettings, StoredDatabaseMetadata
from dbmd.schema_pipeline.introspector import SqlAlchemyMetadataSource
from dbmd.schema_pipeline.pipeline import IntrospectionFetcher
from dbmd.schema_pipeline.predefined import PredefinedQueryFetcher, load_predefined_query
from dbmd.schema_pipeline.relation_filter import DEFAULT_EXCLUDE_REGEX, DEFAULT_INCLUDE_REGEX, compile_pattern
from dbmd.schema_pipeline.writer import MetadataWriter, OutputFormat
from dbmd.utils.logger import setup_logging

logger = setup_logging(__name__)


class DbmdFetcher(Protocol):
    """Produces the stored metadata model for the relations passing the filters."""

    def fetch(
        self,
        include_regex: Optional[str] = None,
        exclude_regex: Optional[str] = None,
    ) -> StoredDatabaseMetadata: ...


def select_fetcher(
    connection: Connection,
    database_type: str,
    settings: Optional[ExtractionSettings] = None,
    *,
    use_generic_md: bool = False,
) -> DbmdFetcher:
    """Predefined query when one ships for ``database_type``, else generic introspection."""
    sql = None if use_generic_md else load_predefined_query(database_type)
    if sql is not None:
        logger.info("Using predefined metadata query for database type '%s'", database_type)
        return PredefinedQueryFetcher(connection, sql)
    logger.info("Using generic metadata introspection for database type '%s'", database_type)
    return IntrospectionFetcher(SqlAlchemyMetadataSource(connection), settings)


class DbmdFetchOrchestrator:
    """Runs connect -> fetch -> write and returns the fetched model.

    The artifact is only written once the whole model has been assembled.
    """

    def __init__(
        self,
        connection_properties: ConnectionProperties,
        database_type: str,
        output: Union[str, Path],
        *,
        include_regex: str = DEFAULT_INCLUDE_REGEX,
        exclude_regex: str = DEFAULT_EXCLUDE_REGEX,
        settings: Optional[ExtractionSettings] = None,
        use_generic_md: bool = False,
        output_format: OutputFormat = OutputFormat.JSON,
    ) -> None:
        self.connection_properties = connection_properties
        self.database_type = database_type
        self.output = output
        self.include_regex = include_regex
        self.exclude_regex = exclude_regex
        self.settings = self._resolve_settings(settings or ExtractionSettings())
        self.use_generic_md = use_generic_md
        self.output_format = output_format

    def run(self) -> StoredDatabaseMetadata:
        logger.info("Starting metadata fetch for database type '%s'", self.database_type)
        compile_pattern(self.include_regex, option="include pattern")
        compile_pattern(self.exclude_regex, option="exclude pattern")

        metadata = self._fetch()
        MetadataWriter(self.output, self.output_format).write(metadata)
        logger.info("Metadata fetch finished successfully.")
        return metadata

    def _fetch(self) -> StoredDatabaseMetadata:
        engine = create_metadata_engine(self.connection_properties)
        try:
            with engine.connect() as connection:
                fetcher = select_fetcher(
                    connection,
                    self.database_type,
                    self.settings,
                    use_generic_md=self.use_generic_md,
                )
                return fetcher.fetch(self.include_regex, self.exclude_regex)
        except SQLAlchemyError as exc:
            raise MetadataSourceError(f"Database connection failed: {exc}") from exc
        finally:
            engine.dispose()

    def _resolve_settings(self, settings: ExtractionSettings) -> ExtractionSettings:
        if settings.schema is None and self.connection_properties.schema_name:
            return replace(settings, schema=self.connection_properties.schema_name)
        return settings


__all__ = ["DbmdFetcher", "select_fetcher", "DbmdFetchOrchestrator"]
