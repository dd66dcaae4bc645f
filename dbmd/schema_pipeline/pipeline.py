"""Generic introspection flow: metadata source cursors -> StoredDatabaseMetadata."""

from __future__ import annotations

from contextlib import closing
from re import Pattern
from typing import Dict, List, Optional

from dbmd.exceptions import DbmdError, MetadataSourceError
from dbmd.models import (
    CaseSensitivity,
    ExtractionSettings,
    ForeignKey,
    RelationRow,
    RelId,
    RelMetadata,
    RelType,
    StoredDatabaseMetadata,
)
from dbmd.schema_pipeline.builder import ForeignKeyAssembler, RelationMetadataBuilder, index_primary_keys
from dbmd.schema_pipeline.introspector import MetadataSource
from dbmd.schema_pipeline.relation_filter import compile_pattern, is_relation_included
from dbmd.utils.identifiers import detect_case_sensitivity, exact_unquoted_name
from dbmd.utils.logger import setup_logging

logger = setup_logging(__name__)


class IntrospectionFetcher:
    """Build the stored metadata model from a ``MetadataSource``.

    The source is borrowed: cursors are opened, drained and closed here, but the
    underlying connection belongs to the caller.
    """

    def __init__(self, source: MetadataSource, settings: Optional[ExtractionSettings] = None) -> None:
        self.source = source
        self.settings = settings or ExtractionSettings()

    def fetch(self, include_regex: Optional[str] = None, exclude_regex: Optional[str] = None) -> StoredDatabaseMetadata:
        return self.extract(
            compile_pattern(include_regex, option="include pattern"),
            compile_pattern(exclude_regex, option="exclude pattern"),
        )

    def extract(
        self,
        include: Optional[Pattern[str]] = None,
        exclude: Optional[Pattern[str]] = None,
    ) -> StoredDatabaseMetadata:
        try:
            return self._extract(include, exclude)
        except DbmdError:
            raise
        except Exception as exc:
            raise MetadataSourceError(f"Metadata source failed: {exc}") from exc

    def _extract(
        self,
        include: Optional[Pattern[str]],
        exclude: Optional[Pattern[str]],
    ) -> StoredDatabaseMetadata:
        case_sensitivity = detect_case_sensitivity(self.source)
        schema = self._schema_filter(case_sensitivity)
        logger.info("Extracting metadata (schema=%s, case sensitivity=%s)", schema, case_sensitivity.value)

        relations = self.fetch_relations(schema, include, exclude)
        logger.info("Selected %d relations", len(relations))

        rel_mds = self.fetch_relation_metadatas(schema, relations)
        logger.debug("Built metadata for %d relations", len(rel_mds))

        fks: List[ForeignKey] = []
        if self.settings.include_foreign_keys:
            fks = self.fetch_foreign_keys(relations)
        logger.info("Assembled %d foreign keys", len(fks))

        product = self.source.product_info()
        return StoredDatabaseMetadata(
            dbms_name=product.name,
            dbms_version=product.version,
            major_version=product.major_version,
            minor_version=product.minor_version,
            case_sensitivity=case_sensitivity,
            relation_metadatas=tuple(rel_mds),
            foreign_keys=tuple(fks),
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def fetch_relations(
        self,
        schema: Optional[str],
        include: Optional[Pattern[str]],
        exclude: Optional[Pattern[str]],
    ) -> Dict[RelId, RelationRow]:
        """Authoritative relation set, in source order."""
        kinds = (RelType.TABLE, RelType.VIEW) if self.settings.include_views else (RelType.TABLE,)
        relations: Dict[RelId, RelationRow] = {}
        with closing(self.source.relations(schema, kinds)) as rows:
            for row in rows:
                rel_id = row.rel_id
                if is_relation_included(rel_id, include, exclude):
                    relations[rel_id] = row
                else:
                    logger.debug("Skipping relation %s", rel_id)
        return relations

    def fetch_relation_metadatas(
        self,
        schema: Optional[str],
        relations: Dict[RelId, RelationRow],
    ) -> List[RelMetadata]:
        builder = RelationMetadataBuilder(relations, self._primary_key_parts, self.settings.date_mapping)
        with closing(self.source.columns(schema)) as rows:
            return builder.build(rows)

    def fetch_foreign_keys(self, relations: Dict[RelId, RelationRow]) -> List[ForeignKey]:
        assembler = ForeignKeyAssembler(relations)
        fks: List[ForeignKey] = []
        for rel_id, relation in relations.items():
            if relation.kind is not RelType.TABLE:
                continue
            with closing(self.source.imported_keys(rel_id)) as rows:
                fks.extend(assembler.assemble(rel_id, rows))
        return fks

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _schema_filter(self, case_sensitivity: CaseSensitivity) -> Optional[str]:
        if self.settings.schema is None:
            return None
        # Quoting opts out of folding; the source expects the bare stored name.
        return exact_unquoted_name(self.settings.schema, case_sensitivity)

    def _primary_key_parts(self, rel_id: RelId) -> Dict[str, int]:
        with closing(self.source.primary_keys(rel_id)) as rows:
            return index_primary_keys(rows)


__all__ = ["IntrospectionFetcher"]
