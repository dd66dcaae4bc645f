"""Assembles relation metadata and foreign keys from ordered metadata cursors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from dbmd.exceptions import MetadataSourceError
from dbmd.models import (
    ColumnRow,
    DateMapping,
    Field,
    ForeignKey,
    ForeignKeyComponent,
    ImportedKeyRow,
    PrimaryKeyRow,
    RelationRow,
    RelId,
    RelMetadata,
)
from dbmd.schema_pipeline.field_types import make_field
from dbmd.utils.logger import setup_logging

logger = setup_logging(__name__)

PrimaryKeyLookup = Callable[[RelId], Mapping[str, int]]


def index_primary_keys(rows: Iterable[PrimaryKeyRow]) -> Dict[str, int]:
    """Map primary key column names to their 1-based key sequence."""
    return {row.column_name: row.key_seq for row in rows}


# ------------------------------------------------------------------
# Accumulators, local to one grouping pass
# ------------------------------------------------------------------


@dataclass(slots=True)
class _RelMetadataAccumulator:
    rel_id: RelId
    relation: RelationRow
    pk_part_numbers: Mapping[str, int]
    fields: List[Field] = field(default_factory=list)

    def build(self) -> RelMetadata:
        return RelMetadata(
            relation_id=self.rel_id,
            relation_type=self.relation.kind,
            fields=tuple(self.fields),
            comment=self.relation.comment,
        )


@dataclass(slots=True)
class _ForeignKeyAccumulator:
    constraint_name: Optional[str]
    source: RelId
    target: RelId
    components: List[ForeignKeyComponent] = field(default_factory=list)

    def add(self, row: ImportedKeyRow) -> None:
        self.components.append(
            ForeignKeyComponent(
                foreign_key_field_name=row.fk_column_name,
                primary_key_field_name=row.pk_column_name,
            )
        )

    def build(self) -> ForeignKey:
        return ForeignKey(
            constraint_name=self.constraint_name,
            foreign_key_relation_id=self.source,
            primary_key_relation_id=self.target,
            foreign_key_components=tuple(self.components),
        )


# ------------------------------------------------------------------
# Builders
# ------------------------------------------------------------------


class RelationMetadataBuilder:
    """Group a relation-contiguous column cursor into RelMetadata entries.

    Only relations present in ``relations`` (the authoritative relation set)
    produce entries. Column order is kept exactly as the cursor reports it.
    """

    def __init__(
        self,
        relations: Mapping[RelId, RelationRow],
        primary_keys: PrimaryKeyLookup,
        date_mapping: DateMapping = DateMapping.DRIVER_REPORTED,
    ) -> None:
        self.relations = relations
        self.primary_keys = primary_keys
        self.date_mapping = date_mapping

    def build(self, columns: Iterable[ColumnRow]) -> List[RelMetadata]:
        rel_mds: List[RelMetadata] = []
        finished: Set[RelId] = set()
        current: Optional[_RelMetadataAccumulator] = None

        for row in columns:
            rel_id = row.rel_id
            relation = self.relations.get(rel_id)
            if relation is None:
                continue

            if current is None or current.rel_id != rel_id:
                if current is not None:
                    rel_mds.append(current.build())
                    finished.add(current.rel_id)
                if rel_id in finished:
                    raise MetadataSourceError(
                        f"Columns for relation '{rel_id}' are not contiguous in the column cursor"
                    )
                logger.debug("Collecting fields for relation %s", rel_id)
                current = _RelMetadataAccumulator(rel_id, relation, self.primary_keys(rel_id))

            current.fields.append(
                make_field(row, current.pk_part_numbers.get(row.column_name), self.date_mapping)
            )

        if current is not None:
            rel_mds.append(current.build())

        return rel_mds


class ForeignKeyAssembler:
    """Rebuild multi-component foreign keys from imported-key rows.

    A row with key sequence 1 starts a new foreign key, any other row extends
    the current one. Foreign keys referencing relations outside ``relation_ids``
    are dropped.
    """

    def __init__(self, relation_ids: Iterable[RelId]) -> None:
        self.relation_ids = frozenset(relation_ids)

    def assemble(self, table: RelId, rows: Iterable[ImportedKeyRow]) -> List[ForeignKey]:
        fks: List[ForeignKey] = []
        current: Optional[_ForeignKeyAccumulator] = None

        for row in rows:
            if row.key_seq == 1:
                self._finish(current, fks)
                current = _ForeignKeyAccumulator(row.fk_name, table, row.pk_rel_id)
            elif current is None:
                raise MetadataSourceError(
                    f"Imported key row with sequence {row.key_seq} precedes any first component for table '{table}'"
                )
            current.add(row)

        self._finish(current, fks)
        return fks

    def _finish(self, acc: Optional[_ForeignKeyAccumulator], fks: List[ForeignKey]) -> None:
        if acc is None:
            return
        if acc.target in self.relation_ids:
            fks.append(acc.build())
        else:
            logger.debug(
                "Dropping foreign key %s from %s: referenced relation %s is not included",
                acc.constraint_name,
                acc.source,
                acc.target,
            )


__all__ = [
    "PrimaryKeyLookup",
    "index_primary_keys",
    "RelationMetadataBuilder",
    "ForeignKeyAssembler",
]
