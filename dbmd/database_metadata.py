"""Read-side access to a stored metadata artifact, as used by downstream generators."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from dbmd.exceptions import AmbiguousForeignKeyError, ConfigurationError, RelationNotFoundError
from dbmd.models import CaseSensitivity, ForeignKey, RelId, RelMetadata, StoredDatabaseMetadata
from dbmd.utils.identifiers import make_rel_id, normalize_identifier


class DatabaseMetadata:
    """A StoredDatabaseMetadata plus lookup indexes by relation id."""

    def __init__(self, stored: StoredDatabaseMetadata) -> None:
        self.stored = stored
        self._rel_mds: Dict[RelId, RelMetadata] = {
            rel_md.relation_id: rel_md for rel_md in stored.relation_metadatas
        }
        self._fks_from: Dict[RelId, List[ForeignKey]] = defaultdict(list)
        self._fks_to: Dict[RelId, List[ForeignKey]] = defaultdict(list)
        for fk in stored.foreign_keys:
            self._fks_from[fk.foreign_key_relation_id].append(fk)
            self._fks_to[fk.primary_key_relation_id].append(fk)

    @property
    def case_sensitivity(self) -> CaseSensitivity:
        return self.stored.case_sensitivity

    @property
    def relation_metadatas(self) -> Tuple[RelMetadata, ...]:
        return self.stored.relation_metadatas

    @property
    def foreign_keys(self) -> Tuple[ForeignKey, ...]:
        return self.stored.foreign_keys

    def make_rel_id(self, qualified_name: str, default_schema: Optional[str] = None) -> RelId:
        """Relation id for a possibly-qualified, possibly-quoted name typed by a user."""
        return make_rel_id(qualified_name, default_schema, self.case_sensitivity)

    def get_relation_metadata(self, rel_id: RelId) -> Optional[RelMetadata]:
        return self._rel_mds.get(rel_id)

    def primary_key_field_names(self, rel_id: RelId, alias: Optional[str] = None) -> List[str]:
        rel_md = self.get_relation_metadata(rel_id)
        if rel_md is None:
            raise RelationNotFoundError(f"Relation metadata not found for relation id '{rel_id}'")
        return [f"{alias}.{f.name}" if alias else f.name for f in rel_md.primary_key_fields()]

    def foreign_keys_from(self, rel_id: RelId) -> List[ForeignKey]:
        return list(self._fks_from.get(rel_id, ()))

    def foreign_keys_to(self, rel_id: RelId) -> List[ForeignKey]:
        return list(self._fks_to.get(rel_id, ()))

    def foreign_key_from_to(
        self,
        from_rel_id: RelId,
        to_rel_id: RelId,
        field_names: Optional[Iterable[str]] = None,
    ) -> Optional[ForeignKey]:
        """The single foreign key from one relation to another.

        When ``field_names`` is given, only the key whose source fields are
        exactly that set (after case normalization) qualifies. More than one
        qualifying key raises AmbiguousForeignKeyError.
        """
        wanted = (
            None if field_names is None
            else {normalize_identifier(name, self.case_sensitivity) for name in field_names}
        )
        found: Optional[ForeignKey] = None
        for fk in self.foreign_keys_from(from_rel_id):
            if fk.primary_key_relation_id != to_rel_id:
                continue
            if wanted is not None and set(fk.foreign_key_field_names) != wanted:
                continue
            if found is not None:
                detail = (
                    "with the same specified foreign key fields"
                    if wanted is not None
                    else "and no foreign key fields were specified to disambiguate"
                )
                raise AmbiguousForeignKeyError(
                    f"Multiple foreign key constraints exist from {from_rel_id} to {to_rel_id} {detail}"
                )
            found = fk
        return found


def read_database_metadata(path: Union[str, Path]) -> DatabaseMetadata:
    """Load a JSON or YAML artifact written by ``dbmd-fetch``."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Database metadata file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            stored = StoredDatabaseMetadata.model_validate(yaml.safe_load(text))
        else:
            stored = StoredDatabaseMetadata.model_validate_json(text)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid database metadata in {path}: {exc}") from exc
    return DatabaseMetadata(stored)


__all__ = ["DatabaseMetadata", "read_database_metadata"]
