"""Identifier case handling for database names."""

from __future__ import annotations

import re
from typing import Optional, Protocol, Tuple

from dbmd.models import CaseSensitivity, RelId

_QUOTED_SCHEMA = re.compile(r'^("[^"]+")\.')
_UNQUOTED_SCHEMA = re.compile(r'^([^."]+)\.')
_QUOTED_RELATION = re.compile(r'("[^"]+")$')
_UNQUOTED_RELATION = re.compile(r'([^".]+)$')


class IdentifierStorage(Protocol):
    def stores_lower_case_identifiers(self) -> bool: ...

    def stores_upper_case_identifiers(self) -> bool: ...

    def stores_mixed_case_identifiers(self) -> bool: ...


def detect_case_sensitivity(source: IdentifierStorage) -> CaseSensitivity:
    if source.stores_lower_case_identifiers():
        return CaseSensitivity.INSENSITIVE_STORED_LOWER
    if source.stores_upper_case_identifiers():
        return CaseSensitivity.INSENSITIVE_STORED_UPPER
    if source.stores_mixed_case_identifiers():
        return CaseSensitivity.INSENSITIVE_STORED_MIXED
    return CaseSensitivity.SENSITIVE


def is_quoted(identifier: str) -> bool:
    return len(identifier) >= 2 and identifier.startswith('"') and identifier.endswith('"')


def normalize_identifier(identifier: str, case_sensitivity: CaseSensitivity) -> str:
    """Fold an unquoted identifier the way the database stores it.

    Quoted identifiers are returned unchanged, quoting opts out of folding.
    """
    if is_quoted(identifier):
        return identifier
    if case_sensitivity is CaseSensitivity.INSENSITIVE_STORED_LOWER:
        return identifier.lower()
    if case_sensitivity is CaseSensitivity.INSENSITIVE_STORED_UPPER:
        return identifier.upper()
    return identifier


def exact_unquoted_name(name: str, case_sensitivity: CaseSensitivity) -> str:
    """Strip double quotes from a quoted name, or fold an unquoted one."""
    if is_quoted(name):
        return name[1:-1]
    return normalize_identifier(name, case_sensitivity)


def split_schema_and_relation(qualified_name: str) -> Tuple[Optional[str], Optional[str]]:
    """Split ``[schema.]relation`` where either part may be double-quoted."""
    schema_match = _UNQUOTED_SCHEMA.match(qualified_name) or _QUOTED_SCHEMA.match(qualified_name)
    relation_match = _UNQUOTED_RELATION.search(qualified_name) or _QUOTED_RELATION.search(qualified_name)
    return (
        schema_match.group(1) if schema_match else None,
        relation_match.group(1) if relation_match else None,
    )


def make_rel_id(
    qualified_name: str,
    default_schema: Optional[str],
    case_sensitivity: CaseSensitivity,
) -> RelId:
    schema, relation = split_schema_and_relation(qualified_name)
    if not relation:
        raise ValueError(f"Invalid relation name: '{qualified_name}'")
    schema = schema or default_schema
    return RelId(
        schema_name=exact_unquoted_name(schema, case_sensitivity) if schema else None,
        name=exact_unquoted_name(relation, case_sensitivity),
    )


__all__ = [
    "IdentifierStorage",
    "detect_case_sensitivity",
    "is_quoted",
    "normalize_identifier",
    "exact_unquoted_name",
    "split_schema_and_relation",
    "make_rel_id",
]
