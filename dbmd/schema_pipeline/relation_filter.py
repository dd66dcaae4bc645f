"""Include/exclude filtering of relations by full-match regular expressions."""

from __future__ import annotations

import base64
import binascii
import re
from re import Pattern
from typing import Optional

from dbmd.exceptions import PatternError
from dbmd.models import RelId

DEFAULT_INCLUDE_REGEX = ".*"
DEFAULT_EXCLUDE_REGEX = "^$"


def compile_pattern(regex: Optional[str], *, option: str = "pattern") -> Optional[Pattern[str]]:
    if regex is None:
        return None
    try:
        return re.compile(regex)
    except re.error as exc:
        raise PatternError(f"Invalid {option} '{regex}': {exc}") from exc


def decode_base64_pattern(encoded: str, *, option: str = "pattern") -> str:
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise PatternError(f"Invalid base64 {option} '{encoded}': {exc}") from exc


def _matches(pattern: Optional[Pattern[str]], text: str, default: bool) -> bool:
    return default if pattern is None else pattern.fullmatch(text) is not None


def is_relation_included(
    rel_id: RelId | str,
    include: Optional[Pattern[str]] = None,
    exclude: Optional[Pattern[str]] = None,
) -> bool:
    """Whether a relation passes the filter.

    Patterns must match the whole ``schema.name`` (or bare ``name``) text. A
    missing include pattern matches everything, a missing exclude matches nothing.
    """
    text = rel_id if isinstance(rel_id, str) else rel_id.id_string
    return _matches(include, text, True) and not _matches(exclude, text, False)


__all__ = [
    "DEFAULT_INCLUDE_REGEX",
    "DEFAULT_EXCLUDE_REGEX",
    "compile_pattern",
    "decode_base64_pattern",
    "is_relation_included",
]
