import base64
import re

import pytest

from dbmd.exceptions import PatternError
from dbmd.models import RelId
from dbmd.schema_pipeline.relation_filter import (
    DEFAULT_EXCLUDE_REGEX,
    DEFAULT_INCLUDE_REGEX,
    compile_pattern,
    decode_base64_pattern,
    is_relation_included,
)

NAMES = ["orders", "public.orders", "order_items_view", "", "a.b.c"]


@pytest.mark.parametrize("name", NAMES)
def test_no_patterns_include_everything(name: str) -> None:
    assert is_relation_included(name)


@pytest.mark.parametrize("name", NAMES)
def test_include_only_is_a_full_match(name: str) -> None:
    include = re.compile("order.*")
    assert is_relation_included(name, include) == (include.fullmatch(name) is not None)


@pytest.mark.parametrize("name", NAMES)
def test_exclude_only_is_the_negated_full_match(name: str) -> None:
    exclude = re.compile(".*_view")
    assert is_relation_included(name, None, exclude) == (exclude.fullmatch(name) is None)


def test_patterns_match_the_qualified_name() -> None:
    rel_id = RelId(schema_name="public", name="orders")
    assert not is_relation_included(rel_id, re.compile("orders"))
    assert is_relation_included(rel_id, re.compile(r"public\.orders"))
    assert not is_relation_included(rel_id, re.compile("public"))


def test_exclude_wins_over_include() -> None:
    assert not is_relation_included("order_items_view", re.compile("order.*"), re.compile(".*_view"))


def test_default_patterns_include_all_and_exclude_none() -> None:
    include = compile_pattern(DEFAULT_INCLUDE_REGEX)
    exclude = compile_pattern(DEFAULT_EXCLUDE_REGEX)
    assert all(is_relation_included(name, include, exclude) for name in NAMES if name)


def test_compile_pattern_reports_invalid_syntax() -> None:
    assert compile_pattern(None) is None
    with pytest.raises(PatternError, match="include pattern"):
        compile_pattern("(unclosed", option="include pattern")


def test_decode_base64_pattern() -> None:
    encoded = base64.b64encode(b"order.*|.*\\.items").decode("ascii")
    assert decode_base64_pattern(encoded) == "order.*|.*\\.items"
    with pytest.raises(PatternError):
        decode_base64_pattern("not base64!")
