"""Unit tests for shared parsing helpers."""

from __future__ import annotations

import pytest

from fluxreader.parsing import (
    normalize_optional_string,
    parse_bounded_float,
    parse_index_expression,
    parse_permissive_boolean,
)


def test_normalize_optional_string() -> None:
    """Blank values should normalize to `None` and others should be stripped."""

    assert normalize_optional_string(None) is None
    assert normalize_optional_string("   ") is None
    assert normalize_optional_string("  es ") == "es"
    assert normalize_optional_string(42) == "42"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (True, True),
        ("yes", True),
        ("ON", True),
        ("0", False),
        ("off", False),
        ("maybe", None),
        ("", None),
    ],
)
def test_parse_permissive_boolean(raw: object, expected: bool | None) -> None:
    """Permissive boolean parsing should accept common tokens only."""

    assert parse_permissive_boolean(raw) is expected


def test_parse_bounded_float() -> None:
    """Bounded floats should accept in-range numbers and reject others."""

    assert parse_bounded_float("1.5", "rate", minimum=0.1, maximum=10.0) == 1.5
    assert parse_bounded_float(10, "rate", minimum=0.1, maximum=10.0) == 10.0
    with pytest.raises(ValueError, match="`rate`"):
        parse_bounded_float("0.05", "rate", minimum=0.1, maximum=10.0)
    with pytest.raises(ValueError):
        parse_bounded_float("fast", "rate", minimum=0.1, maximum=10.0)
    with pytest.raises(ValueError):
        parse_bounded_float(True, "rate", minimum=0.1, maximum=10.0)


def test_parse_index_expression_expands_ranges_in_order() -> None:
    """Index expressions should keep item order and expand inclusive ranges."""

    assert parse_index_expression("4, 0-2,,7") == [4, 0, 1, 2, 7]
    assert parse_index_expression(" 3 - 3 ") == [3]


@pytest.mark.parametrize("expression", ["a", "1-", "-1", "5-2", "1.5"])
def test_parse_index_expression_rejects_invalid_items(expression: str) -> None:
    """Malformed items and descending ranges should raise `ValueError`."""

    with pytest.raises(ValueError):
        parse_index_expression(expression)
