"""Shared parsing helpers for configuration values and CLI index expressions."""

from __future__ import annotations


_TRUE_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def parse_bounded_float(value: object, field_name: str, *, minimum: float, maximum: float) -> float:
    """Parse a float and require it to lie inside an inclusive range.

    Raises:
        ValueError: If the value is not numeric or falls outside the range.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a number between {minimum} and {maximum}.")
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(
            f"`{field_name}` must be a number between {minimum} and {maximum}."
        ) from exc
    if not minimum <= parsed <= maximum:
        raise ValueError(f"`{field_name}` must be a number between {minimum} and {maximum}.")
    return parsed


def parse_index_expression(expression: str) -> list[int]:
    """Parse comma-separated token indices and inclusive ranges like `3,5-9`.

    Returns:
        Indices in the order they appear; ranges expand in ascending order.

    Raises:
        ValueError: If any item is not a non-negative integer or valid range.
    """

    indices: list[int] = []
    for raw_item in expression.split(","):
        item = raw_item.strip()
        if not item:
            continue
        if "-" in item:
            start_text, end_text = item.split("-", 1)
            if not start_text.strip().isdigit() or not end_text.strip().isdigit():
                raise ValueError(f"Invalid index range `{item}`.")
            start = int(start_text)
            end = int(end_text)
            if end < start:
                raise ValueError(f"Index range `{item}` is descending.")
            indices.extend(range(start, end + 1))
            continue
        if not item.isdigit():
            raise ValueError(f"Invalid token index `{item}`.")
        indices.append(int(item))
    return indices
