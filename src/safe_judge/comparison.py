from __future__ import annotations

import json
import re
from typing import Any, Protocol

_NUMBER_TOKEN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def normalize_text(text: str | None) -> str:
    """Canonicalize program output for comparison.

    Trims the whole text, splits it into lines, trims every line and joins
    them back with a single newline. Internal blank lines survive.

    Example:
        ```python
        assert normalize_text("  5 \\r\\n") == "5"
        ```
    """
    if not isinstance(text, str):
        return ""
    return "\n".join(line.strip() for line in text.strip().split("\n"))


class OutputComparator(Protocol):
    name: str

    def compare(self, expected: str, actual: str) -> bool:
        """Return whether `actual` output satisfies `expected`.

        Example:
            ```python
            ok = comparator.compare("2\\n", "2")
            ```
        """
        ...


class NormalizedTextComparator:
    """Exact equality of the normalized forms of both texts.

    Example:
        ```python
        NormalizedTextComparator().compare("  5 \\n", "5")
        ```
    """

    name = "text"

    def compare(self, expected: str, actual: str) -> bool:
        """Compare normalized texts for exact equality.

        Example:
            ```python
            assert NormalizedTextComparator().compare("1\\n2", "1 \\n2\\n")
            ```
        """
        return normalize_text(expected) == normalize_text(actual)


def _coerce_token(token: str) -> Any:
    """Turn one whitespace-separated token into a number, bool or string.

    Example:
        ```python
        assert _coerce_token("3.5") == 3.5
        ```
    """
    if _NUMBER_TOKEN.match(token):
        if any(char in token for char in ".eE"):
            return float(token)
        return int(token)
    if token == "true":
        return True
    if token == "false":
        return False
    return token


def parse_structured(text: str | None) -> Any:
    """Parse output as JSON, falling back to typed whitespace tokens.

    A single token collapses to a scalar; several tokens become a list.

    Example:
        ```python
        assert parse_structured("1 2 true") == [1, 2, True]
        ```
    """
    clean = (text or "").replace("\r", "").strip()
    try:
        return json.loads(clean)
    except json.JSONDecodeError:
        tokens = [_coerce_token(token) for token in clean.split()]
        if len(tokens) == 1:
            return tokens[0]
        return tokens


def _is_number(value: Any) -> bool:
    """Report whether a value is numeric but not a bool.

    Example:
        ```python
        assert _is_number(1.5) and not _is_number(True)
        ```
    """
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def deep_equal(left: Any, right: Any) -> bool:
    """Type-aware structural equality over parsed output values.

    Numbers compare by value regardless of int/float, but a bool never
    equals a number and a string never equals a number.

    Example:
        ```python
        assert deep_equal([1, {"a": 2.0}], [1.0, {"a": 2}])
        ```
    """
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    if isinstance(left, list):
        return len(left) == len(right) and all(deep_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, dict):
        if left.keys() != right.keys():
            return False
        return all(deep_equal(left[key], right[key]) for key in left)
    return left == right


class StructuralComparator:
    """JSON/token aware comparison with numeric and boolean coercion.

    Example:
        ```python
        StructuralComparator().compare("[1, 2]", "1 2")
        ```
    """

    name = "structural"

    def compare(self, expected: str, actual: str) -> bool:
        """Compare the parsed structures of both texts.

        Example:
            ```python
            assert StructuralComparator().compare("3", "3.0")
            ```
        """
        return deep_equal(parse_structured(expected), parse_structured(actual))


_COMPARATORS: dict[str, type[NormalizedTextComparator] | type[StructuralComparator]] = {
    NormalizedTextComparator.name: NormalizedTextComparator,
    StructuralComparator.name: StructuralComparator,
}


def get_comparator(name: str = "text") -> OutputComparator:
    """Return a comparator strategy by name.

    Example:
        ```python
        comparator = get_comparator("structural")
        ```
    """
    try:
        return _COMPARATORS[name]()
    except KeyError:
        raise ValueError(f"Unknown comparison strategy '{name}'") from None


def compare_output(expected: str, actual: str) -> bool:
    """Compare with the default normalized-text strategy.

    Example:
        ```python
        assert compare_output("2\\n", "2")
        ```
    """
    return NormalizedTextComparator().compare(expected, actual)
