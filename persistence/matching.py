"""
Key-path matching over decoded JSON documents.

A key-path such as "a.b.0" walks dicts by key and lists by decimal index. Test
values are either literal strings (exact equality with a string value) or compiled
patterns (`re.Pattern.search` against a string, or against the JSON text of a
number or bool).
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Union

TestValue = Union[str, re.Pattern[str]]

STR_TAG = "str:"
REGEX_TAG = "regex:"


class _NotFound:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND: Any = _NotFound()


class InvalidTestValueError(ValueError):
    pass


def resolve_path(document: Any, path: str) -> Any:
    current = document
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return NOT_FOUND
            current = current[segment]
        elif isinstance(current, list):
            if not segment.isdigit():
                return NOT_FOUND
            index = int(segment)
            if index >= len(current):
                return NOT_FOUND
            current = current[index]
        else:
            return NOT_FOUND
    return current


def _pattern_subject(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    # 1.0 reads as "1", the way numbers are printed in JavaScript
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    if isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return None


def matches(value: Any, test_values: Iterable[TestValue]) -> bool:
    if value is NOT_FOUND:
        return False
    for test in test_values:
        if isinstance(test, str):
            if isinstance(value, str) and value == test:
                return True
        elif isinstance(test, re.Pattern):
            subject = _pattern_subject(value)
            if subject is not None and test.search(subject):
                return True
        else:
            raise InvalidTestValueError(f"test values must be str or re.Pattern, got {type(test).__name__}")
    return False


def document_matches(document: Any, path: str, test_values: Iterable[TestValue]) -> bool:
    return matches(resolve_path(document, path), test_values)


def parse_test_values(raw: Any) -> list[TestValue]:
    """
    Turn wire-tagged values ("str:<literal>", "regex:<pattern>") into test values.
    """
    if isinstance(raw, str) or not isinstance(raw, list):
        raise InvalidTestValueError("values must be a list of tagged strings")
    parsed: list[TestValue] = []
    for value in raw:
        if not isinstance(value, str):
            raise InvalidTestValueError(f"test value must be a string, got {type(value).__name__}")
        if value.startswith(STR_TAG):
            parsed.append(value[len(STR_TAG):])
        elif value.startswith(REGEX_TAG):
            try:
                parsed.append(re.compile(value[len(REGEX_TAG):]))
            except re.error as e:
                raise InvalidTestValueError(f"invalid pattern {value!r}: {e}") from e
        else:
            raise InvalidTestValueError(f"test value must start with '{STR_TAG}' or '{REGEX_TAG}': {value!r}")
    return parsed
