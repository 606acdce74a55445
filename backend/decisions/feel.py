"""Minimal FEEL support for decision-table cells.

Covers simple unary tests (``-``, literals, comparisons, intervals,
comma-separated disjunctions, ``not(...)``) for input entries and plain
literals or variable references for output entries.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

_NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
_NAME_PATTERN = re.compile(r"^[A-Za-z_][\w.]*$")
_INTERVAL_PATTERN = re.compile(r"^([\[\(\]])\s*(.+?)\s*\.\.\s*(.+?)\s*([\]\)\[])$")
_COMPARISON_PATTERN = re.compile(r"^(<=|>=|<|>)\s*(.+)$")

_ORDERING_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

Context = Mapping[str, Any]
ValueFn = Callable[[Context], Any]
UnaryTest = Callable[[Any, Context], bool]


class FeelError(Exception):
    """Raised for unsupported or invalid FEEL text."""


def compile_unary_tests(text: str | None) -> UnaryTest:
    """Compile an input entry into ``test(value, context) -> bool``."""
    source = (text or "").strip()
    if source in ("", "-"):
        return lambda value, context: True

    negated = False
    if source.startswith("not(") and source.endswith(")"):
        negated = True
        source = source[4:-1].strip()

    tests = [_compile_positive_test(part) for part in _split_top_level(source)]
    if not tests:
        raise FeelError(f"Empty unary test: {text!r}")

    def matches(value: Any, context: Context) -> bool:
        hit = any(test(value, context) for test in tests)
        return not hit if negated else hit

    return matches


def evaluate_literal(text: str | None, context: Context) -> Any:
    """Evaluate an output entry: a literal or a variable reference."""
    source = (text or "").strip()
    if not source:
        return None
    return _compile_value(source)(context)


def _compile_positive_test(text: str) -> UnaryTest:
    text = text.strip()

    interval = _INTERVAL_PATTERN.match(text)
    if interval:
        start_bracket, low, high, end_bracket = interval.groups()
        low_fn = _compile_value(low)
        high_fn = _compile_value(high)
        low_op = ">=" if start_bracket == "[" else ">"
        high_op = "<=" if end_bracket == "]" else "<"

        def in_interval(value: Any, context: Context) -> bool:
            return _ordered(low_op, value, low_fn(context)) and _ordered(
                high_op, value, high_fn(context)
            )

        return in_interval

    comparison = _COMPARISON_PATTERN.match(text)
    if comparison:
        op, operand = comparison.groups()
        operand_fn = _compile_value(operand)
        return lambda value, context: _ordered(op, value, operand_fn(context))

    expected_fn = _compile_value(text)
    return lambda value, context: _equal(value, expected_fn(context))


def _compile_value(text: str) -> ValueFn:
    text = text.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        literal = text[1:-1].replace('\\"', '"')
        return lambda context: literal
    if _NUMBER_PATTERN.match(text):
        number: int | Decimal = Decimal(text) if "." in text else int(text)
        return lambda context: number
    if text == "true":
        return lambda context: True
    if text == "false":
        return lambda context: False
    if text == "null":
        return lambda context: None
    if _NAME_PATTERN.match(text):

        def lookup(context: Context) -> Any:
            if text not in context:
                raise FeelError(f"Unknown variable: {text}")
            return context[text]

        return lookup
    raise FeelError(f"Unsupported FEEL expression: {text!r}")


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quoted = False
    previous = ""
    for char in text:
        if char == '"' and previous != "\\":
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
        if char == "," and depth == 0 and not quoted:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        previous = char
    if quoted:
        raise FeelError(f"Unterminated string literal: {text!r}")
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _comparable(left: Any, right: Any) -> tuple[Any, Any] | None:
    if _is_number(left) and _is_number(right):
        return Decimal(str(left)), Decimal(str(right))
    if isinstance(left, str) and isinstance(right, str):
        return left, right
    if isinstance(left, bool) and isinstance(right, bool):
        return left, right
    return None


def _equal(value: Any, expected: Any) -> bool:
    if value is None or expected is None:
        return value is None and expected is None
    pair = _comparable(value, expected)
    # Values of different types never match
    return pair is not None and pair[0] == pair[1]


def _ordered(op: str, value: Any, bound: Any) -> bool:
    if value is None or bound is None:
        return False
    pair = _comparable(value, bound)
    if pair is None or isinstance(pair[0], bool):
        return False
    return _ORDERING_OPS[op](*pair)
