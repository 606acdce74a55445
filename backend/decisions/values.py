"""Scalar values exchanged with decision tables.

Specification files are loosely typed YAML, so every ``in`` value and the
expected ``out`` value are classified into a :class:`SpecValue` when the
file is loaded. Evaluation results go through the same conversion rules
when read back through the typed accessors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class ScalarKind(str, Enum):
    """Kinds of scalar accepted in a specification file."""

    STRING = "string"
    BOOLEAN = "boolean"
    NUMBER = "number"
    NULL = "null"


@dataclass(frozen=True)
class SpecValue:
    """A scalar tagged with its kind."""

    kind: ScalarKind
    value: Any

    @classmethod
    def of(cls, raw: Any) -> SpecValue:
        """Classify a raw YAML value.

        Raises:
            ValueError: If the value is a mapping, sequence or other non-scalar.
        """
        if raw is None:
            return cls(ScalarKind.NULL, None)
        # bool is a subclass of int, check it first
        if isinstance(raw, bool):
            return cls(ScalarKind.BOOLEAN, raw)
        if isinstance(raw, (int, float, Decimal)):
            return cls(ScalarKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ScalarKind.STRING, raw)
        if isinstance(raw, (date, datetime)):
            return cls(ScalarKind.STRING, raw.isoformat())
        raise ValueError(f"Expected a scalar value, got {type(raw).__name__}")

    def as_text(self) -> str:
        return render_scalar(self.value)


def render_scalar(value: Any) -> str:
    """Render a scalar the way decision outputs are compared."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (float, Decimal)):
        number = value if isinstance(value, Decimal) else Decimal(str(value))
        if number.is_finite():
            # 1.50 and 1.5 render alike
            return format(number.normalize(), "f")
    return str(value)


def to_boolean(value: Any) -> bool:
    """Convert a native boolean or the literal ``"true"``/``"false"``.

    Raises:
        ValueError: For any other string.
        TypeError: For any other type.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise ValueError(f"Not a boolean literal: {value!r}")
    raise TypeError(f"Cannot convert {type(value).__name__} to boolean")


def to_number(value: Any) -> Decimal:
    """Convert a native number or a decimal string to ``Decimal``.

    Raises:
        ValueError: For strings that are not decimal numbers.
        TypeError: For any other type, booleans included.
    """
    if isinstance(value, bool):
        raise TypeError("Cannot convert bool to number")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a decimal number: {value!r}") from e
        if not number.is_finite():
            raise ValueError(f"Not a finite decimal number: {value!r}")
        return number
    raise TypeError(f"Cannot convert {type(value).__name__} to number")
