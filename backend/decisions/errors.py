"""Exception taxonomy for decision evaluation and coverage reporting."""

from __future__ import annotations

from typing import Any


class DecisionError(Exception):
    """Base class for every error raised by the decisions package."""


class SourceNotFoundError(DecisionError):
    """Raised when a decision-table source cannot be read."""

    def __init__(self, path: str):
        super().__init__(f"DMN file not found: {path}")
        self.path = path


class DecisionParseError(DecisionError):
    """Raised when a decision-table source is not valid DMN."""


class DecisionNotFoundError(DecisionError):
    """Raised when a decision key is absent from a loaded source."""

    def __init__(self, decision_key: str, source: str):
        super().__init__(f"Decision '{decision_key}' not found in DMN file: {source}")
        self.decision_key = decision_key
        self.source = source


class RuleNotFoundError(DecisionError):
    """Raised when a decision has no rule table or an empty one."""

    def __init__(self, rule_id: str, decision_key: str, source: str):
        super().__init__(
            f"Rule '{rule_id}' not found in decision '{decision_key}' in DMN file: {source}"
        )
        self.rule_id = rule_id
        self.decision_key = decision_key
        self.source = source


class AmbiguousEvaluationError(DecisionError):
    """Raised when an evaluation did not match any rule."""

    def __init__(self, message: str, decision_key: str):
        super().__init__(message)
        self.decision_key = decision_key


class EvaluationError(DecisionError):
    """Raised for any other failure during evaluation.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, decision_key: str):
        super().__init__(message)
        self.decision_key = decision_key


class SpecificationError(DecisionError):
    """Raised when a YAML test specification is malformed."""

    def __init__(self, message: str, path: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.path = path
        self.errors = errors or []


class CoverageIntegrityError(DecisionError):
    """Raised when a coverage event names a rule the catalog does not know."""
