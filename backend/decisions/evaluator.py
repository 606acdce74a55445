"""Coverage-aware wrapper around the decision-table engine.

Every evaluation must be decided by at least one rule: a call in which no
rule matched raises :class:`AmbiguousEvaluationError` instead of returning
an empty result. Any other failure surfaces as :class:`EvaluationError`
with the engine's exception chained, so callers only ever handle those two
kinds.

Example:
    evaluator = DecisionEvaluator(collect_coverage=True)
    decision = evaluator.load_decision("tables/age.dmn", "Adult")
    decision.evaluate_to_string({"age": 25})  # "Adult"
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from .coverage import CoverageCollector
from .engine import DecisionEngine, ParsedDecision, TableEngine
from .errors import AmbiguousEvaluationError, EvaluationError, SourceNotFoundError
from .listener import EventCapture
from .models import CoverageEvent, DecisionRef, EvaluationEvent
from .values import render_scalar, to_boolean, to_number

logger = logging.getLogger(__name__)


class TypedResult:
    """Result rows of one evaluation, with typed access to the single entry."""

    def __init__(self, decision_key: str, entries: list[dict[str, Any]]):
        self.decision_key = decision_key
        self._entries = entries

    @property
    def entries(self) -> list[dict[str, Any]]:
        return [dict(entry) for entry in self._entries]

    def single_result(self) -> dict[str, Any] | None:
        if len(self._entries) > 1:
            raise EvaluationError(
                f"Decision '{self.decision_key}' returned {len(self._entries)} results, "
                "expected a single result",
                self.decision_key,
            )
        return dict(self._entries[0]) if self._entries else None

    def single_entry(self) -> Any:
        result = self.single_result()
        if result is None:
            return None
        if len(result) != 1:
            raise EvaluationError(
                f"Decision '{self.decision_key}' returned {len(result)} output entries, "
                "expected a single entry",
                self.decision_key,
            )
        return next(iter(result.values()))

    def to_string(self) -> str:
        return self._convert(_scalar_text, "string")

    def to_boolean(self) -> bool:
        return self._convert(to_boolean, "boolean")

    def to_number(self) -> Decimal:
        return self._convert(to_number, "number")

    def _convert(self, converter: Callable[[Any], Any], target: str) -> Any:
        value = self.single_entry()
        try:
            return converter(value)
        except (TypeError, ValueError) as e:
            raise EvaluationError(
                f"Cannot convert result of decision '{self.decision_key}' to {target}: {e}",
                self.decision_key,
            ) from e

    def __repr__(self) -> str:
        return f"TypedResult({self.decision_key!r}, {self._entries!r})"


def _scalar_text(value: Any) -> str:
    if value is None:
        raise ValueError("decision produced no output")
    if isinstance(value, (dict, list, tuple, set)):
        raise TypeError(f"{type(value).__name__} is not a scalar")
    return render_scalar(value)


class DecisionHandle:
    """A loaded decision bound to the evaluator that loaded it."""

    def __init__(self, evaluator: DecisionEvaluator, decision: ParsedDecision, ref: DecisionRef):
        self._evaluator = evaluator
        self._decision = decision
        self.ref = ref

    @property
    def decision_key(self) -> str:
        return self.ref.decision_key

    def evaluate(self, inputs: Mapping[str, Any]) -> TypedResult:
        """Evaluate the decision for ``inputs``.

        Raises:
            AmbiguousEvaluationError: If no rule matched.
            EvaluationError: For any other failure, including ``inputs=None``.
        """
        key = self.decision_key
        capture = self._evaluator.capture
        capture.clear()
        try:
            if not isinstance(inputs, Mapping):
                raise TypeError(f"inputs must be a mapping, got {type(inputs).__name__}")
            entries = self._evaluator.engine.evaluate_decision(self._decision, inputs)
            events = capture.events()
        except Exception as e:
            raise EvaluationError(f"Error evaluating decision: {key}", key) from e
        finally:
            capture.clear()

        if not events:
            raise AmbiguousEvaluationError(f"No evaluation events for decision: {key}", key)
        if not any(event.matched_rules for event in events):
            raise AmbiguousEvaluationError(f"No rules matched for decision: {key}", key)

        self._evaluator.record_coverage(events, inputs, source=self.ref.source)
        _log_history(key, events)
        return TypedResult(key, entries)

    def evaluate_to_string(self, inputs: Mapping[str, Any]) -> str:
        return self.evaluate(inputs).to_string()

    def evaluate_to_boolean(self, inputs: Mapping[str, Any]) -> bool:
        return self.evaluate(inputs).to_boolean()

    def evaluate_to_number(self, inputs: Mapping[str, Any]) -> Decimal:
        return self.evaluate(inputs).to_number()


class DecisionEvaluator:
    """Loads decisions and evaluates them through one engine instance.

    An evaluator owns a single event capture buffer, so it should be used
    by one caller at a time; create one per test case.
    """

    def __init__(
        self,
        engine: DecisionEngine | None = None,
        collect_coverage: bool = False,
        collector: CoverageCollector | None = None,
    ):
        self.engine = engine or TableEngine()
        self.capture = EventCapture()
        self.engine.add_listener(self.capture)
        self.collect_coverage = collect_coverage
        self.collector = collector
        self._coverage_events: list[CoverageEvent] = []

    def load_decision(self, path: str | Path, decision_key: str) -> DecisionHandle:
        path = Path(path)
        try:
            source = path.read_bytes()
        except OSError as e:
            raise SourceNotFoundError(str(path)) from e
        decision = self.engine.parse_decision(source, decision_key, origin=str(path))
        return DecisionHandle(self, decision, DecisionRef(str(path), decision_key))

    def load_decision_from_string(self, source: str, decision_key: str) -> DecisionHandle:
        decision = self.engine.parse_decision(source, decision_key)
        return DecisionHandle(self, decision, DecisionRef("<string>", decision_key))

    def coverage_events(self) -> list[CoverageEvent]:
        return list(self._coverage_events)

    def record_coverage(
        self,
        events: list[EvaluationEvent],
        inputs: Mapping[str, Any],
        source: str | None = None,
    ) -> None:
        if not self.collect_coverage:
            return
        recorded = [
            CoverageEvent(
                decision_key=event.decision_key,
                rule_id=rule.rule_id,
                parameters=copy.deepcopy(dict(inputs)),
                source=source,
            )
            for event in events
            for rule in event.matched_rules
        ]
        self._coverage_events.extend(recorded)
        if self.collector is not None:
            self.collector.record(recorded)


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _log_history(decision_key: str, events: list[EvaluationEvent]) -> None:
    if not logger.isEnabledFor(logging.INFO):
        return
    history = [
        {
            "decisionTable": event.decision_key,
            "inputs": _plain(event.inputs),
            "matchedRules": [
                {"ruleId": rule.rule_id, "outputs": _plain(rule.outputs)}
                for rule in event.matched_rules
            ],
        }
        for event in events
    ]
    dump = yaml.safe_dump(history, default_flow_style=False, sort_keys=False)
    logger.info(
        f"\n=== DMN Evaluation History (YAML) for decision: '{decision_key}' ===\n"
        f"{dump}=== End of History ==="
    )
