"""Decision-table engine used behind the evaluation wrapper.

The wrapper only depends on the :class:`DecisionEngine` protocol. The
bundled :class:`TableEngine` reads DMN XML and evaluates decision tables
whose cells use the FEEL subset in :mod:`decisions.feel`.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from .errors import DecisionNotFoundError, DecisionParseError
from .feel import compile_unary_tests, evaluate_literal
from .models import EvaluationEvent, MatchedRule

logger = logging.getLogger(__name__)

SINGLE_RESULT_POLICIES = {"UNIQUE", "FIRST", "ANY"}
MULTI_RESULT_POLICIES = {"COLLECT", "RULE ORDER"}
AGGREGATIONS = {"SUM", "MIN", "MAX", "COUNT"}


class EngineEvaluationError(Exception):
    """Raised by the engine when a table cannot produce a result."""


class EvaluationListener(Protocol):
    def notify(self, event: EvaluationEvent) -> None: ...


class DecisionEngine(Protocol):
    """Contract of the external decision-table evaluator."""

    def add_listener(self, listener: EvaluationListener) -> None: ...

    def parse_decision(
        self, source: bytes | str, decision_key: str, origin: str = "<string>"
    ) -> ParsedDecision: ...

    def evaluate_decision(
        self, decision: ParsedDecision, variables: Mapping[str, Any]
    ) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class TableInput:
    label: str
    expression: str


@dataclass(frozen=True)
class TableRule:
    rule_id: str
    input_entries: tuple[str, ...]
    output_entries: tuple[str, ...]


@dataclass(frozen=True)
class DecisionTable:
    hit_policy: str
    aggregation: str | None
    inputs: tuple[TableInput, ...]
    outputs: tuple[str, ...]
    rules: tuple[TableRule, ...]


@dataclass(frozen=True)
class ParsedDecision:
    key: str
    name: str
    table: DecisionTable | None
    required: tuple[ParsedDecision, ...] = ()


# --- DMN XML helpers, shared with the rule catalog ---


def local_name(element: ET.Element) -> str:
    return element.tag.rsplit("}", 1)[-1]


def children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if local_name(child) == name]


def child_text(element: ET.Element) -> str:
    """Text of the ``<text>`` child of an entry or expression element."""
    for text in children(element, "text"):
        return (text.text or "").strip()
    return ""


def read_definitions(source: bytes | str) -> ET.Element:
    """Parse DMN XML and return the ``definitions`` root."""
    try:
        root = ET.fromstring(source)
    except ET.ParseError as e:
        raise DecisionParseError(f"Invalid DMN XML: {e}") from e
    if local_name(root) != "definitions":
        raise DecisionParseError(f"Expected DMN definitions, got <{local_name(root)}>")
    return root


def decision_elements(root: ET.Element) -> list[ET.Element]:
    return children(root, "decision")


def decision_table_element(decision: ET.Element) -> ET.Element | None:
    for table in children(decision, "decisionTable"):
        return table
    return None


def _read_table(element: ET.Element, decision_key: str) -> DecisionTable:
    hit_policy = (element.get("hitPolicy") or "UNIQUE").upper()
    if hit_policy not in SINGLE_RESULT_POLICIES | MULTI_RESULT_POLICIES:
        raise DecisionParseError(
            f"Unsupported hit policy {hit_policy} in decision '{decision_key}'"
        )
    aggregation = element.get("aggregation")
    if aggregation is not None:
        aggregation = aggregation.upper()
        if hit_policy != "COLLECT" or aggregation not in AGGREGATIONS:
            raise DecisionParseError(
                f"Unsupported aggregation {aggregation} in decision '{decision_key}'"
            )

    inputs = []
    for item in children(element, "input"):
        expressions = children(item, "inputExpression")
        expression = child_text(expressions[0]) if expressions else ""
        inputs.append(TableInput(label=item.get("label") or expression, expression=expression))

    outputs = tuple(
        item.get("name") or item.get("label") or item.get("id") or ""
        for item in children(element, "output")
    )

    rules = tuple(
        TableRule(
            rule_id=rule.get("id", ""),
            input_entries=tuple(child_text(entry) for entry in children(rule, "inputEntry")),
            output_entries=tuple(child_text(entry) for entry in children(rule, "outputEntry")),
        )
        for rule in children(element, "rule")
    )
    return DecisionTable(
        hit_policy=hit_policy,
        aggregation=aggregation,
        inputs=tuple(inputs),
        outputs=outputs,
        rules=rules,
    )


class TableEngine:
    """Evaluates DMN decision tables and reports each table to listeners."""

    def __init__(self) -> None:
        self._listeners: list[EvaluationListener] = []

    def add_listener(self, listener: EvaluationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def parse_decision(
        self, source: bytes | str, decision_key: str, origin: str = "<string>"
    ) -> ParsedDecision:
        root = read_definitions(source)
        by_id = {element.get("id"): element for element in decision_elements(root)}
        if decision_key not in by_id:
            raise DecisionNotFoundError(decision_key, origin)
        return self._build(decision_key, by_id, ())

    def _build(
        self, key: str, by_id: dict[str | None, ET.Element], path: tuple[str, ...]
    ) -> ParsedDecision:
        if key in path:
            raise DecisionParseError(f"Cyclic decision requirements: {' -> '.join(path + (key,))}")
        element = by_id.get(key)
        if element is None:
            raise DecisionParseError(f"Required decision '{key}' is not defined")

        required = []
        for requirement in children(element, "informationRequirement"):
            for reference in children(requirement, "requiredDecision"):
                href = (reference.get("href") or "").lstrip("#")
                required.append(self._build(href, by_id, path + (key,)))

        table_element = decision_table_element(element)
        table = _read_table(table_element, key) if table_element is not None else None
        return ParsedDecision(
            key=key,
            name=element.get("name") or key,
            table=table,
            required=tuple(required),
        )

    def evaluate_decision(
        self, decision: ParsedDecision, variables: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        return self._evaluate(decision, dict(variables))

    def _evaluate(self, decision: ParsedDecision, context: dict[str, Any]) -> list[dict[str, Any]]:
        for required in decision.required:
            results = self._evaluate(required, context)
            if len(results) > 1:
                raise EngineEvaluationError(
                    f"Required decision '{required.key}' returned {len(results)} results"
                )
            if results:
                context.update(results[0])

        table = decision.table
        if table is None:
            raise EngineEvaluationError(f"Decision '{decision.key}' has no decision table")

        values = [evaluate_literal(item.expression, context) for item in table.inputs]
        matching = [rule for rule in table.rules if self._matches(rule, values, context)]
        outputs = [
            {
                name: evaluate_literal(entry, context)
                for name, entry in zip(table.outputs, rule.output_entries)
            }
            for rule in matching
        ]
        matching, outputs = self._apply_hit_policy(decision.key, table, matching, outputs)

        event = EvaluationEvent(
            decision_key=decision.key,
            inputs={item.label: value for item, value in zip(table.inputs, values)},
            matched_rules=tuple(
                MatchedRule(rule_id=rule.rule_id, outputs=output)
                for rule, output in zip(matching, outputs)
            ),
        )
        logger.debug(
            f"Decision table '{decision.key}' ({table.hit_policy}) matched "
            f"{len(matching)} of {len(table.rules)} rule(s)"
        )
        for listener in self._listeners:
            listener.notify(event)

        if table.aggregation:
            return [self._aggregate(table, outputs)]
        return outputs

    @staticmethod
    def _matches(rule: TableRule, values: list[Any], context: dict[str, Any]) -> bool:
        return all(
            compile_unary_tests(entry)(value, context)
            for entry, value in zip(rule.input_entries, values)
        )

    @staticmethod
    def _apply_hit_policy(
        key: str,
        table: DecisionTable,
        matching: list[TableRule],
        outputs: list[dict[str, Any]],
    ) -> tuple[list[TableRule], list[dict[str, Any]]]:
        policy = table.hit_policy
        if policy == "UNIQUE" and len(matching) > 1:
            ids = ", ".join(rule.rule_id for rule in matching)
            raise EngineEvaluationError(
                f"Hit policy UNIQUE only allows a single rule to match in '{key}', matched: {ids}"
            )
        if policy == "ANY" and any(output != outputs[0] for output in outputs[1:]):
            raise EngineEvaluationError(
                f"Hit policy ANY requires matching rules to agree on outputs in '{key}'"
            )
        if policy in ("FIRST", "ANY"):
            return matching[:1], outputs[:1]
        return matching, outputs

    @staticmethod
    def _aggregate(table: DecisionTable, outputs: list[dict[str, Any]]) -> dict[str, Any]:
        if len(table.outputs) != 1:
            raise EngineEvaluationError("Aggregation requires exactly one output column")
        name = table.outputs[0]
        values = [output[name] for output in outputs if output.get(name) is not None]
        if table.aggregation == "COUNT":
            return {name: len(values)}
        if not values:
            return {name: None}
        if table.aggregation == "SUM":
            return {name: sum(Decimal(str(value)) for value in values)}
        if table.aggregation == "MIN":
            return {name: min(values)}
        return {name: max(values)}
