"""Data models for decision evaluation and coverage."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

SUMMARY_KEY = "_summary"


def coverage_ratio(covered: int, total: int) -> float:
    """Covered fraction; a decision without rules counts as fully covered."""
    if total == 0:
        return 1.0
    return covered / total


@dataclass(frozen=True)
class DecisionRef:
    """Locates a decision table: source file plus decision key."""

    source: str
    decision_key: str


@dataclass(frozen=True)
class RuleDescriptor:
    """One row of a decision table, as raw condition and output text."""

    rule_id: str
    input_entries: tuple[str, ...] = ()
    output_entries: tuple[str, ...] = ()


@dataclass(frozen=True)
class MatchedRule:
    rule_id: str
    outputs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EvaluationEvent:
    """Emitted by the engine once per evaluated decision table."""

    decision_key: str
    inputs: dict[str, Any]
    matched_rules: tuple[MatchedRule, ...] = ()

    @property
    def matched_rule_ids(self) -> list[str]:
        return [rule.rule_id for rule in self.matched_rules]


@dataclass(frozen=True)
class CoverageEvent:
    """Records that a rule fired for one evaluation call.

    ``source`` is the file the decision was loaded from; events without
    one are attributed to every file defining ``decision_key``.
    """

    decision_key: str
    rule_id: str
    parameters: dict[str, Any] = field(default_factory=dict)
    source: str | None = None

    def belongs_to(self, path: str | Path) -> bool:
        return self.source is None or Path(self.source) == Path(path)


@dataclass(frozen=True)
class CoverageSummary:
    total_rules: int
    covered_rules: int

    @property
    def coverage(self) -> float:
        return coverage_ratio(self.covered_rules, self.total_rules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRules": self.total_rules,
            "coveredRules": self.covered_rules,
            "coverage": self.coverage,
        }


@dataclass(frozen=True)
class DecisionCoverageReport:
    """Coverage of a single decision table."""

    total_rules: int
    covered_rules: int
    uncovered_rules: tuple[str, ...] = ()

    @property
    def coverage(self) -> float:
        return coverage_ratio(self.covered_rules, self.total_rules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRules": self.total_rules,
            "coveredRules": self.covered_rules,
            "coverage": self.coverage,
            "uncoveredRules": list(self.uncovered_rules),
        }


@dataclass
class FileCoverageReport:
    """Per-decision coverage of one source file, in catalog order."""

    path: str
    decisions: dict[str, DecisionCoverageReport] = field(default_factory=dict)

    @property
    def summary(self) -> CoverageSummary:
        # Sum counts before dividing so large tables weigh more than small ones
        return CoverageSummary(
            total_rules=sum(d.total_rules for d in self.decisions.values()),
            covered_rules=sum(d.covered_rules for d in self.decisions.values()),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            key: report.to_dict() for key, report in self.decisions.items()
        }
        data[SUMMARY_KEY] = self.summary.to_dict()
        return data


@dataclass
class AggregateCoverageReport:
    """Coverage of every discovered source file, in discovery order."""

    files: dict[str, FileCoverageReport] = field(default_factory=dict)

    @property
    def summary(self) -> CoverageSummary:
        return CoverageSummary(
            total_rules=sum(f.summary.total_rules for f in self.files.values()),
            covered_rules=sum(f.summary.covered_rules for f in self.files.values()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {path: report.to_dict() for path, report in self.files.items()}
