"""Coverage report generation.

Coverage events are collapsed to a covered-rule set per decision key and
cross-referenced with the full rule inventory of every source file. File
and decision order follow discovery and catalog order, so the same inputs
always render the same report.
"""

from __future__ import annotations

import logging
import sys
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

import yaml

from .catalog import RuleCatalog
from .errors import CoverageIntegrityError, DecisionError, RuleNotFoundError
from .models import (
    AggregateCoverageReport,
    CoverageEvent,
    DecisionCoverageReport,
    FileCoverageReport,
)

logger = logging.getLogger(__name__)

REPORT_HEADER = "=== DMN Test Coverage Report (YAML) ==="
REPORT_FOOTER = "=== End of Coverage Report ==="


class CoverageReportGenerator:
    """Builds coverage reports from recorded events.

    With ``strict=True`` an event naming a rule its decision does not
    define raises :class:`CoverageIntegrityError`; otherwise it is logged
    at ERROR and that decision is left out of the report.
    """

    def __init__(self, catalog: RuleCatalog | None = None, strict: bool = False):
        self.catalog = catalog or RuleCatalog()
        self.strict = strict

    def generate(
        self,
        source_files: Iterable[str | Path],
        events: Iterable[CoverageEvent],
    ) -> AggregateCoverageReport:
        """Build the coverage report for ``source_files``.

        Events are attributed to the file they were recorded against. A
        file that cannot be re-read is logged and left out; the tests that
        exercised it have already reported their own outcome.

        Raises:
            CoverageIntegrityError: In strict mode, if an event names a rule
                the decision does not define.
        """
        events = list(events)
        report = AggregateCoverageReport()
        for path in source_files:
            covered: dict[str, set[str]] = defaultdict(set)
            for event in events:
                if event.belongs_to(path):
                    covered[event.decision_key].add(event.rule_id)
            try:
                report.files[str(path)] = self._file_report(path, covered)
            except CoverageIntegrityError:
                raise
            except DecisionError as e:
                logger.warning(f"Skipping {path} in coverage report: {e}")
        return report

    def _file_report(self, path: str | Path, covered: dict[str, set[str]]) -> FileCoverageReport:
        file_report = FileCoverageReport(path=str(path))
        for decision_key in self.catalog.list_decision_keys(path):
            try:
                rule_ids = [rule.rule_id for rule in self.catalog.list_rules(path, decision_key)]
            except RuleNotFoundError:
                rule_ids = []
            try:
                file_report.decisions[decision_key] = self._decision_report(
                    path, decision_key, rule_ids, covered.get(decision_key, set())
                )
            except CoverageIntegrityError as e:
                if self.strict:
                    raise
                logger.error(f"Leaving decision '{decision_key}' out of coverage report: {e}")
        return file_report

    @staticmethod
    def _decision_report(
        path: str | Path, decision_key: str, rule_ids: list[str], covered_ids: set[str]
    ) -> DecisionCoverageReport:
        unknown = covered_ids.difference(rule_ids)
        if unknown:
            raise CoverageIntegrityError(
                f"Coverage events for decision '{decision_key}' in {path} reference "
                f"unknown rules: {sorted(unknown)}"
            )
        return DecisionCoverageReport(
            total_rules=len(rule_ids),
            covered_rules=len(covered_ids),
            uncovered_rules=tuple(rule_id for rule_id in rule_ids if rule_id not in covered_ids),
        )


def render_report(report: AggregateCoverageReport) -> str:
    return yaml.safe_dump(report.to_dict(), default_flow_style=False, sort_keys=False)


def write_report(
    report: AggregateCoverageReport,
    stream: TextIO | None = None,
    path: str | Path | None = None,
) -> str:
    """Write the framed YAML report to ``stream`` and optionally to ``path``."""
    dump = render_report(report)
    stream = stream or sys.stdout
    stream.write(f"\n{REPORT_HEADER}\n{dump}{REPORT_FOOTER}\n")
    stream.flush()
    if path:
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(dump)
        logger.info(f"Wrote coverage report to {output}")
    return dump
