"""Declarative test runner for DMN decision tables.

Every ``<name>.dmn`` under the source root is paired with a
``<name>.yaml`` specification under the spec root. Each entry of the
specification's ``tests`` list becomes one executable case:

    tests:
      - description: "Happy path"
        decision: "Adult"        # mandatory
        in:                      # input variables, optional
          age: 25
        out: "Adult"             # expected single-entry result, mandatory

Sources without a specification are skipped, so decision tables that are
not under test can live in the same tree.

Usage:
    with DecisionTestSession("tests/resources") as session:
        outcomes = session.run_all(max_workers=4)
    # the coverage report is written when the block exits
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .coverage import CoverageCollector
from .errors import DecisionError, SpecificationError
from .evaluator import DecisionEvaluator
from .models import AggregateCoverageReport
from .report import CoverageReportGenerator, write_report
from .values import SpecValue

logger = logging.getLogger(__name__)

SOURCE_PATTERN = "*.dmn"
SPEC_SUFFIXES = (".yaml", ".yml")


class DecisionTestCase(BaseModel):
    """One entry of a specification file's ``tests`` list."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: str = ""
    decision: str = Field(..., min_length=1)
    inputs: dict[str, SpecValue] = Field(default_factory=dict, alias="in")
    expected: SpecValue = Field(..., alias="out")

    @field_validator("description", mode="before")
    @classmethod
    def blank_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("inputs", mode="before")
    @classmethod
    def classify_inputs(cls, v: Any) -> dict[str, SpecValue]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError(f"'in' must be a mapping, got {type(v).__name__}")
        return {str(name): SpecValue.of(value) for name, value in v.items()}

    @field_validator("expected", mode="before")
    @classmethod
    def classify_expected(cls, v: Any) -> SpecValue:
        if v is None:
            raise ValueError("expected 'out' missing")
        return SpecValue.of(v)

    def input_values(self) -> dict[str, Any]:
        return {name: value.value for name, value in self.inputs.items()}

    def display_name(self, base_name: str) -> str:
        prefix = f"{self.description} | " if self.description.strip() else ""
        return (
            f"{prefix}{base_name}:{self.decision} → {self.input_values()} "
            f"= {self.expected.as_text()}"
        )


def load_spec_file(path: str | Path) -> list[DecisionTestCase]:
    """Parse a specification file into test cases.

    A file without a ``tests`` list yields no cases.

    Raises:
        SpecificationError: If the file cannot be read or an entry is invalid.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise SpecificationError(f"Cannot read specification {path}: {e}", str(path)) from e
    except yaml.YAMLError as e:
        raise SpecificationError(f"Failed to parse YAML file {path}: {e}", str(path)) from e

    if not isinstance(data, dict) or not isinstance(data.get("tests"), list):
        return []

    cases: list[DecisionTestCase] = []
    errors: list[dict[str, Any]] = []
    for index, raw in enumerate(data["tests"]):
        if not isinstance(raw, dict):
            errors.append({"file": str(path), "index": index, "error": "Expected a mapping"})
            continue
        try:
            cases.append(DecisionTestCase.model_validate(raw))
        except ValidationError as e:
            for error in e.errors():
                errors.append(
                    {
                        "file": str(path),
                        "index": index,
                        "field": ".".join(str(part) for part in error["loc"]),
                        "error": error["msg"],
                    }
                )

    if errors:
        raise SpecificationError(
            f"Validation failed for {len(errors)} item(s) in {path}",
            str(path),
            errors=errors,
        )
    return cases


@dataclass(frozen=True)
class ExecutableCase:
    """A discovered test case, or the error that broke its specification."""

    name: str
    source: str
    case: DecisionTestCase | None = None
    error: SpecificationError | None = None


@dataclass(frozen=True)
class CaseOutcome:
    name: str
    passed: bool
    error: str | None = None


class DecisionTestSession:
    """Discovers and runs specification cases, then reports coverage once."""

    def __init__(
        self,
        source_root: str | Path,
        spec_root: str | Path | None = None,
        collector: CoverageCollector | None = None,
        report_generator: CoverageReportGenerator | None = None,
        evaluator_factory: Callable[[CoverageCollector], DecisionEvaluator] | None = None,
        stream: TextIO | None = None,
        report_path: str | Path | None = None,
    ):
        self.source_root = Path(source_root)
        self.spec_root = Path(spec_root) if spec_root else self.source_root
        self.collector = collector or CoverageCollector()
        self.report_generator = report_generator or CoverageReportGenerator()
        self.evaluator_factory = evaluator_factory or _coverage_evaluator
        self.stream = stream
        self.report_path = report_path
        self._source_files: dict[str, None] = {}
        self._lock = threading.Lock()
        self._report: AggregateCoverageReport | None = None
        self._written = False

    @property
    def source_files(self) -> list[str]:
        with self._lock:
            return list(self._source_files)

    def discover(self) -> Iterator[ExecutableCase]:
        """Lazily yield one executable case per specification entry."""
        if not self.source_root.exists() or not self.spec_root.exists():
            logger.warning(
                f"No decision tests: {self.source_root} or {self.spec_root} does not exist"
            )
            return

        for source in sorted(self.source_root.rglob(SOURCE_PATTERN)):
            with self._lock:
                self._source_files.setdefault(str(source), None)
            spec_file = self._spec_file_for(source)
            if spec_file is None:
                logger.debug(f"No specification for {source}, skipping")
                continue
            try:
                cases = load_spec_file(spec_file)
            except SpecificationError as e:
                logger.error(f"{e} {e.errors}")
                yield ExecutableCase(name=f"{source.stem}: {e}", source=str(source), error=e)
                continue
            for case in cases:
                yield ExecutableCase(
                    name=case.display_name(source.stem), source=str(source), case=case
                )

    def _spec_file_for(self, source: Path) -> Path | None:
        for suffix in SPEC_SUFFIXES:
            candidate = self.spec_root / f"{source.stem}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def run(self, executable: ExecutableCase) -> None:
        """Execute one case on a fresh evaluator.

        Raises:
            AssertionError: If the result differs from the expected output.
            DecisionError: If the case cannot be loaded or evaluated.
        """
        if executable.error is not None:
            raise executable.error
        case = executable.case
        if case is None:
            raise ValueError(f"Nothing to run for {executable.name}")

        evaluator = self.evaluator_factory(self.collector)
        decision = evaluator.load_decision(executable.source, case.decision)
        actual = decision.evaluate(case.input_values()).to_string()
        expected = case.expected.as_text()
        if actual != expected:
            raise AssertionError(
                f"{executable.name}: expected {expected!r} but decision returned {actual!r}"
            )

    def run_all(self, max_workers: int = 1) -> list[CaseOutcome]:
        """Discover and run every case, waiting for all of them to finish."""
        cases = list(self.discover())
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            return list(executor.map(self._outcome, cases))

    def _outcome(self, executable: ExecutableCase) -> CaseOutcome:
        try:
            self.run(executable)
        except (AssertionError, DecisionError) as e:
            logger.info(f"FAILED {executable.name}: {e}")
            return CaseOutcome(name=executable.name, passed=False, error=str(e))
        return CaseOutcome(name=executable.name, passed=True)

    def generate_report(self) -> AggregateCoverageReport:
        """Build the coverage report; later calls return the same report."""
        with self._lock:
            if self._report is None:
                self._report = self.report_generator.generate(
                    list(self._source_files), self.collector.snapshot()
                )
            return self._report

    def close(self) -> AggregateCoverageReport:
        report = self.generate_report()
        with self._lock:
            if self._written:
                return report
            self._written = True
        write_report(report, self.stream, self.report_path)
        return report

    def __enter__(self) -> DecisionTestSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _coverage_evaluator(collector: CoverageCollector) -> DecisionEvaluator:
    return DecisionEvaluator(collect_coverage=True, collector=collector)
