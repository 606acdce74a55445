"""Tests for backend/decisions/spec_runner.py.

Tests cover:
- Parsing of specification entries
- Pairing of DMN sources with specification files
- Case execution and failure reporting
- Concurrent execution and the session coverage report
"""

from __future__ import annotations

import io
import textwrap
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import build_dmn
from decisions import (
    AmbiguousEvaluationError,
    DecisionTestCase,
    DecisionTestSession,
    SpecificationError,
    load_spec_file,
)
from decisions.report import REPORT_HEADER
from decisions.values import ScalarKind

AGE_TABLE = {"Age": [("r1", ">= 18", '"adult"'), ("r2", "< 18", '"minor"')]}


def write_spec(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content))
    return path


class TestDecisionTestCase:
    """Validation of individual specification entries."""

    def test_parses_aliases(self):
        case = DecisionTestCase.model_validate(
            {"description": "d", "decision": "Adult", "in": {"age": 25}, "out": "Adult"}
        )
        assert case.input_values() == {"age": 25}
        assert case.expected.kind == ScalarKind.STRING

    def test_optional_fields(self):
        case = DecisionTestCase.model_validate({"decision": "Adult", "in": None, "out": True})
        assert case.description == ""
        assert case.inputs == {}
        assert case.expected.as_text() == "true"

    def test_missing_out_is_rejected(self):
        with pytest.raises(ValidationError, match="out"):
            DecisionTestCase.model_validate({"decision": "Adult", "in": {"age": 25}})

    def test_null_out_is_rejected(self):
        with pytest.raises(ValidationError, match="expected 'out' missing"):
            DecisionTestCase.model_validate({"decision": "Adult", "out": None})

    def test_non_scalar_input_is_rejected(self):
        with pytest.raises(ValidationError, match="scalar"):
            DecisionTestCase.model_validate(
                {"decision": "Adult", "in": {"age": [1, 2]}, "out": "Adult"}
            )

    def test_display_name(self):
        case = DecisionTestCase.model_validate(
            {"description": "Adults", "decision": "Adult", "in": {"age": 25}, "out": "Adult"}
        )
        assert case.display_name("age-check") == "Adults | age-check:Adult → {'age': 25} = Adult"

    def test_display_name_without_description(self):
        case = DecisionTestCase.model_validate({"decision": "NumDecision", "out": 123})
        assert case.display_name("typed") == "typed:NumDecision → {} = 123"


class TestLoadSpecFile:
    """Specification file parsing."""

    def test_loads_cases_in_order(self, resources_dir):
        cases = load_spec_file(resources_dir / "typed-decisions.yaml")
        assert [case.decision for case in cases] == ["BoolDecision", "NumDecision", "StrDecision"]

    def test_file_without_tests_has_no_cases(self, tmp_path):
        assert load_spec_file(write_spec(tmp_path / "a.yaml", "other: 1\n")) == []
        assert load_spec_file(write_spec(tmp_path / "b.yaml", "")) == []
        assert load_spec_file(write_spec(tmp_path / "c.yaml", "tests: {}\n")) == []

    def test_missing_decision_fails_the_file(self, tmp_path):
        path = write_spec(
            tmp_path / "spec.yaml",
            """\
            tests:
              - decision: "Adult"
                out: "Adult"
              - in:
                  age: 25
                out: "Adult"
            """,
        )
        with pytest.raises(SpecificationError, match="Validation failed for 1 item") as exc_info:
            load_spec_file(path)
        assert exc_info.value.errors[0]["index"] == 1
        assert exc_info.value.errors[0]["field"] == "decision"

    def test_non_mapping_entry(self, tmp_path):
        path = write_spec(tmp_path / "spec.yaml", "tests:\n  - just a string\n")
        with pytest.raises(SpecificationError) as exc_info:
            load_spec_file(path)
        assert exc_info.value.errors[0]["error"] == "Expected a mapping"

    def test_invalid_yaml(self, tmp_path):
        path = write_spec(tmp_path / "spec.yaml", "tests: [unclosed\n")
        with pytest.raises(SpecificationError, match="Failed to parse YAML"):
            load_spec_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpecificationError, match="Cannot read"):
            load_spec_file(tmp_path / "missing.yaml")


class TestDiscovery:
    """Pairing of sources and specifications."""

    def test_discovers_bundled_resources(self, resources_dir):
        session = DecisionTestSession(resources_dir)
        cases = list(session.discover())

        assert len(cases) == 6
        assert all(case.error is None for case in cases)
        assert cases[0].name == "Adults are recognised | age-check:Adult → {'age': 25} = Adult"
        # sources without a specification are still part of the report
        assert len(session.source_files) == 5

    def test_discovery_is_lazy(self, resources_dir):
        session = DecisionTestSession(resources_dir)
        cases = session.discover()
        assert session.source_files == []
        next(cases)
        assert len(session.source_files) == 1

    def test_missing_root_yields_nothing(self, tmp_path, caplog):
        session = DecisionTestSession(tmp_path / "missing")
        assert list(session.discover()) == []
        assert "No decision tests" in caplog.text

    def test_separate_spec_root(self, tmp_path):
        (tmp_path / "src" / "nested").mkdir(parents=True)
        (tmp_path / "specs").mkdir()
        (tmp_path / "src" / "nested" / "age.dmn").write_text(build_dmn(AGE_TABLE))
        write_spec(tmp_path / "specs" / "age.yml", "tests:\n  - decision: Age\n    in: {age: 3}\n    out: minor\n")

        session = DecisionTestSession(tmp_path / "src", tmp_path / "specs")
        cases = list(session.discover())

        assert [case.source for case in cases] == [str(tmp_path / "src" / "nested" / "age.dmn")]

    def test_yaml_is_preferred_over_yml(self, tmp_path):
        (tmp_path / "age.dmn").write_text(build_dmn(AGE_TABLE))
        write_spec(tmp_path / "age.yaml", "tests:\n  - decision: Age\n    in: {age: 30}\n    out: adult\n")
        write_spec(tmp_path / "age.yml", "tests:\n  - decision: Age\n    in: {age: 3}\n    out: minor\n")

        cases = list(DecisionTestSession(tmp_path).discover())
        assert [case.case.expected.as_text() for case in cases] == ["adult"]

    def test_broken_spec_does_not_stop_other_files(self, tmp_path):
        (tmp_path / "a.dmn").write_text(build_dmn(AGE_TABLE))
        (tmp_path / "b.dmn").write_text(build_dmn(AGE_TABLE))
        write_spec(tmp_path / "a.yaml", "tests:\n  - in: {age: 30}\n    out: adult\n")
        write_spec(tmp_path / "b.yaml", "tests:\n  - decision: Age\n    in: {age: 30}\n    out: adult\n")

        session = DecisionTestSession(tmp_path)
        cases = list(session.discover())

        assert len(cases) == 2
        assert isinstance(cases[0].error, SpecificationError)
        with pytest.raises(SpecificationError):
            session.run(cases[0])
        session.run(cases[1])


class TestExecution:
    """Running discovered cases."""

    def _session(self, tmp_path: Path, spec: str, **kwargs) -> DecisionTestSession:
        (tmp_path / "age.dmn").write_text(build_dmn(AGE_TABLE))
        write_spec(tmp_path / "age.yaml", spec)
        return DecisionTestSession(tmp_path, stream=io.StringIO(), **kwargs)

    def test_bundled_resources_pass(self, resources_dir):
        session = DecisionTestSession(resources_dir, stream=io.StringIO())
        outcomes = session.run_all()
        assert [outcome.passed for outcome in outcomes] == [True] * 6

    def test_mismatch_fails_the_case(self, tmp_path):
        session = self._session(tmp_path, "tests:\n  - decision: Age\n    in: {age: 30}\n    out: minor\n")
        case = next(session.discover())

        with pytest.raises(AssertionError, match="expected 'minor' but decision returned 'adult'"):
            session.run(case)

    def test_unmatched_case_is_ambiguous(self, tmp_path):
        session = self._session(tmp_path, "tests:\n  - decision: Age\n    in: {age: null}\n    out: adult\n")
        case = next(session.discover())

        with pytest.raises(AmbiguousEvaluationError):
            session.run(case)

    def test_run_all_reports_failures(self, tmp_path):
        session = self._session(
            tmp_path,
            """\
            tests:
              - decision: Age
                in: {age: 30}
                out: adult
              - decision: Age
                in: {age: 30}
                out: minor
              - decision: Missing
                out: adult
            """,
        )
        outcomes = session.run_all(max_workers=2)

        assert [outcome.passed for outcome in outcomes] == [True, False, False]
        assert "Missing" in outcomes[2].error

    def test_coverage_recorded_even_when_assertion_fails(self, tmp_path):
        session = self._session(tmp_path, "tests:\n  - decision: Age\n    in: {age: 30}\n    out: minor\n")
        session.run_all()
        assert [event.rule_id for event in session.collector.snapshot()] == ["r1"]

    def test_scenario_e_concurrent_specs_share_a_decision_key(self, tmp_path):
        (tmp_path / "first.dmn").write_text(build_dmn(AGE_TABLE))
        (tmp_path / "second.dmn").write_text(build_dmn(AGE_TABLE))
        adults = "".join(f"  - decision: Age\n    in: {{age: {18 + i}}}\n    out: adult\n" for i in range(25))
        minors = "".join(f"  - decision: Age\n    in: {{age: {i}}}\n    out: minor\n" for i in range(18))
        write_spec(tmp_path / "first.yaml", "tests:\n" + adults + minors)
        write_spec(tmp_path / "second.yaml", "tests:\n" + minors)

        session = DecisionTestSession(tmp_path, stream=io.StringIO())
        cases = list(session.discover())
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(session.run, cases))

        assert len(session.collector) == 25 + 18 + 18
        report = session.generate_report()
        first = report.files[str(tmp_path / "first.dmn")].decisions["Age"]
        second = report.files[str(tmp_path / "second.dmn")].decisions["Age"]
        assert first.covered_rules == 2
        assert second.covered_rules == 1
        assert second.uncovered_rules == ("r1",)


class TestSessionReport:
    """Report generation at session teardown."""

    def test_close_writes_once(self, resources_dir):
        stream = io.StringIO()
        session = DecisionTestSession(resources_dir, stream=stream)
        session.run_all()

        first = session.close()
        second = session.close()

        assert first is second
        assert stream.getvalue().count(REPORT_HEADER) == 1

    def test_context_manager_writes_report(self, resources_dir, tmp_path):
        stream = io.StringIO()
        target = tmp_path / "coverage.yaml"
        with DecisionTestSession(resources_dir, stream=stream, report_path=target) as session:
            session.run_all(max_workers=3)

        assert REPORT_HEADER in stream.getvalue()
        assert "age-check.dmn" in target.read_text()

    def test_context_manager_reports_after_error(self, resources_dir):
        stream = io.StringIO()
        with pytest.raises(RuntimeError):
            with DecisionTestSession(resources_dir, stream=stream) as session:
                list(session.discover())
                raise RuntimeError("boom")
        assert REPORT_HEADER in stream.getvalue()

    def test_report_counts_bundled_coverage(self, resources_dir):
        session = DecisionTestSession(resources_dir, stream=io.StringIO())
        session.run_all()
        report = session.close()

        age = report.files[str(resources_dir / "age-check.dmn")]
        assert age.decisions["Adult"].coverage == 1.0
        ambiguous = report.files[str(resources_dir / "ambiguous-decision.dmn")]
        assert ambiguous.decisions["AmbiguousDecision"].uncovered_rules == ("rule-foo",)
        discount = report.files[str(resources_dir / "discount.dmn")]
        assert discount.decisions["CustomerTier"].uncovered_rules == ("tier-basic",)

    def test_shared_decision_key_does_not_break_the_report(self, dmn_factory, tmp_path):
        dmn_factory("a", {"Adult": [("a-rule", ">= 18", '"Adult"')]})
        dmn_factory("b", {"Adult": [("b-rule", ">= 21", '"Adult"')]})
        write_spec(tmp_path / "a.yaml", "tests:\n  - decision: Adult\n    in: {age: 30}\n    out: Adult\n")
        stream = io.StringIO()

        with DecisionTestSession(tmp_path, stream=stream) as session:
            outcomes = session.run_all()

        assert [outcome.passed for outcome in outcomes] == [True]
        report = session.generate_report()
        assert report.files[str(tmp_path / "a.dmn")].decisions["Adult"].coverage == 1.0
        assert report.files[str(tmp_path / "b.dmn")].decisions["Adult"].uncovered_rules == ("b-rule",)
        assert REPORT_HEADER in stream.getvalue()


class TestOutputComparison:
    """Comparison of decision outputs with expected values."""

    def test_decimal_outputs_compare_normalized(self, dmn_factory, tmp_path):
        dmn_factory("rate", {"Rate": [("rate-any", "-", "1.50")]})
        write_spec(tmp_path / "rate.yaml", "tests:\n  - decision: Rate\n    in: {age: 1}\n    out: 1.50\n")

        outcomes = DecisionTestSession(tmp_path, stream=io.StringIO()).run_all()

        assert [outcome.passed for outcome in outcomes] == [True]
