"""Coverage-aware DMN decision evaluation and declarative decision tests."""

from .catalog import RuleCatalog
from .coverage import CoverageCollector
from .errors import (
    AmbiguousEvaluationError,
    CoverageIntegrityError,
    DecisionError,
    DecisionNotFoundError,
    DecisionParseError,
    EvaluationError,
    RuleNotFoundError,
    SourceNotFoundError,
    SpecificationError,
)
from .evaluator import DecisionEvaluator, DecisionHandle, TypedResult
from .models import (
    AggregateCoverageReport,
    CoverageEvent,
    DecisionCoverageReport,
    DecisionRef,
    EvaluationEvent,
    RuleDescriptor,
)
from .report import CoverageReportGenerator, render_report, write_report
from .spec_runner import DecisionTestCase, DecisionTestSession, ExecutableCase, load_spec_file

__all__ = [
    "AggregateCoverageReport",
    "AmbiguousEvaluationError",
    "CoverageCollector",
    "CoverageEvent",
    "CoverageIntegrityError",
    "CoverageReportGenerator",
    "DecisionCoverageReport",
    "DecisionError",
    "DecisionEvaluator",
    "DecisionHandle",
    "DecisionNotFoundError",
    "DecisionParseError",
    "DecisionRef",
    "DecisionTestCase",
    "DecisionTestSession",
    "EvaluationError",
    "EvaluationEvent",
    "ExecutableCase",
    "RuleCatalog",
    "RuleDescriptor",
    "RuleNotFoundError",
    "SourceNotFoundError",
    "SpecificationError",
    "TypedResult",
    "load_spec_file",
    "render_report",
    "write_report",
]
