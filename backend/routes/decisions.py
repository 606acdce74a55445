"""Decision evaluation and rule coverage routes.

This router evaluates DMN decisions found under the configured root,
records which rules fired, and reports rule coverage per decision table.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator

from decisions import (
    AmbiguousEvaluationError,
    CoverageCollector,
    CoverageReportGenerator,
    DecisionError,
    DecisionEvaluator,
    DecisionNotFoundError,
    EvaluationError,
    RuleCatalog,
    RuleNotFoundError,
    SourceNotFoundError,
)
from decisions.values import render_scalar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/decisions", tags=["decisions"])


def validate_source_path(source: str) -> str:
    """Reject paths that could escape the DMN root."""
    if not source or ".." in Path(source).parts or Path(source).is_absolute():
        raise ValueError(f"Invalid source path: {source}")
    if not source.endswith(".dmn"):
        raise ValueError(f"Source must be a .dmn file: {source}")
    return source


class EvaluateRequest(BaseModel):
    source: str = Field(..., min_length=1, max_length=500)
    decision: str = Field(..., min_length=1, max_length=255)
    inputs: dict[str, Any] = Field(default_factory=dict)

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        return validate_source_path(v)


def _dmn_root(request: Request) -> Path:
    return Path(request.app.state.dmn_root)


def _collector(request: Request) -> CoverageCollector:
    return request.app.state.coverage_collector


def _to_http_error(error: DecisionError) -> HTTPException:
    if isinstance(error, (SourceNotFoundError, DecisionNotFoundError, RuleNotFoundError)):
        status = 404
    elif isinstance(error, AmbiguousEvaluationError):
        status = 422
    elif isinstance(error, EvaluationError):
        status = 400
    else:
        status = 500
    return HTTPException(status_code=status, detail=str(error)[:500])


@router.get("/catalog")
async def get_decision_catalog(
    request: Request,
    source: str = Query(..., min_length=1, max_length=500),
    decision: str | None = Query(default=None, max_length=255),
):
    """List the decisions of a DMN file, or the rules of one decision."""
    try:
        validate_source_path(source)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    path = _dmn_root(request) / source
    catalog = RuleCatalog()
    try:
        if decision is None:
            return {"source": source, "decisions": catalog.list_decision_keys(path)}
        rules = catalog.list_rules(path, decision)
    except DecisionError as e:
        raise _to_http_error(e)

    return {
        "source": source,
        "decision": decision,
        "rules": [
            {
                "rule_id": rule.rule_id,
                "input_entries": list(rule.input_entries),
                "output_entries": list(rule.output_entries),
            }
            for rule in rules
        ],
        "total_rules": len(rules),
    }


@router.post("/evaluate")
async def evaluate_decision(request: Request, body: EvaluateRequest):
    """Evaluate one decision and record the rules that matched."""
    collector = _collector(request) if request.app.state.collect_coverage else None
    evaluator = DecisionEvaluator(collect_coverage=True, collector=collector)
    try:
        decision = evaluator.load_decision(_dmn_root(request) / body.source, body.decision)
        result = decision.evaluate(body.inputs)
    except DecisionError as e:
        if isinstance(e, EvaluationError) and e.__cause__ is not None:
            logger.warning(f"Evaluation of {body.decision} failed: {e.__cause__}")
        raise _to_http_error(e)

    entries = result.entries
    single_entry = None
    if len(entries) == 1 and len(entries[0]) == 1:
        single_entry = next(iter(entries[0].values()))

    return {
        "source": body.source,
        "decision": body.decision,
        "result": [
            {name: render_scalar(value) for name, value in entry.items()}
            for entry in entries
        ],
        "single_entry": None if single_entry is None else render_scalar(single_entry),
        "matched_rules": [event.rule_id for event in evaluator.coverage_events()],
    }


@router.get("/coverage")
async def get_decision_coverage(request: Request):
    """Rule coverage of every DMN file under the root for evaluations so far."""
    root = _dmn_root(request)
    sources = sorted(root.rglob("*.dmn")) if root.exists() else []
    try:
        report = CoverageReportGenerator().generate(sources, _collector(request).snapshot())
    except DecisionError as e:
        logger.error(f"Failed to build coverage report: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to build coverage report: {str(e)[:200]}"
        )

    return {
        "files": {
            str(Path(path).relative_to(root)): file_report
            for path, file_report in report.to_dict().items()
        },
        "summary": report.summary.to_dict(),
    }
