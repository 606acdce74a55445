"""FastAPI backend for DMN decision evaluation and rule coverage."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from config import DMN_COLLECT_COVERAGE, DMN_TEST_ROOT, LOG_LEVEL
from decisions import CoverageCollector
from routes import decisions_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DMN Coverage",
    description="Decision evaluation with rule coverage reporting",
    version="0.1.0",
)

app.state.dmn_root = DMN_TEST_ROOT
app.state.collect_coverage = DMN_COLLECT_COVERAGE
app.state.coverage_collector = CoverageCollector()

app.include_router(decisions_router)


@app.get("/health")
async def health():
    return {"status": "healthy", "dmn_root": str(app.state.dmn_root)}
