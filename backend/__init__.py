"""DMN Coverage Backend Package.

This package provides coverage-aware evaluation of DMN decision tables
and a declarative YAML test runner, including:

- Decision evaluation with ambiguity enforcement
- Rule coverage collection and reporting
- YAML specification discovery and execution
- pytest plugin and FastAPI routes

Usage:
    # Development (from project root):
    PYTHONPATH=backend uvicorn app:app --reload --port 8080

    # Declarative tests with coverage report:
    pytest tests/test_decision_specs.py

Modules:
    app: FastAPI application entry point
    decisions: Evaluation wrapper, coverage, catalog, reports, test runner
    routes: HTTP routers
    config: Environment configuration
"""

__version__ = "0.1.0"
