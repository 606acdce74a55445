"""Shared configuration for the DMN coverage backend.

This module centralizes environment variable access and default values
to prevent drift between modules.
"""

import os

# Decision-table sources (*.dmn) searched recursively
DMN_TEST_ROOT = os.getenv("DMN_TEST_ROOT", "tests/resources")

# YAML test specifications, paired with sources by base name
DMN_SPEC_ROOT = os.getenv("DMN_SPEC_ROOT", DMN_TEST_ROOT)

# Optional file receiving a copy of the coverage report
DMN_COVERAGE_REPORT_PATH = os.getenv("DMN_COVERAGE_REPORT_PATH") or None

# Record coverage for evaluations served over HTTP
DMN_COLLECT_COVERAGE = os.getenv("DMN_COLLECT_COVERAGE", "true").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
