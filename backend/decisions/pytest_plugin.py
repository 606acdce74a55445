"""pytest integration for declarative decision tests.

Enable it from a ``conftest.py``::

    pytest_plugins = ["decisions.pytest_plugin"]

and write a test that takes the ``decision_case`` parameter::

    def test_decision_specs(decision_case, decision_session):
        decision_session.run(decision_case)

Roots come from ``DMN_TEST_ROOT`` / ``DMN_SPEC_ROOT``. The coverage report
is generated after the last test finishes and shown in the terminal
summary.
"""

from __future__ import annotations

import io
import logging

import pytest

from config import DMN_COVERAGE_REPORT_PATH, DMN_SPEC_ROOT, DMN_TEST_ROOT

from .errors import DecisionError
from .report import write_report
from .spec_runner import DecisionTestSession

logger = logging.getLogger(__name__)

_session_key = pytest.StashKey[DecisionTestSession]()
_report_key = pytest.StashKey[str]()


def _get_session(pytest_config: pytest.Config) -> DecisionTestSession:
    session = pytest_config.stash.get(_session_key, None)
    if session is None:
        session = DecisionTestSession(DMN_TEST_ROOT, DMN_SPEC_ROOT)
        pytest_config.stash[_session_key] = session
    return session


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    if "decision_case" not in metafunc.fixturenames:
        return
    cases = list(_get_session(metafunc.config).discover())
    metafunc.parametrize("decision_case", cases, ids=[case.name for case in cases])


@pytest.fixture(scope="session")
def decision_session(request: pytest.FixtureRequest) -> DecisionTestSession:
    """Session shared by every generated decision test."""
    return _get_session(request.config)


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    decision_session = session.config.stash.get(_session_key, None)
    if decision_session is None or not decision_session.source_files:
        return
    buffer = io.StringIO()
    try:
        report = decision_session.generate_report()
        write_report(report, buffer, DMN_COVERAGE_REPORT_PATH)
    except (DecisionError, OSError) as e:
        # Test outcomes are already final; a broken report must not change them
        logger.error(f"Failed to generate decision coverage report: {e}", exc_info=True)
        return
    session.config.stash[_report_key] = buffer.getvalue()


def pytest_terminal_summary(terminalreporter, exitstatus: int, config: pytest.Config) -> None:
    rendered = config.stash.get(_report_key, None)
    if rendered:
        terminalreporter.write(rendered)
