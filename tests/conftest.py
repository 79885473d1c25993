"""Shared test fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo global structlog configuration done by CLI tests.

    configure_logging() binds the logger to whatever sys.stderr is at call
    time; under CliRunner that stream is closed afterwards.
    """
    yield
    structlog.reset_defaults()
