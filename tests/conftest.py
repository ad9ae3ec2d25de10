import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_logging():
    # the CLI binds structlog to the runner's stderr
    yield
    structlog.reset_defaults()
