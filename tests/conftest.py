import builtins
import os
from typing import Generator

import loguru
import pytest
import typer.testing

# Add the devtools debug() function globally in tests
from devtools import debug

import rightsize
from rightsize.types import Duration
from tests.helpers import FakeCluster, RecordingTransport

builtins.debug = debug


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove rightsize settings from the environment.

    This fixture helps ensure test suite isolation from local development
    configuration.
    """
    for key in list(os.environ.keys()):
        if key.startswith(rightsize.configuration.ENV_PREFIX):
            monkeypatch.delenv(key)


@pytest.fixture
def captured_logs() -> Generator[list["loguru.Message"], None, None]:
    """Capture all log messages emitted during the test into a list."""
    messages = []
    temp_sink_id = rightsize.logger.add(lambda m: messages.append(m), level=0)
    yield messages
    rightsize.logger.remove(temp_sink_id)


@pytest.fixture
def cli_runner() -> typer.testing.CliRunner:
    return typer.testing.CliRunner()


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def poll_interval() -> Duration:
    return Duration("1ms")
