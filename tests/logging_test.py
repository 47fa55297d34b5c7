from __future__ import annotations

import asyncio
import logging
import pathlib

import pytest

from rightsize.logging import (
    DEFAULT_FILTER,
    DEFAULT_FORMATTER,
    Mixin,
    log_execution_time,
    logger,
    reset_to_defaults,
    set_level,
    set_log_file,
)


@pytest.fixture(autouse=True)
def reset_logging() -> None:
    # Remove all handlers during logging tests
    logger.remove(None)
    yield
    reset_to_defaults()


def _raw_messages(messages) -> list[str]:
    return list(map(lambda m: m.record["message"], messages))


class TestFilter:
    def test_logging_to_trace(self) -> None:
        messages = []
        logger.add(lambda m: messages.append(m), filter=DEFAULT_FILTER, level=0)

        set_level("TRACE")
        logger.critical("critical")
        logger.debug("debug")
        logger.trace("trace1")
        messages = _raw_messages(messages)
        assert messages == ["critical", "debug", "trace1"]

    def test_filtering_by_level(self) -> None:
        messages = []
        logger.add(lambda m: messages.append(m), filter=DEFAULT_FILTER, level=0)

        set_level("critical")
        logger.debug("Test")
        assert _raw_messages(messages) == []
        logger.critical("Test")
        assert _raw_messages(messages) == ["Test"]


class TestFormatter:
    @pytest.fixture
    def messages(self) -> list[str]:
        messages = []
        logger.add(
            lambda m: messages.append(m), format=DEFAULT_FORMATTER, colorize=False, level=0
        )
        return messages

    def test_default_component(self, messages) -> None:
        logger.info("hello")
        assert "| rightsize - hello" in messages[0]

    def test_automation_component(self, messages) -> None:
        logger.bind(automation_id="a1").info("hello")
        assert "| automation[a1] - hello" in messages[0]

    def test_worker_and_automation_component(self, messages) -> None:
        with logger.contextualize(worker="worker-0"):
            logger.bind(automation_id="a1").info("hello")
            logger.info("idle")
        assert "| worker-0:automation[a1] - hello" in messages[0]
        assert "| worker-0 - idle" in messages[1]

    def test_explicit_component(self, messages) -> None:
        logger.bind(component="cluster", automation_id="a1").info("hello")
        assert "| cluster - hello" in messages[0]


class TestMixin:
    def test_logger_property(self) -> None:
        class Component(Mixin):
            pass

        assert Component().logger is logger


def test_stdlib_logging_is_intercepted() -> None:
    reset_to_defaults()
    messages = []
    logger.add(lambda m: messages.append(m), level=0)

    logging.getLogger("backoff").error("Giving up after 3 tries")
    assert "Giving up after 3 tries" in _raw_messages(messages)


def test_log_file(tmp_path: pathlib.Path) -> None:
    log_file = tmp_path / "rightsize.log"
    set_log_file(log_file)
    logger.info("persisted")
    logger.complete()
    assert "persisted" in log_file.read_text()


class TestLogExecutionTime:
    def test_sync(self) -> None:
        messages = []
        logger.add(lambda m: messages.append(m), level=0)

        @log_execution_time
        def work() -> int:
            return 42

        assert work() == 42
        assert _raw_messages(messages)[0].startswith("Function 'work' executed in ")
        assert messages[0].record["level"].name == "DEBUG"

    @pytest.mark.asyncio
    async def test_async(self) -> None:
        messages = []
        logger.add(lambda m: messages.append(m), level=0)

        @log_execution_time(level="INFO")
        async def work() -> int:
            await asyncio.sleep(0)
            return 42

        assert await work() == 42
        assert _raw_messages(messages)[0].startswith("Function 'work' executed in ")
        assert messages[0].record["level"].name == "INFO"
