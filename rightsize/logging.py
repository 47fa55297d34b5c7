# Copyright 2022 Cisco Systems, Inc. and/or its affiliates.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""The `rightsize.logging` module provides logging capabilities to the rightsize package and its dependencies.

Logging is implemented on top of the
[loguru](https://loguru.readthedocs.io/en/stable/) library.
"""
from __future__ import annotations

import functools
import inspect
import logging
import pathlib
import sys
import time
from typing import Optional, Union

import loguru

__all__ = (
    "Mixin",
    "Filter",
    "logger",
    "log_execution_time",
    "reset_to_defaults",
    "set_colors",
    "set_level",
    "set_log_file",
)

# Alias the loguru default logger
logger = loguru.logger


class Mixin:
    """Provides a convenience interface for accessing the logger as a property.

    The `rightsize.logging.Mixin` class is a convenience class for adding
    logging capabilities to arbitrary classes through multiple inheritance.
    """

    @property
    def logger(self) -> loguru.Logger:
        """Return the rightsize package logger."""
        global logger
        return logger


class Filter:
    """The level of messages that are to be outputted via logging.

    NOTE: The level on the sink needs to be set to 0.
    """

    def __init__(self, level="INFO") -> None:  # noqa: D107
        self.level = level

    def __call__(self, record) -> bool:  # noqa: D102
        levelno = logger.level(self.level).no
        return record["level"].no >= levelno


class InterceptHandler(logging.Handler):
    """A logging handler that forwards messages from Python stdlib logging to loguru."""

    def emit(self, record) -> None:
        """Emit a log record from Python stdlib logging facilities into loguru."""
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <magenta>{extra[component]}</magenta> - <level>{message}</level>"
)


class Formatter:
    """A logging formatter that is aware of the automation being executed."""

    def __call__(self, record: dict) -> str:  # noqa: D107
        """Format a log message with contextual information about the automation."""
        extra = record["extra"]

        # Respect an explicit component
        if not "component" in extra:
            if automation_id := extra.get("automation_id"):
                component = f"automation[{automation_id}]"
                if worker := extra.get("worker"):
                    component = f"{worker}:{component}"
            elif worker := extra.get("worker"):
                component = worker
            else:
                component = "rightsize"

            extra["component"] = component

        return DEFAULT_FORMAT + "\n{exception}"


DEFAULT_FILTER = Filter("INFO")
DEFAULT_FORMATTER = Formatter()


DEFAULT_STDERR_HANDLER = {
    "sink": sys.stderr,
    "filter": DEFAULT_FILTER,
    "level": 0,
    "format": DEFAULT_FORMATTER,
    "backtrace": True,
    "diagnose": True,
}

DEFAULT_HANDLERS = [
    DEFAULT_STDERR_HANDLER,
]

# Persistent disk logging is opt-in via `set_log_file`
DEFAULT_LOG_FILE = pathlib.Path("logs") / "rightsize.log"


def set_level(level: str) -> None:
    """Set the logging threshold to the given level for all log handlers."""
    DEFAULT_FILTER.level = level.upper()


def set_colors(colors: Optional[bool]) -> None:
    """Set whether or not log messages should be outputted in ANSI color.

    Args:
        colors: Whether or not to color log output. `None` detects a TTY.
    """
    DEFAULT_STDERR_HANDLER["colorize"] = colors
    loguru.logger.remove()
    loguru.logger.configure(handlers=DEFAULT_HANDLERS)


def set_log_file(path: Union[str, pathlib.Path, None] = DEFAULT_LOG_FILE) -> None:
    """Add (or with `None`, remove) a persistent log file handler."""
    global DEFAULT_HANDLERS
    DEFAULT_HANDLERS = [DEFAULT_STDERR_HANDLER]
    if path is not None:
        DEFAULT_HANDLERS.append(
            {
                "sink": pathlib.Path(path),
                "colorize": False,
                "filter": DEFAULT_FILTER,
                "level": 0,
                "format": DEFAULT_FORMATTER,
                "backtrace": True,
                "diagnose": False,
                "rotation": "10 MB",
                "retention": 5,
            }
        )

    loguru.logger.remove()
    loguru.logger.configure(handlers=DEFAULT_HANDLERS)


def reset_to_defaults() -> None:
    """Reset the logging subsystem to the default configuration."""
    global DEFAULT_HANDLERS
    DEFAULT_FILTER.level = "INFO"
    DEFAULT_STDERR_HANDLER["colorize"] = None
    DEFAULT_HANDLERS = [DEFAULT_STDERR_HANDLER]

    loguru.logger.remove()
    loguru.logger.configure(handlers=DEFAULT_HANDLERS)

    # Intercept messages from the backoff library and the Kubernetes client
    for name in ("backoff", "kubernetes_asyncio"):
        stdlib_logger = logging.getLogger(name)
        if not any(isinstance(h, InterceptHandler) for h in stdlib_logger.handlers):
            stdlib_logger.addHandler(InterceptHandler())


def friendly_decorator(f):
    """Transform a decorated function into a decorator that can be called with or without parameters.

    The returned function wraps a decorator function such that it can be invoked
    with or without parentheses such as:

        @decorator(with, arguments, and=kwargs)
        or
        @decorator
    """

    @functools.wraps(f)
    def decorator(*args, **kwargs):
        if len(args) == 1 and len(kwargs) == 0 and callable(args[0]):
            # actual decorated function
            return f(args[0])
        else:
            # decorator arguments
            return lambda realf: f(realf, *args, **kwargs)

    return decorator


@friendly_decorator
def log_execution_time(func, *, level="DEBUG"):
    """Log the execution time upon exit from the decorated function or coroutine function."""
    from rightsize.types import Duration

    def _log(name: str, start: float) -> None:
        duration = Duration(time.monotonic() - start)
        logger.opt(depth=2).log(level, f"Function '{name}' executed in {duration}")

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapped(*args, **kwargs):
            start = time.monotonic()
            try:
                return await func(*args, **kwargs)
            finally:
                _log(func.__name__, start)

        return async_wrapped

    @functools.wraps(func)
    def wrapped(*args, **kwargs):
        start = time.monotonic()
        try:
            return func(*args, **kwargs)
        finally:
            _log(func.__name__, start)

    return wrapped


reset_to_defaults()
