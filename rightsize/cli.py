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

"""The rightsize command line interface."""
from __future__ import annotations

import asyncio
import enum
import pathlib
from typing import Any, Optional

import typer

import rightsize
from rightsize.codec import decode_command
from rightsize.configuration import AgentConfiguration
from rightsize.errors import DecodeError
from rightsize.logging import logger, set_colors, set_level, set_log_file
from rightsize.runner import AgentRunner

__all__ = ("app",)


class LogLevel(str, enum.Enum):
    trace = "TRACE"
    debug = "DEBUG"
    info = "INFO"
    success = "SUCCESS"
    warning = "WARNING"
    error = "ERROR"
    critical = "CRITICAL"


app = typer.Typer(
    name="rightsize",
    help="Apply container resource automations to Kubernetes workloads.",
    add_completion=False,
    no_args_is_help=True,
)

ConfigFileOption = typer.Option(
    None,
    "--config-file",
    "-c",
    envvar="RIGHTSIZE_CONFIG_FILE",
    show_envvar=True,
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
    help="Agent configuration file",
)
LogLevelOption = typer.Option(
    None,
    "--log-level",
    "-l",
    help="Set the log level (overrides the configuration)",
)


def _load_config(
    config_file: Optional[pathlib.Path],
    log_level: Optional[LogLevel] = None,
    **executor: Any,
) -> AgentConfiguration:
    overrides: dict[str, Any] = {}
    if log_level:
        overrides["log_level"] = log_level.value
    if executor := {key: value for key, value in executor.items() if value is not None}:
        overrides["executor"] = executor

    try:
        config = AgentConfiguration.load(config_file, **overrides)
    except (ValueError, OSError) as error:
        typer.echo(f"error: invalid configuration: {error}", err=True)
        raise typer.Exit(2) from error

    set_level(config.log_level)
    return config


@app.callback()
def root_callback(
    no_color: Optional[bool] = typer.Option(
        None,
        "--no-color",
        envvar=["RIGHTSIZE_NO_COLOR", "NO_COLOR"],
        help="Disable colored output",
    ),
) -> None:
    if no_color:
        set_colors(False)


@app.command()
def run(
    config_file: Optional[pathlib.Path] = ConfigFileOption,
    dry_run: Optional[bool] = typer.Option(
        None, "--dry-run/--no-dry-run", help="Compute changes without applying them"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Number of concurrent automations"
    ),
    log_level: Optional[LogLevel] = LogLevelOption,
    log_file: Optional[pathlib.Path] = typer.Option(
        None, "--log-file", dir_okay=False, help="Also write logs to a file"
    ),
) -> None:
    """Run the agent, reading automation payloads as JSON lines from stdin."""
    config = _load_config(config_file, log_level, dry_run=dry_run, workers=workers)
    if log_file:
        set_log_file(log_file)
    runner = AgentRunner(config)
    asyncio.run(runner.run())


@app.command()
def execute(
    file: pathlib.Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="File containing a JSON automation payload",
    ),
    config_file: Optional[pathlib.Path] = ConfigFileOption,
    dry_run: Optional[bool] = typer.Option(
        None, "--dry-run/--no-dry-run", help="Compute changes without applying them"
    ),
    log_level: Optional[LogLevel] = LogLevelOption,
) -> None:
    """Execute a single automation and print its feedback."""
    config = _load_config(config_file, log_level, dry_run=dry_run)
    try:
        command = decode_command(file.read_bytes())
    except DecodeError as error:
        logger.error(f"{error}")
        if error.reason:
            logger.debug(error.reason)
        raise typer.Exit(1) from error

    asyncio.run(AgentRunner(config).execute(command))


@app.command()
def config(
    config_file: Optional[pathlib.Path] = ConfigFileOption,
) -> None:
    """Display the effective configuration."""
    typer.echo(_load_config(config_file).yaml(), nl=False)


@app.command()
def version() -> None:
    """Display version."""
    typer.echo(f"rightsize v{rightsize.__version__}")
