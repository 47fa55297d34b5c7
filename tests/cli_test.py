import pathlib

import pytest
import typer.testing
import yaml

import rightsize
from rightsize.cli import app
from rightsize.runner import AgentRunner


def test_version(cli_runner: typer.testing.CliRunner) -> None:
    result = cli_runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == f"rightsize v{rightsize.__version__}"


def test_config_defaults(cli_runner: typer.testing.CliRunner) -> None:
    result = cli_runner.invoke(app, ["config"])
    assert result.exit_code == 0, result.stdout
    values = yaml.safe_load(result.stdout)
    assert values["executor"]["workers"] == 5
    assert values["feedback"]["priority"] == 10


def test_config_file(cli_runner: typer.testing.CliRunner, tmp_path: pathlib.Path) -> None:
    config_file = tmp_path / "rightsize.yaml"
    config_file.write_text("executor:\n  dry_run: true\n")
    result = cli_runner.invoke(app, ["config", "--config-file", str(config_file)])
    assert result.exit_code == 0
    assert yaml.safe_load(result.stdout)["executor"]["dry_run"] is True


def test_invalid_config_file(cli_runner: typer.testing.CliRunner, tmp_path: pathlib.Path) -> None:
    config_file = tmp_path / "rightsize.yaml"
    config_file.write_text("executor:\n  workers: 0\n")
    result = cli_runner.invoke(app, ["config", "-c", str(config_file)])
    assert result.exit_code == 2


def test_run_applies_overrides(cli_runner: typer.testing.CliRunner, mocker) -> None:
    run = mocker.patch.object(AgentRunner, "run", mocker.AsyncMock())
    init = mocker.spy(AgentRunner, "__init__")
    result = cli_runner.invoke(app, ["run", "--dry-run", "--workers", "3", "-l", "DEBUG"])

    assert result.exit_code == 0, result.stdout
    run.assert_awaited_once()
    config = init.call_args.args[1]
    assert config.executor.dry_run is True
    assert config.executor.workers == 3
    assert config.log_level == "DEBUG"


def test_execute(cli_runner: typer.testing.CliRunner, mocker, tmp_path: pathlib.Path) -> None:
    execute = mocker.patch.object(AgentRunner, "execute", mocker.AsyncMock())
    payload = tmp_path / "automation.json"
    payload.write_text(
        '{"id": "a1", "namespaceName": "default", "controllerKind": "Deployment",'
        ' "controllerName": "web", "containerName": "app"}'
    )
    result = cli_runner.invoke(app, ["execute", str(payload), "--dry-run"])

    assert result.exit_code == 0, result.stdout
    command = execute.call_args.args[0]
    assert command.id == "a1"


def test_execute_invalid_payload(
    cli_runner: typer.testing.CliRunner, mocker, tmp_path: pathlib.Path
) -> None:
    execute = mocker.patch.object(AgentRunner, "execute", mocker.AsyncMock())
    payload = tmp_path / "automation.json"
    payload.write_text("{}")
    result = cli_runner.invoke(app, ["execute", str(payload)])
    assert result.exit_code == 1
    execute.assert_not_called()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    rightsize.logging.reset_to_defaults()
