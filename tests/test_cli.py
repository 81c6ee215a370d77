import pytest
from rich.console import Console
from typer.testing import CliRunner

from taskforce import cli
from taskforce.llm import ProviderType
from taskforce.system import create_agent_system

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr(cli, "console", Console(width=200))


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "taskforce.yaml"
    path.write_text(
        "active_provider: ollama\n"
        "providers:\n"
        "  ollama:\n"
        "    enabled: true\n"
        "tasks:\n"
        "  - id: hello\n"
        "    description: Say hello\n"
    )
    return path


def test_providers_lists_backends(config_file):
    result = runner.invoke(cli.app, ["providers", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "ollama" in result.output
    assert "openrouter" in result.output


def test_status_shows_hierarchy(config_file):
    result = runner.invoke(cli.app, ["status", "-c", str(config_file)])

    assert result.exit_code == 0
    assert "Master Orchestrator" in result.output
    assert "Content Orchestrator" in result.output


def test_invalid_config_exits_with_usage_code(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("active_provider: mystery\n")

    result = runner.invoke(cli.app, ["providers", "--config", str(path)])

    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_unknown_provider_name_is_rejected(config_file):
    result = runner.invoke(cli.app, ["test-provider", "mystery", "--config", str(config_file)])

    assert result.exit_code == 2


def test_run_rejects_non_object_context(config_file):
    result = runner.invoke(cli.app, ["run", "Say hello", "--config", str(config_file), "--context", "[1, 2]"])

    assert result.exit_code == 2


def test_run_prints_result(config_file, scripted, monkeypatch):
    registry, _ = scripted("Hello from the agents.", provider_type=ProviderType.OLLAMA)
    monkeypatch.setattr(cli, "create_agent_system", lambda settings: create_agent_system(settings, providers=registry))

    result = runner.invoke(cli.app, ["run", "Say hello", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "Hello from the agents." in result.output


def test_batch_reports_failures(config_file, scripted, monkeypatch):
    registry, _ = scripted(provider_type=ProviderType.OLLAMA)
    monkeypatch.setattr(cli, "create_agent_system", lambda settings: create_agent_system(settings, providers=registry))

    result = runner.invoke(cli.app, ["batch", str(config_file)])

    assert result.exit_code == 1
    assert "0/1 tasks succeeded" in result.output
