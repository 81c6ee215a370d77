"""Command line interface for the taskforce agent system."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import DOMAINS, ConfigError, SystemSettings
from .llm.registry import ProviderRegistry
from .llm.types import ProviderType
from .system import create_agent_system
from .tasks.base import TaskResult

app = typer.Typer(help="Hierarchical LLM agent system")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML configuration")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load(config_path: Optional[Path], log_level: Optional[str] = None) -> SystemSettings:
    try:
        settings = SystemSettings.load(config_path)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=2) from exc
    setup_logging(log_level or settings.log_level)
    return settings


def _provider_type(value: str) -> ProviderType:
    try:
        return ProviderType(value.lower())
    except ValueError as exc:
        choices = ", ".join(item.value for item in ProviderType)
        raise typer.BadParameter(f"expected one of: {choices}") from exc


def _registry(settings: SystemSettings) -> ProviderRegistry:
    providers = ProviderRegistry(active=settings.active_provider)
    providers.initialize_all(settings.providers)
    return providers


def _render_result(result: TaskResult) -> None:
    if result.success:
        output = result.output if isinstance(result.output, str) else json.dumps(result.output, indent=2, default=str)
        console.print(Panel(output or "(empty response)", title="[bold green]Result", expand=False))
    else:
        console.print(Panel(result.error or "Unknown error", title="[bold red]Failed", expand=False))
    if result.execution_time_ms is not None:
        console.print(f"[dim]{result.execution_time_ms:.0f} ms, {result.iterations} iteration(s)[/]")


@app.command()
def run(
    description: str = typer.Argument(..., help="What the agents should do"),
    config_path: Optional[Path] = ConfigOption,
    context: Optional[str] = typer.Option(None, help="JSON object with extra context"),
    direct_to: Optional[str] = typer.Option(None, help=f"Skip the master and use one of: {', '.join(DOMAINS)}"),
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """Run a single task through the agent hierarchy."""

    settings = _load(config_path, log_level)
    extra = None
    if context:
        try:
            extra = json.loads(context)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"--context is not valid JSON: {exc}") from exc
        if not isinstance(extra, dict):
            raise typer.BadParameter("--context must be a JSON object")
    if direct_to and direct_to not in DOMAINS:
        raise typer.BadParameter(f"--direct-to must be one of: {', '.join(DOMAINS)}")

    system = create_agent_system(settings)
    console.print(f"[bold green]Running task[/] via {direct_to or 'master'} ({system.providers.active_type.value})")
    with console.status("[cyan]thinking..."):
        result = system.execute(description, extra, direct_to=direct_to)
    _render_result(result)
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def batch(
    config_path: Path = typer.Argument(..., help="YAML configuration with a tasks list"),
    show_output: bool = typer.Option(False, help="Print each task's full output"),
) -> None:
    """Execute every task listed in the configuration file."""

    settings = _load(config_path)
    if not settings.tasks:
        console.print("[yellow]No tasks configured.[/]")
        raise typer.Exit()

    plan = Table(title="Execution Plan", show_lines=True)
    plan.add_column("Task ID")
    plan.add_column("Route")
    plan.add_column("Description")
    for spec in settings.tasks:
        plan.add_row(spec.id, spec.direct_to or "master", spec.description)
    console.print(plan)

    system = create_agent_system(settings)
    runner = system.runner()
    progress = Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("{task.fields[status]}"),
        transient=False,
    )
    with progress:
        rows = {
            spec.id: progress.add_task(f"{spec.id} - {spec.description}", status="[yellow]pending", start=False)
            for spec in settings.tasks
        }
        for spec in settings.tasks:
            progress.update(rows[spec.id], status="[cyan]thinking...", start=True)
            result = runner.run(spec)
            status = "[green]completed" if result.success else f"[red]failed: {result.error}"
            progress.update(rows[spec.id], status=status)

    results = runner.results()
    if show_output:
        for task_id, result in results.items():
            console.rule(f"Output for {task_id}")
            _render_result(result)
    failed = [task_id for task_id, result in results.items() if not result.success]
    console.print(f"[bold]{len(results) - len(failed)}/{len(results)} tasks succeeded[/]")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def status(config_path: Optional[Path] = ConfigOption) -> None:
    """Show the agents in the hierarchy and their current state."""

    settings = _load(config_path)
    system = create_agent_system(settings)
    table = Table(title="Agent status")
    table.add_column("Agent")
    table.add_column("Status")
    table.add_column("Tools")
    agents = {"master": system.master, **system.master.domain_orchestrators()}
    for key, snapshot in system.get_status().items():
        agent = agents[key]
        table.add_row(agent.name, snapshot.status.value, ", ".join(agent.tools.names()))
    console.print(table)


@app.command()
def providers(config_path: Optional[Path] = ConfigOption) -> None:
    """List configured model backends."""

    settings = _load(config_path)
    table = Table(title="Providers")
    table.add_column("Type")
    table.add_column("Enabled")
    table.add_column("Base URL")
    table.add_column("Default model")
    table.add_column("API key")
    for provider_type, config in settings.providers.items():
        marker = " (active)" if provider_type == settings.active_provider else ""
        table.add_row(
            provider_type.value + marker,
            "yes" if config.enabled else "no",
            config.base_url or "-",
            config.default_model or "-",
            "set" if config.api_key else "-",
        )
    console.print(table)


@app.command("test-provider")
def test_provider(
    provider: str = typer.Argument(..., help="Provider type to probe"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Check connectivity to one backend."""

    settings = _load(config_path)
    outcome = _registry(settings).test_provider(_provider_type(provider))
    if outcome.success:
        console.print(f"[bold green]{provider}: connection OK[/]")
        return
    console.print(f"[bold red]{provider}: {outcome.error}[/]")
    raise typer.Exit(code=1)


@app.command()
def models(
    provider: str = typer.Argument(..., help="Provider type to query"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """List the models a backend offers."""

    settings = _load(config_path)
    registry = _registry(settings)
    try:
        entries = registry.list_models(_provider_type(provider))
    except Exception as exc:
        console.print(f"[bold red]Could not list models:[/] {exc}")
        raise typer.Exit(code=1) from exc
    table = Table(title=f"{provider} models")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Context")
    table.add_column("Tools")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.name,
            str(entry.context_length or "-"),
            "yes" if entry.supports_tool_calling else "no",
        )
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
