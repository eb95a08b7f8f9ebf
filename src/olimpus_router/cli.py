"""CLI entry point for the Olimpus Router."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from olimpus_router import __version__
from olimpus_router.errors import CircularDelegationError, ConfigError, MetaAgentNotFoundError

console = Console()

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: olimpus.toml/json in the user and project dirs)",
)


def _load(config_path: Path | None, project_dir: Path | None = None):  # noqa: ANN202
    from olimpus_router.config import load_config

    try:
        return load_config(config_path, project_dir=project_dir)
    except ConfigError as e:
        raise click.ClickException(f"Invalid config: {e}") from e


@click.group()
@click.version_option(version=__version__, prog_name="olimpus")
def main() -> None:
    """Olimpus Router - declarative meta-agent routing."""


@main.command()
@config_option
def agents(config_path: Path | None) -> None:
    """List configured meta-agents."""
    config = _load(config_path)

    if not config.meta_agents:
        console.print("[dim]No meta-agents configured.[/dim]")
        return

    table = Table(title="Meta-Agents")
    table.add_column("Name", style="cyan")
    table.add_column("Base Model", style="green")
    table.add_column("Rules")
    table.add_column("Delegates To")

    for name, definition in config.meta_agents.items():
        table.add_row(
            name,
            definition.base_model,
            str(len(definition.routing_rules)),
            ", ".join(definition.delegates_to),
        )

    console.print(table)


@main.command()
@click.argument("meta_agent")
@click.argument("prompt")
@config_option
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project directory scanned for project_context matchers",
)
@click.option("--trace", is_flag=True, help="Show every rule evaluation")
def route(
    meta_agent: str, prompt: str, config_path: Path | None, project_dir: Path | None, trace: bool
) -> None:
    """Route PROMPT through META_AGENT and show the chosen delegate."""
    from dataclasses import replace

    from olimpus_router.config import build_registry
    from olimpus_router.routing import LogOutput, ProjectSnapshot, RoutingContext

    config = _load(config_path, project_dir)
    if trace:
        routing_logger = replace(
            config.settings.routing_logger,
            enabled=True,
            output=LogOutput.CONSOLE,
            debug_mode=True,
            colored=True,
        )
        config = replace(config, settings=replace(config.settings, routing_logger=routing_logger))
    registry = build_registry(config)
    snapshot = ProjectSnapshot.from_directory(project_dir) if project_dir else None
    context = RoutingContext(prompt=prompt, project=snapshot)

    try:
        chain = registry.route(meta_agent, context)
    except MetaAgentNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except CircularDelegationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(2) from e

    final = chain.final
    if final is None:
        console.print(f"[yellow]No routing rule matched for {escape(meta_agent)}.[/yellow]")
        return

    console.print(f"[bold]Path:[/bold] {escape(' -> '.join(chain.path))}")
    console.print(f"[bold]Target:[/bold] [cyan]{escape(final.target_agent)}[/cyan]")
    console.print(f"[bold]Matcher:[/bold] {final.matcher_type} ({escape(final.matched_content)})")
    console.print(f"[bold]Model:[/bold] {escape(final.config.model)}")
    if final.config.temperature is not None:
        console.print(f"[bold]Temperature:[/bold] {final.config.temperature}")
    if final.config.variant:
        console.print(f"[bold]Variant:[/bold] {escape(final.config.variant)}")


@main.command()
@config_option
def validate(config_path: Path | None) -> None:
    """Check the configuration for semantic problems."""
    from olimpus_router.config import validate_config

    config = _load(config_path)
    problems = validate_config(config)

    if not problems:
        console.print(f"[green]Config OK: {len(config.meta_agents)} meta-agent(s).[/green]")
        return

    console.print("[red]Problems:[/red]")
    for problem in problems:
        console.print(f"  - {escape(problem)}", soft_wrap=True)
    raise SystemExit(1)


@main.group()
def analytics() -> None:
    """Inspect recorded routing analytics."""


storage_option = click.option(
    "--storage-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Analytics snapshot (default: from config, else analytics.json)",
)


def _open_storage(config_path: Path | None, storage_file: Path | None):  # noqa: ANN202
    from dataclasses import replace

    from olimpus_router.analytics import AnalyticsStorage

    analytics_config = _load(config_path).analytics
    if storage_file is not None:
        analytics_config = replace(analytics_config, storage_file=str(storage_file))
    return AnalyticsStorage(analytics_config)


@analytics.command()
@config_option
@storage_option
def summary(config_path: Path | None, storage_file: Path | None) -> None:
    """Show agent and matcher usage."""
    from olimpus_router.analytics import AnalyticsAggregator

    storage = _open_storage(config_path, storage_file)
    result = AnalyticsAggregator(storage.get_all_events()).aggregate()

    if result.total_events == 0:
        console.print("[dim]No analytics events recorded yet.[/dim]")
        return

    table = Table(title="Agent Usage")
    table.add_column("Agent", style="cyan")
    table.add_column("Requests", style="bold")
    table.add_column("Last Used")
    table.add_column("Meta-Agents")

    for name in result.top_agents:
        stats = result.agent_metrics[name]
        table.add_row(
            name,
            str(stats.total_requests),
            (stats.last_used or "")[:19],
            ", ".join(f"{meta} ({count})" for meta, count in stats.meta_agents.items()),
        )
    console.print(table)

    table = Table(title="Matcher Effectiveness")
    table.add_column("Matcher", style="yellow")
    table.add_column("Matched", style="bold")
    table.add_column("Targets")

    for name in result.top_matchers:
        stats = result.matcher_metrics[name]
        table.add_row(
            name,
            str(stats.matched_count),
            ", ".join(f"{agent} ({count})" for agent, count in stats.target_agents.items()),
        )
    console.print(table)

    console.print(
        f"\nTotal: {result.total_events} events | "
        f"Routed: {result.routing_decisions} | "
        f"Unmatched: {result.unmatched_requests}"
    )


@analytics.command()
@config_option
@storage_option
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["json", "csv"]),
    default=None,
    help="Output format (default: csv for a .csv --output, else json)",
)
@click.option("--since", type=click.DateTime(), default=None, help="Only events at or after (UTC)")
@click.option("--until", type=click.DateTime(), default=None, help="Only events at or before (UTC)")
@click.option("--agent", multiple=True, help="Only routing decisions to this agent (repeatable)")
@click.option("--aggregate", is_flag=True, help="Export agent and matcher statistics instead")
def export(
    config_path: Path | None,
    storage_file: Path | None,
    output: Path | None,
    fmt: str | None,
    since: datetime | None,
    until: datetime | None,
    agent: tuple[str, ...],
    aggregate: bool,
) -> None:
    """Export recorded analytics as JSON or CSV."""
    from olimpus_router.analytics import AnalyticsExporter, ExportFormat

    exporter = AnalyticsExporter(_open_storage(config_path, storage_file))
    if fmt is None:
        fmt = ExportFormat.from_path(output) if output is not None else ExportFormat.JSON
    payload = exporter.export(fmt, since, until, agent, aggregate=aggregate).rstrip("\n")

    if output is None:
        click.echo(payload)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(payload + "\n", encoding="utf-8")
    count = len(exporter.select(since, until, agent))
    console.print(f"[green]Exported {count} event(s) to {output}[/green]")


@analytics.command()
@config_option
@storage_option
@click.confirmation_option(prompt="Delete all recorded analytics events?")
def clear(config_path: Path | None, storage_file: Path | None) -> None:
    """Delete every recorded analytics event."""
    storage = _open_storage(config_path, storage_file)
    count = storage.get_event_count()
    storage.clear()
    console.print(f"[green]Cleared {count} event(s).[/green]")

