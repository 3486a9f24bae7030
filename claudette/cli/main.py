"""
CLI interface for claudette.

Reports token usage and session blocks reconstructed from assistant logs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from claudette import __version__
from claudette.config.loader import AppConfig, resolve_config
from claudette.core.aggregation import GroupBy, group_usage, usage_totals
from claudette.core.burn_rate import calculate_burn_rate
from claudette.core.formatting import (
    format_duration,
    format_tokens,
    format_tokens_short,
)
from claudette.core.sessions import get_active_block
from claudette.storage.models import ClaudetteError, GroupedUsage, ModelUsage
from claudette.storage.repository import UsageRepository, get_repository
from claudette.storage.sources import DEFAULT_PROJECT_ROOTS

app = typer.Typer(help="Claude Code usage statistics viewer")
projects_app = typer.Typer(help="Manage projects")
app.add_typer(projects_app, name="projects")
console = Console()

logger = logging.getLogger(__name__)

EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1

# Below this console width token counts use K/M/B suffixes
SHORT_FORMAT_WIDTH = 100

RULE = "━" * 40


def _configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"claudette {__version__}")
        raise typer.Exit()


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(EXIT_CODE_ERROR)


def _state(ctx: typer.Context) -> Dict[str, Any]:
    return ctx.ensure_object(dict)


def _config(ctx: typer.Context) -> AppConfig:
    return _state(ctx).get("config") or AppConfig()


def _repository_for(config: AppConfig) -> UsageRepository:
    # Default roots share the process-wide repository
    if config.project_roots == DEFAULT_PROJECT_ROOTS:
        return get_repository()
    return get_repository(config.project_roots)


def _repository(ctx: typer.Context) -> UsageRepository:
    return _repository_for(_config(ctx))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable debug logging"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version"
    ),
):
    """Claude Code usage statistics viewer."""
    try:
        config = resolve_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        _fail(f"invalid configuration: {e}")

    _configure_logging("DEBUG" if verbose else config.log_level)
    _state(ctx)["config"] = config

    if ctx.invoked_subcommand is None:
        usage(ctx, json_output=False, project=None, group=None)


@app.command()
def usage(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output data as JSON instead of a table"
    ),
    project: Optional[str] = typer.Option(
        None,
        "--project",
        "-p",
        help="Filter to a specific project"
    ),
    group: Optional[GroupBy] = typer.Option(
        None,
        "--group",
        "-g",
        case_sensitive=False,
        help="Group by time period or project"
    ),
):
    """Show token usage grouped by period."""
    repository = _repository(ctx)
    group_by = group or _config(ctx).group_by

    try:
        if json_output:
            _output_json(repository, project, group_by)
            sys.exit(EXIT_CODE_OK)

        selected = repository.find_project(project) if project else None
        if selected is None and not repository.list_projects():
            console.print("\n[bold yellow]No projects found[/]")
            console.print(f"\nLooked in: {', '.join(str(r) for r in repository.roots)}\n")
            sys.exit(EXIT_CODE_OK)

        grouped = repository.load_grouped_usage(group_by, selected)
        title = selected.name if selected else "All Projects"
        _display_usage_table(title, grouped)
        sys.exit(EXIT_CODE_OK)
    except ClaudetteError as e:
        _fail(str(e))


@app.command()
def sessions(
    ctx: typer.Context,
    session_id: Optional[str] = typer.Option(
        None,
        "--id",
        help="Show hourly usage for one session block"
    ),
):
    """Show session history, newest first."""
    config = _config(ctx)
    blocks = _repository(ctx).load_all_session_blocks(config.session_duration)

    if session_id:
        block = next((b for b in blocks if b.id == session_id), None)
        if block is None:
            _fail(f"session not found: {session_id}")
        if block.is_gap:
            _fail(f"session is an idle gap: {session_id}")
        _display_usage_table(f"Session {block.id}", group_usage(block.entries, GroupBy.HOUR))
        sys.exit(EXIT_CODE_OK)

    if not blocks:
        console.print("No sessions found")
        sys.exit(EXIT_CODE_OK)

    table = Table(title="Session History")
    for header in ("Session", "Status", "Models", "Tokens"):
        table.add_column(header, justify="right" if header == "Tokens" else "left")

    for block in sorted(blocks, key=lambda b: b.start_time, reverse=True):
        if block.is_gap:
            table.add_row(
                f"Gap: {format_duration(block.end_time - block.start_time)}",
                f"{_local(block.start_time, '%I:%M %p')} to {_local(block.end_time, '%I:%M %p %Z')}",
                "",
                "",
            )
            continue
        start = _local(block.start_time, "%b %d, %I:%M %p")
        end = _local(block.end_time, "%I:%M %p %Z")
        table.add_row(
            f"{start} - {end}",
            "[green]Active[/]" if block.is_active else "",
            escape(", ".join(block.models)),
            format_tokens(block.total_tokens),
        )

    console.print(table)
    latest = next(b for b in reversed(blocks) if not b.is_gap)
    console.print(f"[dim]Hourly detail: claudette sessions --id {latest.id}[/]")
    sys.exit(EXIT_CODE_OK)


@app.command()
def status(ctx: typer.Context):
    """Show the current session status."""
    config = _config(ctx)
    blocks = _repository(ctx).load_all_session_blocks(config.session_duration)

    active = get_active_block(blocks)
    if active is None:
        console.print("No active session found")
        sys.exit(EXIT_CODE_OK)

    now = datetime.now(timezone.utc)
    burn = calculate_burn_rate(active)

    console.print(f"Session ID: {active.id}")
    console.print("Status:     Active")
    console.print(f"Start Time: {_local(active.start_time, '%I:%M %p %Z')}")
    console.print(f"End Time:   {_local(active.end_time, '%I:%M %p %Z')}")
    console.print(
        f"Duration:   {format_duration(now - active.start_time)} / "
        f"{format_duration(config.session_duration)}"
    )
    console.print(f"Remaining:  {format_duration(active.end_time - now)}")
    console.print(RULE)
    console.print(f"Input:      {format_tokens(active.input_tokens)}")
    console.print(f"Output:     {format_tokens(active.output_tokens)}")
    console.print(f"Cache W:    {format_tokens(active.cache_creation_tokens)}")
    console.print(f"Cache R:    {format_tokens(active.cache_read_tokens)}")
    console.print(f"Total:      {format_tokens(active.total_tokens)}")
    console.print(RULE)

    if burn is not None:
        console.print(f"Burn Rate:  {burn.tokens_per_minute:.1f} tokens/min")

    sys.exit(EXIT_CODE_OK)


@projects_app.command("list")
def list_projects(ctx: typer.Context):
    """List available projects."""
    for project in _repository(ctx).list_projects():
        console.print(escape(project.name))
    sys.exit(EXIT_CODE_OK)


def _local(ts: datetime, fmt: str) -> str:
    return ts.astimezone().strftime(fmt)


def _token_counts(input_: int, output: int, cache_write: int, cache_read: int) -> Dict[str, int]:
    return {
        "input": input_,
        "output": output,
        "cache_write": cache_write,
        "cache_read": cache_read,
        "total": input_ + output + cache_write + cache_read,
    }


def _usage_to_dict(u: GroupedUsage) -> Dict[str, Any]:
    models = []
    for name in u.models:
        m: ModelUsage = u.by_model[name]
        models.append({
            "model": name,
            "tokens": _token_counts(m.input, m.output, m.cache_create, m.cache_read),
        })
    return {
        "period": u.period,
        "models": models,
        "totals": _token_counts(
            u.input_total, u.output_total, u.cache_create_total, u.cache_read_total
        ),
    }


def _output_json(repository: UsageRepository, project: Optional[str], group_by: GroupBy) -> None:
    """Print per-project grouped usage as indented JSON.

    Raises:
        ProjectNotFoundError: If ``project`` names no known project
    """
    if project:
        projects = [repository.find_project(project)]
    else:
        projects = repository.list_projects()

    output: Dict[str, List[Dict[str, Any]]] = {"projects": []}
    for p in projects:
        grouped = repository.load_grouped_usage(group_by, p)
        output["projects"].append({
            "name": p.name,
            "path": str(p.path),
            "usage": [_usage_to_dict(u) for u in grouped],
        })

    typer.echo(json.dumps(output, indent=2))


def _display_usage_table(title: str, grouped: List[GroupedUsage]) -> None:
    """Render grouped usage as one table with a grand total row."""
    if not grouped:
        console.print(f"\n[bold]{escape(title)}[/bold]")
        console.print("\n[dim]No usage data found[/]\n")
        return

    use_short = console.width < SHORT_FORMAT_WIDTH
    fmt = format_tokens_short if use_short else format_tokens

    table = Table(title=escape(title), show_lines=True)
    table.add_column("Period")
    table.add_column("Model")
    for header in ("Input", "Output", "Cache Write", "Cache Read", "Total"):
        table.add_column(header, justify="right")

    for u in grouped:
        for i, name in enumerate(u.models):
            m = u.by_model[name]
            table.add_row(
                escape(u.period) if i == 0 else "",
                escape(name),
                fmt(m.input),
                fmt(m.output),
                fmt(m.cache_create),
                fmt(m.cache_read),
                fmt(m.total),
            )

    input_total, output_total, cache_create, cache_read = usage_totals(grouped)
    table.add_row(
        "Total",
        "",
        fmt(input_total),
        fmt(output_total),
        fmt(cache_create),
        fmt(cache_read),
        fmt(input_total + output_total + cache_create + cache_read),
    )

    console.print(table)


if __name__ == "__main__":
    app()
