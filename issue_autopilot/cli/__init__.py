"""
Command Line Interface for Issue Autopilot.
"""

from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import Settings, ensure_required, get_settings
from ..engine.results import ExecutionSummary
from ..errors import AutopilotError, ConfigurationError
from ..logging_config import configure_logging
from ..policy.plan_gate import PlanGateConfig, PlanValidationError, evaluate

app = typer.Typer(help="Issue Autopilot - turns repository issues into applied file changes")
console = Console()


def _require(settings: Settings) -> None:
    try:
        ensure_required(settings)
    except ConfigurationError as e:
        console.print(f"❌ {e}")
        raise typer.Exit(code=1)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Plan and report without writing"),
):
    """Configure logging and global flags."""
    settings = get_settings()
    if dry_run:
        settings.dry_run = True
    configure_logging(log_level or settings.log_level, settings.log_format)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
):
    """Start the HTTP server (and the poll loop when enabled)."""
    settings = get_settings()
    _require(settings)
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit(f"🤖 Issue Autopilot for {settings.repo_full_name}", style="bold blue"))
    console.print(f"🚀 Listening on http://{host}:{port}")
    uvicorn.run("issue_autopilot.main:app", host=host, port=port, workers=1)


@app.command()
def poll(once: bool = typer.Option(False, "--once", help="Run a single poll cycle")):
    """Poll open issues without the HTTP server."""
    from ..worker.loop import run_worker

    settings = get_settings()
    _require(settings)
    console.print(f"🔄 Polling {settings.repo_full_name} every {settings.check_interval}s")
    run_worker(settings, once=once)


@app.command()
def process(number: int = typer.Argument(..., help="Issue number")):
    """Process a single issue now."""
    from ..runtime import build_runtime

    settings = get_settings()
    _require(settings)

    runtime = build_runtime(settings)
    try:
        try:
            item = runtime.retry.call(runtime.tracker.get_issue, number)
        except AutopilotError as e:
            console.print(f"❌ Could not load issue #{number}: {e}")
            raise typer.Exit(code=1)
        summary = runtime.pipeline.process_work_item(item)
    finally:
        runtime.close()

    if summary is None:
        console.print(f"Issue #{number} was already processed")
        return
    _print_summary(summary)
    if summary.fatal_error:
        raise typer.Exit(code=1)


@app.command()
def validate(
    plan_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Raw plan text or JSON"),
):
    """Run the plan gate on a saved reasoning answer."""
    settings = get_settings()
    try:
        result = evaluate(plan_file.read_text(encoding="utf-8"), PlanGateConfig.from_settings(settings))
    except PlanValidationError as e:
        console.print(f"❌ {e.code}: {e.message}")
        raise typer.Exit(code=1)

    plan = result.plan
    table = Table(title=f"Plan for issue #{plan.issue_number}")
    table.add_column("#", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Path", style="magenta")
    table.add_column("Verdict")

    for index, action in enumerate(plan.actions):
        table.add_row(str(index), action.type, action.path, "[green]accepted[/green]")
    for rejected in result.rejected:
        table.add_row(
            str(rejected.index),
            rejected.action.type,
            rejected.action.path,
            f"[red]rejected: {rejected.reason}[/red]",
        )

    console.print(table)
    if result.truncated:
        console.print(f"⚠️ {result.truncated} action(s) dropped over the limit of {settings.max_actions}")
    console.print(f"close_issue={plan.close_issue} state_reason={plan.state_reason}")


def _print_summary(summary: ExecutionSummary) -> None:
    table = Table(title=f"Issue #{summary.work_item_number} ({summary.state.value})")
    table.add_column("#", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Path", style="magenta")
    table.add_column("Outcome")
    table.add_column("Detail")

    colors = {"applied": "green", "skipped": "yellow", "failed": "red"}
    for result in summary.results:
        color = colors[result.outcome.value]
        detail = result.error or result.reason or (result.effect.value if result.effect else "")
        table.add_row(
            str(result.index),
            result.action_type.value,
            result.path,
            f"[{color}]{result.outcome.value}[/{color}]",
            detail,
        )

    console.print(table)
    counters = summary.counters
    console.print(
        f"created={counters.created} updated={counters.updated} "
        f"deleted={counters.deleted} errors={counters.errors}"
    )
    if summary.merge_request_url:
        console.print(f"🔗 {summary.merge_request_url}")
    if summary.fatal_error:
        console.print(f"❌ {summary.fatal_error}")


if __name__ == "__main__":
    app()
