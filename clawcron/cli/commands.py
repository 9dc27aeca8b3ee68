"""clawcron CLI — Typer-based command-line interface."""

from __future__ import annotations

import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from clawcron import __version__

app = typer.Typer(
    name="clawcron",
    help="clawcron - cron scheduling and execution engine for agent prompts",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"clawcron v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=_version_callback, is_eager=True
    ),
) -> None:
    """clawcron - cron scheduling and execution engine for agent prompts."""


def _fmt(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


# ════════════════════════════════════════════════════════════
# serve: start API server
# ════════════════════════════════════════════════════════════


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port number"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host address"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Start the API server (uvicorn) with the per-minute cron tick."""
    import uvicorn

    console.print(f"[green]Starting clawcron API on {host}:{port}[/green]")
    uvicorn.run("clawcron.api.app:app", host=host, port=port, reload=reload)


# ════════════════════════════════════════════════════════════
# status: config + DB info
# ════════════════════════════════════════════════════════════


@app.command()
def status() -> None:
    """Show configuration and database status."""
    from clawcron.core.config.loader import load_config
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)
    stats = store.stats()

    table = Table(title="clawcron status")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Version", __version__)
    table.add_row("Default model", config.assistant.model)
    table.add_row("DB Path", config.database.path)
    table.add_row("Tick", config.cron.tick)
    table.add_row("Jobs", f"{stats['enabled']}/{stats['jobs']} enabled")
    table.add_row("Sessions", str(stats["sessions"]))
    table.add_row("Running", str(stats["running"]))

    console.print(table)


# ════════════════════════════════════════════════════════════
# cron: cron job management (sub-command group)
# ════════════════════════════════════════════════════════════

cron_app = typer.Typer(help="Manage cron jobs")
app.add_typer(cron_app, name="cron")


@cron_app.command("list")
def cron_list() -> None:
    """List all cron jobs."""
    from clawcron.core.config.loader import load_config
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    jobs = store.list_jobs()
    if not jobs:
        console.print("[dim]No cron jobs found.[/dim]")
        return

    table = Table(title="Cron Jobs")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="blue")
    table.add_column("Schedule", style="yellow")
    table.add_column("Type", style="white")
    table.add_column("Enabled", style="green")
    table.add_column("Last run", style="dim")
    table.add_column("Next run", style="dim")

    for job in jobs:
        table.add_row(
            job.id,
            job.display_name,
            job.schedule,
            job.type,
            str(job.enabled),
            _fmt(job.last_run_at),
            _fmt(job.next_run_at),
        )

    console.print(table)


@cron_app.command("add")
def cron_add(
    name: str = typer.Argument(help="Display name"),
    schedule: str = typer.Argument(help="Cron expression, e.g. '0 9 * * *'"),
    prompt: str | None = typer.Option(None, "--prompt", "-p", help="AI prompt to run"),
    command: str | None = typer.Option(None, "--command", "-c", help="Shell command to run"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model override"),
    workspace: str | None = typer.Option(None, "--workspace", "-w", help="Workspace path"),
    disabled: bool = typer.Option(False, "--disabled", help="Create the job disabled"),
) -> None:
    """Add a cron job."""
    from clawcron.core.config.loader import load_config
    from clawcron.core.cron.jobs import create_job
    from clawcron.core.errors import ValidationError
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    try:
        job = create_job(
            store, name, schedule,
            prompt=prompt, command=command,
            model_id=model, workspace_path=workspace,
            enabled=not disabled,
            now=datetime.now(config.tz),
        )
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Added cron job:[/green] {job.id} ({job.schedule})")


@cron_app.command("remove")
def cron_remove(
    job_id: str = typer.Argument(help="Cron job ID to remove"),
) -> None:
    """Remove a cron job by ID."""
    from clawcron.core.config.loader import load_config
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    if store.remove_job(job_id):
        console.print(f"[green]Removed cron job:[/green] {job_id}")
    else:
        console.print(f"[red]Cron job not found:[/red] {job_id}")
        raise typer.Exit(code=1)


@cron_app.command("enable")
def cron_enable(
    job_id: str = typer.Argument(help="Cron job ID"),
    off: bool = typer.Option(False, "--off", help="Disable instead of enable"),
) -> None:
    """Enable (or with --off, disable) a cron job."""
    from clawcron.core.config.loader import load_config
    from clawcron.core.cron.jobs import update_job
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    job = update_job(store, job_id, {"enabled": not off}, now=datetime.now(config.tz))
    if job is None:
        console.print(f"[red]Cron job not found:[/red] {job_id}")
        raise typer.Exit(code=1)
    state = "enabled" if job.enabled else "disabled"
    console.print(f"[green]Cron job {state}:[/green] {job_id}")


@cron_app.command("run")
def cron_run(
    job_id: str | None = typer.Argument(None, help="Force-run this job; omit to run all due jobs"),
    workspace: str | None = typer.Option(None, "--workspace", "-w", help="Workspace override"),
) -> None:
    """Run due cron jobs now, or force-run one job."""
    from clawcron.api.app import build_runner
    from clawcron.core.config.loader import load_config
    from clawcron.core.errors import ValidationError
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)
    runner = build_runner(config, store)

    if job_id:
        try:
            result = asyncio.run(runner.run_cron_by_id(job_id, workspace))
        except ValidationError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1)
        if result is None:
            console.print(f"[red]Cron job not found:[/red] {job_id}")
            raise typer.Exit(code=1)
        results = [result]
    else:
        results = asyncio.run(runner.run_due_crons(workspace))

    if not results:
        console.print("[dim]No cron jobs due.[/dim]")
        return

    table = Table(title="Run results")
    table.add_column("ID", style="cyan")
    table.add_column("Status")
    table.add_column("Session", style="dim")
    table.add_column("Duration", style="dim")
    table.add_column("Error", style="red")
    for r in results:
        color = {"succeeded": "green", "failed": "red"}.get(r.status, "yellow")
        table.add_row(
            r.cron_id,
            f"[{color}]{r.status}[/{color}]",
            r.session_id or "-",
            f"{r.duration_ms}ms",
            r.error or "",
        )
    console.print(table)


# ════════════════════════════════════════════════════════════
# sessions: cron run sessions (sub-command group)
# ════════════════════════════════════════════════════════════

sessions_app = typer.Typer(help="Inspect cron run sessions")
app.add_typer(sessions_app, name="sessions")


@sessions_app.command("list")
def sessions_list(
    job_id: str | None = typer.Option(None, "--job", "-j", help="Only this cron job"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max sessions"),
) -> None:
    """List recent cron sessions."""
    from clawcron.core.config.loader import load_config
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    sessions = store.list_sessions(job_id=job_id, limit=limit)
    if not sessions:
        console.print("[dim]No cron sessions found.[/dim]")
        return

    table = Table(title="Cron Sessions")
    table.add_column("Session", style="cyan")
    table.add_column("Job", style="blue")
    table.add_column("Status")
    table.add_column("Started", style="dim")
    table.add_column("Finished", style="dim")

    for s in sessions:
        table.add_row(s.id, s.cron_id, s.status, _fmt(s.started_at), _fmt(s.finished_at))

    console.print(table)


@sessions_app.command("show")
def sessions_show(session_id: str = typer.Argument(help="Session ID")) -> None:
    """Show a session's output or error."""
    from clawcron.core.config.loader import load_config
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    s = store.get_session(session_id)
    if s is None:
        console.print(f"[red]Session not found:[/red] {session_id}")
        raise typer.Exit(code=1)
    console.print(f"[bold]{s.title or s.cron_id}[/bold] ({s.status})")
    if s.error:
        console.print(f"[red]{s.error}[/red]")
    if s.output:
        console.print(s.output)


@sessions_app.command("delete")
def sessions_delete(session_id: str = typer.Argument(help="Session ID")) -> None:
    """Delete a cron session."""
    from clawcron.core.config.loader import load_config
    from clawcron.memory.store import CronStore

    config = load_config()
    store = CronStore(config.database.path)

    if store.delete_session(session_id):
        console.print(f"[green]Deleted session:[/green] {session_id}")
    else:
        console.print(f"[red]Session not found:[/red] {session_id}")
        raise typer.Exit(code=1)
