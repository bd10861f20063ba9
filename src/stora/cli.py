"""
Command-line interface for the STORA sync client.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from stora.config import load_settings
from stora.errors import StoraError
from stora.logging_setup import configure_logging
from stora.schema.base import Family, Session

app = typer.Typer(
    name="stora",
    help="STORA - offline-first inventory and loan sync",
)
console = Console()

OWNER_OPTION = typer.Option(..., "--owner", "-o", envvar="STORA_OWNER_ID", help="Signed-in user id")
TOKEN_OPTION = typer.Option(..., "--token", "-t", envvar="STORA_TOKEN", help="Bearer token")


def _session(owner: int, token: str) -> Session:
    session = Session(owner_id=owner, token=token)
    try:
        session.require()
    except StoraError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    return session


@app.command()
def sync(
    owner: int = OWNER_OPTION,
    token: str = TOKEN_OPTION,
):
    """Push local changes, then pull server state, for every family."""

    async def _sync():
        from stora.remote import Connectivity, RemoteClient
        from stora.storage import SQLiteStore
        from stora.sync import SyncManager, status_line

        settings = load_settings()
        configure_logging(settings, console=False)
        session = _session(owner, token)

        store = SQLiteStore(settings.db_path)
        await store.initialize()
        connectivity = Connectivity(settings.server_origin, settings.probe_timeout_seconds)

        try:
            async with RemoteClient(settings, session.token) as remote:
                manager = SyncManager(session, store, remote, connectivity)
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                ) as progress:
                    task = progress.add_task("Syncing...", total=None)
                    reports = await manager.perform_full_sync()
                    progress.update(task, completed=True)
        finally:
            await store.close()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Family")
        table.add_column("Pushed")
        table.add_column("Failed")
        table.add_column("Pulled")
        table.add_column("Purged")
        table.add_column("Status")

        for report in reports:
            if report.offline:
                state = "[yellow]Offline[/yellow]"
            elif report.skipped:
                state = "[yellow]Busy[/yellow]"
            elif report.ok:
                state = "[green]OK[/green]"
            else:
                state = f"[red]{report.pull.error or 'Errors'}[/red]"
            table.add_row(
                report.family.value,
                str(report.push.succeeded),
                str(report.push.failed),
                str(report.pull.synced),
                str(report.pull.purged),
                state,
            )

        console.print(table)
        console.print(f"\n[bold]{status_line(reports)}[/bold]")

    asyncio.run(_sync())


@app.command()
def status(
    owner: int = OWNER_OPTION,
):
    """Show how many local changes are waiting to be pushed."""

    async def _status():
        from stora.storage import SQLiteStore

        settings = load_settings()
        store = SQLiteStore(settings.db_path)
        await store.initialize()
        try:
            counts = {family: await store.unsynced_count(family, owner) for family in Family}
        finally:
            await store.close()

        table = Table(show_header=True)
        table.add_column("Family")
        table.add_column("Unsynced")
        for family, count in counts.items():
            style = "yellow" if count else "green"
            table.add_row(family.value, f"[{style}]{count}[/{style}]")

        console.print(table)

    asyncio.run(_status())


@app.command()
def reminders(
    owner: int = OWNER_OPTION,
    all_reminders: bool = typer.Option(False, "--all", "-a", help="Show every reminder, not only due ones"),
):
    """List reminders that are due now."""

    async def _reminders():
        from stora.storage import SQLiteStore, views
        from stora.sync.reminders import is_due
        from stora.schema.base import now_millis

        settings = load_settings()
        store = SQLiteStore(settings.db_path)
        await store.initialize()
        try:
            rows = await views.reminders(store, owner)
        finally:
            await store.close()

        now = now_millis()
        if not all_reminders:
            rows = [r for r in rows if is_due(r, now)]

        if not rows:
            console.print("[dim]No reminders due.[/dim]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Title")
        table.add_column("Type")
        table.add_column("Schedule")
        table.add_column("Last notified")
        table.add_column("Due")

        for r in rows:
            if r.scheduled_at is not None:
                schedule = datetime.fromtimestamp(r.scheduled_at / 1000).strftime("%d/%m/%Y %H:%M")
            else:
                schedule = f"every {r.periodic_months} months"
            last = (
                datetime.fromtimestamp(r.last_notified / 1000).strftime("%d/%m/%Y %H:%M")
                if r.last_notified
                else "-"
            )
            due = "[green]yes[/green]" if is_due(r, now) else "no"
            table.add_row(r.title, r.reminder_type.value, schedule, last, due)

        console.print(table)

    asyncio.run(_reminders())


@app.command()
def daemon(
    interval: int = typer.Option(None, "--interval", "-i", help="Minutes between cycles"),
):
    """Run the sync scheduler until interrupted."""
    from stora.scheduler import run_sync_daemon

    settings = load_settings()
    configure_logging(settings)
    console.print(
        f"[bold]Starting sync daemon[/bold] "
        f"(every {interval or settings.sync_interval_minutes} minutes)"
    )
    asyncio.run(run_sync_daemon(interval, settings))


if __name__ == "__main__":
    app()
