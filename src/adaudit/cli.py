"""adaudit CLI - Main entry point."""

import asyncio
import contextlib
import json
import logging
import signal
import time
from typing import Any

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="adaudit",
    help="Ad creative audit dashboard - account sync from the command line",
    no_args_is_help=True,
)
console = Console()

# Sub-command groups
integrations_app = typer.Typer(help="Connected ad account commands")

app.add_typer(integrations_app, name="integrations")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Sync and maintain ad accounts connected to the audit dashboard."""
    from .config import settings

    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _output_result(result: Any, json_output: bool = False) -> None:
    """Output result as JSON or formatted."""
    if json_output:
        console.print_json(json.dumps(result, default=str))
    else:
        console.print(result)


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


@contextlib.contextmanager
def _cancel_on_interrupt(bridge):
    """Route Ctrl+C to ``bridge.request_cancel`` while the block runs."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, bridge.request_cancel)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        # Not the main thread, or a loop without signal support.
        installed = False
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


# ============================================================================
# Integrations Commands
# ============================================================================


@integrations_app.command("list")
def integrations_list(
    platform: str = typer.Option(None, "--platform", "-p", help="Filter by platform (meta, google)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """List connected ad accounts."""
    from .api import AdAuditClient, AdAuditError

    async def _list():
        async with AdAuditClient.from_settings() as api:
            return await api.integrations.list()

    try:
        integrations = asyncio.run(_list())
    except AdAuditError as e:
        _fail(e.message)

    if platform:
        integrations = [i for i in integrations if i.get("platform") == platform]

    if json_output:
        _output_result(integrations, json_output=True)
        return

    table = Table(title=f"Integrations ({len(integrations)})")
    table.add_column("ID", style="dim", max_width=24)
    table.add_column("Platform", style="yellow")
    table.add_column("Account", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Last Sync", style="white")

    for i in integrations:
        table.add_row(
            str(i.get("id", ""))[:24],
            i.get("platform") or "-",
            i.get("accountName") or i.get("accountId") or "-",
            i.get("status") or "-",
            str(i.get("lastSync") or "never"),
        )

    console.print(table)


@integrations_app.command("history")
def integrations_history(
    limit: int = typer.Option(20, "--limit", "-l", help="Max entries to show"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Show recent sync runs."""
    from .api import AdAuditClient, AdAuditError

    async def _history():
        async with AdAuditClient.from_settings() as api:
            return await api.integrations.sync_history()

    try:
        history = asyncio.run(_history())[:limit]
    except AdAuditError as e:
        _fail(e.message)

    if json_output:
        _output_result(history, json_output=True)
        return

    table = Table(title=f"Sync History ({len(history)})")
    table.add_column("Started", style="dim")
    table.add_column("Type", style="yellow")
    table.add_column("Status")
    table.add_column("Campaigns", justify="right")
    table.add_column("Ad Sets", justify="right")
    table.add_column("Creatives", justify="right")
    table.add_column("Error", style="red")

    for h in history:
        table.add_row(
            str(h.get("startedAt", "-")),
            h.get("type") or "-",
            h.get("status") or "-",
            str(h.get("campaignsSynced", 0)),
            str(h.get("adSetsSynced", 0)),
            str(h.get("creativeSynced", 0)),
            h.get("errorMessage") or "",
        )

    console.print(table)


@integrations_app.command("disconnect")
def integrations_disconnect(
    integration_id: str = typer.Argument(..., help="Integration ID"),
    keep_data: bool = typer.Option(False, "--keep-data", help="Keep synced campaigns, ad sets and creatives"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Disconnect an ad account."""
    from .api import AdAuditClient, AdAuditError

    if not force:
        prompt = f"Disconnect {integration_id}"
        prompt += "?" if keep_data else " and delete its synced data?"
        if not typer.confirm(prompt):
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    async def _disconnect():
        async with AdAuditClient.from_settings() as api:
            return await api.integrations.delete(integration_id, delete_data=not keep_data)

    try:
        result = asyncio.run(_disconnect())
    except AdAuditError as e:
        _fail(e.message)

    console.print(f"[green]{result.get('message') or 'Integration disconnected'}[/green]")


# ============================================================================
# Sync Commands
# ============================================================================


@app.command("sync")
def sync(
    integration_id: str = typer.Argument(..., help="Integration ID"),
):
    """Sync one connected account (campaigns, ad sets, creatives)."""
    from .api import AdAuditClient, AdAuditError
    from .config import settings
    from .report import format_duration, render_steps, summarize_counts
    from .sync import CancellationBridge, StepTracker, StreamedSyncSession, SyncCancelled, SyncError

    bridge = CancellationBridge()
    tracker = StepTracker(settings.step_names)

    def _note(note: str) -> None:
        console.print(Panel(note, title="First sync", border_style="blue"))

    async def _sync():
        async with AdAuditClient.from_settings() as api:
            session = StreamedSyncSession(api, integration_id, tracker=tracker, bridge=bridge, on_note=_note)
            with Live(render_steps(tracker.steps), console=console, refresh_per_second=8) as live:
                tracker.on_change = lambda steps, progress: live.update(render_steps(steps, progress))
                with _cancel_on_interrupt(bridge):
                    return await session.run()

    started = time.monotonic()
    try:
        counts = asyncio.run(_sync())
    except SyncCancelled:
        console.print("[yellow]Sync cancelled[/yellow]")
        raise typer.Exit(1)
    except (SyncError, AdAuditError) as e:
        _fail(e.message)

    console.print(
        Panel(
            f"[bold green]{summarize_counts(counts)}[/bold green]\n\n"
            f"[dim]Finished in {format_duration((time.monotonic() - started) * 1000)}[/dim]",
            title="Sync Complete",
        )
    )


@app.command("sync-all")
def sync_all(
    platform: str = typer.Option(None, "--platform", "-p", help="Only sync this platform (meta, google)"),
):
    """Sync every connected account, one after another. Ctrl+C cancels."""
    from .api import AdAuditClient, AdAuditError
    from .config import settings
    from .report import render_bulk_progress, render_bulk_report
    from .sync import AccountRef, BulkSyncController

    async def _sync_all():
        async with AdAuditClient.from_settings() as api:
            integrations = await api.integrations.list()
            if platform:
                integrations = [i for i in integrations if i.get("platform") == platform]
            accounts = [AccountRef.from_integration(i) for i in integrations]
            if not accounts:
                return None

            controller = BulkSyncController.for_client(
                api,
                grace_seconds=settings.stream_grace_seconds,
                step_names=settings.step_names,
            )
            with Live(console=console, refresh_per_second=8) as live:
                controller.on_update = lambda session, steps: live.update(
                    render_bulk_progress(session, steps, controller.current_progress)
                )
                with _cancel_on_interrupt(controller.bridge):
                    return await controller.run(accounts)

    try:
        session = asyncio.run(_sync_all())
    except AdAuditError as e:
        _fail(e.message)

    if session is None:
        console.print("[yellow]No connected accounts to sync.[/yellow]")
        return

    console.print(render_bulk_report(session))
    if session.error_count:
        raise typer.Exit(1)


@app.command("redownload")
def redownload(
    integration_id: str = typer.Argument(..., help="Integration ID"),
    only_missing: bool = typer.Option(
        False, "--only-missing", help="Only creatives without a stored image"
    ),
):
    """Re-download creative images in high resolution."""
    from .api import AdAuditClient, AdAuditError
    from .report import render_steps
    from .sync import CancellationBridge, RedownloadSession, SyncCancelled, SyncError

    bridge = CancellationBridge()

    async def _redownload():
        async with AdAuditClient.from_settings() as api:
            session = RedownloadSession(api, integration_id, bridge=bridge, only_missing=only_missing)
            tracker = session.tracker
            with Live(render_steps(tracker.steps), console=console, refresh_per_second=8) as live:
                tracker.on_change = lambda steps, progress: live.update(
                    render_steps(steps, title=session.current_item)
                )
                with _cancel_on_interrupt(bridge):
                    return await session.run()

    try:
        result = asyncio.run(_redownload())
    except SyncCancelled:
        console.print("[yellow]Redownload cancelled[/yellow]")
        raise typer.Exit(1)
    except (SyncError, AdAuditError) as e:
        _fail(e.message)

    console.print(
        Panel(
            f"Deleted from storage: {result.deleted}\n"
            f"Updated: [green]{result.updated}[/green]\n"
            f"Failed: [red]{result.failed}[/red]\n"
            f"No image available: {result.no_image}\n"
            f"Total creatives: {result.total}",
            title="Redownload Complete",
        )
    )


@app.command("delete-data")
def delete_data(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete all synced campaigns, ad sets and creatives."""
    from .api import AdAuditClient
    from .report import render_steps
    from .sync import StepStatus, delete_all_data

    if not force:
        if not typer.confirm("Permanently delete all synced campaigns, ad sets and creatives?"):
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit(0)

    async def _delete():
        async with AdAuditClient.from_settings() as api:
            return await delete_all_data(api)

    steps = asyncio.run(_delete())
    console.print(render_steps(steps, title="Delete All Data"))
    if any(s.status is StepStatus.ERROR for s in steps):
        raise typer.Exit(1)


# ============================================================================
# Main
# ============================================================================


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(f"adaudit v{__version__}")


if __name__ == "__main__":
    app()
