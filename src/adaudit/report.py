"""Rich renderables for sync progress and final reports."""

from __future__ import annotations

from rich.console import Group
from rich.table import Table
from rich.text import Text

from .sync.bulk import AccountStatus, BulkSyncSession
from .sync.session import SyncCounts
from .sync.steps import StepStatus, SyncProgress, SyncStep

STEP_STYLES = {
    StepStatus.PENDING: ("○", "dim"),
    StepStatus.LOADING: ("…", "cyan"),
    StepStatus.SUCCESS: ("✓", "green"),
    StepStatus.ERROR: ("✗", "red"),
}

ACCOUNT_STYLES = {
    AccountStatus.PENDING: ("Pending", "dim"),
    AccountStatus.SYNCING: ("Syncing", "cyan"),
    AccountStatus.SUCCESS: ("Success", "green"),
    AccountStatus.ERROR: ("Error", "red"),
    AccountStatus.CANCELLED: ("Cancelled", "yellow"),
}


def format_duration(ms: int | float | None) -> str:
    """Format milliseconds as ``"1m 5s"`` or ``"42s"``."""
    if not ms or ms < 0:
        return "0s"
    seconds = int(ms // 1000)
    minutes, remaining = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{seconds}s"


def summarize_counts(counts: SyncCounts) -> str:
    parts = []
    if counts.campaigns:
        parts.append(f"{counts.campaigns} campaigns")
    if counts.ad_sets:
        parts.append(f"{counts.ad_sets} ad sets")
    if counts.creatives:
        parts.append(f"{counts.creatives} creatives")
    if not parts:
        return "Sync complete."
    return ", ".join(parts) + " synced."


def _step_counter(step: SyncStep) -> str:
    if step.count is None and step.total is None:
        return ""
    if step.total:
        return f"{step.count or 0}/{step.total}"
    return str(step.count or 0)


def render_steps(steps: list[SyncStep], progress: SyncProgress | None = None, title: str | None = None) -> Table:
    table = Table(title=title, show_header=False, box=None, padding=(0, 1))
    table.add_column("", width=2)
    table.add_column("Step")
    table.add_column("Items", justify="right")
    table.add_column("Detail", style="dim")

    for step in steps:
        icon, style = STEP_STYLES[step.status]
        detail = step.error if step.status is StepStatus.ERROR else (step.message or "")
        table.add_row(
            Text(icon, style=style),
            Text(step.name, style=style if step.status is not StepStatus.PENDING else "dim"),
            _step_counter(step),
            Text(detail or "", style="red" if step.status is StepStatus.ERROR else "dim"),
        )

    if progress is not None and progress.total_items:
        table.add_row("", Text("Total", style="bold"), f"{progress.synced_items}/{progress.total_items}", f"{progress.percent}%")
    return table


def render_bulk_progress(
    session: BulkSyncSession, steps: list[SyncStep], progress: SyncProgress | None = None
) -> Group:
    total = len(session.accounts)
    current = session.current_account
    if session.is_complete:
        header = Text("Sync cancelled" if session.is_cancelled else "Sync complete", style="bold")
    elif current is not None:
        header = Text(
            f"Syncing account {session.current_index + 1} of {total}: {current.name}",
            style="bold cyan",
        )
    else:
        header = Text("Preparing sync...", style="bold")
    parts = [header, Text(f"Progress {session.progress_percent}%", style="dim")]
    if steps and not session.is_complete:
        parts.append(render_steps(steps, progress))
    return Group(*parts)


def render_bulk_report(session: BulkSyncSession) -> Table:
    title = "Sync Cancelled" if session.is_cancelled else "Sync Complete"
    table = Table(title=f"{title} ({format_duration(session.total_duration)})")
    table.add_column("Account", style="cyan")
    table.add_column("Status")
    table.add_column("Campaigns", justify="right")
    table.add_column("Ad Sets", justify="right")
    table.add_column("Creatives", justify="right")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Detail", style="red")

    for account in session.accounts:
        label, style = ACCOUNT_STYLES[account.status]
        ok = account.status is AccountStatus.SUCCESS
        table.add_row(
            account.name,
            Text(label, style=style),
            str(account.campaigns) if ok else "-",
            str(account.ad_sets) if ok else "-",
            str(account.creatives) if ok else "-",
            format_duration(account.duration) if account.duration is not None else "-",
            account.error or "",
        )

    table.caption = (
        f"{session.success_count} succeeded, {session.error_count} failed, "
        f"{session.cancelled_count} cancelled"
    )
    return table
