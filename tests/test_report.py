"""Tests for progress and report rendering."""

import io

import pytest
from rich.console import Console

from adaudit.report import (
    format_duration,
    render_bulk_progress,
    render_bulk_report,
    render_steps,
    summarize_counts,
)
from adaudit.sync.bulk import AccountStatus, AccountSyncResult, BulkSyncSession
from adaudit.sync.session import SyncCounts
from adaudit.sync.steps import StepStatus, SyncProgress, SyncStep


def _render(renderable) -> str:
    console = Console(file=io.StringIO(), width=120, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


@pytest.mark.parametrize(
    "ms,expected",
    [
        (None, "0s"),
        (0, "0s"),
        (999, "0s"),
        (42_000, "42s"),
        (65_000, "1m 5s"),
        (3_600_000, "60m 0s"),
    ],
)
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected


def test_summarize_counts():
    assert summarize_counts(SyncCounts(campaigns=5, ad_sets=3, creatives=10)) == (
        "5 campaigns, 3 ad sets, 10 creatives synced."
    )
    assert summarize_counts(SyncCounts(creatives=2)) == "2 creatives synced."
    assert summarize_counts(SyncCounts()) == "Sync complete."


def test_render_steps_shows_counts_and_errors():
    steps = [
        SyncStep(name="Campaigns", status=StepStatus.SUCCESS, count=5, total=5),
        SyncStep(name="Ad Sets", status=StepStatus.ERROR, error="Meta token expired"),
        SyncStep(name="Creatives"),
    ]
    output = _render(render_steps(steps, SyncProgress(total_items=5, synced_items=5)))

    assert "Campaigns" in output
    assert "5/5" in output
    assert "Meta token expired" in output
    assert "100%" in output


def _report_session(cancelled=False):
    return BulkSyncSession(
        accounts=[
            AccountSyncResult(
                id="a", name="Acme Meta", status=AccountStatus.SUCCESS,
                campaigns=5, ad_sets=3, creatives=10, duration=65_000,
            ),
            AccountSyncResult(
                id="b", name="Acme Retargeting", status=AccountStatus.ERROR,
                duration=2_000, error="Ad account disabled",
            ),
            AccountSyncResult(
                id="c", name="Google Ads",
                status=AccountStatus.CANCELLED if cancelled else AccountStatus.SUCCESS,
                campaigns=0, ad_sets=0, creatives=0, duration=1_000,
            ),
        ],
        current_index=2,
        is_complete=True,
        is_cancelled=cancelled,
        total_duration=68_000,
    )


def test_render_bulk_report():
    output = _render(render_bulk_report(_report_session()))

    assert "Sync Complete (1m 8s)" in output
    assert "Ad account disabled" in output
    assert "2 succeeded, 1 failed, 0 cancelled" in output


def test_render_bulk_report_cancelled():
    output = _render(render_bulk_report(_report_session(cancelled=True)))

    assert "Sync Cancelled" in output
    assert "1 succeeded, 1 failed, 1 cancelled" in output


def test_render_bulk_progress_header():
    session = _report_session()
    session.is_complete = False
    session.accounts[2].status = AccountStatus.SYNCING

    output = _render(render_bulk_progress(session, [SyncStep(name="Campaigns", status=StepStatus.LOADING)]))

    assert "Syncing account 3 of 3: Google Ads" in output
    assert "Progress 67%" in output


def test_render_bulk_progress_item_totals():
    session = _report_session()
    session.is_complete = False
    session.accounts[2].status = AccountStatus.SYNCING
    steps = [SyncStep(name="Campaigns", status=StepStatus.LOADING, count=3, total=12)]

    output = _render(render_bulk_progress(session, steps, SyncProgress(total_items=12, synced_items=3)))

    assert "3/12" in output
    assert "25%" in output
