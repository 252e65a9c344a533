"""Bulk sync controller - sync every connected account, one after another.

Accounts are never synced in parallel: the ad platforms rate-limit per
app, and one account at a time keeps progress readable. A failing account
is recorded and the loop moves on; only cancellation stops it early.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, TYPE_CHECKING

from ..config import settings
from .cancellation import CancellationBridge
from .session import StreamedSyncSession, SyncCancelled, SyncCounts
from .steps import StepTracker, SyncProgress, SyncStep

if TYPE_CHECKING:
    from ..api.client import AdAuditClient

logger = logging.getLogger(__name__)


class AccountStatus(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({AccountStatus.SUCCESS, AccountStatus.ERROR, AccountStatus.CANCELLED})


@dataclass
class AccountRef:
    id: str
    name: str

    @classmethod
    def from_integration(cls, integration: dict[str, Any]) -> "AccountRef":
        name = integration.get("accountName") or integration.get("accountId") or integration["id"]
        return cls(id=integration["id"], name=name)


@dataclass
class AccountSyncResult:
    id: str
    name: str
    status: AccountStatus = AccountStatus.PENDING
    campaigns: int | None = None
    ad_sets: int | None = None
    creatives: int | None = None
    duration: int | None = None  # milliseconds
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class BulkSyncSession:
    accounts: list[AccountSyncResult] = field(default_factory=list)
    current_index: int = 0
    is_complete: bool = False
    is_cancelled: bool = False
    total_duration: int | None = None  # milliseconds

    def _count(self, status: AccountStatus) -> int:
        return sum(1 for a in self.accounts if a.status is status)

    @property
    def success_count(self) -> int:
        return self._count(AccountStatus.SUCCESS)

    @property
    def error_count(self) -> int:
        return self._count(AccountStatus.ERROR)

    @property
    def cancelled_count(self) -> int:
        return self._count(AccountStatus.CANCELLED)

    @property
    def current_account(self) -> AccountSyncResult | None:
        if 0 <= self.current_index < len(self.accounts):
            return self.accounts[self.current_index]
        return None

    @property
    def progress_percent(self) -> int:
        if not self.accounts:
            return 0
        done = self.current_index + (1 if self.is_complete else 0)
        return round(done * 100 / len(self.accounts))


RunAccount = Callable[[AccountSyncResult, StepTracker], Awaitable[SyncCounts]]
UpdateCallback = Callable[[BulkSyncSession, list[SyncStep]], None]


def account_runner(
    client: "AdAuditClient",
    bridge: CancellationBridge,
    **session_kwargs,
) -> RunAccount:
    """Build a ``run_account`` callable backed by ``StreamedSyncSession``."""

    async def _run(account: AccountSyncResult, tracker: StepTracker) -> SyncCounts:
        session = StreamedSyncSession(
            client, account.id, tracker=tracker, bridge=bridge, **session_kwargs
        )
        return await session.run()

    return _run


def _elapsed_ms(started: float, now: float) -> int:
    return int(round((now - started) * 1000))


class BulkSyncController:
    """Run one streamed sync per account, in order, with cooperative cancel.

    Usage:
        async with AdAuditClient.from_settings() as api:
            controller = BulkSyncController.for_client(api)
            accounts = [AccountRef.from_integration(i) for i in await api.integrations.list()]
            session = await controller.run(accounts)

    ``request_cancel()`` may be called at any time while ``run`` is in
    progress; the account being synced and every account after it end up
    ``cancelled``.
    """

    def __init__(
        self,
        run_account: RunAccount,
        bridge: CancellationBridge | None = None,
        step_names: list[str] | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_update: UpdateCallback | None = None,
    ):
        self._run_account = run_account
        self.bridge = bridge or CancellationBridge()
        self.step_names = step_names or settings.step_names
        self._clock = clock
        self.on_update = on_update
        self.session: BulkSyncSession | None = None
        self.tracker: StepTracker | None = None

    @classmethod
    def for_client(
        cls,
        client: "AdAuditClient",
        bridge: CancellationBridge | None = None,
        grace_seconds: float | None = None,
        **kwargs,
    ) -> "BulkSyncController":
        bridge = bridge or CancellationBridge()
        runner = account_runner(client, bridge, grace_seconds=grace_seconds)
        return cls(runner, bridge=bridge, **kwargs)

    @property
    def current_steps(self) -> list[SyncStep]:
        return self.tracker.steps if self.tracker else []

    @property
    def current_progress(self) -> SyncProgress:
        return self.tracker.progress if self.tracker else SyncProgress()

    def request_cancel(self) -> None:
        self.bridge.request_cancel()

    async def run(self, accounts: Iterable[AccountRef]) -> BulkSyncSession:
        """Sync ``accounts`` sequentially and return the final report.

        Raises:
            RuntimeError: If a bulk sync is already running on this bridge
        """
        self.bridge.activate()
        try:
            self.bridge.reset()
            session = BulkSyncSession(
                accounts=[AccountSyncResult(id=a.id, name=a.name) for a in accounts]
            )
            self.session = session
            started = self._clock()
            self._notify()

            for index, account in enumerate(session.accounts):
                if self.bridge.is_cancelled():
                    self._cancel_remaining(index)
                    break

                session.current_index = index
                account.status = AccountStatus.SYNCING
                self.tracker = StepTracker(self.step_names, on_change=self._on_steps)
                self._notify()
                account_started = self._clock()

                try:
                    counts = await self._run_account(account, self.tracker)
                except Exception as e:
                    account.duration = _elapsed_ms(account_started, self._clock())
                    if self.bridge.is_cancelled() or isinstance(e, SyncCancelled):
                        account.status = AccountStatus.CANCELLED
                        self._cancel_remaining(index + 1)
                        break
                    account.status = AccountStatus.ERROR
                    account.error = getattr(e, "message", None) or str(e) or type(e).__name__
                    logger.warning("Sync failed for account %s: %s", account.id, account.error)
                    self._notify()
                    continue

                account.duration = _elapsed_ms(account_started, self._clock())
                if self.bridge.is_cancelled():
                    # Resolved after the user cancelled: still counts as cancelled.
                    account.status = AccountStatus.CANCELLED
                    self._cancel_remaining(index + 1)
                    break

                account.status = AccountStatus.SUCCESS
                account.campaigns = counts.campaigns
                account.ad_sets = counts.ad_sets
                account.creatives = counts.creatives
                self._notify()

            session.total_duration = _elapsed_ms(started, self._clock())
            session.is_cancelled = self.bridge.is_cancelled()
            session.is_complete = True
            self._notify()
            logger.info(
                "Bulk sync finished: %d ok, %d failed, %d cancelled",
                session.success_count,
                session.error_count,
                session.cancelled_count,
            )
            return session
        finally:
            self.bridge.deactivate()

    def _cancel_remaining(self, start: int) -> None:
        for account in self.session.accounts[start:]:
            if not account.is_terminal:
                account.status = AccountStatus.CANCELLED

    def _on_steps(self, steps: list[SyncStep], progress: SyncProgress) -> None:
        self._notify()

    def _notify(self) -> None:
        if self.on_update and self.session is not None:
            self.on_update(self.session, self.current_steps)
