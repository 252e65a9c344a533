"""Streamed sync session - one account's sync driven by server-sent events.

The session is a small state machine::

    idle -> token_requested -> streaming -> completed | failed | cancelled

Events arrive through ``on_event`` / ``on_transport_error`` callbacks from
the connection and settle a single future that ``run()`` awaits. The
stream is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol, TYPE_CHECKING

from ..api.client import AdAuditError
from ..config import settings
from .cancellation import CancellationBridge
from .events import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    ServerEvent,
    StartEvent,
    StepCompleteEvent,
    StepEvent,
    decode_event,
)
from .steps import StepPatch, StepStatus, StepTracker
from .stream import Decoder, EventStreamListener, SSEConnection

if TYPE_CHECKING:
    from ..api.client import AdAuditClient

logger = logging.getLogger(__name__)

CONNECTION_LOST_MESSAGE = "Connection to the server was lost. Check your connection and try again."
SETUP_FAILED_MESSAGE = "Could not start the sync"
CANCELLED_MESSAGE = "Sync cancelled"


class SyncError(Exception):
    """Base exception for a failed streamed operation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SyncSetupError(SyncError):
    """The operation could not be started (token or stream request rejected)."""

    pass


class SyncProtocolError(SyncError):
    """The server reported an error event; the message is server-authored."""

    pass


class SyncConnectionLost(SyncError):
    """The stream dropped before the server finished."""

    pass


class SyncCancelled(SyncError):
    """The operation was cancelled by the user."""

    def __init__(self, message: str = CANCELLED_MESSAGE):
        super().__init__(message)


class SessionState(str, Enum):
    IDLE = "idle"
    TOKEN_REQUESTED = "token_requested"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StreamConnection(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    def abort(self) -> None: ...


ConnectionFactory = Callable[[str, dict[str, Any] | None, EventStreamListener], StreamConnection]


def parse_count(data: dict[str, Any], key: str) -> int:
    try:
        return int(data.get(key) or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class SyncCounts:
    campaigns: int = 0
    ad_sets: int = 0
    creatives: int = 0

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SyncCounts":
        return cls(
            campaigns=parse_count(data, "campaigns"),
            ad_sets=parse_count(data, "adSets"),
            creatives=parse_count(data, "creatives"),
        )


class StreamedOperation:
    """Shared machinery for operations that report progress over a stream.

    Subclasses implement ``run()`` and the per-event handlers; this class
    owns the outcome future, the grace window after a transport drop and
    the connection lifecycle.
    """

    decoder: Decoder = staticmethod(decode_event)

    def __init__(
        self,
        client: "AdAuditClient",
        tracker: StepTracker,
        bridge: CancellationBridge | None = None,
        grace_seconds: float | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        self._client = client
        self.tracker = tracker
        self.bridge = bridge or CancellationBridge()
        self.grace_seconds = settings.stream_grace_seconds if grace_seconds is None else grace_seconds
        self._connection_factory = connection_factory or self._open_sse
        self.state = SessionState.IDLE
        self.current_step = 0
        self._outcome: asyncio.Future | None = None
        self._grace_task: asyncio.Task | None = None

    def _open_sse(
        self, path: str, params: dict[str, Any] | None, listener: EventStreamListener
    ) -> SSEConnection:
        return SSEConnection(self._client.http, path, listener, params=params, decoder=self.decoder)

    def _check_cancelled(self) -> None:
        if self.bridge.is_cancelled():
            self.state = SessionState.CANCELLED
            raise SyncCancelled()

    async def _stream(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Open the stream and wait for ``complete``, ``error``, a drop or a cancel."""
        self._outcome = asyncio.get_running_loop().create_future()
        self.state = SessionState.STREAMING
        connection = self._connection_factory(path, params, self)
        self.bridge.bind_active_stream(connection)
        try:
            await connection.open()
            return await self._outcome
        finally:
            self.bridge.release_stream(connection)
            await connection.close()
            if self._grace_task is not None and not self._grace_task.done():
                self._grace_task.cancel()

    # Listener interface
    def on_event(self, event: ServerEvent) -> None:
        if self._outcome is None or self._outcome.done():
            return
        if isinstance(event, CompleteEvent):
            self._resolve(event.data)
        elif isinstance(event, ErrorEvent):
            logger.warning("Server reported sync error: %s", event.message)
            self.tracker.fail(self.current_step, event.message)
            self._reject(SyncProtocolError(event.message))
        else:
            self.handle_event(event)

    def on_transport_error(self, exc: BaseException | None) -> None:
        if self._outcome is None or self._outcome.done():
            return
        if self.bridge.is_cancelled():
            self._cancel()
            return
        if isinstance(exc, AdAuditError):
            logger.warning("Stream request rejected: %s", exc.message)
            self.tracker.fail(self.current_step, exc.message)
            error = SyncSetupError(exc.message)
            error.__cause__ = exc
            self._reject(error)
            return
        if self._grace_task is None:
            logger.debug("Stream dropped (%s); waiting %.2fs for a late result", exc, self.grace_seconds)
            self._grace_task = asyncio.get_running_loop().create_task(self._expire_grace())

    def handle_event(self, event: ServerEvent) -> None:
        """Apply a progress-type event; overridden per stream kind."""
        logger.debug("Ignoring event %r", event)

    # Step helpers
    def _activate(self, index: int) -> None:
        """Make ``index`` the current step, settling a different loading step."""
        previous = self.current_step
        if previous != index and previous < len(self.tracker):
            if self.tracker[previous].status is StepStatus.LOADING:
                self.tracker.apply(previous, StepPatch(status=StepStatus.SUCCESS))
        self.current_step = index

    # Outcome
    async def _expire_grace(self) -> None:
        await asyncio.sleep(self.grace_seconds)
        if self._outcome is None or self._outcome.done():
            return
        if self.bridge.is_cancelled():
            self._cancel()
            return
        self.tracker.fail(self.current_step, CONNECTION_LOST_MESSAGE)
        self._reject(SyncConnectionLost(CONNECTION_LOST_MESSAGE))

    def _resolve(self, data: dict[str, Any]) -> None:
        self.state = SessionState.COMPLETED
        self._outcome.set_result(data)

    def _reject(self, error: SyncError) -> None:
        self.state = SessionState.FAILED
        self._outcome.set_exception(error)

    def _cancel(self) -> None:
        self.state = SessionState.CANCELLED
        self._outcome.set_exception(SyncCancelled())


class StreamedSyncSession(StreamedOperation):
    """Sync one connected ad account (campaigns -> ad sets -> creatives).

    Usage:
        tracker = StepTracker(["Campaigns", "Ad Sets", "Creatives"])
        session = StreamedSyncSession(api, integration_id, tracker)
        counts = await session.run()
    """

    def __init__(
        self,
        client: "AdAuditClient",
        integration_id: str,
        tracker: StepTracker | None = None,
        bridge: CancellationBridge | None = None,
        grace_seconds: float | None = None,
        connection_factory: ConnectionFactory | None = None,
        on_note: Callable[[str], None] | None = None,
    ):
        super().__init__(
            client,
            tracker if tracker is not None else StepTracker(settings.step_names),
            bridge=bridge,
            grace_seconds=grace_seconds,
            connection_factory=connection_factory,
        )
        self.integration_id = integration_id
        self.on_note = on_note
        self.note: str | None = None

    async def run(self) -> SyncCounts:
        """Run the sync to completion.

        Raises:
            SyncSetupError: Token request failed or the stream request was rejected
            SyncProtocolError: Server sent an error event
            SyncConnectionLost: Stream dropped without a result
            SyncCancelled: Cancelled through the bridge
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError("A sync session can only be run once")
        self._check_cancelled()

        self.state = SessionState.TOKEN_REQUESTED
        integrations = self._client.integrations
        try:
            token = await integrations.create_sync_token(self.integration_id)
        except AdAuditError as e:
            message = e.message or SETUP_FAILED_MESSAGE
            logger.warning("Sync token request for %s failed: %s", self.integration_id, message)
            self.tracker.fail(0, message)
            self.state = SessionState.FAILED
            raise SyncSetupError(message) from e

        self._check_cancelled()
        payload = await self._stream(
            integrations.sync_stream_path(self.integration_id),
            {"token": token},
        )
        return SyncCounts.from_payload(payload)

    def handle_event(self, event: ServerEvent) -> None:
        if isinstance(event, StartEvent):
            logger.info("Sync %s started: %s", self.integration_id, event.message)
            if event.note:
                self.note = event.note
                if self.on_note:
                    self.on_note(event.note)
        elif isinstance(event, StepEvent):
            self._activate(event.index)
            self.tracker.apply(
                event.index,
                StepPatch(name=event.name, status=StepStatus.LOADING, total=event.total),
            )
        elif isinstance(event, ProgressEvent):
            self._activate(event.index)
            self.tracker.apply(
                event.index,
                StepPatch(count=event.current, total=event.total, status=StepStatus.LOADING),
            )
        elif isinstance(event, StepCompleteEvent):
            self.tracker.apply(
                event.index,
                StepPatch(
                    name=event.name,
                    status=StepStatus.SUCCESS,
                    count=event.count,
                    total=event.count,
                ),
            )
        else:
            super().handle_event(event)


async def sync_account(
    client: "AdAuditClient",
    integration_id: str,
    tracker: StepTracker | None = None,
    bridge: CancellationBridge | None = None,
    **kwargs,
) -> SyncCounts:
    """Sync a single account; see ``StreamedSyncSession``."""
    session = StreamedSyncSession(client, integration_id, tracker=tracker, bridge=bridge, **kwargs)
    return await session.run()
