"""Cancellation bridge shared by the bulk controller and its sessions."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class AbortableStream(Protocol):
    def abort(self) -> None: ...


class CancellationBridge:
    """Shared cancel flag plus a handle to the open stream connection.

    ``request_cancel`` is synchronous so it can be called from a signal
    handler or any callback on the event loop. It sets the flag and
    force-closes the bound stream; the session on the other end sees the
    drop, checks the flag and reports cancellation instead of a
    connectivity failure.
    """

    def __init__(self):
        self._cancelled = False
        self._active = False
        self._stream: AbortableStream | None = None

    def request_cancel(self) -> None:
        if self._cancelled:
            return
        logger.info("Cancellation requested")
        self._cancelled = True
        stream = self._stream
        self._stream = None
        if stream is not None:
            stream.abort()

    def is_cancelled(self) -> bool:
        return self._cancelled

    def bind_active_stream(self, stream: AbortableStream) -> None:
        self._stream = stream
        if self._cancelled:
            # Cancelled while the connection was being set up.
            self._stream = None
            stream.abort()

    def release_stream(self, stream: AbortableStream) -> None:
        if self._stream is stream:
            self._stream = None

    @property
    def active_stream(self) -> AbortableStream | None:
        return self._stream

    # "Bulk sync in progress" flag
    @property
    def is_active(self) -> bool:
        return self._active

    def activate(self) -> None:
        if self._active:
            raise RuntimeError("A bulk sync is already running")
        self._active = True

    def deactivate(self) -> None:
        self._active = False

    def reset(self) -> None:
        """Clear the flag for a fresh run."""
        self._cancelled = False
        self._stream = None
