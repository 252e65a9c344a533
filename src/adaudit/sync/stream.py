"""Event-stream connection over an httpx streamed GET."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

import httpx

from ..api.client import error_from_response
from .events import ServerEvent, decode_event, iter_sse

logger = logging.getLogger(__name__)

Decoder = Callable[[str, str], ServerEvent]


class EventStreamListener(Protocol):
    def on_event(self, event: ServerEvent) -> None: ...

    def on_transport_error(self, exc: BaseException | None) -> None: ...


class SSEConnection:
    """One open server-sent event stream, pushing decoded events to a listener.

    The reader runs as its own task. Anything that ends the stream other
    than ``close()`` (transport failure, end of body, ``abort()``) is
    reported once through ``on_transport_error``. A non-2xx reply is reported
    the same way with the matching ``AdAuditError`` as the exception.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        path: str,
        listener: EventStreamListener,
        params: dict[str, Any] | None = None,
        decoder: Decoder = decode_event,
    ):
        self._http = http
        self._path = path
        self._params = params
        self._listener = listener
        self._decoder = decoder
        self._task: asyncio.Task | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self._task is not None:
            raise RuntimeError("Connection already opened")
        if self._closed:
            # Aborted before it was opened.
            return
        self._task = asyncio.create_task(self._read(), name=f"sse:{self._path}")

    async def close(self) -> None:
        """Close the stream from the owning side; the listener is not notified."""
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            # Waiting does not swallow a cancel aimed at the caller.
            await asyncio.wait({task})

    def abort(self) -> None:
        """Force-close the stream from outside and report it as a drop."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._listener.on_transport_error(None)

    async def _read(self) -> None:
        try:
            async with self._http.stream(
                "GET",
                self._path,
                params=self._params,
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            ) as response:
                if not response.is_success:
                    await response.aread()
                    error = error_from_response(response, self._path)
                    logger.warning(
                        "Event stream %s rejected (%s): %s", self._path, response.status_code, error.message
                    )
                    self._report(error)
                    return
                async for raw in iter_sse(response.aiter_lines()):
                    if self._closed:
                        return
                    try:
                        event = self._decoder(raw.event, raw.data)
                    except ValueError as e:
                        logger.warning("Dropping %s event: %s", raw.event, e)
                        continue
                    logger.debug("Stream event %s: %r", raw.event, event)
                    self._listener.on_event(event)
        except httpx.HTTPError as e:
            logger.warning("Event stream %s failed: %s", self._path, e)
            self._report(e)
            return
        except Exception as e:
            logger.exception("Event stream %s reader crashed", self._path)
            self._report(e)
            return
        self._report(None)

    def _report(self, exc: BaseException | None) -> None:
        if self._closed:
            return
        self._closed = True
        self._listener.on_transport_error(exc)
