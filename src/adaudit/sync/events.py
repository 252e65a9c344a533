"""Server-sent event framing and decoding for sync streams.

Wire payloads number steps from 1; decoded events carry 0-based indices.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

logger = logging.getLogger(__name__)

MALFORMED_ERROR_MESSAGE = "Could not process the server response"


@dataclass
class RawEvent:
    event: str
    data: str


@dataclass
class StartEvent:
    message: str = ""
    note: str | None = None


@dataclass
class StepEvent:
    index: int
    name: str | None = None
    total: int | None = None


@dataclass
class ProgressEvent:
    index: int
    current: int | None = None
    total: int | None = None
    status: str | None = None
    message: str | None = None
    item: str | None = None


@dataclass
class StepCompleteEvent:
    index: int
    name: str | None = None
    count: int | None = None


@dataclass
class CompleteEvent:
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorEvent:
    message: str


@dataclass
class UnknownEvent:
    name: str
    data: Any = None


ServerEvent = Union[
    StartEvent, StepEvent, ProgressEvent, StepCompleteEvent, CompleteEvent, ErrorEvent, UnknownEvent
]


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[RawEvent]:
    """Group text lines into server-sent events.

    Handles ``event:`` / ``data:`` fields, multi-line data and ``:``
    comments. An event is dispatched on a blank line; one without data is
    dropped.
    """
    event_name = ""
    data_lines: list[str] = []

    async for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line:
            if data_lines:
                yield RawEvent(event=event_name or "message", data="\n".join(data_lines))
            event_name = ""
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event_name = value
        elif name == "data":
            data_lines.append(value)

    if data_lines:
        yield RawEvent(event=event_name or "message", data="\n".join(data_lines))


def _int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _index(payload: dict[str, Any]) -> int:
    step = _int(payload.get("step"))
    if step is None or step < 1:
        raise ValueError(f"invalid step number: {payload.get('step')!r}")
    return step - 1


def decode_event(name: str, data: str) -> ServerEvent:
    """Decode one account-sync stream event.

    Raises:
        ValueError: If a non-error event carries malformed JSON or step number
    """
    try:
        payload = json.loads(data) if data else {}
    except json.JSONDecodeError:
        if name == "error":
            logger.warning("Unparseable error event payload: %r", data)
            return ErrorEvent(message=MALFORMED_ERROR_MESSAGE)
        raise ValueError(f"malformed {name!r} event payload") from None

    if not isinstance(payload, dict):
        payload = {"value": payload}

    if name == "start":
        return StartEvent(message=str(payload.get("message", "")), note=payload.get("note") or None)
    if name == "step":
        return StepEvent(
            index=_index(payload),
            name=payload.get("name"),
            total=_int(payload.get("total")) or None,
        )
    if name == "progress":
        return ProgressEvent(
            index=_index(payload),
            current=_int(payload.get("current")),
            total=_int(payload.get("total")),
        )
    if name == "step-complete":
        return StepCompleteEvent(
            index=_index(payload),
            name=payload.get("name"),
            count=_int(payload.get("count")),
        )
    if name == "complete":
        return CompleteEvent(data=payload)
    if name == "error":
        message = payload.get("message")
        return ErrorEvent(message=str(message) if message else MALFORMED_ERROR_MESSAGE)
    return UnknownEvent(name=name, data=payload)


class KeyedStepDecoder:
    """Decoder for streams that name steps by key instead of number.

    The image re-download stream reports ``progress`` events such as
    ``{"step": "download", "status": "loading", "current": 3, "total": 40}``.
    Keys are mapped to indices in the order given.
    """

    def __init__(self, keys: list[str]):
        self.keys = list(keys)

    def __call__(self, name: str, data: str) -> ServerEvent:
        if name != "progress":
            return decode_event(name, data)
        try:
            payload = json.loads(data) if data else {}
        except json.JSONDecodeError:
            raise ValueError("malformed 'progress' event payload") from None
        if not isinstance(payload, dict):
            raise ValueError("malformed 'progress' event payload")

        key = payload.get("step")
        if key not in self.keys:
            return UnknownEvent(name=name, data=payload)
        count = _int(payload.get("count"))
        return ProgressEvent(
            index=self.keys.index(key),
            current=_int(payload.get("current")) if "current" in payload else count,
            total=_int(payload.get("total")),
            status=payload.get("status"),
            message=payload.get("message"),
            item=payload.get("creativeName"),
        )
