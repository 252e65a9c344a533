"""Re-download creative images for one integration, with streamed progress."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from .cancellation import CancellationBridge
from .events import KeyedStepDecoder, ProgressEvent, ServerEvent, StartEvent
from .session import ConnectionFactory, StreamedOperation, SessionState, parse_count
from .steps import StepPatch, StepStatus, StepTracker

if TYPE_CHECKING:
    from ..api.client import AdAuditClient

logger = logging.getLogger(__name__)

# Stream step keys, in server order, and their display names.
REDOWNLOAD_STEPS = {
    "delete": "Delete stored images",
    "fetch": "Fetch creatives",
    "clear": "Clear old image URLs",
    "download": "Download images",
}


@dataclass
class RedownloadResult:
    deleted: int = 0
    updated: int = 0
    failed: int = 0
    no_image: int = 0
    total: int = 0
    message: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "RedownloadResult":
        return cls(
            deleted=parse_count(data, "deleted"),
            updated=parse_count(data, "updated"),
            failed=parse_count(data, "failed"),
            no_image=parse_count(data, "noImage"),
            total=parse_count(data, "total"),
            message=data.get("message"),
        )


def _status(value: str | None) -> StepStatus | None:
    try:
        return StepStatus(value) if value else None
    except ValueError:
        return None


class RedownloadSession(StreamedOperation):
    """Stream the high-resolution image re-download for one integration.

    The endpoint is authenticated with the client's bearer token, so no
    sync token is requested. ``only_missing`` limits the run to creatives
    without a stored image.
    """

    def __init__(
        self,
        client: "AdAuditClient",
        integration_id: str,
        tracker: StepTracker | None = None,
        bridge: CancellationBridge | None = None,
        only_missing: bool = False,
        grace_seconds: float | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        super().__init__(
            client,
            tracker if tracker is not None else StepTracker(REDOWNLOAD_STEPS.values()),
            bridge=bridge,
            grace_seconds=grace_seconds,
            connection_factory=connection_factory,
        )
        self.decoder = KeyedStepDecoder(list(REDOWNLOAD_STEPS))
        self.integration_id = integration_id
        self.only_missing = only_missing
        self.current_item: str | None = None

    async def run(self) -> RedownloadResult:
        if self.state is not SessionState.IDLE:
            raise RuntimeError("A redownload session can only be run once")
        self._check_cancelled()

        payload = await self._stream(
            self._client.integrations.redownload_stream_path(self.integration_id),
            {"onlyMissing": "true" if self.only_missing else "false"},
        )
        result = RedownloadResult.from_payload(payload)
        logger.info(
            "Redownload %s: %d updated, %d failed, %d without image",
            self.integration_id,
            result.updated,
            result.failed,
            result.no_image,
        )
        return result

    def handle_event(self, event: ServerEvent) -> None:
        if isinstance(event, StartEvent):
            logger.info("Redownload %s started: %s", self.integration_id, event.message)
        elif isinstance(event, ProgressEvent):
            status = _status(event.status) or StepStatus.LOADING
            if status is StepStatus.LOADING:
                self._activate(event.index)
            if event.item:
                self.current_item = event.item
            self.tracker.apply(
                event.index,
                StepPatch(
                    status=status,
                    count=event.current,
                    total=event.total,
                    message=event.message,
                ),
            )
        else:
            super().handle_event(event)
