"""Tests for the creative image re-download session."""

import asyncio

import httpx
import pytest

from adaudit.sync.cancellation import CancellationBridge
from adaudit.sync.redownload import REDOWNLOAD_STEPS, RedownloadResult, RedownloadSession
from adaudit.sync.session import SyncCancelled, SyncProtocolError, SyncSetupError
from adaudit.sync.steps import StepStatus

from tests.conftest import HANG, SAMPLE_API_TOKEN, SAMPLE_INTEGRATION_ID, ScriptedStreams, make_client, sse_response

REDOWNLOAD_EVENTS = [
    ("start", {"message": "Starting image re-download..."}),
    ("progress", {"step": "delete", "status": "loading", "message": "Deleting stored images..."}),
    ("progress", {"step": "delete", "status": "success", "count": 5}),
    ("progress", {"step": "fetch", "status": "loading"}),
    ("progress", {"step": "fetch", "status": "success", "count": 40}),
    ("progress", {"step": "clear", "status": "success"}),
    (
        "progress",
        {
            "step": "download",
            "status": "loading",
            "current": 1,
            "total": 40,
            "creativeName": "Summer Sale 1080x1080",
        },
    ),
    ("progress", {"step": "download", "status": "success", "count": 38}),
    (
        "complete",
        {"deleted": 5, "updated": 38, "failed": 1, "noImage": 1, "total": 40, "message": "Done"},
    ),
]


class TestRedownloadSession:

    @pytest.mark.asyncio
    async def test_full_redownload_over_http(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return sse_response(REDOWNLOAD_EVENTS)

        async with make_client(handler) as api:
            session = RedownloadSession(api, SAMPLE_INTEGRATION_ID, only_missing=True)
            result = await session.run()

        assert result == RedownloadResult(
            deleted=5, updated=38, failed=1, no_image=1, total=40, message="Done"
        )
        steps = session.tracker.steps
        assert [s.name for s in steps] == list(REDOWNLOAD_STEPS.values())
        assert all(s.status is StepStatus.SUCCESS for s in steps)
        assert steps[0].count == 5
        assert steps[3].count == 38
        assert steps[3].total == 40
        assert session.current_item == "Summer Sale 1080x1080"

        (request,) = requests
        assert request.url.path == f"/api/integrations/{SAMPLE_INTEGRATION_ID}/redownload-images-stream"
        assert request.url.params["onlyMissing"] == "true"
        assert "token" not in request.url.params
        assert request.headers["Authorization"] == f"Bearer {SAMPLE_API_TOKEN}"

    @pytest.mark.asyncio
    async def test_error_event_fails_current_step(self):
        events = [
            ("progress", {"step": "delete", "status": "loading"}),
            ("progress", {"step": "fetch", "status": "loading"}),
            ("error", {"message": "Meta API unavailable"}),
        ]

        async with make_client(lambda request: sse_response(events)) as api:
            session = RedownloadSession(api, SAMPLE_INTEGRATION_ID, grace_seconds=0.01)
            with pytest.raises(SyncProtocolError):
                await session.run()

        assert session.tracker[0].status is StepStatus.SUCCESS
        assert session.tracker[1].status is StepStatus.ERROR
        assert session.tracker[1].error == "Meta API unavailable"

    @pytest.mark.asyncio
    async def test_rejected_request_reports_server_message(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Only Meta integrations support image re-download"})

        async with make_client(handler) as api:
            session = RedownloadSession(api, SAMPLE_INTEGRATION_ID, grace_seconds=5.0)
            with pytest.raises(SyncSetupError) as exc_info:
                await asyncio.wait_for(session.run(), timeout=1.0)

        assert exc_info.value.message == "Only Meta integrations support image re-download"
        assert exc_info.value.__cause__.status_code == 400
        assert session.tracker[0].status is StepStatus.ERROR
        assert session.tracker[0].error == "Only Meta integrations support image re-download"

    @pytest.mark.asyncio
    async def test_non_object_progress_is_skipped(self):
        events = [
            ("progress", [1, 2]),
            ("progress", {"step": "delete", "status": "success", "count": 2}),
            ("complete", {"deleted": 2, "updated": 0, "failed": 0, "noImage": 0, "total": 0}),
        ]

        async with make_client(lambda request: sse_response(events)) as api:
            session = RedownloadSession(api, SAMPLE_INTEGRATION_ID, grace_seconds=0.01)
            result = await session.run()

        assert result.deleted == 2
        assert session.tracker[0].status is StepStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_cancel(self, mock_api):
        bridge = CancellationBridge()
        streams = ScriptedStreams([bridge.request_cancel, HANG])
        session = RedownloadSession(
            mock_api,
            SAMPLE_INTEGRATION_ID,
            bridge=bridge,
            grace_seconds=0.05,
            connection_factory=streams,
        )

        with pytest.raises(SyncCancelled):
            await session.run()

        assert streams.connections[0].params == {"onlyMissing": "false"}
        assert streams.connections[0].aborted
