"""Shared test fixtures for the adaudit test suite."""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from adaudit.api.client import AdAuditClient
from adaudit.config import AdAuditSettings
from adaudit.sync.events import CompleteEvent, StartEvent, StepCompleteEvent, StepEvent

# Sample IDs used across tests
SAMPLE_INTEGRATION_ID = "int_meta_123"
SAMPLE_INTEGRATION_ID_2 = "int_meta_456"
SAMPLE_INTEGRATION_ID_3 = "int_google_789"
SAMPLE_SYNC_TOKEN = "sse_token_abc"
SAMPLE_API_TOKEN = "user_jwt_xyz"
BASE_URL = "http://audit.test"


# ============================================================================
# Mock Response Data
# ============================================================================

MOCK_INTEGRATIONS = [
    {
        "id": SAMPLE_INTEGRATION_ID,
        "platform": "meta",
        "accountId": "act_111",
        "accountName": "Acme Meta",
        "accountStatus": "ACTIVE",
        "status": "active",
        "lastSync": "2024-01-15T10:00:00Z",
        "lastFullSync": "2024-01-10T10:00:00Z",
        "createdAt": "2024-01-01T10:00:00Z",
    },
    {
        "id": SAMPLE_INTEGRATION_ID_2,
        "platform": "meta",
        "accountId": "act_222",
        "accountName": "Acme Retargeting",
        "accountStatus": "ACTIVE",
        "status": "active",
        "lastSync": None,
        "lastFullSync": None,
        "createdAt": "2024-01-02T10:00:00Z",
    },
    {
        "id": SAMPLE_INTEGRATION_ID_3,
        "platform": "google",
        "accountId": "123-456-7890",
        "accountName": None,
        "accountStatus": None,
        "status": "active",
        "lastSync": None,
        "lastFullSync": None,
        "createdAt": "2024-01-03T10:00:00Z",
    },
]

MOCK_SYNC_HISTORY = [
    {
        "id": "hist_1",
        "integrationId": SAMPLE_INTEGRATION_ID,
        "status": "completed",
        "type": "incremental",
        "startedAt": "2024-01-15T10:00:00Z",
        "completedAt": "2024-01-15T10:02:00Z",
        "campaignsSynced": 5,
        "adSetsSynced": 3,
        "creativeSynced": 10,
        "errorMessage": None,
    },
]

# A full three-phase sync, as the server streams it.
FULL_SYNC_EVENTS = [
    ("start", {"message": "Starting sync...", "note": "First sync - fetching all account data"}),
    ("step", {"step": 1, "name": "Campaigns"}),
    ("step-complete", {"step": 1, "name": "Campaigns", "count": 5}),
    ("step", {"step": 2, "name": "Ad Sets"}),
    ("step-complete", {"step": 2, "name": "Ad Sets", "count": 3}),
    ("step", {"step": 3, "name": "Creatives"}),
    ("step-complete", {"step": 3, "name": "Creatives", "count": 10}),
    ("complete", {"campaigns": 5, "adSets": 3, "creatives": 10}),
]

FULL_SYNC_SCRIPT = [
    StartEvent(message="Starting sync...", note="First sync - fetching all account data"),
    StepEvent(index=0, name="Campaigns"),
    StepCompleteEvent(index=0, name="Campaigns", count=5),
    StepEvent(index=1, name="Ad Sets"),
    StepCompleteEvent(index=1, name="Ad Sets", count=3),
    StepEvent(index=2, name="Creatives"),
    StepCompleteEvent(index=2, name="Creatives", count=10),
    CompleteEvent(data={"campaigns": 5, "adSets": 3, "creatives": 10}),
]


def sse_body(events: list[tuple[str, Any]]) -> bytes:
    """Encode (event, payload) pairs as a text/event-stream body."""
    chunks = []
    for name, payload in events:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        chunks.append(f"event: {name}\ndata: {data}\n\n")
    return "".join(chunks).encode()


def sse_response(events: list[tuple[str, Any]], status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"Content-Type": "text/event-stream"},
        content=sse_body(events),
    )


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> AdAuditClient:
    """AdAuditClient whose HTTP traffic is served by ``handler``."""
    return AdAuditClient(
        base_url=BASE_URL,
        token=SAMPLE_API_TOKEN,
        transport=httpx.MockTransport(handler),
    )


# ============================================================================
# Scripted event streams
# ============================================================================


DROP = object()  # transport drop, reported through on_transport_error
HANG = object()  # stay open until closed or aborted


@dataclass
class Delay:
    seconds: float


class FakeConnection:
    """Stream connection that replays a script to its listener."""

    def __init__(self, listener, script: list, path: str = "", params: dict | None = None):
        self.listener = listener
        self.script = list(script)
        self.path = path
        self.params = params
        self.opened = False
        self.closed = False
        self.aborted = False
        self._task: asyncio.Task | None = None

    async def open(self) -> None:
        self.opened = True
        if self.closed:
            return
        self._task = asyncio.create_task(self._play())

    async def _play(self) -> None:
        for item in self.script:
            await asyncio.sleep(0)
            if self.closed:
                return
            if item is DROP:
                self.listener.on_transport_error(None)
            elif item is HANG:
                await asyncio.Event().wait()
            elif isinstance(item, Delay):
                await asyncio.sleep(item.seconds)
            elif callable(item):
                item()
            else:
                self.listener.on_event(item)

    async def close(self) -> None:
        self.closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.wait({self._task})

    def abort(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.listener.on_transport_error(None)


@dataclass
class ScriptedStreams:
    """Connection factory handing out FakeConnections with a fixed script."""

    script: list
    connections: list[FakeConnection] = field(default_factory=list)

    def __call__(self, path: str, params: dict | None, listener) -> FakeConnection:
        conn = FakeConnection(listener, self.script, path, params)
        self.connections.append(conn)
        return conn


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings that ignore the environment."""
    return AdAuditSettings(
        _env_file=None,
        api_url=BASE_URL,
        api_token=SAMPLE_API_TOKEN,
        stream_grace_seconds=0.05,
    )


@pytest.fixture
def mock_api():
    """A stand-in AdAuditClient whose integrations API is mocked."""
    client = MagicMock()
    client.integrations = MagicMock()
    client.integrations.create_sync_token = AsyncMock(return_value=SAMPLE_SYNC_TOKEN)
    client.integrations.sync_stream_path = MagicMock(
        side_effect=lambda i: f"/api/integrations/{i}/sync-stream"
    )
    client.integrations.redownload_stream_path = MagicMock(
        side_effect=lambda i: f"/api/integrations/{i}/redownload-images-stream"
    )
    client.data = MagicMock()
    client.data.delete_all = AsyncMock(return_value={"message": "deleted"})
    return client


@pytest.fixture
def scripted():
    """Factory for scripted connection factories."""
    return ScriptedStreams


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()
