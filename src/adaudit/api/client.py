"""AdAudit API Client - Wrapper for the audit dashboard REST backend.

The dashboard server owns the ad-platform connections; this client only
talks to its REST and event-stream endpoints under ``/api``.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

import httpx

from ..config import AdAuditSettings, settings as default_settings

if TYPE_CHECKING:
    from .integrations import IntegrationsAPI, DataAPI


class AdAuditError(Exception):
    """Base exception for dashboard API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class AdAuditAuthError(AdAuditError):
    """Authentication error (missing, invalid or expired token)."""

    pass


class AdAuditNotFoundError(AdAuditError):
    """Requested integration or resource does not exist."""

    pass


class AdAuditRateLimitError(AdAuditError):
    """Rate limit exceeded."""

    pass


def _error_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    if isinstance(body, str) and body.strip():
        return body.strip()
    return fallback


def error_from_response(response: httpx.Response, path: str) -> AdAuditError:
    """Map a non-2xx response onto the error hierarchy.

    The body must already be read (streamed responses need ``aread()`` first).
    """
    status = response.status_code
    body = _error_body(response)

    if status in (401, 403):
        return AdAuditAuthError(
            _error_message(body, "Invalid API token or token expired"), status, body
        )
    if status == 404:
        return AdAuditNotFoundError(_error_message(body, f"Not found: {path}"), 404, body)
    if status == 429:
        return AdAuditRateLimitError("Rate limit exceeded. Wait and retry.", 429, body)
    return AdAuditError(_error_message(body, f"API error: {status}"), status, body)


class AdAuditClient:
    """Dashboard API client with resource sub-APIs.

    Usage:
        async with AdAuditClient.from_settings() as api:
            integrations = await api.integrations.list()
            token = await api.integrations.create_sync_token(integrations[0]["id"])
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self._integrations: IntegrationsAPI | None = None
        self._data: DataAPI | None = None

    @classmethod
    def from_settings(
        cls,
        config: AdAuditSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AdAuditClient":
        """Create a client from environment / .env configuration."""
        config = config or default_settings
        return cls(
            base_url=config.api_url,
            token=config.api_token if config.has_token else None,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "AdAuditClient":
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

        from .integrations import IntegrationsAPI, DataAPI

        self._integrations = IntegrationsAPI(self)
        self._data = DataAPI(self)
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def http(self) -> httpx.AsyncClient:
        """Underlying httpx client, used directly for streamed responses."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        return self._client

    @property
    def integrations(self) -> "IntegrationsAPI":
        """Integrations (connected ad accounts) API."""
        if not self._integrations:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        return self._integrations

    @property
    def data(self) -> "DataAPI":
        """Synced data (campaigns, ad sets, creatives) API."""
        if not self._data:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        return self._data

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> Any:
        """Make an API request with error handling."""
        try:
            response = await self.http.request(
                method=method,
                url=path,
                params=params,
                json=json,
            )
        except httpx.TransportError as e:
            raise AdAuditError(f"Could not reach {self.base_url}: {e}") from e

        if not response.is_success:
            raise error_from_response(response, path)

        return response.json() if response.content else {}

    async def _get(self, path: str, **params) -> Any:
        return await self._request("GET", path, params=params or None)

    async def _post(self, path: str, data: dict | None = None) -> Any:
        return await self._request("POST", path, json=data)

    async def _delete(self, path: str, **params) -> Any:
        return await self._request("DELETE", path, params=params or None)
