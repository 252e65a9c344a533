"""Integrations API - connected Meta / Google Ads accounts."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from .client import AdAuditError

if TYPE_CHECKING:
    from .client import AdAuditClient


# Bulk-deletable synced resources, in deletion order.
BULK_RESOURCES = ("campaigns", "adsets", "creatives")


class IntegrationsAPI:
    """Integrations API for the audit dashboard.

    Usage:
        async with AdAuditClient.from_settings() as api:
            # Connected accounts
            integrations = await api.integrations.list()

            # One-time token for the sync event stream
            token = await api.integrations.create_sync_token("integration_id")
    """

    def __init__(self, client: "AdAuditClient"):
        self._client = client

    async def list(self) -> list[dict[str, Any]]:
        """List connected integrations.

        Returns:
            [{"id": ..., "platform": "meta", "accountName": ..., "status": ...}, ...]
        """
        result = await self._client._get("/api/integrations")
        if isinstance(result, dict):
            return result.get("integrations", [])
        return result or []

    async def sync_history(self) -> list[dict[str, Any]]:
        """List past sync runs across all integrations."""
        result = await self._client._get("/api/integrations/sync-history")
        if isinstance(result, dict):
            return result.get("history", [])
        return result or []

    async def create_sync_token(self, integration_id: str) -> str:
        """Request a short-lived, single-use token for the sync stream.

        Raises:
            AdAuditError: If the request fails or the response has no token
        """
        result = await self._client._post(f"/api/integrations/{integration_id}/sync-token")
        token = result.get("token") if isinstance(result, dict) else None
        if not isinstance(token, str) or not token:
            raise AdAuditError("Could not obtain a sync token", response=result)
        return token

    def sync_stream_path(self, integration_id: str) -> str:
        return f"/api/integrations/{integration_id}/sync-stream"

    def redownload_stream_path(self, integration_id: str) -> str:
        return f"/api/integrations/{integration_id}/redownload-images-stream"

    async def delete(self, integration_id: str, delete_data: bool = True) -> dict[str, Any]:
        """Disconnect an integration, optionally deleting its synced data."""
        return await self._client._delete(
            f"/api/integrations/{integration_id}",
            deleteData="true" if delete_data else "false",
        )


class DataAPI:
    """Bulk operations on synced campaigns, ad sets and creatives."""

    def __init__(self, client: "AdAuditClient"):
        self._client = client

    async def delete_all(self, resource: str) -> dict[str, Any]:
        """Delete every synced record of one resource type.

        Args:
            resource: One of "campaigns", "adsets", "creatives"
        """
        if resource not in BULK_RESOURCES:
            raise ValueError(f"Unknown resource: {resource}")
        return await self._client._delete(f"/api/{resource}/bulk/all")
