"""Audit dashboard API client module.

Usage:
    from adaudit.api import AdAuditClient

    async with AdAuditClient.from_settings() as api:
        integrations = await api.integrations.list()
        token = await api.integrations.create_sync_token(integrations[0]["id"])
        await api.data.delete_all("creatives")
"""

from .client import (
    AdAuditClient,
    AdAuditError,
    AdAuditAuthError,
    AdAuditNotFoundError,
    AdAuditRateLimitError,
)
from .integrations import IntegrationsAPI, DataAPI, BULK_RESOURCES

__all__ = [
    "AdAuditClient",
    "AdAuditError",
    "AdAuditAuthError",
    "AdAuditNotFoundError",
    "AdAuditRateLimitError",
    "IntegrationsAPI",
    "DataAPI",
    "BULK_RESOURCES",
]
