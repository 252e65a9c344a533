"""Sync orchestration: streamed sessions, step tracking, bulk runs.

Usage:
    from adaudit.api import AdAuditClient
    from adaudit.sync import AccountRef, BulkSyncController

    async with AdAuditClient.from_settings() as api:
        controller = BulkSyncController.for_client(api)
        accounts = [AccountRef.from_integration(i) for i in await api.integrations.list()]
        report = await controller.run(accounts)
"""

from .bulk import (
    AccountRef,
    AccountStatus,
    AccountSyncResult,
    BulkSyncController,
    BulkSyncSession,
    account_runner,
)
from .cancellation import CancellationBridge
from .delete import delete_all_data
from .redownload import RedownloadResult, RedownloadSession
from .session import (
    SessionState,
    StreamedSyncSession,
    SyncCancelled,
    SyncConnectionLost,
    SyncCounts,
    SyncError,
    SyncProtocolError,
    SyncSetupError,
    sync_account,
)
from .steps import StepPatch, StepStatus, StepTracker, SyncProgress, SyncStep, compute_progress

__all__ = [
    "AccountRef",
    "AccountStatus",
    "AccountSyncResult",
    "BulkSyncController",
    "BulkSyncSession",
    "account_runner",
    "CancellationBridge",
    "delete_all_data",
    "RedownloadResult",
    "RedownloadSession",
    "SessionState",
    "StreamedSyncSession",
    "SyncCancelled",
    "SyncConnectionLost",
    "SyncCounts",
    "SyncError",
    "SyncProtocolError",
    "SyncSetupError",
    "sync_account",
    "StepPatch",
    "StepStatus",
    "StepTracker",
    "SyncProgress",
    "SyncStep",
    "compute_progress",
]
