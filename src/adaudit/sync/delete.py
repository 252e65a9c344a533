"""Delete all synced data (campaigns, ad sets, creatives) step by step."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..api.client import AdAuditError
from ..api.integrations import BULK_RESOURCES
from .steps import StepPatch, StepStatus, StepTracker, SyncStep

if TYPE_CHECKING:
    from ..api.client import AdAuditClient

logger = logging.getLogger(__name__)

DELETE_STEP_NAMES = {
    "campaigns": "Campaigns",
    "adsets": "Ad Sets",
    "creatives": "Creatives",
}


async def delete_all_data(
    client: "AdAuditClient",
    tracker: StepTracker | None = None,
) -> list[SyncStep]:
    """Delete every synced campaign, ad set and creative.

    Each resource is one step. A failed step is marked ``error`` and the
    remaining resources are still deleted.

    Returns:
        The final step list
    """
    tracker = tracker or StepTracker(DELETE_STEP_NAMES[r] for r in BULK_RESOURCES)

    for index, resource in enumerate(BULK_RESOURCES):
        tracker.apply(index, StepPatch(status=StepStatus.LOADING))
        try:
            await client.data.delete_all(resource)
        except AdAuditError as e:
            logger.warning("Failed to delete %s: %s", resource, e.message)
            tracker.fail(index, e.message)
            continue
        tracker.apply(index, StepPatch(status=StepStatus.SUCCESS))

    return tracker.steps
