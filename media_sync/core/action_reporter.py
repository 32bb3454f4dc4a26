"""
Uploads user actions queued while the device was offline.
"""

import logging
from typing import Optional

from media_sync.models.items import ServerTarget
from media_sync.models.stats import SyncStats
from media_sync.utils.structured_logger import SyncEventLogger

from .contracts import LocalStore, RemoteClient

log = logging.getLogger(__name__)


class OfflineActionReporter:
    """
    Reports the queued offline actions for a server in one batch and deletes
    them locally once the server has acknowledged them.

    Delivery is at-least-once: the local queue is only cleared after a
    confirmed upload, and any failure propagates to the caller.
    """

    def __init__(
        self,
        client: RemoteClient,
        store: LocalStore,
        events: SyncEventLogger,
        stats: Optional[SyncStats] = None,
    ):
        self.client = client
        self.store = store
        self.events = events
        self.stats = stats or SyncStats()

    async def report(self, target: ServerTarget) -> None:
        actions = await self.store.get_offline_actions(target.id)
        if not actions:
            log.debug("No offline actions queued.")
            return

        log.debug(f"Reporting {len(actions)} offline action(s) to '{target.id}'.")
        await self.client.report_offline_actions(actions)
        await self.store.delete_offline_actions(actions)

        self.stats.actions_reported += len(actions)
        self.events.actions_reported(target.id, len(actions))
