"""
Reconciles the local inventory with the server: removes items the server no
longer wants on this device and propagates per-item user access.
"""

import logging
from typing import Optional

from media_sync.models.items import ServerTarget, SyncDataRequest, SyncDataResult
from media_sync.models.stats import SyncStats
from media_sync.utils.structured_logger import SyncEventLogger

from .contracts import LocalStore, RemoteClient

log = logging.getLogger(__name__)


class DataReconciler:
    """
    Runs one reconciliation pass.

    Only the inventory read and the server round trip can fail the pass.
    Removal and access updates are isolated per item: a failure is logged and
    the next item is processed.
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

    async def reconcile(self, target: ServerTarget, propagate_access: bool) -> None:
        local_ids = await self.store.get_server_item_ids(target.id)
        request = SyncDataRequest(
            target_id=self.client.device_id,
            local_item_ids=local_ids,
            offline_user_ids=target.offline_user_ids,
        )
        log.debug(
            f"Reconciling {len(local_ids)} local item(s) "
            f"(access propagation: {propagate_access})."
        )
        result = await self.client.sync_data(request)

        await self._remove_local_items(result, target.id)
        if propagate_access:
            await self._sync_user_item_access(result, target.id)

    async def _remove_local_items(self, result: SyncDataResult, server_id: str) -> None:
        for item_id in result.item_ids_to_remove:
            try:
                await self.store.remove_local_item(item_id, server_id)
            except Exception as e:
                self.stats.items_remove_failed += 1
                self.events.item_remove_failed(item_id, str(e))
                log.debug(f"Removal of '{item_id}' failed.", exc_info=True)
                continue
            self.stats.items_removed += 1
            self.events.item_removed(item_id)

    async def _sync_user_item_access(
        self, result: SyncDataResult, server_id: str
    ) -> None:
        for item_id, user_ids in result.item_user_access.items():
            try:
                updated = await self._sync_user_access_for_item(
                    item_id, user_ids, server_id
                )
            except Exception as e:
                self.stats.access_failed += 1
                self.events.access_failed(item_id, str(e))
                log.debug(f"Access update for '{item_id}' failed.", exc_info=True)
                continue

            if updated:
                self.stats.access_updated += 1
                self.events.access_updated(item_id, user_ids)
            else:
                self.stats.access_unchanged += 1

    async def _sync_user_access_for_item(
        self, item_id: str, user_ids: list[str], server_id: str
    ) -> bool:
        """Returns True when the stored access list had to be rewritten."""
        local_item = await self.store.get_local_item(item_id, server_id)
        if local_item is None:
            log.debug(f"No local record for '{item_id}', access update skipped.")
            return False

        if local_item.has_same_access(user_ids):
            return False

        local_item.user_ids_with_access = list(user_ids)
        await self.store.add_or_update_local_item(local_item)
        return True
