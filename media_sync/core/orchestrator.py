"""
The main orchestrator for a sync run against one server/device pair.
"""

import logging
from typing import Optional

from media_sync.exceptions import SyncError
from media_sync.models.items import ServerTarget
from media_sync.models.stats import SyncStats
from media_sync.utils.structured_logger import SyncEventLogger

from .action_reporter import OfflineActionReporter
from .content_fetcher import ContentFetcher
from .contracts import LocalStore, RemoteClient
from .reconciler import DataReconciler

log = logging.getLogger(__name__)

PHASE_REPORT_ACTIONS = "report_offline_actions"
PHASE_RECONCILE = "reconcile"
PHASE_FETCH = "fetch_new_content"
PHASE_RECONCILE_ACCESS = "reconcile_with_access"


class MediaSync:
    """
    Runs the sync phases in order:

    1. report queued offline actions
    2. reconcile the local inventory (removals only)
    3. fetch new content
    4. reconcile again, propagating user access to the items now present

    Each phase depends on the server-side effects of the previous one, so the
    first phase to fail aborts the run with a ``SyncError``. A run keeps no
    state between invocations; everything is re-read from the store and the
    server.
    """

    def __init__(
        self,
        client: RemoteClient,
        store: LocalStore,
        events: Optional[SyncEventLogger] = None,
    ):
        self.client = client
        self.store = store
        self.events = events or SyncEventLogger()
        self.stats = SyncStats()

    async def sync(self, target: ServerTarget) -> None:
        """
        Synchronizes the local replica for ``target``.

        Raises:
            SyncError: A phase failed; the original error is chained as the cause.
        """
        self.stats = stats = SyncStats()
        reporter = OfflineActionReporter(self.client, self.store, self.events, stats)
        reconciler = DataReconciler(self.client, self.store, self.events, stats)
        fetcher = ContentFetcher(self.client, self.store, self.events, stats)

        self.events.sync_started(
            target.id, self.client.device_id, len(target.offline_user_ids)
        )

        await self._run_phase(PHASE_REPORT_ACTIONS, reporter.report(target))
        await self._run_phase(
            PHASE_RECONCILE, reconciler.reconcile(target, propagate_access=False)
        )
        await self._run_phase(PHASE_FETCH, fetcher.fetch_new_content(target))
        await self._run_phase(
            PHASE_RECONCILE_ACCESS, reconciler.reconcile(target, propagate_access=True)
        )

        self.events.sync_completed(stats.summary())

    async def _run_phase(self, phase: str, operation) -> None:
        self.events.phase_started(phase)
        try:
            await operation
        except Exception as e:
            self.events.phase_failed(phase, str(e))
            log.debug(f"Phase '{phase}' failed.", exc_info=True)
            raise SyncError(phase, str(e) or type(e).__name__) from e
        self.events.phase_completed(phase)
