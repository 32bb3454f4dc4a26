"""Shared pytest fixtures and in-memory collaborators for media-sync tests."""

from typing import Iterable, Optional

import pytest

from media_sync.exceptions import DownloadError, LocalStoreError, RemoteApiError
from media_sync.models.items import (
    LibraryItem,
    LocalItem,
    MediaStream,
    OfflineAction,
    OfflineUser,
    ServerTarget,
    SyncDataRequest,
    SyncDataResult,
    SyncJobItem,
    local_item_id,
)
from media_sync.utils.structured_logger import StructuredLogger, SyncEventLogger

SERVER_ID = "srv-1"
DEVICE_ID = "device-1"


class FakeClient:
    """Records every call; failures are injected per operation name."""

    def __init__(
        self,
        sync_results: Optional[Iterable[SyncDataResult]] = None,
        ready_items: Optional[list[SyncJobItem]] = None,
    ) -> None:
        self.sync_results = list(sync_results or [])
        self.ready_items = ready_items or []
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self.fail_transferred: set[str] = set()

    @property
    def device_id(self) -> str:
        return DEVICE_ID

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise RemoteApiError(f"{op} failed")

    async def report_offline_actions(self, actions):
        self.calls.append(("report_offline_actions", [a.id for a in actions]))
        self._check("report_offline_actions")

    async def sync_data(self, request: SyncDataRequest) -> SyncDataResult:
        self.calls.append(("sync_data", request))
        self._check("sync_data")
        if self.sync_results:
            return self.sync_results.pop(0)
        return SyncDataResult()

    async def get_ready_sync_items(self, target_id: str):
        self.calls.append(("get_ready_sync_items", target_id))
        self._check("get_ready_sync_items")
        return self.ready_items

    async def report_sync_job_item_transferred(self, sync_job_item_id: str):
        self.calls.append(("transferred", sync_job_item_id))
        if sync_job_item_id in self.fail_transferred:
            raise RemoteApiError("transfer report failed")

    def get_sync_job_item_file_url(self, sync_job_item_id: str) -> str:
        return f"http://server/Sync/JobItems/{sync_job_item_id}/File"

    def get_sync_job_item_additional_file_url(self, sync_job_item_id, name) -> str:
        return f"http://server/Sync/JobItems/{sync_job_item_id}/AdditionalFiles?Name={name}"

    def get_image_url(self, item_id, image_type, tag) -> str:
        return f"http://server/Items/{item_id}/Images/{image_type.value}?tag={tag}"

    def op_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FakeStore:
    """In-memory local store keyed the same way as the SQLite store."""

    def __init__(self) -> None:
        self.actions: list[OfflineAction] = []
        self.items: dict[str, LocalItem] = {}
        self.images: set[tuple[str, str, str]] = set()
        self.calls: list[tuple] = []
        # operation name -> keys that fail ("*" fails every call)
        self.fail: dict[str, set[str]] = {}

    def _check(self, op: str, key: str = "*") -> None:
        keys = self.fail.get(op, set())
        if "*" in keys or key in keys:
            raise LocalStoreError(f"{op} failed for {key}")

    def add_item(self, item_id: str, user_ids: Optional[list[str]] = None) -> LocalItem:
        local_item = LocalItem(
            id=local_item_id(SERVER_ID, item_id),
            server_id=SERVER_ID,
            item_id=item_id,
            local_path=f"/media/{item_id}.mkv",
            user_ids_with_access=user_ids or [],
            item=LibraryItem(id=item_id, server_id=SERVER_ID),
        )
        self.items[local_item.id] = local_item
        return local_item

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "add_or_update_local_item"]

    async def get_offline_actions(self, server_id):
        self.calls.append(("get_offline_actions", server_id))
        self._check("get_offline_actions")
        return [a for a in self.actions if a.server_id == server_id]

    async def delete_offline_actions(self, actions):
        self.calls.append(("delete_offline_actions", [a.id for a in actions]))
        self._check("delete_offline_actions")
        ids = {a.id for a in actions}
        self.actions = [a for a in self.actions if a.id not in ids]

    async def get_server_item_ids(self, server_id):
        self.calls.append(("get_server_item_ids", server_id))
        self._check("get_server_item_ids")
        return [i.item_id for i in self.items.values() if i.server_id == server_id]

    async def create_local_item(self, library_item, target, original_file_name):
        self.calls.append(("create_local_item", library_item.id))
        self._check("create_local_item", library_item.id)
        server_id = library_item.server_id or target.id
        existing = self.items.get(local_item_id(server_id, library_item.id))
        if existing is not None:
            existing = existing.model_copy(deep=True)
            existing.item = library_item.model_copy(deep=True)
            return existing
        return LocalItem(
            id=local_item_id(server_id, library_item.id),
            server_id=server_id,
            item_id=library_item.id,
            local_path=f"/media/{library_item.id}/{original_file_name or 'media'}",
            item=library_item.model_copy(deep=True),
        )

    async def get_local_item(self, item_id, server_id):
        self.calls.append(("get_local_item", item_id))
        self._check("get_local_item", item_id)
        item = self.items.get(local_item_id(server_id, item_id))
        return item.model_copy(deep=True) if item else None

    async def add_or_update_local_item(self, local_item):
        self.calls.append(("add_or_update_local_item", local_item.item_id))
        self._check("add_or_update_local_item", local_item.item_id)
        self.items[local_item.id] = local_item.model_copy(deep=True)

    async def remove_local_item(self, item_id, server_id):
        self.calls.append(("remove_local_item", item_id))
        self._check("remove_local_item", item_id)
        self.items.pop(local_item_id(server_id, item_id), None)

    async def has_image(self, server_id, item_id, tag):
        self.calls.append(("has_image", item_id, tag))
        self._check("has_image", item_id)
        return (server_id, item_id, tag) in self.images

    async def download_image(self, url, server_id, item_id, tag):
        self.calls.append(("download_image", url))
        self._check("download_image", item_id)
        self.images.add((server_id, item_id, tag))
        return f"/media/images/{item_id}_{tag}"

    async def download_file(self, url, local_path):
        self.calls.append(("download_file", url, local_path))
        keys = self.fail.get("download_file", set())
        if "*" in keys or url in keys:
            raise DownloadError(f"download of {url} failed")
        return 1024

    async def download_subtitles(self, url, local_item, stream: MediaStream):
        self.calls.append(("download_subtitles", url, stream.index))
        self._check("download_subtitles", str(stream.index))
        return f"{local_item.local_path}.{stream.index}.srt"


@pytest.fixture
def target() -> ServerTarget:
    return ServerTarget(
        id=SERVER_ID,
        name="Living Room",
        users=[OfflineUser(id="u1", name="alice"), OfflineUser(id="u2", name="bob")],
    )


@pytest.fixture
def events() -> SyncEventLogger:
    return SyncEventLogger(StructuredLogger("media_sync.test", enable_json=False))


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
