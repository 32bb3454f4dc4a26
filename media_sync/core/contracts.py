"""
Interfaces of the two collaborators the sync core drives: the remote API
client and the local store. Both are injected at construction time.
"""

from typing import Optional, Protocol

from media_sync.models.items import (
    ImageType,
    LibraryItem,
    LocalItem,
    MediaStream,
    OfflineAction,
    ServerTarget,
    SyncDataRequest,
    SyncDataResult,
    SyncJobItem,
)


class RemoteClient(Protocol):
    @property
    def device_id(self) -> str: ...

    async def report_offline_actions(self, actions: list[OfflineAction]) -> None: ...

    async def sync_data(self, request: SyncDataRequest) -> SyncDataResult: ...

    async def get_ready_sync_items(self, target_id: str) -> list[SyncJobItem]: ...

    async def report_sync_job_item_transferred(self, sync_job_item_id: str) -> None: ...

    def get_sync_job_item_file_url(self, sync_job_item_id: str) -> str: ...

    def get_sync_job_item_additional_file_url(
        self, sync_job_item_id: str, name: str
    ) -> str: ...

    def get_image_url(self, item_id: str, image_type: ImageType, tag: str) -> str: ...


class LocalStore(Protocol):
    # Offline actions
    async def get_offline_actions(self, server_id: str) -> list[OfflineAction]: ...

    async def delete_offline_actions(self, actions: list[OfflineAction]) -> None: ...

    # Local items
    async def get_server_item_ids(self, server_id: str) -> list[str]: ...

    async def create_local_item(
        self,
        library_item: LibraryItem,
        target: ServerTarget,
        original_file_name: Optional[str],
    ) -> LocalItem: ...

    async def get_local_item(
        self, item_id: str, server_id: str
    ) -> Optional[LocalItem]: ...

    async def add_or_update_local_item(self, local_item: LocalItem) -> None: ...

    async def remove_local_item(self, item_id: str, server_id: str) -> None: ...

    # Content bodies
    async def has_image(self, server_id: str, item_id: str, tag: str) -> bool: ...

    async def download_image(
        self, url: str, server_id: str, item_id: str, tag: str
    ) -> str: ...

    async def download_file(self, url: str, local_path: str) -> int: ...

    async def download_subtitles(
        self, url: str, local_item: LocalItem, stream: MediaStream
    ) -> str: ...
