"""
Materializes newly synced items on the device: the media body, the item's
artwork and its external subtitles.
"""

import logging
from typing import Optional

from media_sync.exceptions import MissingSubtitleStreamError
from media_sync.models.items import (
    IMAGE_SLOTS,
    ItemFileInfo,
    LocalItem,
    MediaSource,
    ServerTarget,
    SyncJobItem,
)
from media_sync.models.stats import SyncStats
from media_sync.utils.structured_logger import SyncEventLogger

from .contracts import LocalStore, RemoteClient

log = logging.getLogger(__name__)


class ContentFetcher:
    """
    Transfers the job items the server has ready for this device.

    Job items are processed one at a time, in server order. Nothing below the
    job list request fails the phase: a job item whose record or media body
    cannot be created is skipped, and image and subtitle failures only affect
    the slot or file concerned.
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

    async def fetch_new_content(self, target: ServerTarget) -> None:
        try:
            job_items = await self.client.get_ready_sync_items(self.client.device_id)
        except Exception as e:
            log.error(f"[red]Could not retrieve ready sync items: {e}[/red]")
            return

        log.debug(f"{len(job_items)} job item(s) ready for transfer.")
        for job_item in job_items:
            try:
                await self._get_new_item(job_item, target)
            except Exception as e:
                self.stats.job_items_failed += 1
                self.events.job_item_failed(
                    job_item.sync_job_item_id, job_item.item.id, str(e)
                )
                log.debug(
                    f"Job item '{job_item.sync_job_item_id}' failed.",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                continue

            self.stats.job_items_transferred += 1
            self.events.job_item_transferred(
                job_item.sync_job_item_id, job_item.item.id
            )

    async def _get_new_item(self, job_item: SyncJobItem, target: ServerTarget) -> None:
        library_item = job_item.item
        self.events.job_item_started(
            job_item.sync_job_item_id, library_item.id, library_item.name
        )

        local_item = await self.store.create_local_item(
            library_item, target, job_item.original_file_name
        )
        await self._download_media(job_item, local_item)
        await self._get_images(local_item, target)
        await self._get_subtitles(job_item, local_item)

        await self.client.report_sync_job_item_transferred(job_item.sync_job_item_id)

    async def _download_media(self, job_item: SyncJobItem, local_item: LocalItem) -> None:
        url = self.client.get_sync_job_item_file_url(job_item.sync_job_item_id)
        log.info(f"Downloading media to [dim]{local_item.local_path}[/dim]")

        size = await self.store.download_file(url, local_item.local_path)
        self.stats.bytes_downloaded += size or 0
        await self.store.add_or_update_local_item(local_item)

    async def _get_images(self, local_item: LocalItem, target: ServerTarget) -> None:
        library_item = local_item.item
        server_id = library_item.server_id or target.id

        for slot in IMAGE_SLOTS:
            source_id = slot.source_id(library_item)
            if not source_id:
                # No series/album association: the remaining slots are not evaluated.
                break

            tag = slot.tag(library_item)
            if not tag:
                continue

            try:
                await self._download_image(server_id, source_id, slot.image_type, tag)
            except Exception as e:
                self.stats.images_failed += 1
                self.events.image_failed(source_id, slot.image_type.value, str(e))

    async def _download_image(self, server_id, item_id, image_type, tag) -> None:
        if await self.store.has_image(server_id, item_id, tag):
            self.stats.images_present += 1
            log.debug(f"Image {image_type.value}/{tag} for '{item_id}' already present.")
            return

        url = self.client.get_image_url(item_id, image_type, tag)
        await self.store.download_image(url, server_id, item_id, tag)
        self.stats.images_downloaded += 1
        self.events.image_downloaded(item_id, image_type.value, tag)

    async def _get_subtitles(self, job_item: SyncJobItem, local_item: LocalItem) -> None:
        media_sources = local_item.item.media_sources
        if not media_sources:
            log.warning(
                "[yellow]Cannot download subtitles because the item has no media "
                f"source info: '{local_item.item.name}'[/yellow]"
            )
            return

        media_source = media_sources[0]
        for file in job_item.additional_files:
            if not file.is_subtitle:
                continue
            try:
                await self._get_item_subtitle(file, job_item, local_item, media_source)
            except MissingSubtitleStreamError as e:
                self.stats.subtitles_failed += 1
                log.error(f"[red]✗ {e}[/red]")
                self.events.subtitle_failed(local_item.item_id, file.name, str(e))
            except Exception as e:
                self.stats.subtitles_failed += 1
                self.events.subtitle_failed(local_item.item_id, file.name, str(e))

    async def _get_item_subtitle(
        self,
        file: ItemFileInfo,
        job_item: SyncJobItem,
        local_item: LocalItem,
        media_source: MediaSource,
    ) -> None:
        stream = media_source.find_subtitle_stream(file.index)
        if stream is None:
            raise MissingSubtitleStreamError(
                f"No subtitle stream with index {file.index} for '{file.name}' "
                f"in item '{local_item.item_id}'."
            )

        url = self.client.get_sync_job_item_additional_file_url(
            job_item.sync_job_item_id, file.name
        )
        subtitle_path = await self.store.download_subtitles(url, local_item, stream)

        stream.path = subtitle_path
        await self.store.add_or_update_local_item(local_item)
        self.stats.subtitles_downloaded += 1
        self.events.subtitle_downloaded(local_item.item_id, file.name, subtitle_path)
