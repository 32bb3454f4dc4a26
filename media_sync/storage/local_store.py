"""
The on-device store: an SQLite database of queued offline actions, synced
item records and downloaded images, plus the media directory holding the
content bodies.
"""

import asyncio
import logging
import os
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Optional

from media_sync.exceptions import LocalStoreError
from media_sync.media.downloader import Downloader
from media_sync.models.items import (
    LibraryItem,
    LocalItem,
    MediaStream,
    OfflineAction,
    ServerTarget,
    local_item_id,
)
from media_sync.utils.path import (
    create_dir,
    image_path,
    item_directory,
    media_file_name,
    subtitle_path,
)

log = logging.getLogger(__name__)


class LocalAssetManager:
    """
    SQLite-backed local store. Blocking database and file system work runs in
    worker threads; every public method is a coroutine.

    Item records are keyed by ``local:<server id>:<item id>`` so that an item
    can exist at most once per server.
    """

    def __init__(self, data_dir: Path, downloader: Optional[Downloader] = None):
        self.data_dir = Path(data_dir)
        self.media_dir = self.data_dir / "media"
        self.db_path = self.data_dir / "library.sqlite"
        self.downloader = downloader or Downloader()
        create_dir(self.media_dir)
        self._initialize_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            return conn
        except sqlite3.Error as e:
            raise LocalStoreError(f"Failed to open local database: {e}") from e

    def _initialize_db(self) -> None:
        """Creates the tables and indexes if they don't exist."""
        try:
            with closing(self._get_connection()) as conn, conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS offline_actions (
                        id TEXT PRIMARY KEY NOT NULL,
                        server_id TEXT NOT NULL,
                        body TEXT NOT NULL,
                        queued_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS local_items (
                        id TEXT PRIMARY KEY NOT NULL,
                        server_id TEXT NOT NULL,
                        item_id TEXT NOT NULL,
                        local_path TEXT NOT NULL,
                        body TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS images (
                        server_id TEXT NOT NULL,
                        item_id TEXT NOT NULL,
                        tag TEXT NOT NULL,
                        path TEXT NOT NULL,
                        PRIMARY KEY (server_id, item_id, tag)
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_actions_server ON"
                    " offline_actions(server_id);"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_items_server ON"
                    " local_items(server_id);"
                )
        except sqlite3.Error as e:
            raise LocalStoreError(
                f"Failed to initialize local database at '{self.db_path}': {e}"
            ) from e

    async def _run(self, func, *args):
        """Runs a synchronous database function in a worker thread."""
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise LocalStoreError(f"Local database operation failed: {e}") from e

    # Offline actions

    def _add_offline_action_sync(self, action: OfflineAction) -> None:
        with closing(self._get_connection()) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO offline_actions (id, server_id, body)"
                " VALUES (?, ?, ?)",
                (action.id, action.server_id, action.model_dump_json(by_alias=True)),
            )

    async def add_offline_action(self, action: OfflineAction) -> None:
        """Queues an action performed while disconnected."""
        await self._run(self._add_offline_action_sync, action)

    def _get_offline_actions_sync(self, server_id: str) -> list[OfflineAction]:
        with closing(self._get_connection()) as conn:
            rows = conn.execute(
                "SELECT body FROM offline_actions WHERE server_id = ?"
                " ORDER BY queued_at, rowid",
                (server_id,),
            ).fetchall()
        return [OfflineAction.model_validate_json(row[0]) for row in rows]

    async def get_offline_actions(self, server_id: str) -> list[OfflineAction]:
        return await self._run(self._get_offline_actions_sync, server_id)

    def _delete_offline_actions_sync(self, action_ids: list[str]) -> None:
        with closing(self._get_connection()) as conn, conn:
            conn.executemany(
                "DELETE FROM offline_actions WHERE id = ?",
                [(action_id,) for action_id in action_ids],
            )

    async def delete_offline_actions(self, actions: list[OfflineAction]) -> None:
        """Deletes the given actions in a single transaction."""
        await self._run(self._delete_offline_actions_sync, [a.id for a in actions])

    # Local items

    def _get_server_item_ids_sync(self, server_id: str) -> list[str]:
        with closing(self._get_connection()) as conn:
            rows = conn.execute(
                "SELECT item_id FROM local_items WHERE server_id = ? ORDER BY rowid",
                (server_id,),
            ).fetchall()
        return [row[0] for row in rows]

    async def get_server_item_ids(self, server_id: str) -> list[str]:
        """Returns the library item ids held locally for a server."""
        return await self._run(self._get_server_item_ids_sync, server_id)

    def _get_local_item_sync(self, item_id: str, server_id: str) -> Optional[LocalItem]:
        with closing(self._get_connection()) as conn:
            row = conn.execute(
                "SELECT body FROM local_items WHERE id = ?",
                (local_item_id(server_id, item_id),),
            ).fetchone()
        if row is None:
            return None
        return LocalItem.model_validate_json(row[0])

    async def get_local_item(self, item_id: str, server_id: str) -> Optional[LocalItem]:
        return await self._run(self._get_local_item_sync, item_id, server_id)

    async def create_local_item(
        self,
        library_item: LibraryItem,
        target: ServerTarget,
        original_file_name: Optional[str],
    ) -> LocalItem:
        """
        Builds the local record for a library item and reserves its media path.

        The record is not persisted here; it becomes visible in the inventory
        once ``add_or_update_local_item`` is called after the media body has
        been downloaded. An already stored record is reused, keeping its path
        and access list, so re-transferring an item never duplicates it.
        """
        server_id = library_item.server_id or target.id
        item = library_item.model_copy(deep=True)

        existing = await self.get_local_item(item.id, server_id)
        if existing is not None:
            _carry_over_stream_paths(existing.item, item)
            existing.item = item
            return existing

        directory = item_directory(self.media_dir, server_id, item.id)
        local_path = directory / media_file_name(item, original_file_name)
        return LocalItem(
            id=local_item_id(server_id, item.id),
            server_id=server_id,
            item_id=item.id,
            local_path=str(local_path),
            user_ids_with_access=[],
            item=item,
        )

    def _add_or_update_local_item_sync(self, local_item: LocalItem) -> None:
        with closing(self._get_connection()) as conn, conn:
            conn.execute(
                """
                INSERT INTO local_items (id, server_id, item_id, local_path, body)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    local_path = excluded.local_path,
                    body = excluded.body,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    local_item.id,
                    local_item.server_id,
                    local_item.item_id,
                    local_item.local_path,
                    local_item.model_dump_json(by_alias=True),
                ),
            )

    async def add_or_update_local_item(self, local_item: LocalItem) -> None:
        await self._run(self._add_or_update_local_item_sync, local_item)

    def _remove_local_item_sync(self, item_id: str, server_id: str) -> bool:
        local_item = self._get_local_item_sync(item_id, server_id)
        if local_item is None:
            return False

        for path in _item_file_paths(local_item):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

        with closing(self._get_connection()) as conn, conn:
            conn.execute("DELETE FROM local_items WHERE id = ?", (local_item.id,))
            stale_images = self._prune_images(conn, server_id)

        for path in stale_images:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

        directory = Path(local_item.local_path).parent
        try:
            directory.rmdir()
        except OSError:
            # Still holds files the store does not track
            pass
        return True

    def _prune_images(self, conn: sqlite3.Connection, server_id: str) -> list[str]:
        """
        Drops image records no remaining item of ``server_id`` refers to and
        returns their file paths. Series and album art stays as long as one
        episode or track still uses it.
        """
        referenced: set[str] = set()
        for (body,) in conn.execute(
            "SELECT body FROM local_items WHERE server_id = ?", (server_id,)
        ):
            item = LocalItem.model_validate_json(body).item
            referenced.update(
                source_id
                for source_id in (item.id, item.series_id, item.album_id)
                if source_id
            )

        stale = [
            (image_item_id, tag, path)
            for image_item_id, tag, path in conn.execute(
                "SELECT item_id, tag, path FROM images WHERE server_id = ?",
                (server_id,),
            ).fetchall()
            if image_item_id not in referenced
        ]
        conn.executemany(
            "DELETE FROM images WHERE server_id = ? AND item_id = ? AND tag = ?",
            [(server_id, image_item_id, tag) for image_item_id, tag, _ in stale],
        )
        if stale:
            log.debug(f"Pruned {len(stale)} image(s) no longer used on '{server_id}'.")
        return [path for _, _, path in stale]

    async def remove_local_item(self, item_id: str, server_id: str) -> None:
        """
        Deletes an item's record together with its media and subtitle files,
        and the images no remaining item of the server refers to.

        Raises:
            LocalStoreError: If a file or the record could not be deleted.
        """
        try:
            removed = await self._run(self._remove_local_item_sync, item_id, server_id)
        except OSError as e:
            raise LocalStoreError(f"Could not remove files of '{item_id}': {e}") from e
        if not removed:
            log.debug(f"Local item '{item_id}' was not present, nothing to remove.")

    # Images

    def _has_image_sync(self, server_id: str, item_id: str, tag: str) -> bool:
        with closing(self._get_connection()) as conn:
            row = conn.execute(
                "SELECT path FROM images WHERE server_id = ? AND item_id = ? AND tag = ?",
                (server_id, item_id, tag),
            ).fetchone()
        return row is not None and os.path.isfile(row[0])

    async def has_image(self, server_id: str, item_id: str, tag: str) -> bool:
        return await self._run(self._has_image_sync, server_id, item_id, tag)

    def _record_image_sync(self, server_id: str, item_id: str, tag: str, path: str):
        with closing(self._get_connection()) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO images (server_id, item_id, tag, path)"
                " VALUES (?, ?, ?, ?)",
                (server_id, item_id, tag, path),
            )

    async def download_image(
        self, url: str, server_id: str, item_id: str, tag: str
    ) -> str:
        path = str(image_path(self.media_dir, server_id, item_id, tag))
        await self.downloader.download_file(url, path)
        await self._run(self._record_image_sync, server_id, item_id, tag, path)
        return path

    # Content bodies

    async def download_file(self, url: str, local_path: str) -> int:
        return await self.downloader.download_file(url, local_path)

    async def download_subtitles(
        self, url: str, local_item: LocalItem, stream: MediaStream
    ) -> str:
        path = str(subtitle_path(Path(local_item.local_path), stream))
        await self.downloader.download_file(url, path)
        return path

    # Status

    def _get_stats_sync(self) -> dict[str, Any]:
        with closing(self._get_connection()) as conn:
            items = conn.execute(
                "SELECT server_id, COUNT(*) FROM local_items GROUP BY server_id"
            ).fetchall()
            actions = conn.execute(
                "SELECT server_id, COUNT(*) FROM offline_actions GROUP BY server_id"
            ).fetchall()
            images = conn.execute("SELECT COUNT(*) FROM images").fetchone()[0]
        return {
            "items_by_server": dict(items),
            "queued_actions_by_server": dict(actions),
            "images": images,
        }

    async def get_stats(self) -> dict[str, Any]:
        """Summarizes the local inventory for display."""
        return await self._run(self._get_stats_sync)


def _item_file_paths(local_item: LocalItem) -> list[str]:
    """Media body plus the subtitle files this store placed next to it."""
    directory = Path(local_item.local_path).parent
    paths = [local_item.local_path]
    for source in local_item.item.media_sources:
        for stream in source.media_streams:
            if stream.path and Path(stream.path).parent == directory:
                paths.append(stream.path)
    return paths


def _carry_over_stream_paths(stored: LibraryItem, fresh: LibraryItem) -> None:
    """Keeps the files already placed for streams that still exist."""
    paths = {
        (source.id, stream.index): stream.path
        for source in stored.media_sources
        for stream in source.media_streams
        if stream.path
    }
    for source in fresh.media_sources:
        for stream in source.media_streams:
            key = (source.id, stream.index)
            if key in paths:
                stream.path = paths[key]
