"""
Handles the low-level downloading of content bodies over HTTP.
"""

import asyncio
import logging
import os

import aiofiles
import aiohttp

from media_sync.exceptions import DownloadError

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool() -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    Transfers run one at a time, so a single small pool is kept for the
    lifetime of the application run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=4,
            ttl_dns_cache=600,
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug("Created download connection pool.")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared download connection pool closed.")


class Downloader:
    """A file downloader with retry logic and atomic placement of the result."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        session: aiohttp.ClientSession | None = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_connection_pool()

    async def download_file(self, url: str, destination_path: str) -> int:
        """
        Streams ``url`` to ``destination_path`` and returns the number of bytes
        written.

        The body is written to a ``.part`` file first and renamed into place on
        success, so an interrupted transfer never leaves a truncated file at
        the final path.

        Raises:
            DownloadError: If every attempt failed.
        """
        part_path = destination_path + ".part"
        await asyncio.to_thread(
            os.makedirs, os.path.dirname(destination_path) or ".", exist_ok=True
        )

        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await self._get_session()
                async with session.get(url, allow_redirects=True) as response:
                    response.raise_for_status()

                    bytes_downloaded = 0
                    async with aiofiles.open(part_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(
                            self.CHUNK_SIZE
                        ):
                            await f.write(chunk)
                            bytes_downloaded += len(chunk)

                await asyncio.to_thread(os.replace, part_path, destination_path)
                return bytes_downloaded
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{os.path.basename(destination_path)}' failed: {e}"
                )
                if _is_permanent(e):
                    break
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
            except OSError as e:
                last_exception = e
                break

        await asyncio.to_thread(_remove_quietly, part_path)
        raise DownloadError(
            f"Failed to download '{os.path.basename(destination_path)}': "
            f"{last_exception}"
        ) from last_exception


def _is_permanent(error: BaseException) -> bool:
    """4xx answers other than timeouts and throttling will not change on retry."""
    return (
        isinstance(error, aiohttp.ClientResponseError)
        and 400 <= error.status < 500
        and error.status not in (408, 429)
    )


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
