"""
Async client for the media server's sync endpoints, with circuit breaker
protection.
"""

import asyncio
import logging
import time
from typing import Any, Optional
from urllib.parse import quote, urlencode

import aiohttp
from pydantic import ValidationError

from media_sync import __version__
from media_sync.exceptions import AuthenticationError, RemoteApiError
from media_sync.models.items import (
    ImageType,
    OfflineAction,
    SyncDataRequest,
    SyncDataResult,
    SyncJobItem,
)
from media_sync.utils.circuit_breaker import CircuitBreaker, CircuitBreakerError

log = logging.getLogger(__name__)

CLIENT_NAME = "media-sync"


class MediaServerClient:
    """
    Async client for the media server's REST API.

    Features:
    - Token authentication on every request
    - Circuit breaker for server resilience
    - URL builders for content the local store downloads itself
    """

    def __init__(
        self,
        server_url: str,
        access_token: str,
        device_id: str,
        device_name: str = CLIENT_NAME,
        timeout: int = 60,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initializes the API client.

        Args:
            server_url: Base URL of the server, e.g. ``http://host:8096/``.
            access_token: Token minted for this device by the server.
            device_id: Identity of this device; used as the sync target id.
            device_name: Friendly device name reported to the server.
            timeout: Total timeout in seconds for a single API call.
            session: Optional externally managed session.
        """
        self.server_url = server_url.rstrip("/") + "/"
        self._access_token = access_token
        self._device_id = device_id
        self.device_name = device_name
        self.timeout = timeout

        self._session = session
        self._owns_session = session is None
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60,
            tracked_exceptions=(aiohttp.ClientConnectionError, asyncio.TimeoutError),
        )

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def access_token(self) -> str:
        return self._access_token

    def _auth_headers(self) -> dict[str, str]:
        authorization = (
            f'MediaBrowser Client="{CLIENT_NAME}", Device="{self.device_name}", '
            f'DeviceId="{self._device_id}", Version="{__version__}"'
        )
        return {
            "X-Emby-Authorization": authorization,
            "X-Emby-Token": self._access_token,
            "Accept": "application/json",
        }

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._auth_headers(),
                timeout=aiohttp.ClientTimeout(
                    total=self.timeout, connect=15, sock_read=30
                ),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def api_call(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """
        Makes an authenticated API call guarded by the circuit breaker.

        Returns the decoded JSON body, or None for empty responses.

        Raises:
            AuthenticationError: The server rejected the access token.
            RemoteApiError: The call did not complete successfully.
        """
        session = await self._initialize_session()
        url = self.server_url + endpoint

        try:
            async with self._circuit_breaker:
                start_time = time.monotonic()
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._auth_headers(),
                ) as r:
                    duration_ms = (time.monotonic() - start_time) * 1000
                    log.debug(
                        f"{method} {endpoint} -> {r.status} ({duration_ms:.0f} ms)"
                    )

                    if r.status == 401:
                        raise AuthenticationError(
                            "The access token was rejected by the server."
                        )

                    r.raise_for_status()
                    if r.status == 204 or r.content_length == 0:
                        return None
                    return await r.json(content_type=None)

        except CircuitBreakerError as e:
            log.error(f"[red]Circuit breaker is open for server calls: {e}[/red]")
            raise RemoteApiError(str(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"API call to {endpoint} failed: {e!r}")
            raise RemoteApiError(f"{method} {endpoint} failed: {e!r}") from e

    # Sync API
    async def report_offline_actions(self, actions: list[OfflineAction]) -> None:
        await self.api_call(
            "POST", "Sync/OfflineActions", json=[a.to_wire() for a in actions]
        )

    async def sync_data(self, request: SyncDataRequest) -> SyncDataResult:
        data = await self.api_call("POST", "Sync/Data", json=request.to_wire())
        return SyncDataResult.model_validate(data or {})

    async def get_ready_sync_items(self, target_id: str) -> list[SyncJobItem]:
        """
        Returns the job items ready for ``target_id``. Entries that do not
        parse are logged and left out so the remaining ones can still be
        transferred.
        """
        data = await self.api_call(
            "GET", "Sync/Items/Ready", params={"TargetId": target_id}
        )
        job_items = []
        for entry in data or []:
            try:
                job_items.append(SyncJobItem.model_validate(entry))
            except ValidationError as e:
                entry_id = (
                    entry.get("SyncJobItemId") if isinstance(entry, dict) else None
                )
                log.warning(
                    f"[yellow]Skipping malformed job item '{entry_id}': "
                    f"{e.error_count()} validation error(s)[/yellow]"
                )
                log.debug(f"Job item '{entry_id}' failed validation: {e}")
        return job_items

    async def report_sync_job_item_transferred(self, sync_job_item_id: str) -> None:
        await self.api_call(
            "POST", f"Sync/JobItems/{quote(sync_job_item_id)}/Transferred"
        )

    # URL builders
    def get_url(self, path: str, params: Optional[dict[str, Any]] = None) -> str:
        url = self.server_url + path.lstrip("/")
        if params:
            query = {k: v for k, v in params.items() if v is not None}
            url += "?" + urlencode(query)
        return url

    def get_sync_job_item_file_url(self, sync_job_item_id: str) -> str:
        return self.get_url(
            f"Sync/JobItems/{quote(sync_job_item_id)}/File",
            {"api_key": self._access_token},
        )

    def get_sync_job_item_additional_file_url(
        self, sync_job_item_id: str, name: str
    ) -> str:
        return self.get_url(
            f"Sync/JobItems/{quote(sync_job_item_id)}/AdditionalFiles",
            {"Name": name, "api_key": self._access_token},
        )

    def get_image_url(
        self, item_id: str, image_type: ImageType | str, tag: str
    ) -> str:
        image_type = ImageType(image_type).value
        return self.get_url(
            f"Items/{quote(item_id)}/Images/{image_type}",
            {"tag": tag, "api_key": self._access_token},
        )
