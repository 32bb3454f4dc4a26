"""
Pydantic models for the records exchanged with the media server and kept
in the local store.

The server speaks PascalCase JSON; every model accepts both the wire names
and the Python attribute names.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal


class WireModel(BaseModel):
    """Base model mapping snake_case attributes to the server's PascalCase keys."""

    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """Serializes the model the way the server expects to receive it."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ImageType(str, Enum):
    PRIMARY = "Primary"
    THUMB = "Thumb"


class StreamType(str, Enum):
    AUDIO = "Audio"
    VIDEO = "Video"
    SUBTITLE = "Subtitle"


class ItemFileType(str, Enum):
    MEDIA = "Media"
    SUBTITLES = "Subtitles"


class OfflineUser(WireModel):
    id: str
    name: str = ""


class ServerTarget(WireModel):
    """The server a sync run is against, with the users enabled for offline use."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    address: str = ""
    users: list[OfflineUser] = Field(default_factory=list)

    @property
    def offline_user_ids(self) -> list[str]:
        return [u.id for u in self.users]


class OfflineAction(WireModel):
    """A user action (e.g. playback progress) recorded while disconnected."""

    id: str
    server_id: str
    item_id: Optional[str] = None
    user_id: Optional[str] = None
    type: str = "PlayedItem"
    date: Optional[str] = None
    position_ticks: Optional[int] = None


class SyncDataRequest(WireModel):
    target_id: str
    local_item_ids: list[str] = Field(default_factory=list)
    offline_user_ids: list[str] = Field(default_factory=list)


class SyncDataResult(WireModel):
    item_ids_to_remove: list[str] = Field(default_factory=list)
    item_user_access: dict[str, list[str]] = Field(default_factory=dict)


class MediaStream(WireModel):
    index: int
    type: str
    codec: Optional[str] = None
    language: Optional[str] = None
    is_external: bool = False
    path: Optional[str] = None


class MediaSource(WireModel):
    id: Optional[str] = None
    path: Optional[str] = None
    container: Optional[str] = None
    media_streams: list[MediaStream] = Field(default_factory=list)

    def find_subtitle_stream(self, index: Optional[int]) -> Optional[MediaStream]:
        """Returns the subtitle stream declared at ``index``, if there is one."""
        for stream in self.media_streams:
            if stream.type == StreamType.SUBTITLE.value and stream.index == index:
                return stream
        return None


class LibraryItem(WireModel):
    id: str
    server_id: Optional[str] = None
    name: str = ""
    type: Optional[str] = None
    media_type: Optional[str] = None
    image_tags: dict[str, str] = Field(default_factory=dict)
    series_id: Optional[str] = None
    series_primary_image_tag: Optional[str] = None
    album_id: Optional[str] = None
    album_primary_image_tag: Optional[str] = None
    media_sources: list[MediaSource] = Field(default_factory=list)


class ItemFileInfo(WireModel):
    name: str
    type: str
    index: Optional[int] = None

    @property
    def is_subtitle(self) -> bool:
        return self.type == ItemFileType.SUBTITLES.value


class SyncJobItem(WireModel):
    """A server-declared unit of work: one library item ready for transfer."""

    sync_job_item_id: str
    item: LibraryItem
    original_file_name: Optional[str] = None
    additional_files: list[ItemFileInfo] = Field(default_factory=list)


def local_item_id(server_id: str, item_id: str) -> str:
    return f"local:{server_id}:{item_id}"


class LocalItem(WireModel):
    """The on-device record of a synced library item."""

    id: str
    server_id: str
    item_id: str
    local_path: str
    user_ids_with_access: list[str] = Field(default_factory=list)
    item: LibraryItem

    def has_same_access(self, user_ids: list[str]) -> bool:
        """Compares access lists as sets; ordering is not significant."""
        return set(self.user_ids_with_access) == set(user_ids)


@dataclass(frozen=True)
class ImageSlot:
    """One fixed image candidate evaluated for every transferred item."""

    image_type: ImageType
    source_id: Callable[[LibraryItem], Optional[str]]
    tag: Callable[[LibraryItem], Optional[str]]


# Order matters: evaluation stops at the first slot without a source id.
IMAGE_SLOTS: tuple[ImageSlot, ...] = (
    ImageSlot(
        ImageType.PRIMARY,
        lambda item: item.id,
        lambda item: item.image_tags.get(ImageType.PRIMARY.value),
    ),
    ImageSlot(
        ImageType.PRIMARY,
        lambda item: item.series_id,
        lambda item: item.series_primary_image_tag,
    ),
    ImageSlot(
        ImageType.THUMB,
        lambda item: item.series_id,
        lambda item: item.series_primary_image_tag,
    ),
    ImageSlot(
        ImageType.PRIMARY,
        lambda item: item.album_id,
        lambda item: item.album_primary_image_tag,
    ),
)
