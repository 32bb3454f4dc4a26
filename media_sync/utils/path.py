"""
Utilities for deriving local file paths from server metadata.
"""

from pathlib import Path
from typing import Optional

from pathvalidate import sanitize_filename

from media_sync.models.items import LibraryItem, MediaStream


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def item_directory(media_dir: Path, server_id: str, item_id: str) -> Path:
    return media_dir / sanitize_filename(server_id) / sanitize_filename(item_id)


def media_file_name(item: LibraryItem, original_file_name: Optional[str]) -> str:
    """
    Picks the on-device file name for an item's media body.

    The server's original file name wins; otherwise the item name plus the
    first media source's container is used.
    """
    if original_file_name:
        name = sanitize_filename(Path(original_file_name).name)
        if name:
            return name

    base = sanitize_filename(item.name) or item.id
    container = item.media_sources[0].container if item.media_sources else None
    if container:
        return f"{base}.{container.split(',')[0]}"
    return base


def image_path(media_dir: Path, server_id: str, item_id: str, tag: str) -> Path:
    return (
        media_dir
        / sanitize_filename(server_id)
        / "images"
        / f"{sanitize_filename(item_id)}_{sanitize_filename(tag)}"
    )


def subtitle_path(media_path: Path, stream: MediaStream) -> Path:
    """Places a subtitle next to its media file: ``<stem>.<index>[.<lang>].<codec>``."""
    parts = [media_path.stem, str(stream.index)]
    if stream.language:
        parts.append(sanitize_filename(stream.language))
    parts.append(sanitize_filename(stream.codec or "srt").lower())
    return media_path.with_name(".".join(parts))
