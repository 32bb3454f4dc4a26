"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: server records, local records,
configuration and run statistics.
"""

from .config import SyncConfig
from .items import (
    IMAGE_SLOTS,
    ImageSlot,
    ImageType,
    ItemFileInfo,
    LibraryItem,
    LocalItem,
    MediaSource,
    MediaStream,
    OfflineAction,
    OfflineUser,
    ServerTarget,
    SyncDataRequest,
    SyncDataResult,
    SyncJobItem,
)
from .stats import SyncStats

__all__ = [
    "IMAGE_SLOTS",
    "ImageSlot",
    "ImageType",
    "ItemFileInfo",
    "LibraryItem",
    "LocalItem",
    "MediaSource",
    "MediaStream",
    "OfflineAction",
    "OfflineUser",
    "ServerTarget",
    "SyncConfig",
    "SyncDataRequest",
    "SyncDataResult",
    "SyncJobItem",
    "SyncStats",
]
