"""
Storage Layer.

This package handles all data persistence: the configuration file and the
on-device store of synced items, images and queued offline actions.
"""

from .config_manager import ConfigManager
from .local_store import LocalAssetManager

__all__ = ["ConfigManager", "LocalAssetManager"]
