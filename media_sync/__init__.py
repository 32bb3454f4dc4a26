"""
media-sync: offline media synchronization for detachable playback clients.
"""

__version__ = "0.3.0"

from media_sync.core.orchestrator import MediaSync  # noqa: E402

__all__ = ["MediaSync", "__version__"]
