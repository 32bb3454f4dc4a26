"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MediaSyncError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(MediaSyncError):
    """Raised for issues related to configuration loading or validation."""


class AuthenticationError(MediaSyncError):
    """Raised when the server rejects the configured access token."""


class RemoteApiError(MediaSyncError):
    """Raised when a call to the media server does not complete successfully."""


class LocalStoreError(MediaSyncError):
    """Raised when a read, write or delete against the local store fails."""


class DownloadError(MediaSyncError):
    """Raised when a content body could not be transferred to its local path."""


class MissingSubtitleStreamError(MediaSyncError):
    """
    Raised when a subtitle file declared by a job item has no matching
    subtitle stream in the item's first media source.
    """


class SyncError(MediaSyncError):
    """Raised when a sync phase fails and the run is aborted."""

    def __init__(self, phase: str, message: str):
        super().__init__(f"{phase}: {message}")
        self.phase = phase
