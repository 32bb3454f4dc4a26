"""
Media Server API Layer.

This package handles all communication with the media server's REST API.
"""

from .client import MediaServerClient

__all__ = ["MediaServerClient"]
