"""
Media Transfer Layer.

This package is responsible for moving content bodies (media files,
artwork, subtitles) from the server onto local storage.
"""

from .downloader import Downloader, close_connection_pool

__all__ = ["Downloader", "close_connection_pool"]
