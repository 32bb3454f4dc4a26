"""
Dataclass for tracking sync run statistics.
"""

import time
from dataclasses import asdict, dataclass, field


@dataclass
class SyncStats:
    """Counts what happened during a single sync run, for logging and display."""

    actions_reported: int = 0
    items_removed: int = 0
    items_remove_failed: int = 0
    access_updated: int = 0
    access_unchanged: int = 0
    access_failed: int = 0
    job_items_transferred: int = 0
    job_items_failed: int = 0
    images_downloaded: int = 0
    images_present: int = 0
    images_failed: int = 0
    subtitles_downloaded: int = 0
    subtitles_failed: int = 0
    bytes_downloaded: int = 0
    _start_time: float = field(default_factory=time.monotonic, repr=False)

    @property
    def duration_s(self) -> float:
        return time.monotonic() - self._start_time

    def summary(self) -> dict[str, int | float]:
        """Returns the public counters plus the elapsed time."""
        data = {k: v for k, v in asdict(self).items() if not k.startswith("_")}
        data["duration_s"] = round(self.duration_s, 2)
        return data
