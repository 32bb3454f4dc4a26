"""
Structured logging for sync runs.
Writes human-readable lines through the standard logger and, optionally,
JSON lines with the same event name and context for later analysis.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that emits an event name plus keyword context.

    Usage:
        logger = StructuredLogger("media_sync")
        logger.info("job_item_transferred",
                    job_item_id="42",
                    item_id="abc",
                    images=2)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"media_sync_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Added to every JSON entry
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all JSON entries."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            # markup=False keeps item names with brackets from being parsed by rich
            self._logger.log(
                level, self._format_message(event, **context), extra={"markup": False}
            )
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._emit(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._emit(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._emit(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SyncEventLogger:
    """
    Event vocabulary of a sync run. One instance is handed to every
    component of the run so that all of them report into the same stream.
    """

    def __init__(self, logger: StructuredLogger | None = None):
        self.logger = logger or StructuredLogger("media_sync.events", enable_json=False)

    # Run & phase events
    def sync_started(self, server_id: str, device_id: str, offline_users: int):
        self.logger.info(
            "sync_started",
            server_id=server_id,
            device_id=device_id,
            offline_users=offline_users,
        )

    def phase_started(self, phase: str, **context):
        self.logger.debug("phase_started", phase=phase, **context)

    def phase_completed(self, phase: str, **context):
        self.logger.info("phase_completed", phase=phase, **context)

    def phase_failed(self, phase: str, error: str):
        self.logger.error("phase_failed", phase=phase, error=error)

    def sync_completed(self, stats: dict[str, Any]):
        self.logger.info("sync_completed", **stats)

    # Offline actions
    def actions_reported(self, server_id: str, count: int):
        self.logger.info("offline_actions_reported", server_id=server_id, count=count)

    # Reconciliation
    def item_removed(self, item_id: str):
        self.logger.info("local_item_removed", item_id=item_id)

    def item_remove_failed(self, item_id: str, error: str):
        self.logger.warning("local_item_remove_failed", item_id=item_id, error=error)

    def access_updated(self, item_id: str, user_ids: list[str]):
        self.logger.info("item_access_updated", item_id=item_id, user_ids=user_ids)

    def access_failed(self, item_id: str, error: str):
        self.logger.warning("item_access_failed", item_id=item_id, error=error)

    # Content transfer
    def job_item_started(self, job_item_id: str, item_id: str, name: str):
        self.logger.debug(
            "job_item_started", job_item_id=job_item_id, item_id=item_id, name=name
        )

    def job_item_transferred(self, job_item_id: str, item_id: str):
        self.logger.info(
            "job_item_transferred", job_item_id=job_item_id, item_id=item_id
        )

    def job_item_failed(self, job_item_id: str, item_id: str, error: str):
        self.logger.error(
            "job_item_failed", job_item_id=job_item_id, item_id=item_id, error=error
        )

    def image_downloaded(self, item_id: str, image_type: str, tag: str):
        self.logger.debug(
            "image_downloaded", item_id=item_id, image_type=image_type, tag=tag
        )

    def image_failed(self, item_id: str, image_type: str, error: str):
        self.logger.warning(
            "image_failed", item_id=item_id, image_type=image_type, error=error
        )

    def subtitle_downloaded(self, item_id: str, file_name: str, path: str):
        self.logger.debug(
            "subtitle_downloaded", item_id=item_id, file_name=file_name, path=path
        )

    def subtitle_failed(self, item_id: str, file_name: str, error: str):
        self.logger.warning(
            "subtitle_failed", item_id=item_id, file_name=file_name, error=error
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, SyncEventLogger]:
    """
    Create the base structured logger and the sync event logger on top of it.

    Returns:
        Tuple of (base_logger, event_logger)
    """
    base = StructuredLogger("media_sync.events", log_dir=log_dir, enable_json=enable_json)
    return base, SyncEventLogger(base)
