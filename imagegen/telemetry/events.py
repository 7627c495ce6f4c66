"""Event sink capability for orchestration telemetry.

Sinks:
    - `NullEventSink`: default, discards events.
    - `JsonlEventSink`: appends one JSON object per line to a file, creating the
      parent directory once per sink instance.

Failure handling:
    Sinks never raise into callers. Write failures are logged at warning level.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Minimal interface required by `ImageOrchestrator`."""

    def emit(self, event: str, **fields: Any) -> None:
        """Record one telemetry event."""
        ...


class NullEventSink:
    def emit(self, event: str, **fields: Any) -> None:
        return None


class JsonlEventSink:
    """Append-only JSON-lines event log."""

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)
        self._dir_ready = False
        self._lock = threading.Lock()

    def _ensure_dir(self) -> None:
        if self._dir_ready:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._dir_ready = True

    def emit(self, event: str, **fields: Any) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            **fields,
        }
        line = json.dumps(record, default=str)

        try:
            with self._lock:
                self._ensure_dir()
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as exc:
            logger.warning("Telemetry write to %s failed: %s", self.path, exc)
