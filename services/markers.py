# services/markers.py

"""
Local "there is an outstanding approval request for X" markers.

Kept in a small JSON file so the watch job can pick a request back up
after a restart. Thread-safe within one process.
"""

import json
import os
from pathlib import Path
from threading import Lock
from typing import Optional

from core.config import settings
from core.logging_config import logger
from core.utils import utcnow


class PendingMarkerStore:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.PENDING_MARKER_PATH)
        self._lock = Lock()

    # -------------------------------------------------
    # File I/O
    # -------------------------------------------------
    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text() or "{}")
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable marker file {self.path}: {e}")
            return {}

    def _save(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True))
        os.replace(tmp, self.path)

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------
    def set(self, contact: str, **info):
        with self._lock:
            data = self._load()
            data[contact] = {**info, "marked_at": utcnow().isoformat()}
            self._save(data)

    def get(self, contact: str) -> Optional[dict]:
        with self._lock:
            return self._load().get(contact)

    def clear(self, contact: str) -> bool:
        with self._lock:
            data = self._load()
            if contact not in data:
                return False
            del data[contact]
            self._save(data)
            return True

    def all(self) -> dict:
        with self._lock:
            return self._load()
