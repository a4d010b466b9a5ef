"""
Client-local persisted key/value storage.

String keys to string values, mirrored to a JSON file. No schema versioning:
callers own the format of what they store.
"""

import json
from pathlib import Path
from typing import Dict, Optional

from app.utils.logger import get_logger

logger = get_logger(__name__)


class LocalStorage:
    """Key/value store persisted to a JSON file (in-memory only when ``path`` is None)."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[LocalStorage] Unreadable storage file {self.path}, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"[LocalStorage] Storage file {self.path} is not an object, starting empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".part")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Persist ``key``. Memory only changes once the file write succeeded."""
        updated = {**self._data, key: value}
        self._write(updated)
        self._data = updated

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        updated = {k: v for k, v in self._data.items() if k != key}
        self._write(updated)
        self._data = updated

    def keys(self):
        return list(self._data)
