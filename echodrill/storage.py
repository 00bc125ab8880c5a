"""
Local durable state for Echo Drill.

The only durable state is the learner's XP, kept under a single key in a
small JSON document:

    ~/.echodrill/progress.json  ->  {"echo.xp": 420}

The value is read once at startup and overwritten after every change.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .config import XP_FILE, XP_STORAGE_KEY
from .logger import logger


class JsonStorage:
    """Key/value document on disk with atomic overwrite."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".progress_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class PersistentCounter:
    """
    Process-wide integer counter that survives restarts.

    `load()` reads the last durable value (0 when none exists) and `save()`
    flushes the current one; `add()` does both the mutation and the flush.
    """

    def __init__(self, storage: JsonStorage, key: str = XP_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._value = 0
        self._loaded = False

    @classmethod
    def default(cls) -> "PersistentCounter":
        counter = cls(JsonStorage(XP_FILE))
        counter.load()
        return counter

    @property
    def value(self) -> int:
        if not self._loaded:
            self.load()
        return self._value

    def load(self) -> int:
        raw = self.storage.get(self.key, 0)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer stored value for {self.key}: {raw!r}")
            value = 0
        if value < 0:
            logger.warning(f"Ignoring negative stored value for {self.key}: {value}")
            value = 0
        self._value = value
        self._loaded = True
        logger.xp(f"Loaded {self.key} = {value}")
        return value

    def save(self) -> None:
        self.storage.set(self.key, self._value)

    def add(self, amount: int, reason: Optional[str] = None) -> int:
        """
        Increase the counter and flush it immediately.

        The in-memory value only changes once the write has succeeded, so a
        failed flush leaves the counter exactly as it was.
        """
        if amount < 0:
            raise ValueError("XP can only grow")
        if not self._loaded:
            self.load()
        new_value = self._value + amount
        self.storage.set(self.key, new_value)
        self._value = new_value
        suffix = f" ({reason})" if reason else ""
        logger.xp(f"+{amount} → {self._value}{suffix}")
        return self._value
