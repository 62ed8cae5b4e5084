"""
Persistent Client Storage

Key/value store for page agent state that survives restarts: the auth
session, the free-tier counter and the last counted listing key. Keys are
namespaced and versioned ("fbco.free.count.v1") so a format change can use
a new key instead of misreading old values.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from straightshot.config import CLIENT

logger = logging.getLogger(__name__)

AUTH_SESSION = "auth.session"
FREE_COUNT = "free.count"
FREE_LAST_KEY = "free.last_key"


class ClientStorage:
    """
    JSON-file backed key/value store. With path=None it only lives in memory.

    Usage:
        storage = ClientStorage(CLIENT_STORAGE_PATH)
        storage.set(storage.key(FREE_COUNT), 2)
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        namespace: Optional[str] = None,
    ):
        self.path = Path(path) if path else None
        self.namespace = namespace or CLIENT.storage_namespace
        self._data: Dict[str, Any] = self._load()

    def key(self, name: str, version: int = 1) -> str:
        return f"{self.namespace}.{name}.v{version}"

    def _load(self) -> Dict[str, Any]:
        """Load stored values from file."""
        if self.path and self.path.exists():
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                logger.warning(f"[STORAGE] Ignoring non-object contents of {self.path}")
            except (OSError, ValueError) as e:
                logger.error(f"[STORAGE] Failed to load {self.path}: {e}")
        return {}

    def _save(self) -> None:
        """Write all values to file."""
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error(f"[STORAGE] Failed to save {self.path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()


class FreeTierCounter:
    """
    Completed analyses by an unvalidated user.

    Never decreases, and a listing is counted only once in a row: repeated
    completions for the same key do not add up.
    """

    def __init__(self, storage: ClientStorage):
        self.storage = storage
        self._count_key = storage.key(FREE_COUNT)
        self._last_key = storage.key(FREE_LAST_KEY)

    @property
    def count(self) -> int:
        value = self.storage.get(self._count_key, 0)
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0

    @property
    def last_key(self) -> Optional[str]:
        return self.storage.get(self._last_key)

    def record(self, snapshot_key: Optional[str]) -> bool:
        """Count a completed analysis. Returns True if the counter moved."""
        if not snapshot_key or snapshot_key == self.last_key:
            return False
        new_count = self.count + 1
        self.storage.set(self._count_key, new_count)
        self.storage.set(self._last_key, snapshot_key)
        logger.info(f"[FREE] Counted {snapshot_key[:12]} ({new_count} used)")
        return True
