"""
Key/Value Store for PagePilot.

Every adaptive component persists exactly one JSON document per key
(``router.stats``, ``experts.stats``, ``sections.bandits``, ``token.search``,
``taste.priors``, ``taste.events``). The store never raises on I/O: every
operation returns a StoreResult and callers treat an error as "use defaults".

Backends:
- JsonFileStore: one ``<key>.json`` per key, written atomically
- InMemoryStore: process-local dict, used by tests and ephemeral workers

Read-modify-write goes through ``merge()``, which serialises updates per key
inside the process. Cross-process writers race last-writer-wins.
"""

import copy
import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..errors import ConfigurationError
from .config import VALID_BACKENDS, StorageConfig, get_storage_config

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9._-]+$")


class StorageError(Exception):
    """
    A recoverable persistence failure.

    Attributes:
        key: Store key involved
        kind: "io" (read/write failed), "corrupt" (unparseable document)
              or "invalid_key"
    """

    def __init__(self, key: str, kind: str, message: str = ""):
        self.key = key
        self.kind = kind
        super().__init__(f"{kind} error for key {key!r}: {message}")

    @property
    def is_corrupt(self) -> bool:
        return self.kind == "corrupt"


@dataclass
class StoreResult:
    """Outcome of a store operation: a value or a StorageError, never both."""

    value: Any = None
    error: Optional[StorageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: Any) -> Any:
        """Return the value, or ``default`` when the operation failed or found nothing."""
        if self.error is not None or self.value is None:
            return default
        return self.value


class KeyValueStore:
    """
    Base class for key/value stores.

    Subclasses implement ``_read`` and ``_write``; both may raise anything,
    the public methods convert failures into StoreResult errors.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _read(self, key: str) -> Any:
        raise NotImplementedError

    def _write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def _check_key(self, key: str) -> Optional[StorageError]:
        if not isinstance(key, str) or not _KEY_RE.match(key):
            return StorageError(str(key), "invalid_key", "keys must match [A-Za-z0-9._-]+")
        return None

    def get(self, key: str) -> StoreResult:
        """
        Read the document stored under ``key``.

        Returns:
            StoreResult with value None when the key does not exist
        """
        bad = self._check_key(key)
        if bad:
            return StoreResult(error=bad)
        try:
            return StoreResult(value=self._read(key))
        except StorageError as e:
            logger.warning(f"[STORE] {e}")
            return StoreResult(error=e)
        except Exception as e:
            err = StorageError(key, "io", str(e))
            logger.warning(f"[STORE] {err}")
            return StoreResult(error=err)

    def set(self, key: str, value: Any) -> StoreResult:
        """Replace the document stored under ``key``."""
        bad = self._check_key(key)
        if bad:
            return StoreResult(error=bad)
        with self._lock_for(key):
            return self._safe_write(key, value)

    def merge(
        self,
        key: str,
        update: Callable[[Any], Any],
        default: Any = None,
    ) -> StoreResult:
        """
        Atomically apply ``update`` to the document under ``key``.

        A missing or corrupt document is replaced by a deep copy of
        ``default`` before ``update`` runs. An unreadable document aborts
        the merge without writing, so a transient read failure never
        clobbers good state.

        Args:
            key: Store key
            update: Function mapping the current document to the new one
            default: Document used when the key is missing or corrupt

        Returns:
            StoreResult holding the written document
        """
        bad = self._check_key(key)
        if bad:
            return StoreResult(error=bad)
        with self._lock_for(key):
            current = self.get(key)
            if current.error is not None and not current.error.is_corrupt:
                return current
            doc = current.value if current.ok and current.value is not None else copy.deepcopy(default)
            try:
                new_doc = update(doc)
            except Exception as e:
                err = StorageError(key, "io", f"update failed: {e}")
                logger.warning(f"[STORE] {err}")
                return StoreResult(error=err)
            return self._safe_write(key, new_doc)

    def _safe_write(self, key: str, value: Any) -> StoreResult:
        try:
            self._write(key, value)
            return StoreResult(value=value)
        except Exception as e:
            err = StorageError(key, "io", str(e))
            logger.warning(f"[STORE] {err}")
            return StoreResult(error=err)


class InMemoryStore(KeyValueStore):
    """Process-local store. Values are JSON round-tripped to avoid aliasing."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    def _read(self, key: str) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def _write(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def keys(self):
        return sorted(self._data)


class JsonFileStore(KeyValueStore):
    """
    One JSON document per key under ``store_dir``.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace`` so readers never observe a half-written document.
    """

    def __init__(self, store_dir: Optional[str] = None, indent: Optional[int] = 2):
        super().__init__()
        self.store_dir = Path(store_dir or get_storage_config().store_dir)
        self.indent = indent

    def path_for(self, key: str) -> Path:
        return self.store_dir / f"{key}.json"

    def _read(self, key: str) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(key, "corrupt", str(e))

    def _write(self, key: str, value: Any) -> None:
        self.store_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=str(self.store_dir))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=self.indent, ensure_ascii=False)
            os.replace(tmp, self.path_for(key))
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise


def create_store(config: Optional[StorageConfig] = None) -> KeyValueStore:
    """
    Build a store for the configured backend.

    Raises:
        ConfigurationError: If ``config.backend`` is not a known backend
    """
    config = config or get_storage_config()
    if config.backend not in VALID_BACKENDS:
        raise ConfigurationError(f"Unknown store backend {config.backend!r}, expected one of {VALID_BACKENDS}")
    if config.backend == "memory":
        return InMemoryStore()
    return JsonFileStore(store_dir=config.store_dir, indent=config.indent)


# Global store instance
_store: Optional[KeyValueStore] = None


def get_store(config: Optional[StorageConfig] = None) -> KeyValueStore:
    """Get global store instance."""
    global _store
    if _store is None:
        _store = create_store(config)
        logger.debug(f"[STORE] Using {type(_store).__name__}")
    return _store


def reset_store() -> None:
    """Reset global store (mainly for testing)."""
    global _store
    _store = None
