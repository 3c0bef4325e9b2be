"""
Keyed record storage for server state.

Stores hold plain records keyed by id. InMemoryStore is the default;
JsonFileStore adds write-through persistence to a JSON file so state
survives a server restart.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryStore(Generic[T]):
    """Thread-safe dict-backed store."""

    def __init__(self) -> None:
        self._records: Dict[str, T] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._records.get(key)

    def upsert(self, key: str, record: T) -> T:
        with self._lock:
            self._records[key] = record
            self._after_write()
        return record

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._records.pop(key, None) is not None
            if removed:
                self._after_write()
            return removed

    def values(self) -> List[T]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _after_write(self) -> None:
        """Hook for persistent subclasses. Called with the lock held."""


class JsonFileStore(InMemoryStore[T]):
    """
    Store persisted to a JSON file after every write.

    Records must provide to_dict(); `decode` rebuilds them on load.
    Writes are atomic (temp file + os.replace) so a crash mid-save never
    leaves a truncated file behind.
    """

    def __init__(self, path: Path, decode: Callable[[Dict[str, Any]], T]) -> None:
        super().__init__()
        self.path = Path(path)
        self._decode = decode
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
            for key, data in raw.items():
                self._records[key] = self._decode(data)
            logger.info(f"Loaded {len(self._records)} records from {self.path}")
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, OSError) as e:
            logger.warning(f"Invalid store file {self.path}, starting empty: {e}")
            self._records = {}

    def _after_write(self) -> None:
        payload = {key: record.to_dict() for key, record in self._records.items()}
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path = tempfile.mkstemp(
            suffix='.tmp',
            prefix=f'{self.path.stem}_',
            dir=self.path.parent
        )
        try:
            with os.fdopen(temp_fd, 'w') as f:
                json.dump(payload, f, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise


class UserLocks:
    """
    One re-entrant lock per user id.

    Serialises read-modify-write sequences on a single user's sessions and
    config without blocking other users.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def for_user(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock


def create_store(name: str, decode: Callable[[Dict[str, Any]], T], base_path: str = "") -> InMemoryStore[T]:
    """
    Build a store for one record type.

    Args:
        name: Collection name, used as the file name when persisting.
        decode: Rebuilds a record from its to_dict() form.
        base_path: Directory for JSON files; empty keeps state in memory.

    Returns:
        A JsonFileStore when base_path is set, else an InMemoryStore.
    """
    if base_path:
        return JsonFileStore(Path(base_path) / f"{name}.json", decode)
    return InMemoryStore()
