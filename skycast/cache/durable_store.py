"""Durable (shared) cache tier backends."""

import asyncio
import json
import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class DurableTierError(Exception):
    """Read or write failure on the durable cache tier."""
    pass


@dataclass
class DurableRecord:
    """A value held in the durable tier with its bookkeeping timestamps (epoch ms)."""
    value: Any
    cached_at: int
    expires_at: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DurableRecord':
        return cls(**data)


class DurableStore(ABC):
    """Key-value store with expiry bookkeeping shared across processes."""

    @abstractmethod
    async def read(self, key: str, now_ms: int) -> Optional[DurableRecord]:
        """
        Read an entry for ``key``.

        Returns:
            The record if one exists with ``expires_at > now_ms``, else None

        Raises:
            DurableTierError: If the store cannot be read
        """

    @abstractmethod
    async def upsert(self, key: str, value: Any, cached_at: int, expires_at: int) -> None:
        """
        Insert or replace the entry for ``key`` (last write wins).

        Raises:
            DurableTierError: If the store cannot be written
        """


class JsonFileDurableStore(DurableStore):
    """
    Durable tier persisted as a single JSON document on disk.

    The document maps cache keys to ``{value, cached_at, expires_at}``.
    Values must be JSON serializable. Load-modify-write cycles are
    serialized per file within the process, and the document is replaced
    atomically so readers never see a partial write.
    """

    _locks_guard = threading.Lock()
    _file_locks: Dict[Path, threading.RLock] = {}

    def __init__(self, cache_file: str = "state/weather_cache.json"):
        """
        Initialize JSON file store.

        Args:
            cache_file: Path to cache file
        """
        self.cache_file = Path(cache_file)
        self._lock = self._lock_for(self.cache_file)

    @classmethod
    def _lock_for(cls, path: Path) -> threading.RLock:
        key = path.resolve()
        with cls._locks_guard:
            return cls._file_locks.setdefault(key, threading.RLock())

    def _load(self) -> Dict[str, Any]:
        if not self.cache_file.exists():
            return {}
        with open(self.cache_file, 'r') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Cache file {self.cache_file} does not hold a JSON object")
        return data

    def _write_atomic(self, document: str) -> None:
        """Write to a temporary file, then rename it over the cache file."""
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.cache_file.with_name(f"{self.cache_file.name}.{os.getpid()}.tmp")
        try:
            with open(temp_path, 'w') as f:
                f.write(document)
            temp_path.replace(self.cache_file)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def _read_sync(self, key: str, now_ms: int) -> Optional[DurableRecord]:
        try:
            with self._lock:
                entry = self._load().get(key)
            if entry is None:
                return None
            record = DurableRecord.from_dict(entry)
        except (json.JSONDecodeError, OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to read cache file {self.cache_file}: {type(e).__name__}: {e}")
            raise DurableTierError(f"Failed to read {self.cache_file}: {e}")

        if record.expires_at <= now_ms:
            logger.debug(f"Durable entry {key!r} expired at {record.expires_at}")
            return None
        return record

    def _upsert_sync(self, key: str, record: DurableRecord) -> None:
        try:
            with self._lock:
                try:
                    data = self._load()
                except (json.JSONDecodeError, ValueError) as e:
                    logger.warning(f"Discarding unreadable cache file {self.cache_file}: {e}")
                    data = {}
                data[key] = record.to_dict()
                # Serialize before writing so a bad value never touches the file
                document = json.dumps(data, indent=2)
                self._write_atomic(document)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write cache file {self.cache_file}: {type(e).__name__}: {e}")
            raise DurableTierError(f"Failed to write {self.cache_file}: {e}")
        logger.debug(f"Saved durable entry {key!r} to {self.cache_file}")

    async def read(self, key: str, now_ms: int) -> Optional[DurableRecord]:
        return await asyncio.to_thread(self._read_sync, key, now_ms)

    async def upsert(self, key: str, value: Any, cached_at: int, expires_at: int) -> None:
        record = DurableRecord(value=value, cached_at=cached_at, expires_at=expires_at)
        await asyncio.to_thread(self._upsert_sync, key, record)


CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS weather_cache (
    cache_key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    cached_at INTEGER NOT NULL,
    expires_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_weather_cache_expires
ON weather_cache (expires_at);
"""

SELECT_SQL = """
SELECT data, cached_at, expires_at FROM weather_cache
WHERE cache_key = ? AND expires_at > ?
"""

UPSERT_SQL = """
INSERT INTO weather_cache (cache_key, data, cached_at, expires_at)
VALUES (?, ?, ?, ?)
ON CONFLICT(cache_key) DO UPDATE SET
    data = excluded.data,
    cached_at = excluded.cached_at,
    expires_at = excluded.expires_at
"""


class SqliteDurableStore(DurableStore):
    """Durable tier backed by a SQLite table keyed by cache key."""

    def __init__(self, db_path: str = "state/weather_cache.db"):
        self.db_path = Path(db_path)
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        if not self._initialized:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        if not self._initialized:
            conn.executescript(CREATE_TABLE_SQL)
            conn.commit()
            self._initialized = True
            logger.info(f"Initialized durable cache database: {self.db_path}")
        return conn

    def _read_sync(self, key: str, now_ms: int) -> Optional[DurableRecord]:
        try:
            conn = self._connect()
            try:
                row = conn.execute(SELECT_SQL, (key, now_ms)).fetchone()
            finally:
                conn.close()
            if row is None:
                return None
            return DurableRecord(
                value=json.loads(row['data']),
                cached_at=row['cached_at'],
                expires_at=row['expires_at'],
            )
        except (sqlite3.Error, OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read durable entry {key!r}: {type(e).__name__}: {e}")
            raise DurableTierError(f"Failed to read {key!r} from {self.db_path}: {e}")

    def _upsert_sync(self, key: str, value: Any, cached_at: int, expires_at: int) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
            conn = self._connect()
            try:
                conn.execute(UPSERT_SQL, (key, payload, cached_at, expires_at))
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write durable entry {key!r}: {type(e).__name__}: {e}")
            raise DurableTierError(f"Failed to write {key!r} to {self.db_path}: {e}")
        logger.debug(f"Upserted durable entry {key!r}")

    async def read(self, key: str, now_ms: int) -> Optional[DurableRecord]:
        return await asyncio.to_thread(self._read_sync, key, now_ms)

    async def upsert(self, key: str, value: Any, cached_at: int, expires_at: int) -> None:
        await asyncio.to_thread(self._upsert_sync, key, value, cached_at, expires_at)
