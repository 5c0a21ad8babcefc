import json
import os
import sqlite3
import threading
from typing import Optional

import sqlite_utils
from sqlite_utils.db import NotFoundError
from loguru import logger

from globalfm import config
from globalfm.models import CacheEntry

ROW_KEY = "stations"


def _connect(path: str) -> sqlite_utils.Database:
    # the connection is shared with worker threads (asyncio.to_thread)
    return sqlite_utils.Database(sqlite3.connect(path, check_same_thread=False))


def open_database(path: str = config.DB_PATH) -> sqlite_utils.Database:
    # 1. Try Primary Path
    try:
        db_dir = os.path.dirname(path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        db = _connect(path)
        # Test if writable
        db.execute("CREATE TABLE IF NOT EXISTS _probe (id INTEGER PRIMARY KEY)")
        return db
    except Exception as e:
        logger.warning(f"Primary storage ({path}) failed: {e}")

    # 2. Try Fallback Path (Absolute path in /tmp)
    try:
        logger.info(f"Switching to absolute fallback: {config.FALLBACK_DB_PATH}")
        db = _connect(config.FALLBACK_DB_PATH)
        db.execute("CREATE TABLE IF NOT EXISTS _probe (id INTEGER PRIMARY KEY)")
        return db
    except Exception as e:
        logger.error(f"All file storage failed: {e}")
        # 3. Final resort: In-Memory (lost on restart, but app stays alive)
        return sqlite_utils.Database(sqlite3.connect(":memory:", check_same_thread=False))


class StationStore:
    """Catalog snapshots in sqlite, one table per cache version.

    Bumping the version points reads at a new, empty table; tables from other
    versions are dropped when the store is opened.
    """

    def __init__(
        self,
        path: str = config.DB_PATH,
        db_name: str = config.CACHE_DB_NAME,
        store_name: str = config.CACHE_STORE_NAME,
        version: int = config.CACHE_VERSION,
    ):
        self.path = path
        self.prefix = f"{db_name}_{store_name}_v"
        self.table_name = f"{self.prefix}{version}"
        self._db: Optional[sqlite_utils.Database] = None
        self._lock = threading.RLock()

    @property
    def db(self) -> sqlite_utils.Database:
        with self._lock:
            if self._db is None:
                self._db = open_database(self.path)
                self._drop_stale_versions()
            return self._db

    def _drop_stale_versions(self) -> None:
        for name in self._db.table_names():
            if name.startswith(self.prefix) and name != self.table_name:
                logger.info(f"Dropping stale cache table {name}")
                self._db[name].drop()

    def load(self) -> Optional[CacheEntry]:
        with self._lock:
            if self.table_name not in self.db.table_names():
                return None
            try:
                row = self.db[self.table_name].get(ROW_KEY)
            except NotFoundError:
                return None
        return CacheEntry.from_payload(json.loads(row["payload"]), row["captured_at"])

    def save(self, entry: CacheEntry) -> None:
        record = {
            "key": ROW_KEY,
            "payload": json.dumps(entry.to_payload()),
            "captured_at": entry.captured_at,
        }
        with self._lock:
            self.db[self.table_name].upsert(record, pk="key", alter=True)
        logger.debug(f"Saved {len(entry.stations)} stations to {self.table_name}")

    def clear(self) -> None:
        with self._lock:
            if self.table_name in self.db.table_names():
                self.db[self.table_name].drop()
