"""
Bookmarked stations for the local listener.
Station ids are kept in insertion order and persisted as a JSON list.
"""

import json
import threading
from pathlib import Path
from typing import Callable, List

from loguru import logger

from globalfm import config


class BookmarkStore:
    def __init__(self, path: Path = Path(config.BOOKMARKS_PATH)):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._bookmarks: List[str] = []
        self._on_change_callbacks: List[Callable[[List[str]], None]] = []
        self._load_from_file()

    def _load_from_file(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as e:
            logger.warning(f"Could not load bookmarks from {self._path}: {e}")
            return
        if isinstance(data, list):
            self._bookmarks = [str(item) for item in data]

    def _save_to_file(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._bookmarks), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not save bookmarks to {self._path}: {e}")

    def add_listener(self, callback: Callable[[List[str]], None]) -> None:
        self._on_change_callbacks.append(callback)

    def _notify_change(self) -> None:
        snapshot = list(self._bookmarks)
        for callback in self._on_change_callbacks:
            callback(snapshot)

    def toggle(self, station_id: str) -> bool:
        """Returns True if the station is bookmarked after the call."""
        with self._lock:
            if station_id in self._bookmarks:
                self._bookmarks.remove(station_id)
                bookmarked = False
            else:
                self._bookmarks.append(station_id)
                bookmarked = True
            self._save_to_file()
        self._notify_change()
        return bookmarked

    def is_bookmarked(self, station_id: str) -> bool:
        with self._lock:
            return station_id in self._bookmarks

    def all(self) -> List[str]:
        with self._lock:
            return list(self._bookmarks)
