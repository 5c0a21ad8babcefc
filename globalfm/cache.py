"""Three-tier catalog cache: memory -> sqlite -> JSON key-value file.

Reads walk the tiers fastest first and backfill faster tiers on a hit lower
down. Durable writes are fire-and-forget: they run as background tasks and a
failure only costs durability for this session.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set, Tuple

from loguru import logger

from globalfm import config
from globalfm.database import StationStore
from globalfm.errors import CacheWriteFailure
from globalfm.models import CacheEntry

Clock = Callable[[], float]

CACHE_DURATION = config.CACHE_MINUTES * 60


class CacheTier(ABC):
    name = "tier"

    @abstractmethod
    async def read(self) -> Optional[CacheEntry]:
        ...

    @abstractmethod
    async def write(self, entry: CacheEntry) -> None:
        """Store ``entry``; raise ``CacheWriteFailure`` if the tier refuses it."""

    @abstractmethod
    async def clear(self) -> None:
        ...


class MemoryTier(CacheTier):
    name = "memory"

    def __init__(self):
        self.entry: Optional[CacheEntry] = None

    def get(self) -> Optional[CacheEntry]:
        return self.entry

    def put(self, entry: CacheEntry) -> None:
        self.entry = entry

    async def read(self) -> Optional[CacheEntry]:
        return self.entry

    async def write(self, entry: CacheEntry) -> None:
        self.entry = entry

    async def clear(self) -> None:
        self.entry = None


class StructuredTier(CacheTier):
    name = "sqlite"

    def __init__(self, store: Optional[StationStore] = None):
        self.store = store or StationStore()

    async def read(self) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self.store.load)

    async def write(self, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(self.store.save, entry)
        except Exception as e:
            raise CacheWriteFailure(self.name, e) from e

    async def clear(self) -> None:
        await asyncio.to_thread(self.store.clear)


class KeyValueTier(CacheTier):
    """Two keys in a JSON file: the serialized stations and their timestamp."""

    name = "kv"

    def __init__(
        self,
        path: Path = Path(config.KV_PATH),
        version: int = config.CACHE_VERSION,
        duration: float = CACHE_DURATION,
        clock: Clock = time.time,
    ):
        self.path = Path(path)
        self.payload_key = f"{config.CACHE_KEY_PREFIX}_cache_v{version}"
        self.timestamp_key = f"{config.CACHE_KEY_PREFIX}_timestamp_v{version}"
        self.duration = duration
        self.clock = clock

    def _load_pairs(self) -> dict:
        if not self.path.exists():
            return {}
        content = self.path.read_text(encoding="utf-8").strip()
        return json.loads(content) if content else {}

    def _save_pairs(self, pairs: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(pairs), encoding="utf-8")

    def _read(self) -> Optional[CacheEntry]:
        pairs = self._load_pairs()
        payload = pairs.get(self.payload_key)
        timestamp = pairs.get(self.timestamp_key)
        if not payload or timestamp is None:
            return None

        if self.clock() - float(timestamp) >= self.duration:
            self._remove(pairs)
            return None
        if not isinstance(payload, list):
            return None
        return CacheEntry.from_payload(payload, float(timestamp))

    def _remove(self, pairs: dict) -> None:
        pairs.pop(self.payload_key, None)
        pairs.pop(self.timestamp_key, None)
        self._save_pairs(pairs)

    def _write(self, entry: CacheEntry) -> None:
        try:
            pairs = self._load_pairs()
        except ValueError:
            pairs = {}
        pairs[self.payload_key] = entry.to_payload()
        pairs[self.timestamp_key] = entry.captured_at
        try:
            self._save_pairs(pairs)
        except OSError:
            # drop the old pair to free room, then try once more
            self._remove(dict(pairs))
            self._save_pairs(pairs)

    async def read(self) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self._read)

    async def write(self, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(self._write, entry)
        except Exception as e:
            raise CacheWriteFailure(self.name, e) from e

    async def clear(self) -> None:
        def _clear():
            try:
                pairs = self._load_pairs()
            except ValueError:
                pairs = {}
            self._remove(pairs)

        await asyncio.to_thread(_clear)


class TieredCache:
    def __init__(
        self,
        memory: Optional[MemoryTier] = None,
        durable: Optional[Sequence[CacheTier]] = None,
        duration: float = CACHE_DURATION,
        clock: Clock = time.time,
    ):
        self.memory = memory or MemoryTier()
        self.durable: List[CacheTier] = list(durable) if durable is not None else [StructuredTier(), KeyValueTier()]
        self.duration = duration
        self.clock = clock
        self._epoch = 0
        self._io_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    @property
    def tiers(self) -> List[CacheTier]:
        return [self.memory, *self.durable]

    def is_fresh(self, entry: Optional[CacheEntry]) -> bool:
        return entry is not None and len(entry.stations) > 0 and entry.is_fresh(self.clock(), self.duration)

    def peek(self) -> Optional[CacheEntry]:
        """Fresh memory entry, without touching durable tiers."""
        entry = self.memory.get()
        return entry if self.is_fresh(entry) else None

    async def read(self) -> Optional[Tuple[CacheEntry, str]]:
        """First fresh entry across tiers, with the name of the tier that served it."""
        entry = self.peek()
        if entry is not None:
            logger.info(f"Using memory cache ({len(entry.stations)} stations)")
            return entry, self.memory.name

        for index, tier in enumerate(self.durable):
            try:
                entry = await tier.read()
            except Exception as e:
                logger.warning(f"Cache read from {tier.name} failed: {e}")
                continue
            if not self.is_fresh(entry):
                continue

            logger.info(f"Using {tier.name} cache ({len(entry.stations)} stations)")
            self.memory.put(entry)
            for faster in self.durable[:index]:
                self._spawn(self._write_tier(faster, entry, self._epoch))
            return entry, tier.name
        return None

    async def read_any(self) -> Optional[CacheEntry]:
        """Last-resort read: any non-empty entry, fresh or not."""
        for tier in self.tiers:
            try:
                entry = await tier.read()
            except Exception as e:
                logger.warning(f"Cache read from {tier.name} failed: {e}")
                continue
            if entry is not None and entry.stations:
                return entry
        return None

    def publish(self, entry: CacheEntry) -> None:
        self.memory.put(entry)

    def persist(self, entry: CacheEntry) -> None:
        """Write ``entry`` to every durable tier in the background."""
        for tier in self.durable:
            self._spawn(self._write_tier(tier, entry, self._epoch))

    async def flush(self) -> None:
        """Wait for background writes scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def clear(self) -> None:
        self._epoch += 1
        self.memory.put(None)
        async with self._io_lock:
            for tier in self.durable:
                try:
                    await tier.clear()
                except Exception as e:
                    logger.warning(f"Failed to clear {tier.name} cache: {e}")
        logger.info("All cache tiers cleared")

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_tier(self, tier: CacheTier, entry: CacheEntry, epoch: int) -> None:
        async with self._io_lock:
            # a clear() happened after this write was scheduled
            if epoch != self._epoch:
                return
            try:
                await tier.write(entry)
                logger.debug(f"Saved {len(entry.stations)} stations to {tier.name} cache")
            except CacheWriteFailure as e:
                logger.warning(f"{e}; continuing memory-only")
