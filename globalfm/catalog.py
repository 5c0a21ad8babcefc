"""Catalog acquisition: cache read-through plus background paging.

``CatalogService`` owns the loader state and the published snapshot. Every
cycle carries a generation number; clearing the cache bumps it, so a page
fetched for an older cycle is dropped instead of merged.
"""

import asyncio
import contextlib
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from globalfm import config
from globalfm.cache import TieredCache
from globalfm.models import CacheEntry, LoaderState, Station
from globalfm.parsers.radio_browser import RadioBrowserClient
from globalfm.ranking import RankingPolicy, merge_stations, policy_from_config
from globalfm.validation import validate_batch

Catalog = Tuple[Station, ...]
Subscriber = Callable[[Catalog], None]


class CatalogService:
    def __init__(
        self,
        client: Optional[RadioBrowserClient] = None,
        cache: Optional[TieredCache] = None,
        policy: Optional[RankingPolicy] = None,
        page_size: int = config.PAGE_SIZE,
        poll_interval: float = config.POLL_INTERVAL,
        empty_batch_limit: int = config.EMPTY_BATCH_LIMIT,
        persist_every: int = config.PERSIST_EVERY,
        secondary_tag: Optional[str] = config.SECONDARY_TAG,
        secondary_languages: Sequence[str] = tuple(config.SECONDARY_LANGUAGES),
        autostart: bool = True,
    ):
        self.client = client or RadioBrowserClient()
        self.cache = cache or TieredCache()
        self.policy = policy or policy_from_config()
        self.page_size = page_size
        self.poll_interval = poll_interval
        self.empty_batch_limit = empty_batch_limit
        self.persist_every = persist_every
        self.secondary_tag = secondary_tag
        self.secondary_languages = list(secondary_languages)
        self.autostart = autostart

        self.state: Optional[LoaderState] = None
        self._generation = 0
        self._snapshot: Catalog = ()
        self._subscribers: List[Subscriber] = []
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def snapshot(self) -> Catalog:
        """The last published catalog. Never mutated once published."""
        return self._snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # --- READ PATH ---

    async def get_catalog(self) -> Catalog:
        async with self._lock:
            try:
                hit = await self.cache.read()
                if hit is not None:
                    entry, _tier = hit
                    if entry.stations is not self._snapshot:
                        self._snapshot = entry.stations
                        self._notify(self._snapshot)
                    if self.state is not None and not self.state.complete and self.autostart:
                        self.start()
                    return entry.stations

                stations = await self._cold_start()
            except Exception as e:
                logger.exception(f"Failed to fetch stations: {e}")
                return await self._fallback()

        if stations and self.autostart:
            self.start()
        return stations

    async def _fallback(self) -> Catalog:
        if self._snapshot:
            return self._snapshot
        entry = await self.cache.read_any()
        return entry.stations if entry is not None else ()

    async def _cold_start(self) -> Catalog:
        # a loop left over from the previous cycle would block start()
        await self.stop()
        self._generation += 1
        generation = self._generation
        self.state = None

        logger.info("No cache found, fetching first batch from API...")
        batch = await self.client.fetch_batch(0, self.page_size)
        if generation != self._generation:
            return self._snapshot
        if not batch:
            logger.error("Failed to fetch first batch")
            return ()

        report = validate_batch(batch)
        logger.info(f"Loaded {len(report.stations)} valid stations from first batch")
        if report.rejected:
            logger.debug(f"Rejected in first batch: {dict(report.rejected)}")

        self.state = LoaderState(
            generation=generation,
            offset=self.page_size,
            loaded_stations=list(report.stations),
        )
        self._publish(self.policy.build_catalog(report.stations, thematic=False), persist=True)
        return self._snapshot

    # --- BACKGROUND PAGING ---

    async def load_next_page(self) -> None:
        """One paging tick. A tick while another is in flight does nothing."""
        state = self.state
        if state is None or state.complete or state.is_loading:
            return

        state.is_loading = True
        offset = state.offset
        logger.info(f"Loading batch at offset {offset}...")
        try:
            batch = await self.client.fetch_batch(offset, self.page_size)
            if state is not self.state:
                logger.info(f"Discarding batch at offset {offset} from superseded cycle {state.generation}")
                return

            if not batch:
                state.consecutive_empty_batches += 1
                logger.warning(f"Empty batch received ({state.consecutive_empty_batches} consecutive)")
                if state.consecutive_empty_batches >= self.empty_batch_limit:
                    await self._complete(state)
                else:
                    state.offset += self.page_size
                return

            state.consecutive_empty_batches = 0
            report = validate_batch(batch)
            state.loaded_stations.extend(report.stations)
            state.offset += self.page_size
            logger.info(
                f"Loaded {len(report.stations)} valid stations from batch "
                f"(offset: {offset}, total: {len(state.loaded_stations)})"
            )
            if report.rejected:
                logger.debug(f"Rejected at offset {offset}: {dict(report.rejected)}")

            # checkpoint to durable tiers each time we cross a persist_every boundary
            checkpoint = offset // self.persist_every != state.offset // self.persist_every
            self._publish(self.policy.build_catalog(state.loaded_stations, thematic=False), persist=checkpoint)
            if checkpoint:
                logger.info(f"Saved {len(self._snapshot)} stations to cache")
        except Exception as e:
            # transient: offset is untouched so the same page is retried next tick
            logger.exception(f"Failed to load batch at offset {offset}: {e}")
        finally:
            state.is_loading = False

    async def _complete(self, state: LoaderState) -> None:
        state.complete = True
        logger.info(f"All primary stations loaded (total: {len(state.loaded_stations)})")

        merged: List[Station] = list(state.loaded_stations)
        if self.secondary_tag:
            try:
                secondary = await self._secondary_feed(state)
                if state is not self.state:
                    return
                merged = merge_stations(state.loaded_stations, secondary)
                logger.info(
                    f"Merged stations: {len(state.loaded_stations)} primary + "
                    f"{len(secondary)} '{self.secondary_tag}' = {len(merged)} unique stations"
                )
            except Exception as e:
                logger.exception(f"Failed to fetch/merge '{self.secondary_tag}' stations: {e}")

        self._publish(self.policy.build_catalog(merged, thematic=True), persist=True)
        logger.info(f"Final merged station count: {len(self._snapshot)}")

    async def _secondary_feed(self, state: LoaderState) -> List[Station]:
        if state.secondary_feed_fetched:
            logger.info(f"Using cached '{self.secondary_tag}' stations ({len(state.secondary_stations)} stations)")
            return state.secondary_stations

        raw = await self.client.fetch_tagged_feed(self.secondary_tag, self.secondary_languages)
        report = validate_batch(raw)
        state.secondary_stations = report.stations
        state.secondary_feed_fetched = True
        return state.secondary_stations

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        state = self.state
        if state is None or state.complete:
            return
        logger.info(f"Starting lazy loading from offset {state.offset}")
        self._task = asyncio.get_running_loop().create_task(self._run(state.generation))

    async def _run(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            state = self.state
            if state is None or state.generation != generation:
                return
            if state.complete:
                logger.info(f"Lazy loading complete - {len(state.loaded_stations)} total stations loaded")
                return
            await self.load_next_page()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # --- PUBLISH / RESET ---

    def _publish(self, stations: Sequence[Station], persist: bool) -> None:
        self._snapshot = tuple(stations)
        entry = CacheEntry(stations=self._snapshot, captured_at=self.cache.clock())
        self.cache.publish(entry)
        self._notify(self._snapshot)
        if persist:
            self.cache.persist(entry)

    def _notify(self, catalog: Catalog) -> None:
        for callback in list(self._subscribers):
            try:
                callback(catalog)
            except Exception as e:
                logger.exception(f"Catalog subscriber failed: {e}")

    async def clear(self) -> None:
        """Drop every cache tier and the loader state; in-flight pages are discarded."""
        async with self._lock:
            self._generation += 1
            self.state = None
            self._snapshot = ()
            await self.stop()
            await self.cache.clear()

    async def refresh(self) -> Catalog:
        await self.clear()
        return await self.get_catalog()

    def status(self) -> Dict[str, Any]:
        state = self.state
        return {
            "generation": self._generation,
            "published": len(self._snapshot),
            "offset": state.offset if state else 0,
            "loaded": len(state.loaded_stations) if state else 0,
            "consecutive_empty_batches": state.consecutive_empty_batches if state else 0,
            "is_loading": state.is_loading if state else False,
            "complete": state.complete if state else False,
            "secondary_feed_fetched": state.secondary_feed_fetched if state else False,
        }
