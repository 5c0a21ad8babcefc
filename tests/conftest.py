"""
Shared fixtures.

Async tests run on the anyio pytest plugin (asyncio backend). Nothing here
touches the network: the directory is faked and durable tiers live in tmp_path.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from globalfm.cache import KeyValueTier, StructuredTier, TieredCache
from globalfm.database import StationStore
from globalfm.models import Station
from globalfm.validation import normalize_station

NOW = 1_700_000_000.0


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def make_raw(index: int, **overrides: Any) -> Dict[str, Any]:
    """A valid radio-browser record with coordinates unique per index."""
    raw = {
        "stationuuid": f"st-{index:05d}",
        "name": f"Station {index}",
        "url": f"http://stream.example/{index}",
        "url_resolved": f"https://stream.example/{index}.mp3",
        "homepage": f"https://station{index}.example",
        "favicon": "",
        "country": "Testland",
        "countrycode": "TL",
        "state": "North",
        "language": "english",
        "votes": index % 50,
        "codec": "MP3",
        "bitrate": 128,
        "clickcount": index % 7,
        "clicktrend": 0,
        "geo_lat": 1.0 + (index % 1000) * 0.01,
        "geo_long": 1.0 + (index // 1000) * 0.01,
        "tags": "pop",
    }
    raw.update(overrides)
    return raw


def make_station(index: int, **overrides: Any) -> Station:
    return normalize_station(make_raw(index, **overrides))


def page(start: int, size: int = 200) -> List[Dict[str, Any]]:
    return [make_raw(i) for i in range(start, start + size)]


class FakeDirectory:
    """Stands in for RadioBrowserClient; pages are keyed by offset."""

    source_name = "fake_directory"

    def __init__(self, pages: Optional[Dict[int, list]] = None, tagged: Any = None):
        self.pages = pages or {}
        self.tagged = tagged if tagged is not None else []
        self.calls: List[int] = []
        self.tag_calls: List[str] = []
        self.fail_offsets: set = set()
        self.gate: Optional[asyncio.Event] = None

    async def fetch_batch(self, offset: int, limit: int = 200) -> list:
        self.calls.append(offset)
        if self.gate is not None:
            await self.gate.wait()
        if offset in self.fail_offsets:
            self.fail_offsets.discard(offset)
            raise RuntimeError(f"boom at {offset}")
        return list(self.pages.get(offset, []))

    async def fetch_tagged_feed(self, tag: str, languages=None) -> list:
        self.tag_calls.append(tag)
        if isinstance(self.tagged, Exception):
            raise self.tagged
        return list(self.tagged)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def clock() -> List[float]:
    """Mutable current time; tests advance it with clock[0] += seconds."""
    return [NOW]


@pytest.fixture
def tiered_cache(tmp_path, clock) -> TieredCache:
    now: Callable[[], float] = lambda: clock[0]
    return TieredCache(
        durable=[
            StructuredTier(StationStore(str(tmp_path / "stations.db"))),
            KeyValueTier(tmp_path / "kv.json", clock=now),
        ],
        clock=now,
    )


@pytest.fixture
def memory_cache(clock) -> TieredCache:
    return TieredCache(durable=[], clock=lambda: clock[0])
