from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class Station(BaseModel):
    """One radio channel, as published in the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    country_name: str
    country_code: str = ""
    region: str = ""
    language: str = ""
    stream_url: str
    homepage_url: Optional[str] = None
    favicon_url: Optional[str] = None
    votes: int = 0
    click_count: int = 0
    click_trend: int = 0
    bitrate_kbps: int = 0
    codec: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tags: Optional[str] = None


@dataclass(frozen=True)
class CacheEntry:
    stations: Tuple[Station, ...]
    captured_at: float

    def is_fresh(self, now: float, duration: float) -> bool:
        return now - self.captured_at < duration

    def to_payload(self) -> List[dict]:
        return [s.model_dump(mode="json") for s in self.stations]

    @classmethod
    def from_payload(cls, payload: List[dict], captured_at: float) -> "CacheEntry":
        return cls(
            stations=tuple(Station.model_validate(item) for item in payload),
            captured_at=captured_at,
        )


@dataclass
class LoaderState:
    """Progress of one paging cycle. Owned by a single CatalogService."""

    generation: int
    offset: int = 0
    loaded_stations: List[Station] = field(default_factory=list)
    consecutive_empty_batches: int = 0
    is_loading: bool = False
    complete: bool = False
    secondary_feed_fetched: bool = False
    secondary_stations: List[Station] = field(default_factory=list)


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    STALLED = "stalled"
    ERRORED = "errored"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class PlaybackSession:
    station: Station
    retry_count: int = 0
    is_reconnecting: bool = False
    has_ever_played: bool = False
    state: PlaybackState = PlaybackState.LOADING
    error: Optional[str] = None
