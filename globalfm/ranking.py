"""Deduplication, scoring and ordering of the station catalog.

The structural steps (coordinate dedup, id dedup, score ordering) are fixed.
Which dedup runs first and whether thematic stations are pulled to the front
are product choices, so they live in ``RankingPolicy`` and are injected.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from globalfm import config
from globalfm.models import Station

ThematicMatcher = Callable[[Station], bool]

DEFAULT_THEMATIC_VOCABULARY = (
    "christian",
    "gospel",
    "worship",
    "church",
    "jesus",
    "christ",
    "praise",
    "bible",
    "catholic",
    "hymn",
)


def quality_score(station: Station) -> float:
    return station.votes * 2 + station.click_count + station.bitrate_kbps / 10


def rank_key(station: Station) -> Tuple[float, str]:
    # higher score first, then ascending id
    return (-quality_score(station), station.id)


def coordinate_key(station: Station) -> str:
    return f"{station.latitude:.3f},{station.longitude:.3f}"


def _beats(candidate: Station, incumbent: Station) -> bool:
    candidate_score = quality_score(candidate)
    incumbent_score = quality_score(incumbent)
    if candidate_score != incumbent_score:
        return candidate_score > incumbent_score
    return candidate.id < incumbent.id


def dedupe_by_coordinates(stations: Iterable[Station]) -> List[Station]:
    """Keep the best-scoring station per ~100m coordinate cell.

    A heuristic: one transmitter rarely shares rounded coordinates with an
    unrelated feed. Input is sorted by id first so the result does not depend
    on input order.
    """
    best: Dict[str, Station] = {}
    for station in sorted(stations, key=lambda s: s.id):
        key = coordinate_key(station)
        incumbent = best.get(key)
        if incumbent is None or _beats(station, incumbent):
            best[key] = station
    return list(best.values())


def dedupe_by_id(stations: Iterable[Station]) -> List[Station]:
    """Keep the first-seen record for each id."""
    seen: Dict[str, Station] = {}
    for station in stations:
        if station.id not in seen:
            seen[station.id] = station
    return list(seen.values())


def merge_stations(primary: Sequence[Station], secondary: Sequence[Station]) -> List[Station]:
    return dedupe_by_id([*primary, *secondary])


def sort_by_quality(stations: Iterable[Station]) -> List[Station]:
    return sorted(stations, key=rank_key)


class DedupOrder(str, Enum):
    ID_FIRST = "id_first"
    COORDINATES_FIRST = "coordinates_first"


class ThematicPlacement(str, Enum):
    FRONT = "front"
    MERGED = "merged"


@dataclass(frozen=True)
class KeywordMatcher:
    """Matches stations whose name, language, homepage or tags mention a keyword."""

    vocabulary: Tuple[str, ...] = DEFAULT_THEMATIC_VOCABULARY

    def __call__(self, station: Station) -> bool:
        haystack = " ".join(
            part.lower()
            for part in (station.name, station.language, station.homepage_url, station.tags)
            if part
        )
        return any(word in haystack for word in self.vocabulary)


def partition_front(stations: Sequence[Station], matcher: ThematicMatcher) -> List[Station]:
    """Stable partition: matching stations first, relative order kept on both sides."""
    front = [s for s in stations if matcher(s)]
    rest = [s for s in stations if not matcher(s)]
    return front + rest


@dataclass(frozen=True)
class RankingPolicy:
    dedup_order: DedupOrder = DedupOrder.ID_FIRST
    placement: ThematicPlacement = ThematicPlacement.FRONT
    matcher: Optional[ThematicMatcher] = field(default_factory=KeywordMatcher)

    def build_catalog(self, stations: Iterable[Station], thematic: bool = True) -> List[Station]:
        if self.dedup_order == DedupOrder.ID_FIRST:
            unique = dedupe_by_coordinates(dedupe_by_id(stations))
        else:
            unique = dedupe_by_id(dedupe_by_coordinates(stations))

        ranked = sort_by_quality(unique)
        if thematic and self.matcher is not None and self.placement == ThematicPlacement.FRONT:
            ranked = partition_front(ranked, self.matcher)
        return ranked


def policy_from_config() -> RankingPolicy:
    return RankingPolicy(
        dedup_order=DedupOrder(config.DEDUP_ORDER),
        placement=ThematicPlacement(config.THEMATIC_PLACEMENT),
    )
