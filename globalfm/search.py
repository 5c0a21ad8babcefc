from typing import List, Optional, Sequence

from globalfm.models import Station

DEFAULT_RESULTS = 50
MAX_RESULTS = 100


def search_stations(catalog: Sequence[Station], query: str) -> List[Station]:
    """Case-insensitive match on name, country, region or language, catalog order kept."""
    query = (query or "").strip().lower()
    if not query:
        return list(catalog[:DEFAULT_RESULTS])

    results = []
    for station in catalog:
        fields = (station.name, station.country_name, station.region, station.language)
        if any(query in (value or "").lower() for value in fields):
            results.append(station)
            if len(results) == MAX_RESULTS:
                break
    return results


def _index_of(catalog: Sequence[Station], current: Optional[Station]) -> int:
    if current is None:
        return -1
    for index, station in enumerate(catalog):
        if station.id == current.id:
            return index
    return -1


def next_station(catalog: Sequence[Station], current: Optional[Station]) -> Optional[Station]:
    if not catalog:
        return None
    index = _index_of(catalog, current)
    return catalog[(index + 1) % len(catalog)]


def previous_station(catalog: Sequence[Station], current: Optional[Station]) -> Optional[Station]:
    if not catalog:
        return None
    index = _index_of(catalog, current)
    if index <= 0:
        return catalog[-1]
    return catalog[index - 1]


def first_playable(catalog: Sequence[Station]) -> Optional[Station]:
    return next((s for s in catalog if s.stream_url), None)
