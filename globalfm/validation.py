"""Raw radio-browser record -> Station.

Pure functions, no I/O. A record that breaks the catalog invariant raises
``ValidationRejected`` from ``normalize_station``; ``validate_batch`` turns
those into per-reason counts so callers never see individual rejections.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from globalfm.errors import ValidationRejected
from globalfm.models import Station

RawStation = Dict[str, Any]

MIN_BITRATE_KBPS = 24


@dataclass
class ValidationReport:
    stations: List[Station] = field(default_factory=list)
    rejected: Counter = field(default_factory=Counter)

    @property
    def rejected_count(self) -> int:
        return sum(self.rejected.values())


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _coordinate(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def resolve_stream_url(raw: RawStation) -> str:
    """Prefer the directory's resolved URL, fall back to the raw one."""
    return _text(raw.get("url_resolved")) or _text(raw.get("url"))


def has_valid_coordinates(latitude: Optional[float], longitude: Optional[float]) -> bool:
    if latitude is None or longitude is None:
        return False
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return False
    # (0, 0) is the directory's placeholder for "unknown"
    return not (latitude == 0 and longitude == 0)


def normalize_station(raw: RawStation) -> Station:
    if not isinstance(raw, dict):
        raise ValidationRejected("malformed")
    station_id = _text(raw.get("stationuuid"))
    if not station_id:
        raise ValidationRejected("missing_id")

    latitude = _coordinate(raw.get("geo_lat"))
    longitude = _coordinate(raw.get("geo_long"))
    if not has_valid_coordinates(latitude, longitude):
        raise ValidationRejected("bad_coordinates", station_id)

    stream_url = resolve_stream_url(raw)
    if not stream_url:
        raise ValidationRejected("missing_stream_url", station_id)

    country_name = _text(raw.get("country"))
    if not country_name:
        raise ValidationRejected("missing_country", station_id)

    bitrate = _int(raw.get("bitrate"))
    if bitrate != 0 and bitrate < MIN_BITRATE_KBPS:
        raise ValidationRejected("low_bitrate", station_id)

    return Station(
        id=station_id,
        name=_text(raw.get("name")),
        country_name=country_name,
        country_code=_text(raw.get("countrycode")),
        region=_text(raw.get("state")),
        language=_text(raw.get("language")),
        stream_url=stream_url,
        homepage_url=_optional_text(raw.get("homepage")),
        favicon_url=_optional_text(raw.get("favicon")),
        votes=_int(raw.get("votes")),
        click_count=_int(raw.get("clickcount")),
        click_trend=_int(raw.get("clicktrend")),
        bitrate_kbps=bitrate,
        codec=_text(raw.get("codec")),
        latitude=latitude,
        longitude=longitude,
        tags=_optional_text(raw.get("tags")),
    )


def is_valid(raw: RawStation) -> bool:
    try:
        normalize_station(raw)
    except ValidationRejected:
        return False
    return True


def validate_batch(raws: Iterable[RawStation]) -> ValidationReport:
    report = ValidationReport()
    for raw in raws:
        try:
            report.stations.append(normalize_station(raw))
        except ValidationRejected as rejection:
            report.rejected[rejection.reason] += 1
    return report
