import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

# GPX <time> values, e.g. 2023-05-14T07:03:12Z
TIMESTAMP_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})T(\d{1,2}):(\d{2}):(\d{2})Z")


@dataclass(frozen=True)
class Waypoint:
    latitude: Optional[float]
    longitude: Optional[float]
    elevation: float = 0.0
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        # naive datetimes are read as UTC so every timestamp compares with every other
        object.__setattr__(self, "timestamp", to_local_time(self.timestamp))

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Waypoint":
        """Build a Waypoint from a raw parser record; bad fields become None (or 0.0 for elevation)."""
        lat = _to_float(_first(record, "lat", "latitude"))
        lon = _to_float(_first(record, "lon", "longitude"))
        ele = _to_float(_first(record, "ele", "elevation"))
        ts = to_local_time(_first(record, "time", "timestamp"))
        return cls(latitude=lat, longitude=lon, elevation=ele if ele is not None else 0.0, timestamp=ts)


@dataclass
class Track:
    waypoints: List[Waypoint] = field(default_factory=list)
    title: str = ""
    description: str = ""
    source: str = ""


@dataclass(frozen=True)
class TrackPoint:
    longitude: float
    latitude: float
    elevation: float = 0.0


def _first(record: Dict[str, Any], *keys):
    for k in keys:
        if record.get(k) is not None:
            return record[k]
    return None


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_local_time(value) -> Optional[datetime]:
    """Normalise a GPX timestamp (UTC string or datetime) to local time; None if it can't be read."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone()
    if not isinstance(value, str):
        return None
    m = TIMESTAMP_RE.search(value)
    if not m:
        return None
    try:
        dt = datetime(*(int(g) for g in m.groups()), tzinfo=timezone.utc)
    except ValueError:
        # matched the shape but not a real date (month 13, hour 25, ...)
        return None
    return dt.astimezone()


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_waypoint(wp: Waypoint) -> bool:
    """A waypoint is usable when both coordinates are present and numeric."""
    return _is_number(wp.latitude) and _is_number(wp.longitude)


def validate_waypoints(waypoints: List[Waypoint]) -> Tuple[List[Waypoint], int]:
    valid = []
    errors = 0
    for wp in waypoints:
        if is_valid_waypoint(wp):
            valid.append(wp)
        else:
            errors += 1
    return valid, errors


def sort_chronologically(waypoints: List[Waypoint]) -> List[Waypoint]:
    """Order waypoints by time. Waypoints without a timestamp go first; ties keep input order."""
    return sorted(
        waypoints,
        key=lambda w: (False,) if w.timestamp is None else (True, w.timestamp),
    )
