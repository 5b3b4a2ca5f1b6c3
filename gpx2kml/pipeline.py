import math
from dataclasses import dataclass
from typing import List, Optional, Dict, Any

from gpx2kml.gpx_utils import DEFAULT_EPSILON, simplify
from gpx2kml.track_utils import Track, TrackPoint, Waypoint, validate_waypoints, sort_chronologically


@dataclass(frozen=True)
class SimplificationConfig:
    epsilon: float = DEFAULT_EPSILON

    @classmethod
    def from_cfg(cls, cfg: Dict[str, Any], epsilon: Optional[float] = None) -> "SimplificationConfig":
        """Take epsilon from the argument, else cfg['simplify']['epsilon'], else the default."""
        if epsilon is None:
            epsilon = (cfg.get("simplify") or {}).get("epsilon")
        if epsilon is None:
            return cls()
        try:
            value = float(epsilon)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid epsilon: {epsilon!r}") from e
        if not math.isfinite(value):
            raise ValueError(f"Invalid epsilon: {epsilon!r}")
        return cls(epsilon=value)


@dataclass
class SimplifiedTrack:
    points: List[TrackPoint]
    error_count: int
    epsilon: float
    title: str = ""
    description: str = ""
    source: str = ""
    input_count: int = 0


def to_track_points(waypoints: List[Waypoint]) -> List[TrackPoint]:
    return [TrackPoint(longitude=w.longitude, latitude=w.latitude, elevation=w.elevation) for w in waypoints]


def process_track(track: Track, config: SimplificationConfig) -> SimplifiedTrack:
    """Validate, sort and simplify one track."""
    valid, errors = validate_waypoints(track.waypoints)
    points = to_track_points(sort_chronologically(valid))
    return SimplifiedTrack(
        points=simplify(points, config.epsilon),
        error_count=errors,
        epsilon=config.epsilon,
        title=track.title,
        description=track.description,
        source=track.source,
        input_count=len(points),
    )


def process_tracks(tracks: List[Track], config: SimplificationConfig) -> List[SimplifiedTrack]:
    return [process_track(t, config) for t in tracks]
