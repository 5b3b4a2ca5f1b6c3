import math
from pathlib import Path
from typing import List, Sequence

import gpxpy
import gpxpy.gpx

from gpx2kml.track_utils import Track, TrackPoint, Waypoint, to_local_time

# Tolerance used when the caller doesn't pass one; small enough that almost nothing is dropped.
DEFAULT_EPSILON = 10e-8


def _to_waypoint(p) -> Waypoint:
    return Waypoint(
        latitude=p.latitude,
        longitude=p.longitude,
        elevation=p.elevation if p.elevation is not None else 0.0,
        timestamp=to_local_time(p.time),
    )


def read_gpx(gpx_path) -> Track:
    """Read every track point of a GPX file, in file order, into a Track."""
    gpx_path = Path(gpx_path)
    if not gpx_path.exists():
        raise FileNotFoundError(f"GPX file not found: {gpx_path}")
    with open(gpx_path, 'r', encoding='utf-8') as f:
        try:
            gpx = gpxpy.parse(f)
        except gpxpy.gpx.GPXException as e:
            raise ValueError(f"Unable to parse GPX file: {gpx_path}") from e

    waypoints = []
    for track in gpx.tracks:
        for seg in track.segments:
            for p in seg.points:
                waypoints.append(_to_waypoint(p))
    # Fall back to routes when the file has no recorded track
    if not waypoints:
        for route in gpx.routes:
            for p in route.points:
                waypoints.append(_to_waypoint(p))

    title = description = ""
    if gpx.tracks:
        title = gpx.tracks[0].name or ""
        description = gpx.tracks[0].description or ""
    return Track(waypoints=waypoints, title=title, description=description, source=str(gpx_path))


# Ramer–Douglas–Peucker simplification

def perpendicular_distance(point: TrackPoint, line_start: TrackPoint, line_end: TrackPoint) -> float:
    """Distance from point to the infinite line through line_start and line_end.

    Works in raw degrees with latitude as x and longitude as y (no projection).
    If the two line points coincide, the distance to line_start is returned.
    """
    x0, y0 = point.latitude, point.longitude
    x1, y1 = line_start.latitude, line_start.longitude
    x2, y2 = line_end.latitude, line_end.longitude
    length = math.hypot(x2 - x1, y2 - y1)
    if length == 0:
        return math.hypot(x0 - x1, y0 - y1)
    return abs((x2 - x1) * (y1 - y0) - (x1 - x0) * (y2 - y1)) / length


def simplify(points: Sequence[TrackPoint], epsilon: float = DEFAULT_EPSILON) -> List[TrackPoint]:
    if len(points) < 3:
        return list(points)

    max_d, idx = -1.0, 0
    for i in range(1, len(points) - 1):
        d = perpendicular_distance(points[i], points[0], points[-1])
        if d > max_d:
            max_d, idx = d, i

    if max_d >= epsilon:
        left = simplify(points[:idx + 1], epsilon)
        right = simplify(points[idx:], epsilon)
        return left[:-1] + right
    return [points[0], points[-1]]
