from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gpx2kml.gpx_utils import DEFAULT_EPSILON
from gpx2kml.pipeline import SimplificationConfig, process_track, process_tracks, to_track_points
from gpx2kml.track_utils import Track, TrackPoint, Waypoint

T0 = datetime(2023, 5, 14, 7, 0, 0, tzinfo=timezone.utc)


def zigzag_track(title="zigzag"):
    coords = [(0, 0), (1, 0.1), (2, -0.1), (3, 5), (4, 6), (5, 7), (6, 8.1), (7, 9), (8, 9), (9, 9)]
    # recorded out of order; the pipeline sorts by time
    wps = [Waypoint(x, y, float(i), T0 + timedelta(seconds=i)) for i, (x, y) in enumerate(coords)]
    return Track(waypoints=list(reversed(wps)), title=title, source=f"{title}.gpx")


def test_config_defaults() -> None:
    assert SimplificationConfig().epsilon == DEFAULT_EPSILON
    assert SimplificationConfig.from_cfg({}).epsilon == DEFAULT_EPSILON
    assert SimplificationConfig.from_cfg({"simplify": {"epsilon": None}}).epsilon == DEFAULT_EPSILON


def test_config_argument_overrides_file() -> None:
    cfg = {"simplify": {"epsilon": 0.0003}}
    assert SimplificationConfig.from_cfg(cfg).epsilon == 0.0003
    assert SimplificationConfig.from_cfg(cfg, epsilon=2.5).epsilon == 2.5


def test_config_rejects_bad_epsilon() -> None:
    with pytest.raises(ValueError):
        SimplificationConfig.from_cfg({"simplify": {"epsilon": "lots"}})


def test_to_track_points_drops_timestamp() -> None:
    pts = to_track_points([Waypoint(59.0, 18.0, 7.0, T0)])
    assert pts == [TrackPoint(longitude=18.0, latitude=59.0, elevation=7.0)]


def test_process_track_sorts_then_simplifies() -> None:
    result = process_track(zigzag_track(), SimplificationConfig(epsilon=1.0))
    assert [(p.latitude, p.longitude) for p in result.points] == [(0, 0), (2, -0.1), (3, 5), (7, 9), (9, 9)]
    assert result.epsilon == 1.0
    assert result.error_count == 0
    assert result.input_count == 10
    assert result.title == "zigzag"


def test_process_track_uses_caller_epsilon() -> None:
    keep_all = process_track(zigzag_track(), SimplificationConfig(epsilon=0.0))
    default = process_track(zigzag_track(), SimplificationConfig())
    loose = process_track(zigzag_track(), SimplificationConfig(epsilon=100))
    assert len(keep_all.points) == 10
    # (4, 6) and (8, 9) sit exactly on a line through their neighbours
    assert len(default.points) == 8
    assert len(loose.points) == 2


def test_process_track_counts_invalid_waypoints() -> None:
    wps = [Waypoint(59.0 + i * 0.01, 18.0 + (i % 2) * 0.01, 0.0, T0 + timedelta(seconds=i)) for i in range(5)]
    wps[3] = Waypoint(59.03, None, 0.0, T0 + timedelta(seconds=3))
    result = process_track(Track(waypoints=wps), SimplificationConfig(epsilon=0.0))
    assert result.error_count == 1
    assert result.input_count == 4
    assert len(result.points) == 4


def test_process_track_empty_and_singleton() -> None:
    empty = process_track(Track(), SimplificationConfig())
    assert empty.points == []
    single = process_track(Track(waypoints=[Waypoint(1.0, 2.0)]), SimplificationConfig())
    assert single.points == [TrackPoint(longitude=2.0, latitude=1.0)]


def test_process_tracks_keeps_caller_order() -> None:
    tracks = [zigzag_track("b"), zigzag_track("a"), Track(title="c")]
    results = process_tracks(tracks, SimplificationConfig(epsilon=1.0))
    assert [r.title for r in results] == ["b", "a", "c"]


@pytest.mark.parametrize("epsilon", [float("nan"), float("inf"), "nan", "-inf"])
def test_config_rejects_non_finite_epsilon(epsilon) -> None:
    with pytest.raises(ValueError):
        SimplificationConfig.from_cfg({}, epsilon=epsilon)


def test_process_track_mixed_naive_and_aware_timestamps() -> None:
    aware = Waypoint(0.0, 0.0, 0.0, T0 + timedelta(seconds=10))
    naive = Waypoint(1.0, 1.0, 0.0, datetime(2023, 5, 14, 7, 0, 0))
    result = process_track(Track(waypoints=[aware, naive]), SimplificationConfig())
    assert [p.latitude for p in result.points] == [1.0, 0.0]


def test_process_track_counts_infinite_coordinates() -> None:
    wps = [Waypoint(x, y, 0.0, T0 + timedelta(seconds=i))
           for i, (x, y) in enumerate([(0, 0), (1, 5), (2, 0), (float("inf"), 0)])]
    result = process_track(Track(waypoints=wps), SimplificationConfig(epsilon=0.5))
    assert result.error_count == 1
    assert [(p.latitude, p.longitude) for p in result.points] == [(0, 0), (1, 5), (2, 0)]
