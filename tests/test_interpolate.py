"""Tests for stop time interpolation."""

import pytest

from gtfs_copier.copier.interpolate import interpolate_stop_times
from gtfs_copier.errors import InterpolationError
from gtfs_copier.gtfs.models import StopTime


def _st(seq: int, arr: int | None, dep: int | None, dist: float | None) -> StopTime:
    return StopTime(
        trip_id="T1",
        stop_id=f"S{seq}",
        stop_sequence=seq,
        arrival_time=arr,
        departure_time=dep,
        shape_dist_traveled=dist,
    )


def test_interpolate_by_distance() -> None:
    """Test the middle stop is placed by distance between known times."""
    sts = [_st(1, 0, 20, 0.0), _st(2, None, None, 10.0), _st(3, 100, 120, 20.0)]

    interpolate_stop_times(sts)

    assert sts[1].arrival_time == 60
    assert sts[1].departure_time == 60
    assert sts[1].interpolated == 1
    assert sts[0].interpolated == 0
    assert sts[2].interpolated == 0


def test_interpolate_multiple_gaps() -> None:
    """Test each run of unknown times is bounded by its own known times."""
    sts = [
        _st(1, 0, 0, 0.0),
        _st(2, None, None, 5.0),
        _st(3, 100, 100, 10.0),
        _st(4, None, None, 15.0),
        _st(5, None, None, 25.0),
        _st(6, 400, 400, 30.0),
    ]

    interpolate_stop_times(sts)

    assert [st.arrival_time for st in sts] == [0, 50, 100, 175, 325, 400]


def test_interpolate_idempotent() -> None:
    """Test a fully known sequence is unchanged."""
    sts = [_st(1, 0, 20, 0.0), _st(2, 60, 60, 10.0), _st(3, 100, 120, 20.0)]
    before = [(st.arrival_time, st.departure_time, st.interpolated) for st in sts]

    interpolate_stop_times(sts)
    interpolate_stop_times(sts)

    assert [(st.arrival_time, st.departure_time, st.interpolated) for st in sts] == before


def test_interpolate_zero_distance_uses_index() -> None:
    """Test equal bounding distances fall back to spacing by position."""
    sts = [_st(1, 0, 0, 5.0), _st(2, None, None, 5.0), _st(3, None, None, 5.0), _st(4, 300, 300, 5.0)]

    interpolate_stop_times(sts)

    assert [st.arrival_time for st in sts] == [0, 100, 200, 300]


def test_interpolate_missing_distances_uses_index() -> None:
    """Test stop times without distances are spaced by position."""
    sts = [_st(1, 0, 0, None), _st(2, None, None, None), _st(3, 60, 60, None)]

    interpolate_stop_times(sts)

    assert sts[1].arrival_time == 30


def test_single_time_copied() -> None:
    """Test a stop time with only a departure gets it as arrival too."""
    sts = [_st(1, None, 10, 0.0), _st(2, 50, None, 10.0)]

    interpolate_stop_times(sts)

    assert (sts[0].arrival_time, sts[0].departure_time) == (10, 10)
    assert (sts[1].arrival_time, sts[1].departure_time) == (50, 50)
    assert sts[0].interpolated == 0


def test_missing_first_time_fails() -> None:
    """Test the first stop time must have a time."""
    sts = [_st(1, None, None, 0.0), _st(2, 60, 60, 10.0)]

    with pytest.raises(InterpolationError):
        interpolate_stop_times(sts)


def test_missing_last_time_fails() -> None:
    """Test the last stop time must have a time."""
    sts = [_st(1, 0, 0, 0.0), _st(2, None, None, 10.0)]

    with pytest.raises(InterpolationError):
        interpolate_stop_times(sts)


def test_empty() -> None:
    """Test an empty sequence is returned as is."""
    assert interpolate_stop_times([]) == []
