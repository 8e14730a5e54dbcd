"""Fill stop times that have no arrival or departure."""

from gtfs_copier.errors import InterpolationError
from gtfs_copier.gtfs.models import StopTime


def _fill_single_times(sts: list[StopTime]) -> None:
    for st in sts:
        if st.arrival_time is None and st.departure_time is not None:
            st.arrival_time = st.departure_time
        elif st.departure_time is None and st.arrival_time is not None:
            st.departure_time = st.arrival_time


def _fractions(sts: list[StopTime], start: int, end: int) -> list[float]:
    """Fraction of the way from start to end for each stop time in between."""
    span = end - start
    dists = [st.shape_dist_traveled for st in sts[start : end + 1]]
    if any(d is None for d in dists) or dists[-1] - dists[0] <= 0:
        return [(i - start) / span for i in range(start + 1, end)]
    d_start = dists[0]
    d_total = dists[-1] - d_start
    return [(d - d_start) / d_total for d in dists[1:-1]]


def interpolate_stop_times(sts: list[StopTime]) -> list[StopTime]:
    """
    Interpolate missing times between known stop times.

    Stop times must be sorted by stop_sequence and belong to one trip. Each run
    of unknown times bounded by two known stop times is filled linearly by
    shape_dist_traveled, or by position in the sequence when distances are
    missing or do not advance. Interpolated stop times get the same arrival and
    departure and are flagged with interpolated=1. Updates in place.

    Raises:
        InterpolationError: If the first or last stop time has no time.
    """
    if not sts:
        return sts
    _fill_single_times(sts)
    if sts[0].departure_time is None:
        raise InterpolationError(
            "first stop time has no arrival or departure", "departure_time", entity_id=sts[0].trip_id
        )
    if sts[-1].arrival_time is None:
        raise InterpolationError(
            "last stop time has no arrival or departure", "arrival_time", entity_id=sts[-1].trip_id
        )

    start = 0
    for i in range(1, len(sts)):
        if sts[i].arrival_time is None:
            continue
        if i - start > 1:
            t_start = sts[start].departure_time
            t_end = sts[i].arrival_time
            for offset, frac in enumerate(_fractions(sts, start, i), start=start + 1):
                t = round(t_start + (t_end - t_start) * frac)
                sts[offset].arrival_time = t
                sts[offset].departure_time = t
                sts[offset].interpolated = 1
        start = i
    return sts
