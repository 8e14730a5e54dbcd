"""Stop and shape geometry cache used for interpolation and derived geometry."""

import logging
from dataclasses import dataclass, field

from gtfs_copier.copier.interpolate import interpolate_stop_times
from gtfs_copier.errors import InterpolationError
from gtfs_copier.geom.xy import (
    Point,
    cumulative_distances,
    distance_haversine,
    length_haversine,
    line_relative_positions,
    line_relative_positions_fallback,
    positions_sorted,
)
from gtfs_copier.gtfs.models import StopTime, Trip

logger = logging.getLogger(__name__)


@dataclass
class ShapeInfo:
    """A cached shape line with cumulative distances in meters."""

    points: list[Point] = field(repr=False)
    dists: list[float] = field(repr=False)
    length: float
    max_segment_length: float
    generated: bool = False


@dataclass
class _StopPositions:
    positions: list[float]
    length: float


def _dists_valid(dists: list[float] | None, n: int) -> bool:
    if not dists or len(dists) != n:
        return False
    if dists[-1] - dists[0] <= 0:
        return False
    return all(dists[i] >= dists[i - 1] for i in range(1, n))


class GeomCache:
    """
    Cache stop points and shape lines by written identifier.

    Shapes with identical point sequences share one backing list, so feeds
    that repeat a polyline under many shape_ids store it once.
    """

    def __init__(self) -> None:
        self._stops: dict[str, Point] = {}
        self._shapes: dict[str, ShapeInfo] = {}
        self._lines: dict[tuple[Point, ...], tuple[list[Point], list[float]]] = {}
        self._stop_positions: dict[str, _StopPositions] = {}

    def add_stop(self, eid: str, point: Point) -> None:
        self._stops[eid] = point

    def get_stop(self, eid: str) -> Point | None:
        return self._stops.get(eid)

    def add_shape(
        self,
        eid: str,
        points: list[Point],
        dists: list[float] | None = None,
        generated: bool = False,
    ) -> ShapeInfo | None:
        """Add a shape line. Supplied distances are kept only if they are non-decreasing."""
        if not points:
            return None
        key = tuple(points)
        shared = self._lines.get(key)
        if shared is None:
            computed = cumulative_distances(points)
            shared = (list(points), computed)
            self._lines[key] = shared
        line, computed = shared

        if dists is not None and _dists_valid(dists, len(line)):
            shape_dists = list(dists)
        else:
            if dists is not None:
                logger.debug(f"Shape {eid}: shape_dist_traveled not increasing, recomputing")
            shape_dists = computed

        max_segment = 0.0
        for i in range(1, len(line)):
            max_segment = max(max_segment, distance_haversine(line[i - 1], line[i]))

        info = ShapeInfo(
            points=line,
            dists=shape_dists,
            length=shape_dists[-1] if shape_dists else 0.0,
            max_segment_length=max_segment,
            generated=generated,
        )
        self._shapes[eid] = info
        return info

    def get_shape_info(self, eid: str) -> ShapeInfo | None:
        return self._shapes.get(eid)

    def get_shape(self, eid: str) -> list[Point]:
        info = self._shapes.get(eid)
        return info.points if info else []

    def shape_ids(self) -> list[str]:
        return list(self._shapes)

    def make_shape(self, stop_ids: list[str]) -> tuple[list[Point], list[float]]:
        """
        Build a line through the given stops.

        Raises:
            InterpolationError: If a stop is missing or has a zero coordinate.
        """
        line = []
        for stop_id in stop_ids:
            pt = self._stops.get(stop_id)
            if pt is None:
                raise InterpolationError(f"stop '{stop_id}' not in cache", "stop_id", stop_id)
            if pt.lon == 0 or pt.lat == 0:
                raise InterpolationError(f"stop '{stop_id}' has zero coordinate", "stop_id", stop_id)
            line.append(pt)
        return line, cumulative_distances(line)

    def interpolate_stop_times(self, trip: Trip) -> list[StopTime]:
        """
        Interpolate a trip's stop times using cached geometry.

        Supplied shape_dist_traveled values are used when every stop time has
        one and they advance; otherwise stops are projected onto the trip's
        shape (or the line through its stops) to assign distances.

        Raises:
            InterpolationError: If stop positions cannot be assigned.
        """
        sts = trip.stop_times
        if not sts:
            return sts
        dists = [st.shape_dist_traveled for st in sts]
        if any(d is None for d in dists) or not _dists_valid(dists, len(dists)):
            self._set_stop_time_dists(trip.shape_id, trip.stop_pattern_id, sts)
        return interpolate_stop_times(sts)

    def _set_stop_time_dists(self, shape_id: str, pattern_id: int, sts: list[StopTime]) -> None:
        key = f"{shape_id}|{pattern_id}"
        info = self._stop_positions.get(key)
        if info is None:
            stop_line = []
            for st in sts:
                pt = self._stops.get(st.stop_id)
                if pt is None:
                    raise InterpolationError(
                        f"stop '{st.stop_id}' not in cache", "stop_id", st.stop_id
                    )
                stop_line.append(pt)

            shape = self._shapes.get(shape_id) if shape_id else None
            if shape is not None:
                shape_line, length = shape.points, shape.length
            else:
                shape_line, length = stop_line, length_haversine(stop_line)

            positions = line_relative_positions(shape_line, stop_line)
            if not positions_sorted(positions):
                logger.debug(
                    f"Shape {shape_id or '(none)'} pattern {pattern_id}: "
                    "positions not increasing, falling back to stop positions"
                )
                positions = line_relative_positions_fallback(stop_line)
            if not positions_sorted(positions):
                raise InterpolationError("fallback positions not sorted", "shape_dist_traveled")

            info = _StopPositions(positions=positions, length=length)
            self._stop_positions[key] = info

        if len(info.positions) != len(sts):
            raise InterpolationError("unequal stop times and positions", "stop_sequence")
        for st, pos in zip(sts, info.positions):
            st.shape_dist_traveled = pos * info.length
