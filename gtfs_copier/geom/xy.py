"""Planar and haversine helpers for lon/lat geometry."""

import math
from dataclasses import dataclass

EPSILON = 1e-6
EARTH_RADIUS_METERS = 6371008.0


@dataclass(frozen=True)
class Point:
    """A WGS84 coordinate."""

    lon: float
    lat: float


def distance_haversine(a: Point, b: Point) -> float:
    """Calculate haversine distance between two points in meters."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    delta_phi = math.radians(b.lat - a.lat)
    delta_lambda = math.radians(b.lon - a.lon)

    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def length_haversine(line: list[Point]) -> float:
    """Haversine length of a line in meters."""
    return sum(distance_haversine(line[i - 1], line[i]) for i in range(1, len(line)))


def cumulative_distances(line: list[Point]) -> list[float]:
    """Distance traveled along the line at each vertex."""
    if not line:
        return []
    dists = [0.0]
    for i in range(1, len(line)):
        dists.append(dists[-1] + distance_haversine(line[i - 1], line[i]))
    return dists


def distance_2d(a: Point, b: Point) -> float:
    """Cartesian distance in degrees."""
    return math.hypot(a.lon - b.lon, a.lat - b.lat)


def segment_closest_point(a: Point, b: Point, p: Point) -> tuple[Point, float]:
    """Return the point on segment AB closest to P, and its planar distance to P."""
    if distance_2d(a, p) < EPSILON:
        return a, 0.0
    if distance_2d(b, p) < EPSILON:
        return b, 0.0
    dx = b.lon - a.lon
    dy = b.lat - a.lat
    denom = dx * dx + dy * dy
    if denom == 0:
        return a, distance_2d(a, p)

    r = ((p.lon - a.lon) * dx + (p.lat - a.lat) * dy) / denom
    if r < 0:
        return a, distance_2d(a, p)
    if r > 1:
        return b, distance_2d(b, p)

    closest = Point(lon=a.lon + dx * r, lat=a.lat + dy * r)
    return closest, distance_2d(closest, p)


def line_closest_point(line: list[Point], point: Point) -> tuple[Point, int, float]:
    """
    Find the point on a line closest to the given point.

    Returns the closest point, the index of the segment end vertex, and the
    position along the line relative to its haversine length (0..1). When
    two segments are equally close, the first one scanned wins.
    """
    length = length_haversine(line)
    if length == 0:
        return point, 0, 0.0

    min_idx = 0
    min_dist = math.inf
    min_point = point
    position = 0.0
    seg_pos = 0.0
    for i in range(1, len(line)):
        start = line[i - 1]
        end = line[i]
        seg_point, seg_dist = segment_closest_point(start, end, point)
        if seg_dist < min_dist:
            min_idx = i
            min_dist = seg_dist
            min_point = seg_point
            position = seg_pos + distance_haversine(start, seg_point)
            if seg_dist == 0:
                break
        seg_pos += distance_haversine(start, end)

    return min_point, min_idx, position / length


def line_relative_positions(line: list[Point], points: list[Point]) -> list[float]:
    """Relative position of the closest point along the line for each point."""
    return [line_closest_point(line, p)[2] for p in points]


def line_relative_positions_fallback(line: list[Point]) -> list[float]:
    """Relative position of each vertex along the line itself."""
    if not line:
        return []
    length = length_haversine(line)
    if length == 0:
        return [0.0] * len(line)
    return [d / length for d in cumulative_distances(line)]


def positions_sorted(positions: list[float]) -> bool:
    """Check that positions are non-decreasing and span a non-zero distance."""
    if len(positions) < 2:
        return True
    if positions[0] == positions[-1]:
        return False
    return all(positions[i] >= positions[i - 1] for i in range(1, len(positions)))
