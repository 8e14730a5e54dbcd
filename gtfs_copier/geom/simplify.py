"""Shape line simplification."""

from shapely.geometry import LineString

from gtfs_copier.geom.xy import Point


def simplify_line(
    points: list[Point], dists: list[float] | None, tolerance: float
) -> tuple[list[Point], list[float] | None]:
    """
    Simplify a line with Douglas-Peucker, tolerance in degrees.

    The result keeps a subset of the input vertices, endpoints included, and
    shape_dist_traveled values stay attached to the vertices that remain.
    """
    if tolerance <= 0 or len(points) < 3:
        return points, dists

    simple = LineString([(p.lon, p.lat) for p in points]).simplify(
        tolerance, preserve_topology=False
    )
    kept = list(simple.coords)
    keep: list[int] = []
    for i, p in enumerate(points):
        if len(keep) < len(kept) and (p.lon, p.lat) == kept[len(keep)]:
            keep.append(i)
    if len(keep) != len(kept) or len(keep) < 2:
        return points, dists

    new_points = [points[i] for i in keep]
    new_dists = [dists[i] for i in keep] if dists else dists
    return new_points, new_dists
