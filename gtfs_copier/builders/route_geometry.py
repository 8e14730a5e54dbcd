"""Representative route geometries from the shapes used by each route's trips."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from shapely.geometry import LineString, MultiLineString

from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.copier.geomcache import GeomCache, ShapeInfo
from gtfs_copier.gtfs.models import DerivedEntity, Entity, Shape, Trip

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier

logger = logging.getLogger(__name__)

# Shapes used by more than this share of a direction's trips are included.
MIN_TRIP_SHARE = 0.1


@dataclass
class RouteGeometry(DerivedEntity):
    """A route's most frequent line and the set of lines that describe it."""

    filename: ClassVar[str] = "tl_route_geometries.txt"
    table_name: ClassVar[str] = "tl_route_geometries"

    route_id: str
    geometry: LineString
    combined_geometry: MultiLineString
    generated: bool = False
    length: float = 0.0
    max_segment_length: float = 0.0


def _by_count(counts: dict[str, int]) -> list[str]:
    """Keys ordered by count descending, then key ascending."""
    return sorted(counts, key=lambda k: (-counts[k], k))


class RouteGeometryBuilder:
    """
    Build one RouteGeometry per route.

    Per direction, selects the longest recorded shape, any shape used by more
    than 10% of the direction's trips, and the most used shape. Generated
    shapes are dropped when any recorded shape was selected.
    """

    def __init__(self) -> None:
        # keyed by source shape id; replaced by the copier's cache on registration
        self.shapes = GeomCache()
        # written shape id -> source shape id
        self.shape_sids: dict[str, str] = {}
        # route id -> direction id -> shape id -> trip count
        self.shape_counts: dict[str, dict[int, dict[str, int]]] = {}

    def set_geom_cache(self, cache: GeomCache) -> None:
        """Look shapes up in the copier's cache instead of keeping copies."""
        self.shapes = cache

    def after_write(self, eid: str, ent: Entity, emap: EntityMap) -> None:
        if isinstance(ent, Shape):
            sid = ent.entity_id()
            self.shape_sids[eid] = sid
            if self.shapes.get_shape_info(sid) is None:
                self.shapes.add_shape(sid, ent.points, ent.dists, generated=ent.generated)
        elif isinstance(ent, Trip) and ent.shape_id:
            dirs = self.shape_counts.setdefault(ent.route_id, {})
            counts = dirs.setdefault(ent.direction_id, {})
            counts[ent.shape_id] = counts.get(ent.shape_id, 0) + 1

    def shape_info(self, eid: str) -> ShapeInfo | None:
        return self.shapes.get_shape_info(self.shape_sids.get(eid, eid))

    def finalize(self, copier: "Copier") -> None:
        ents = []
        for route_id in sorted(self.shape_counts):
            ent = self.build_route_geometry(route_id)
            if ent is None:
                logger.debug(f"Route {route_id}: no shapes selected for route geometry")
                continue
            ents.append(ent)
        copier.copy_entities(ents)
        logger.info(f"Built {len(ents)} route geometries")

    def select_shapes(self, route_id: str) -> list[str]:
        """Selected shape ids for a route, most used first."""
        candidates: dict[str, int] = {}
        for direction in sorted(self.shape_counts.get(route_id, {})):
            dir_counts = self.shape_counts[route_id][direction]
            infos = {
                sid: info
                for sid in dir_counts
                if (info := self.shape_info(sid)) is not None and len(info.points) >= 2
            }
            if not infos:
                continue
            total = sum(dir_counts[sid] for sid in infos)
            longest = self._longest(infos, dir_counts)
            most_used = _by_count({sid: dir_counts[sid] for sid in infos})[0]
            for sid in infos:
                count = dir_counts[sid]
                if sid in (longest, most_used) or count / total > MIN_TRIP_SHARE:
                    candidates[sid] = candidates.get(sid, 0) + count

        ordered = _by_count(candidates)
        real = [sid for sid in ordered if not self.shape_info(sid).generated]
        if real:
            return real
        return ordered

    def _longest(self, infos: dict[str, ShapeInfo], counts: dict[str, int]) -> str:
        """Longest recorded shape, or the longest shape when all are generated."""
        real = [sid for sid in infos if not infos[sid].generated]
        pool = real or list(infos)
        # most used wins among equal lengths
        ordered = _by_count({sid: counts[sid] for sid in pool})
        longest = ordered[0]
        for sid in ordered[1:]:
            if infos[sid].length > infos[longest].length:
                longest = sid
        return longest

    def build_route_geometry(self, route_id: str) -> RouteGeometry | None:
        selected = self.select_shapes(route_id)
        if not selected:
            return None
        lines = []
        generated = False
        length = 0.0
        max_segment = 0.0
        for sid in selected:
            info = self.shape_info(sid)
            generated = generated or info.generated
            length = max(length, info.length)
            max_segment = max(max_segment, info.max_segment_length)
            lines.append(LineString([(p.lon, p.lat) for p in info.points]))
        return RouteGeometry(
            route_id=route_id,
            geometry=lines[0],
            combined_geometry=MultiLineString(lines),
            generated=generated,
            length=length,
            max_segment_length=max_segment,
        )
