"""Convex hulls over the stops of a feed version and of each agency."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from shapely.geometry import MultiPoint, Polygon

from gtfs_copier.builders.common import StopGeom, StopVisits
from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.gtfs.models import DerivedEntity, Entity

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier

logger = logging.getLogger(__name__)


@dataclass
class AgencyGeometry(DerivedEntity):
    filename: ClassVar[str] = "tl_agency_geometries.txt"
    table_name: ClassVar[str] = "tl_agency_geometries"

    agency_id: str
    geometry: Polygon


@dataclass
class FeedVersionGeometry(DerivedEntity):
    filename: ClassVar[str] = "tl_feed_version_geometries.txt"
    table_name: ClassVar[str] = "tl_feed_version_geometries"

    geometry: Polygon


def convex_hull(stops: Iterable[StopGeom]) -> Polygon | None:
    """Convex hull of stop points; None unless the hull is a polygon."""
    hull = MultiPoint([(s.lon, s.lat) for s in stops]).convex_hull
    if isinstance(hull, Polygon) and not hull.is_empty:
        return hull
    return None


class ConvexHullBuilder:
    """Build a hull over all stops and one over each agency's visited stops."""

    def __init__(self) -> None:
        self.visits = StopVisits()

    def after_write(self, eid: str, ent: Entity, emap: EntityMap) -> None:
        self.visits.observe(eid, ent)

    def finalize(self, copier: "Copier") -> None:
        ents: list[Entity] = []
        hull = convex_hull(self.visits.stops.values())
        if hull is not None:
            ents.append(FeedVersionGeometry(geometry=hull))
        else:
            logger.debug("Feed version stops do not form a polygon, skipping hull")

        for agency_id, stops in sorted(self.visits.agency_stops().items()):
            hull = convex_hull(stops.values())
            if hull is None:
                logger.debug(f"Agency {agency_id}: stops do not form a polygon, skipping hull")
                continue
            ents.append(AgencyGeometry(agency_id=agency_id, geometry=hull))
        copier.copy_entities(ents)
