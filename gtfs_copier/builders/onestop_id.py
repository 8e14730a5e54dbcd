"""Onestop IDs: a geohash prefix plus a normalized name."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from gtfs_copier.builders.common import StopVisits, filter_name
from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.geom import geohash
from gtfs_copier.gtfs.models import DerivedEntity, Entity, Stop

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier

logger = logging.getLogger(__name__)

STOP_PRECISION = 10
GROUP_MIN_PRECISION = 1
GROUP_MAX_PRECISION = 6


@dataclass
class StopOnestopID(DerivedEntity):
    filename: ClassVar[str] = "tl_stop_onestop_ids.txt"
    table_name: ClassVar[str] = "tl_stop_onestop_ids"

    stop_id: str
    onestop_id: str


@dataclass
class RouteOnestopID(DerivedEntity):
    filename: ClassVar[str] = "tl_route_onestop_ids.txt"
    table_name: ClassVar[str] = "tl_route_onestop_ids"

    route_id: str
    onestop_id: str


@dataclass
class AgencyOnestopID(DerivedEntity):
    filename: ClassVar[str] = "tl_agency_onestop_ids.txt"
    table_name: ClassVar[str] = "tl_agency_onestop_ids"

    agency_id: str
    onestop_id: str


def stop_onestop_id(lat: float, lon: float, name: str) -> str:
    return f"s-{geohash.encode(lat, lon, STOP_PRECISION)}-{filter_name(name)}"


class OnestopIDBuilder:
    """
    Build onestop IDs for stops, routes and agencies.

    Stop IDs are computed as each stop is written. Route and agency IDs use the
    shortest geohash prefix covering all visited stops, so they are computed
    once every stop time has been seen.
    """

    def __init__(self) -> None:
        self.visits = StopVisits()
        self.stop_ids: dict[str, str] = {}

    def after_write(self, eid: str, ent: Entity, emap: EntityMap) -> None:
        self.visits.observe(eid, ent)
        if isinstance(ent, Stop) and ent.point() is not None:
            self.stop_ids[eid] = stop_onestop_id(ent.stop_lat, ent.stop_lon, ent.stop_name)

    def stop_onestop_ids(self) -> list[StopOnestopID]:
        return [StopOnestopID(stop_id=sid, onestop_id=osid) for sid, osid in self.stop_ids.items()]

    def route_onestop_ids(self) -> list[RouteOnestopID]:
        ret = []
        for route_id, route in self.visits.routes.items():
            points = [s.point() for s in route.stops.values()]
            gh = geohash.points_geohash(points, GROUP_MIN_PRECISION, GROUP_MAX_PRECISION)
            if gh:
                ret.append(
                    RouteOnestopID(route_id=route_id, onestop_id=f"r-{gh}-{filter_name(route.name)}")
                )
        return ret

    def agency_onestop_ids(self) -> list[AgencyOnestopID]:
        ret = []
        for agency_id, stops in self.visits.agency_stops().items():
            name = self.visits.agency_names.get(agency_id) or agency_id
            points = [s.point() for s in stops.values()]
            gh = geohash.points_geohash(points, GROUP_MIN_PRECISION, GROUP_MAX_PRECISION)
            if gh:
                ret.append(
                    AgencyOnestopID(agency_id=agency_id, onestop_id=f"o-{gh}-{filter_name(name)}")
                )
        return ret

    def finalize(self, copier: "Copier") -> None:
        agencies = self.agency_onestop_ids()
        routes = self.route_onestop_ids()
        stops = self.stop_onestop_ids()
        copier.copy_entities([*agencies, *routes, *stops])
        logger.info(
            f"Built onestop IDs for {len(agencies)} agencies, "
            f"{len(routes)} routes and {len(stops)} stops"
        )
