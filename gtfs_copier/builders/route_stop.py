"""Route, agency and stop visitation triples."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.gtfs.models import DerivedEntity, Entity, Route, StopTime, Trip

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier

logger = logging.getLogger(__name__)


@dataclass
class RouteStop(DerivedEntity):
    filename: ClassVar[str] = "tl_route_stops.txt"
    table_name: ClassVar[str] = "tl_route_stops"

    route_id: str
    agency_id: str
    stop_id: str


class RouteStopBuilder:
    """Record each unique (route, agency, stop) visited by a written stop time."""

    def __init__(self) -> None:
        self.route_agencies: dict[str, str] = {}
        self.trip_routes: dict[str, str] = {}
        self.triples: set[tuple[str, str, str]] = set()

    def after_write(self, eid: str, ent: Entity, emap: EntityMap) -> None:
        if isinstance(ent, Route):
            self.route_agencies[eid] = ent.agency_id
        elif isinstance(ent, Trip):
            self.trip_routes[eid] = ent.route_id
        elif isinstance(ent, StopTime):
            route_id = self.trip_routes.get(ent.trip_id)
            if route_id is None or route_id not in self.route_agencies:
                return
            self.triples.add((route_id, self.route_agencies[route_id], ent.stop_id))

    def finalize(self, copier: "Copier") -> None:
        ents = [
            RouteStop(route_id=route_id, agency_id=agency_id, stop_id=stop_id)
            for route_id, agency_id, stop_id in sorted(self.triples)
        ]
        copier.copy_entities(ents)
        logger.info(f"Built {len(ents)} route stops")
