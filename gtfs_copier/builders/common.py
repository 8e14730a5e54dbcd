"""Helpers shared by the derived-entity builders."""

import re
import unicodedata
from dataclasses import dataclass, field

from gtfs_copier.geom.xy import Point
from gtfs_copier.gtfs.models import Agency, Entity, Route, Stop, StopTime, Trip

_NAME_TILDE = re.compile(r"[-:&@/]")
_NAME_FILTER = re.compile(r"[^a-zA-Z0-9~<>]")


def filter_name(name: str) -> str:
    """
    Normalize a name for use in an identifier.

    Diacritics are removed, separators (- : & @ /) become ~, and all other
    non-alphanumeric characters are dropped.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NAME_FILTER.sub("", _NAME_TILDE.sub("~", stripped)).lower()


@dataclass
class StopGeom:
    """A written stop's point and display name."""

    lon: float
    lat: float
    name: str = ""

    def point(self) -> Point:
        return Point(lon=self.lon, lat=self.lat)


@dataclass
class RouteStops:
    """Stops visited by a route's trips."""

    agency_id: str
    name: str = ""
    stops: dict[str, StopGeom] = field(default_factory=dict)


class StopVisits:
    """
    Track which written stops each route and agency visits.

    Fed from after_write, so all keys are written identifiers. Stop times whose
    trip or stop was not written are ignored.
    """

    def __init__(self) -> None:
        self.agency_names: dict[str, str] = {}
        self.stops: dict[str, StopGeom] = {}
        self.routes: dict[str, RouteStops] = {}
        self.trip_routes: dict[str, str] = {}

    def observe(self, eid: str, ent: Entity) -> None:
        if isinstance(ent, Agency):
            self.agency_names[eid] = ent.agency_name
        elif isinstance(ent, Stop) and ent.point() is not None:
            self.stops[eid] = StopGeom(lon=ent.stop_lon, lat=ent.stop_lat, name=ent.stop_name)
        elif isinstance(ent, Route):
            name = ent.route_short_name or ent.route_long_name
            self.routes[eid] = RouteStops(agency_id=ent.agency_id, name=name)
        elif isinstance(ent, Trip):
            self.trip_routes[eid] = ent.route_id
        elif isinstance(ent, StopTime):
            route = self.routes.get(self.trip_routes.get(ent.trip_id, ""))
            stop = self.stops.get(ent.stop_id)
            if route is not None and stop is not None:
                route.stops[ent.stop_id] = stop

    def agency_stops(self) -> dict[str, dict[str, StopGeom]]:
        """Union of stops visited by each agency's routes."""
        ret: dict[str, dict[str, StopGeom]] = {}
        for route in self.routes.values():
            ret.setdefault(route.agency_id, {}).update(route.stops)
        return ret
