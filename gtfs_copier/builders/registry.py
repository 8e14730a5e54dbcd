"""Named builder factories."""

import logging
from collections.abc import Callable
from typing import Any

from gtfs_copier.builders.agency_place import AgencyPlaceBuilder, PlaceIndex
from gtfs_copier.builders.convex_hull import ConvexHullBuilder
from gtfs_copier.builders.onestop_id import OnestopIDBuilder
from gtfs_copier.builders.route_geometry import RouteGeometryBuilder
from gtfs_copier.builders.route_headway import RouteHeadwayBuilder
from gtfs_copier.builders.route_stop import RouteStopBuilder
from gtfs_copier.gtfs.models import CopyConfig

logger = logging.getLogger(__name__)


def _agency_place(config: CopyConfig) -> AgencyPlaceBuilder:
    places = PlaceIndex.from_csv(config.places_path) if config.places_path else None
    return AgencyPlaceBuilder(places)


BUILDERS: dict[str, tuple[Callable[[CopyConfig], Any], str]] = {
    "route_geometry": (lambda _: RouteGeometryBuilder(), "Representative line per route"),
    "route_headway": (lambda _: RouteHeadwayBuilder(), "Headways at the busiest stop per route"),
    "convex_hull": (lambda _: ConvexHullBuilder(), "Feed version and agency convex hulls"),
    "onestop_id": (lambda _: OnestopIDBuilder(), "Onestop IDs for stops, routes and agencies"),
    "route_stop": (lambda _: RouteStopBuilder(), "Route, agency and stop visit triples"),
    "agency_place": (_agency_place, "Places served by each agency (needs --places)"),
}


def builder_names() -> list[str]:
    return list(BUILDERS)


def create_builders(names: list[str], config: CopyConfig) -> list[Any]:
    """
    Construct fresh builders in the given order.

    Raises:
        ValueError: If a name is not registered.
    """
    unknown = [name for name in names if name not in BUILDERS]
    if unknown:
        raise ValueError(f"Unknown builder(s): {', '.join(unknown)}")
    builders = []
    for name in names:
        factory, _ = BUILDERS[name]
        builders.append(factory(config))
        logger.debug(f"Created builder {name}")
    return builders
