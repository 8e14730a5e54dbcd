"""Route headway statistics for a representative stop and service day."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, ClassVar

from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.gtfs.calendar import active_days, dow_category
from gtfs_copier.gtfs.models import Calendar, DerivedEntity, Entity, Route, StopTime, Trip

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier

logger = logging.getLogger(__name__)

SERVICE_DAYS = 30
MIN_GAPS = 3

# name -> [start, end) in seconds since midnight
WINDOWS = {
    "morning": (21600, 36000),
    "midday": (36000, 57600),
    "afternoon": (57600, 72000),
}
NIGHT_START = 72000
NIGHT_END = 21600


@dataclass
class RouteHeadway(DerivedEntity):
    """Departures and headways at the busiest stop of a route on one day."""

    filename: ClassVar[str] = "tl_route_headways.txt"
    table_name: ClassVar[str] = "tl_route_headways"

    route_id: str
    selected_stop_id: str
    direction_id: int
    dow_category: int
    service_date: date
    stop_trip_count: int
    departures: list[int] = field(default_factory=list)
    headway_secs: int | None = None
    headway_seconds_morning_count: int | None = None
    headway_seconds_morning_min: int | None = None
    headway_seconds_morning_mid: int | None = None
    headway_seconds_morning_max: int | None = None
    headway_seconds_midday_count: int | None = None
    headway_seconds_midday_min: int | None = None
    headway_seconds_midday_mid: int | None = None
    headway_seconds_midday_max: int | None = None
    headway_seconds_afternoon_count: int | None = None
    headway_seconds_afternoon_min: int | None = None
    headway_seconds_afternoon_mid: int | None = None
    headway_seconds_afternoon_max: int | None = None
    headway_seconds_night_count: int | None = None
    headway_seconds_night_min: int | None = None
    headway_seconds_night_mid: int | None = None
    headway_seconds_night_max: int | None = None

    def set_window(self, name: str, stats: "WindowStats") -> None:
        setattr(self, f"headway_seconds_{name}_count", stats.count)
        setattr(self, f"headway_seconds_{name}_min", stats.min)
        setattr(self, f"headway_seconds_{name}_mid", stats.mid)
        setattr(self, f"headway_seconds_{name}_max", stats.max)


@dataclass
class WindowStats:
    count: int
    min: int
    mid: int
    max: int


def departures_in_window(departures: list[int], start: int, end: int) -> list[int]:
    """Departures in [start, end)."""
    return [d for d in departures if start <= d < end]


def night_departures(departures: list[int]) -> list[int]:
    """
    Departures from NIGHT_START through NIGHT_END of the next morning, in order.

    Early morning departures are moved past midnight so the window is contiguous.
    """
    night = [d for d in departures if d >= NIGHT_START]
    night.extend(d + 86400 for d in departures if d < NIGHT_END)
    return sorted(night)


def median(values: list[int]) -> float:
    """Median of a sorted, non-empty list."""
    m = len(values) // 2
    if len(values) % 2 == 1:
        return float(values[m])
    return (values[m - 1] + values[m]) / 2


def headway_stats(departures: list[int]) -> WindowStats | None:
    """
    Gap statistics over sorted departures.

    Returns None when there are fewer than MIN_GAPS gaps.
    """
    gaps = sorted(departures[i] - departures[i - 1] for i in range(1, len(departures)))
    if len(gaps) < MIN_GAPS:
        return None
    return WindowStats(count=len(gaps), min=gaps[0], mid=int(median(gaps)), max=gaps[-1])


def select_category_days(trips_by_day: dict[date, int]) -> dict[int, date]:
    """Busiest day for each day-of-week category; the earliest date wins ties."""
    best: dict[int, date] = {}
    best_counts: dict[int, int] = {}
    for day in sorted(trips_by_day):
        count = trips_by_day[day]
        if count <= 0:
            continue
        cat = dow_category(day)
        if count > best_counts.get(cat, 0):
            best[cat] = day
            best_counts[cat] = count
    return best


class RouteHeadwayBuilder:
    """Build RouteHeadway entities for each route, direction and day category."""

    def __init__(self) -> None:
        self.service_days: dict[date, list[str]] = {}
        # route id -> service id -> trip count
        self.route_service_trips: dict[str, dict[str, int]] = {}
        self.trips: dict[str, tuple[str, str, int]] = {}
        # route id -> (stop id, service id, direction id) -> departures
        self.route_departures: dict[str, dict[tuple[str, str, int], list[int]]] = {}

    def after_write(self, eid: str, ent: Entity, emap: EntityMap) -> None:
        if isinstance(ent, Calendar):
            for day in active_days(ent, SERVICE_DAYS):
                self.service_days.setdefault(day, []).append(eid)
        elif isinstance(ent, Route):
            self.route_departures[eid] = {}
            self.route_service_trips[eid] = {}
        elif isinstance(ent, Trip):
            self.trips[eid] = (ent.route_id, ent.service_id, ent.direction_id)
            services = self.route_service_trips.get(ent.route_id)
            if services is not None:
                services[ent.service_id] = services.get(ent.service_id, 0) + 1
        elif isinstance(ent, StopTime):
            trip = self.trips.get(ent.trip_id)
            if trip is None or ent.departure_time is None:
                return
            route_id, service_id, direction_id = trip
            departures = self.route_departures.get(route_id)
            if departures is not None:
                key = (ent.stop_id, service_id, direction_id)
                departures.setdefault(key, []).append(ent.departure_time)

    def finalize(self, copier: "Copier") -> None:
        ents = []
        for route_id in sorted(self.route_departures):
            ents.extend(self.build_route_headways(route_id))
        copier.copy_entities(ents)
        logger.info(f"Built {len(ents)} route headways")

    def build_route_headways(self, route_id: str) -> list[RouteHeadway]:
        services = self.route_service_trips.get(route_id, {})
        trips_by_day = {
            day: sum(services.get(sid, 0) for sid in sids)
            for day, sids in self.service_days.items()
        }
        category_days = select_category_days(trips_by_day)
        departures = self.route_departures[route_id]

        ret = []
        for direction_id in (0, 1):
            for category, day in sorted(category_days.items()):
                day_services = set(self.service_days[day])
                stop_departures: dict[str, list[int]] = {}
                for (stop_id, service_id, dir_id), deps in departures.items():
                    if dir_id == direction_id and service_id in day_services:
                        stop_departures.setdefault(stop_id, []).extend(deps)
                if not stop_departures:
                    continue
                # most departures, then smallest stop id
                stop_id = min(stop_departures, key=lambda s: (-len(stop_departures[s]), s))
                deps = sorted(stop_departures[stop_id])
                ret.append(
                    self._headway(route_id, stop_id, direction_id, category, day, deps)
                )
        return ret

    def _headway(
        self,
        route_id: str,
        stop_id: str,
        direction_id: int,
        category: int,
        day: date,
        departures: list[int],
    ) -> RouteHeadway:
        rh = RouteHeadway(
            route_id=route_id,
            selected_stop_id=stop_id,
            direction_id=direction_id,
            dow_category=category,
            service_date=day,
            stop_trip_count=len(departures),
            departures=departures,
        )
        for name, (start, end) in WINDOWS.items():
            stats = headway_stats(departures_in_window(departures, start, end))
            if stats is not None:
                rh.set_window(name, stats)
                if name == "morning":
                    rh.headway_secs = stats.mid
        stats = headway_stats(night_departures(departures))
        if stats is not None:
            rh.set_window("night", stats)
        return rh
