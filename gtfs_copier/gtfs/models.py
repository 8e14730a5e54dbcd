"""Data models for GTFS entities, derived entities and configuration."""

import json
from dataclasses import dataclass, field, fields
from datetime import date
from typing import TYPE_CHECKING, Any, ClassVar

from shapely.geometry.base import BaseGeometry

from gtfs_copier.errors import EntityError, InvalidReferenceError
from gtfs_copier.geom.xy import Point

if TYPE_CHECKING:
    from gtfs_copier.copier.entity_map import EntityMap


def format_time(seconds: int | None) -> str:
    """Format seconds since midnight as HH:MM:SS, supporting >24h."""
    if seconds is None:
        return ""
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_date(value: date | None) -> str:
    """Format a date as YYYYMMDD."""
    if value is None:
        return ""
    return value.strftime("%Y%m%d")


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, BaseGeometry):
        return value.wkt
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return str(value)


def _skip() -> Any:
    return field(default_factory=list, repr=False, compare=False, metadata={"csv": False})


@dataclass
class Entity:
    """Base class for all records passing through the copier."""

    filename: ClassVar[str] = ""
    table_name: ClassVar[str] = ""
    include_feed_version: ClassVar[bool] = False

    feed_version_id: int = field(default=0, kw_only=True, metadata={"csv": False})
    load_errors: list[EntityError] = field(
        default_factory=list, kw_only=True, repr=False, compare=False, metadata={"csv": False}
    )
    load_warnings: list[EntityError] = field(
        default_factory=list, kw_only=True, repr=False, compare=False, metadata={"csv": False}
    )

    def entity_id(self) -> str:
        """Source identifier, empty for entities without one."""
        return ""

    def add_error(self, err: EntityError) -> None:
        self._set_context(err)
        self.load_errors.append(err)

    def add_warning(self, err: EntityError) -> None:
        self._set_context(err)
        self.load_warnings.append(err)

    def _set_context(self, err: EntityError) -> None:
        err.filename = self.filename
        if not err.entity_id:
            err.entity_id = self.entity_id()

    def set_feed_version_id(self, feed_version_id: int) -> None:
        self.feed_version_id = feed_version_id

    def to_row(self) -> dict[str, str]:
        """Flatten to a string row for sinks."""
        row = {}
        for f in fields(self):
            if not f.metadata.get("csv", True):
                continue
            row[f.name] = _format_value(getattr(self, f.name))
        if self.include_feed_version:
            row["feed_version_id"] = str(self.feed_version_id)
        return row

    def to_rows(self) -> list[dict[str, str]]:
        return [self.to_row()]


@dataclass
class DerivedEntity(Entity):
    """Entity computed by a builder; scoped to a feed version."""

    include_feed_version: ClassVar[bool] = True


def _update_key(
    emap: "EntityMap", filename: str, field_name: str, value: str
) -> tuple[str, EntityError | None]:
    new_id, ok = emap.get(filename, value)
    if not ok:
        return value, InvalidReferenceError(field_name, value)
    return new_id, None


@dataclass
class Agency(Entity):
    """GTFS agency."""

    filename: ClassVar[str] = "agency.txt"
    table_name: ClassVar[str] = "gtfs_agencies"

    agency_id: str
    agency_name: str
    agency_timezone: str
    agency_url: str = ""

    def entity_id(self) -> str:
        return self.agency_id


@dataclass
class Stop(Entity):
    """GTFS stop. Coordinates are optional for generic nodes and boarding areas."""

    filename: ClassVar[str] = "stops.txt"
    table_name: ClassVar[str] = "gtfs_stops"

    stop_id: str
    stop_name: str
    stop_lat: float | None
    stop_lon: float | None
    location_type: int = 0
    parent_station: str = ""

    def entity_id(self) -> str:
        return self.stop_id

    def point(self) -> Point | None:
        """Stop location, or None for nodes and boarding areas without coordinates."""
        if self.stop_lat is None or self.stop_lon is None:
            return None
        return Point(lon=self.stop_lon, lat=self.stop_lat)

    def update_keys(self, emap: "EntityMap") -> list[EntityError]:
        if not self.parent_station:
            return []
        self.parent_station, err = _update_key(
            emap, "stops.txt", "parent_station", self.parent_station
        )
        return [err] if err else []


@dataclass
class Route(Entity):
    """GTFS route."""

    filename: ClassVar[str] = "routes.txt"
    table_name: ClassVar[str] = "gtfs_routes"

    route_id: str
    agency_id: str
    route_short_name: str
    route_long_name: str
    route_type: int

    def entity_id(self) -> str:
        return self.route_id

    def update_keys(self, emap: "EntityMap") -> list[EntityError]:
        self.agency_id, err = _update_key(emap, "agency.txt", "agency_id", self.agency_id)
        return [err] if err else []


@dataclass
class Shape(Entity):
    """A complete shape line, assembled from all shapes.txt rows of one shape_id."""

    filename: ClassVar[str] = "shapes.txt"
    table_name: ClassVar[str] = "gtfs_shapes"

    shape_id: str
    points: list[Point] = _skip()
    dists: list[float] | None = field(default=None, repr=False, metadata={"csv": False})
    generated: bool = False

    def entity_id(self) -> str:
        return self.shape_id

    def to_rows(self) -> list[dict[str, str]]:
        rows = []
        for i, pt in enumerate(self.points):
            dist = self.dists[i] if self.dists else None
            rows.append(
                {
                    "shape_id": self.shape_id,
                    "shape_pt_lat": str(pt.lat),
                    "shape_pt_lon": str(pt.lon),
                    "shape_pt_sequence": str(i),
                    "shape_dist_traveled": "" if dist is None else str(dist),
                }
            )
        return rows


@dataclass
class CalendarDate(Entity):
    """GTFS calendar date exception."""

    filename: ClassVar[str] = "calendar_dates.txt"
    table_name: ClassVar[str] = "gtfs_calendar_dates"

    service_id: str
    date: date
    exception_type: int

    def update_keys(self, emap: "EntityMap") -> list[EntityError]:
        self.service_id, err = _update_key(emap, "calendar.txt", "service_id", self.service_id)
        return [err] if err else []


@dataclass
class Calendar(Entity):
    """GTFS calendar with its calendar date exceptions attached."""

    filename: ClassVar[str] = "calendar.txt"
    table_name: ClassVar[str] = "gtfs_calendars"

    service_id: str
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False
    start_date: date | None = None
    end_date: date | None = None
    generated: bool = False
    calendar_dates: list[CalendarDate] = _skip()

    def entity_id(self) -> str:
        return self.service_id

    def weekdays(self) -> tuple[bool, ...]:
        """Active flags indexed like date.weekday() (Monday == 0)."""
        return (
            self.monday,
            self.tuesday,
            self.wednesday,
            self.thursday,
            self.friday,
            self.saturday,
            self.sunday,
        )

    def is_active(self, day: date) -> bool:
        """Check whether service runs on a date, applying exceptions first."""
        for cd in self.calendar_dates:
            if cd.date == day:
                return cd.exception_type == 1
        if self.start_date is None or self.end_date is None:
            return False
        if day < self.start_date or day > self.end_date:
            return False
        return self.weekdays()[day.weekday()]

    def service_period(self) -> tuple[date | None, date | None]:
        """Earliest and latest dates covered by the calendar or added dates."""
        days = [d for d in (self.start_date, self.end_date) if d is not None]
        days.extend(cd.date for cd in self.calendar_dates if cd.exception_type == 1)
        if not days:
            return None, None
        return min(days), max(days)


@dataclass
class StopTime(Entity):
    """GTFS stop time. Times are seconds since midnight, None when not provided."""

    filename: ClassVar[str] = "stop_times.txt"
    table_name: ClassVar[str] = "gtfs_stop_times"

    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_time: int | None = None
    departure_time: int | None = None
    shape_dist_traveled: float | None = None
    interpolated: int = 0

    def to_row(self) -> dict[str, str]:
        row = super().to_row()
        row["arrival_time"] = format_time(self.arrival_time)
        row["departure_time"] = format_time(self.departure_time)
        return row

    def update_keys(self, emap: "EntityMap") -> list[EntityError]:
        errs = []
        self.trip_id, err = _update_key(emap, "trips.txt", "trip_id", self.trip_id)
        if err:
            errs.append(err)
        self.stop_id, err = _update_key(emap, "stops.txt", "stop_id", self.stop_id)
        if err:
            errs.append(err)
        return errs


@dataclass
class Trip(Entity):
    """
    GTFS trip, carrying its stop times while it moves through the copier.

    Trips that repeat the same stops, relative times, route, service, shape,
    headsign and direction share a journey pattern named after the first such
    trip; journey_pattern_offset is the start time relative to that trip.
    """

    filename: ClassVar[str] = "trips.txt"
    table_name: ClassVar[str] = "gtfs_trips"

    trip_id: str
    route_id: str
    service_id: str
    direction_id: int = 0
    shape_id: str = ""
    trip_headsign: str = ""
    journey_pattern_id: str = ""
    journey_pattern_offset: int = 0
    stop_pattern_id: int = field(default=0, metadata={"csv": False})
    stop_times: list[StopTime] = _skip()

    def entity_id(self) -> str:
        return self.trip_id

    def update_keys(self, emap: "EntityMap") -> list[EntityError]:
        errs = []
        self.route_id, err = _update_key(emap, "routes.txt", "route_id", self.route_id)
        if err:
            errs.append(err)
        self.service_id, err = _update_key(emap, "calendar.txt", "service_id", self.service_id)
        if err:
            errs.append(err)
        if self.shape_id:
            self.shape_id, err = _update_key(emap, "shapes.txt", "shape_id", self.shape_id)
            if err:
                errs.append(err)
        return errs


@dataclass
class Manifest:
    """Copy run metadata and output checksums."""

    schema_version: int
    tool_version: str
    created_at_iso: str
    inputs: dict[str, Any]
    outputs: dict[str, str]  # filename -> sha256
    stats: dict[str, Any]
    build: dict[str, str]


@dataclass
class ValidationReport:
    """Report from validating a copy output directory."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class CopyConfig:
    """Configuration for a copy run."""

    input_path: str
    output_path: str
    feed_version_id: int = 0
    batch_size: int = 1000
    read_ahead: int = 16  # batches buffered by the reader thread, 0 disables
    interpolate_stop_times: bool = True
    create_missing_shapes: bool = False
    deduplicate_journey_patterns: bool = False  # omit stop times of trips that repeat a pattern
    simplify_shapes: float = 0.0  # Douglas-Peucker tolerance in degrees, 0 disables
    use_basic_route_types: bool = False
    allow_entity_errors: bool = False
    allow_reference_errors: bool = False
    error_limit: int = 1000
    builders: list[str] = field(default_factory=list)
    places_path: str | None = None
