"""GTFS directory reader producing entity streams."""

import csv
import logging
from collections.abc import Callable, Iterator
from datetime import date, datetime
from pathlib import Path
from typing import TypeVar

from gtfs_copier.errors import ParseError, RequiredFieldError
from gtfs_copier.geom.xy import Point
from gtfs_copier.gtfs.models import (
    Agency,
    Calendar,
    CalendarDate,
    Entity,
    Route,
    Shape,
    Stop,
    StopTime,
    Trip,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Row:
    """Wrap a CSV row and collect parse errors while converting fields."""

    def __init__(self, row: dict[str, str]) -> None:
        self.row = row
        self.errors: list[ParseError | RequiredFieldError] = []

    def text(self, key: str, required: bool = False) -> str:
        value = (self.row.get(key) or "").strip()
        if required and not value:
            self.errors.append(RequiredFieldError(key))
        return value

    def convert(self, key: str, fn: Callable[[str], T], default: T, required: bool = False) -> T:
        value = self.text(key, required=required)
        if not value:
            return default
        try:
            return fn(value)
        except ValueError:
            self.errors.append(ParseError(key, value))
            return default

    def attach(self, ent: Entity) -> Entity:
        for err in self.errors:
            ent.add_error(err)
        return ent


def parse_time(time_str: str) -> int:
    """Parse HH:MM:SS to seconds since midnight, supporting >24h."""
    parts = time_str.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid time format: {time_str}")

    hours = int(parts[0])
    minutes = int(parts[1])
    seconds = int(parts[2])

    return hours * 3600 + minutes * 60 + seconds


def parse_date(date_str: str) -> date:
    """Parse YYYYMMDD."""
    return datetime.strptime(date_str.strip(), "%Y%m%d").date()


def _parse_bool(value: str) -> bool:
    if value not in ("0", "1"):
        raise ValueError(f"Invalid boolean: {value}")
    return value == "1"


class GTFSReader:
    """Read a GTFS feed from a directory as streams of entities."""

    def __init__(self, gtfs_path: str) -> None:
        """Initialize reader with GTFS directory path."""
        self.gtfs_path = Path(gtfs_path)
        if not self.gtfs_path.is_dir():
            raise ValueError(f"GTFS path not found or not a directory: {gtfs_path}")

    def validate_structure(self) -> list[str]:
        """Check required files are present."""
        errors = []
        for filename in ("agency.txt", "stops.txt", "routes.txt", "trips.txt", "stop_times.txt"):
            if not (self.gtfs_path / filename).exists():
                errors.append(f"Required file not found: {filename}")
        if not (self.gtfs_path / "calendar.txt").exists() and not (
            self.gtfs_path / "calendar_dates.txt"
        ).exists():
            errors.append("Required file not found: calendar.txt or calendar_dates.txt")
        return errors

    def _rows(self, filename: str) -> Iterator[_Row]:
        file_path = self.gtfs_path / filename
        if not file_path.exists():
            logger.debug(f"{filename} not found, skipping")
            return
        with open(file_path, encoding="utf-8-sig", newline="") as f:
            for row in csv.DictReader(f):
                yield _Row(row)

    def agencies(self) -> Iterator[Agency]:
        """Read agency.txt."""
        for r in self._rows("agency.txt"):
            agency = Agency(
                agency_id=r.text("agency_id"),
                agency_name=r.text("agency_name", required=True),
                agency_timezone=r.text("agency_timezone", required=True),
                agency_url=r.text("agency_url"),
            )
            yield r.attach(agency)

    def stops(self) -> Iterator[Stop]:
        """Read stops.txt."""
        for r in self._rows("stops.txt"):
            stop = Stop(
                stop_id=r.text("stop_id", required=True),
                stop_name=r.text("stop_name"),
                stop_lat=r.convert("stop_lat", float, None),
                stop_lon=r.convert("stop_lon", float, None),
                location_type=r.convert("location_type", int, 0),
                parent_station=r.text("parent_station"),
            )
            yield r.attach(stop)

    def routes(self) -> Iterator[Route]:
        """Read routes.txt."""
        for r in self._rows("routes.txt"):
            route = Route(
                route_id=r.text("route_id", required=True),
                agency_id=r.text("agency_id"),
                route_short_name=r.text("route_short_name"),
                route_long_name=r.text("route_long_name"),
                route_type=r.convert("route_type", int, 0, required=True),
            )
            yield r.attach(route)

    def trips(self) -> Iterator[Trip]:
        """Read trips.txt."""
        for r in self._rows("trips.txt"):
            trip = Trip(
                trip_id=r.text("trip_id", required=True),
                route_id=r.text("route_id", required=True),
                service_id=r.text("service_id", required=True),
                direction_id=r.convert("direction_id", int, 0),
                shape_id=r.text("shape_id"),
                trip_headsign=r.text("trip_headsign"),
            )
            yield r.attach(trip)

    def calendars(self) -> Iterator[Calendar]:
        """Read calendar.txt."""
        for r in self._rows("calendar.txt"):
            cal = Calendar(
                service_id=r.text("service_id", required=True),
                monday=r.convert("monday", _parse_bool, False, required=True),
                tuesday=r.convert("tuesday", _parse_bool, False, required=True),
                wednesday=r.convert("wednesday", _parse_bool, False, required=True),
                thursday=r.convert("thursday", _parse_bool, False, required=True),
                friday=r.convert("friday", _parse_bool, False, required=True),
                saturday=r.convert("saturday", _parse_bool, False, required=True),
                sunday=r.convert("sunday", _parse_bool, False, required=True),
                start_date=r.convert("start_date", parse_date, None, required=True),
                end_date=r.convert("end_date", parse_date, None, required=True),
            )
            yield r.attach(cal)

    def calendar_dates(self) -> Iterator[CalendarDate]:
        """Read calendar_dates.txt."""
        for r in self._rows("calendar_dates.txt"):
            cd = CalendarDate(
                service_id=r.text("service_id", required=True),
                date=r.convert("date", parse_date, date.min, required=True),
                exception_type=r.convert("exception_type", int, 0, required=True),
            )
            yield r.attach(cd)

    def shapes(self) -> Iterator[Shape]:
        """Read shapes.txt, yielding one Shape per shape_id ordered by sequence."""
        grouped: dict[str, list[tuple[int, Point, float | None]]] = {}
        errors: dict[str, list] = {}
        for r in self._rows("shapes.txt"):
            shape_id = r.text("shape_id", required=True)
            seq = r.convert("shape_pt_sequence", int, 0, required=True)
            pt = Point(
                lon=r.convert("shape_pt_lon", float, 0.0, required=True),
                lat=r.convert("shape_pt_lat", float, 0.0, required=True),
            )
            dist = r.convert("shape_dist_traveled", float, None)
            grouped.setdefault(shape_id, []).append((seq, pt, dist))
            errors.setdefault(shape_id, []).extend(r.errors)

        for shape_id, rows in grouped.items():
            rows.sort(key=lambda x: x[0])
            dists: list[float] | None = [d for _, _, d in rows if d is not None]
            if len(dists) != len(rows):
                dists = None
            shape = Shape(shape_id=shape_id, points=[pt for _, pt, _ in rows], dists=dists)
            for err in errors[shape_id]:
                shape.add_error(err)
            yield shape

    def stop_times_by_trip(self) -> Iterator[list[StopTime]]:
        """Read stop_times.txt, yielding each trip's stop times sorted by stop_sequence."""
        grouped: dict[str, list[StopTime]] = {}
        for r in self._rows("stop_times.txt"):
            st = StopTime(
                trip_id=r.text("trip_id", required=True),
                stop_id=r.text("stop_id", required=True),
                stop_sequence=r.convert("stop_sequence", int, 0, required=True),
                arrival_time=r.convert("arrival_time", parse_time, None),
                departure_time=r.convert("departure_time", parse_time, None),
                shape_dist_traveled=r.convert("shape_dist_traveled", float, None),
            )
            grouped.setdefault(st.trip_id, []).append(r.attach(st))

        for sts in grouped.values():
            sts.sort(key=lambda st: st.stop_sequence)
            yield sts
