"""Per-entity GTFS validation."""

import logging
from collections.abc import Callable

from gtfs_copier.errors import EntityError, InvalidFieldError, RequiredFieldError
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

Problems = tuple[list[EntityError], list[EntityError]]


class EntityValidator:
    """Validate entities field by field, returning errors and warnings."""

    def __init__(self) -> None:
        """Initialize the per-type dispatch table."""
        self._checks: dict[type, Callable[[Entity], Problems]] = {
            Agency: self._validate_agency,
            Stop: self._validate_stop,
            Route: self._validate_route,
            Shape: self._validate_shape,
            Calendar: self._validate_calendar,
            CalendarDate: self._validate_calendar_date,
            Trip: self._validate_trip,
            StopTime: self._validate_stop_time,
        }

    def validate(self, ent: Entity) -> Problems:
        """Run the checks registered for the entity's type."""
        check = self._checks.get(type(ent))
        if check is None:
            return [], []
        return check(ent)

    def _validate_agency(self, agency: Agency) -> Problems:
        errors: list[EntityError] = []
        if not agency.agency_name:
            errors.append(RequiredFieldError("agency_name"))
        if not agency.agency_timezone:
            errors.append(RequiredFieldError("agency_timezone"))
        return errors, []

    def _validate_stop(self, stop: Stop) -> Problems:
        """
        Validate stops have valid coordinates.

        Stops, stations and entrances (location_type 0-2) require coordinates;
        generic nodes and boarding areas may leave them empty.
        """
        errors: list[EntityError] = []
        warnings: list[EntityError] = []
        lat, lon = stop.stop_lat, stop.stop_lon
        if lat is None or lon is None:
            if stop.location_type in (0, 1, 2):
                # unparseable values were already reported by the reader
                reported = {e.field for e in stop.load_errors}
                for name, value in (("stop_lat", lat), ("stop_lon", lon)):
                    if value is None and name not in reported:
                        errors.append(RequiredFieldError(name))
        else:
            if not (-90 <= lat <= 90):
                errors.append(InvalidFieldError("stop_lat", lat, "latitude out of range"))
            if not (-180 <= lon <= 180):
                errors.append(InvalidFieldError("stop_lon", lon, "longitude out of range"))
            if lat == 0 and lon == 0:
                warnings.append(InvalidFieldError("stop_lat", lat, "stop is at null island"))
        if not stop.stop_name and stop.location_type in (0, 1, 2):
            warnings.append(RequiredFieldError("stop_name"))
        if stop.location_type not in (0, 1, 2, 3, 4):
            errors.append(
                InvalidFieldError("location_type", stop.location_type, "must be between 0 and 4")
            )
        return errors, warnings

    def _validate_route(self, route: Route) -> Problems:
        errors: list[EntityError] = []
        if not route.route_short_name and not route.route_long_name:
            errors.append(RequiredFieldError("route_short_name"))
        if not (0 <= route.route_type <= 12 or 100 <= route.route_type <= 1702):
            errors.append(InvalidFieldError("route_type", route.route_type, "unknown route type"))
        return errors, []

    def _validate_shape(self, shape: Shape) -> Problems:
        errors: list[EntityError] = []
        if len(shape.points) < 2:
            errors.append(
                InvalidFieldError("shape_pt_sequence", len(shape.points), "needs at least 2 points")
            )
        return errors, []

    def _validate_calendar(self, cal: Calendar) -> Problems:
        errors: list[EntityError] = []
        if cal.start_date and cal.end_date and cal.end_date < cal.start_date:
            errors.append(
                InvalidFieldError("end_date", cal.end_date, "end_date is before start_date")
            )
        return errors, []

    def _validate_calendar_date(self, cd: CalendarDate) -> Problems:
        errors: list[EntityError] = []
        if cd.exception_type not in (1, 2):
            errors.append(InvalidFieldError("exception_type", cd.exception_type, "must be 1 or 2"))
        return errors, []

    def _validate_trip(self, trip: Trip) -> Problems:
        errors: list[EntityError] = []
        if trip.direction_id not in (0, 1):
            errors.append(InvalidFieldError("direction_id", trip.direction_id, "must be 0 or 1"))
        return errors, []

    def _validate_stop_time(self, st: StopTime) -> Problems:
        """Validate stop time ordering within the row."""
        errors: list[EntityError] = []
        if st.stop_sequence < 0:
            errors.append(
                InvalidFieldError("stop_sequence", st.stop_sequence, "must be non-negative")
            )
        at, dt = st.arrival_time, st.departure_time
        if at is not None and dt is not None and at > dt:
            errors.append(
                InvalidFieldError("departure_time", dt, "departure_time is before arrival_time")
            )
        if st.shape_dist_traveled is not None and st.shape_dist_traveled < 0:
            errors.append(
                InvalidFieldError("shape_dist_traveled", st.shape_dist_traveled, "must be positive")
            )
        return errors, []
