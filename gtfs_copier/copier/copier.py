"""Single-pass copy of a GTFS feed from a reader to a writer, with builder hooks."""

import logging
import queue
import threading
from collections.abc import Iterable, Iterator
from itertools import groupby
from typing import Any, Protocol, TypeVar

from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.copier.ext import (
    AfterValidator,
    AfterWrite,
    CanShareGeomCache,
    Finalizer,
    HasFeedVersionID,
    HasPointGeometry,
    HasReferences,
)
from gtfs_copier.copier.geomcache import GeomCache
from gtfs_copier.copier.result import CopyResult
from gtfs_copier.errors import EntityError, HookError, InterpolationError
from gtfs_copier.geom.simplify import simplify_line
from gtfs_copier.gtfs.calendar import calendar_from_dates
from gtfs_copier.gtfs.models import (
    Agency,
    Calendar,
    CalendarDate,
    CopyConfig,
    Entity,
    Route,
    Shape,
    Stop,
    StopTime,
    Trip,
)
from gtfs_copier.gtfs.reader import GTFSReader
from gtfs_copier.gtfs.route_types import basic_route_type
from gtfs_copier.gtfs.validator import EntityValidator

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DONE = object()


class Writer(Protocol):
    """Destination for written entities."""

    def add_entities(self, ents: list[Entity]) -> list[str]: ...

    def close(self) -> None: ...


def batched(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Group items into lists of at most size items."""
    batch: list[T] = []
    for item in items:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def batched_by_trip(groups: Iterable[list[StopTime]], size: int) -> Iterator[list[list[StopTime]]]:
    """Group per-trip stop time lists until a batch holds at least size stop times."""
    batch: list[list[StopTime]] = []
    count = 0
    for sts in groups:
        batch.append(sts)
        count += len(sts)
        if count >= size:
            yield batch
            batch = []
            count = 0
    if batch:
        yield batch


def read_ahead(items: Iterable[T], maxsize: int) -> Iterator[T]:
    """
    Iterate items produced by a background thread through a bounded queue.

    Exceptions raised by the producer are re-raised in the consumer.
    """
    if maxsize <= 0:
        yield from items
        return

    q: queue.Queue = queue.Queue(maxsize=maxsize)
    stop = threading.Event()

    def produce() -> None:
        try:
            for item in items:
                if stop.is_set():
                    return
                q.put(item)
        except Exception as e:
            q.put(e)
            return
        q.put(_DONE)

    thread = threading.Thread(target=produce, name="gtfs-read-ahead", daemon=True)
    thread.start()
    try:
        while True:
            item = q.get()
            if item is _DONE:
                break
            if isinstance(item, Exception):
                raise item
            yield item
    finally:
        stop.set()
        # unblock a producer waiting on a full queue
        while thread.is_alive():
            try:
                q.get_nowait()
            except queue.Empty:
                thread.join(timeout=0.01)


def _start_time(sts: list[StopTime]) -> int:
    first = sts[0]
    if first.arrival_time is not None:
        return first.arrival_time
    return first.departure_time or 0


def journey_pattern_key(trip: Trip) -> tuple:
    """
    Key shared by trips that differ only in start time.

    Stop times are compared relative to the trip start, so two trips share a
    key when one is the other shifted in time.
    """
    start = _start_time(trip.stop_times)
    offsets = tuple(
        (
            st.stop_id,
            st.stop_sequence,
            None if st.arrival_time is None else st.arrival_time - start,
            None if st.departure_time is None else st.departure_time - start,
            st.shape_dist_traveled,
        )
        for st in trip.stop_times
    )
    return (
        trip.route_id,
        trip.service_id,
        trip.direction_id,
        trip.shape_id,
        trip.trip_headsign,
        offsets,
    )


class Copier:
    """
    Copy entities from a GTFS reader to a writer.

    Every entity is validated, observed by pre-write hooks, has its references
    rewritten through the EntityMap, written, then observed by post-write
    hooks. Finalizers run once the source is exhausted.
    """

    def __init__(self, reader: GTFSReader, writer: Writer, config: CopyConfig) -> None:
        self.reader = reader
        self.writer = writer
        self.config = config
        self.emap = EntityMap()
        self.geom_cache = GeomCache()
        self.result = CopyResult(error_limit=config.error_limit)
        self.validator = EntityValidator()
        self.extensions: list[Any] = []
        self._after_validators: list[AfterValidator] = []
        self._after_writers: list[AfterWrite] = []
        self._finalizers: list[Finalizer] = []
        self._default_agency = ""

    def add_extension(self, ext: Any) -> None:
        """Register a builder; its hooks are called in registration order."""
        self.extensions.append(ext)
        if isinstance(ext, CanShareGeomCache):
            ext.set_geom_cache(self.geom_cache)
        if isinstance(ext, AfterValidator):
            self._after_validators.append(ext)
        if isinstance(ext, AfterWrite):
            self._after_writers.append(ext)
        if isinstance(ext, Finalizer):
            self._finalizers.append(ext)
        logger.debug(f"Registered extension {type(ext).__name__}")

    def copy(self) -> CopyResult:
        """
        Run the copy. Hook and writer failures end the pass and are stored in
        result.write_error; entities already written are kept.
        """
        for msg in self.reader.validate_structure():
            logger.warning(msg)

        steps = [
            self._copy_agencies,
            self._copy_routes,
            self._copy_shapes,
            self._copy_stops,
            self._copy_calendars,
            self._copy_trips_and_stop_times,
            self._finalize,
        ]
        try:
            for step in steps:
                step()
        except Exception as e:
            logger.error(f"Copy failed: {e}")
            self.result.write_error = e
        return self.result

    # Writing

    def copy_entity(self, ent: Entity) -> str | None:
        """Check and write one entity, returning its new id or None if skipped."""
        eids = self.copy_entities([ent])
        return eids[0] if eids else None

    def copy_entities(self, ents: list[Entity]) -> list[str]:
        """Check and write entities, returning the ids of those written."""
        eids = []
        for _, group in groupby(ents, key=lambda ent: ent.filename):
            ok_ents = [ent for ent in group if self._check_entity(ent)]
            eids.extend(self._write_entities(ok_ents))
        return eids

    def _check_entity(self, ent: Entity) -> bool:
        filename = ent.filename
        if isinstance(ent, HasFeedVersionID):
            ent.set_feed_version_id(self.config.feed_version_id)

        errs, warns = self.validator.validate(ent)
        for err in errs:
            ent.add_error(err)
        for warn in warns:
            ent.add_warning(warn)

        if ent.load_errors and not self.config.allow_entity_errors:
            self._record(ent, ent.load_errors, ent.load_warnings)
            self.result.skip_entity_error_count[filename] += 1
            return False

        for ext in self._after_validators:
            self._call_hook(ext, "after_validator", ent, self.emap)

        ref_errs: list[EntityError] = []
        if isinstance(ent, HasReferences):
            ref_errs = ent.update_keys(self.emap)
            for err in ref_errs:
                ent.add_error(err)

        self._record(ent, ent.load_errors, ent.load_warnings)
        if ref_errs and not self.config.allow_reference_errors:
            self.result.skip_entity_reference_count[filename] += 1
            return False
        return True

    def _record(self, ent: Entity, errs: list[EntityError], warns: list[EntityError]) -> None:
        for err in errs:
            logger.debug(f"{ent.filename} '{ent.entity_id()}': error: {err}")
        for warn in warns:
            logger.debug(f"{ent.filename} '{ent.entity_id()}': warning: {warn}")
        self.result.handle_entity_errors(ent.filename, errs, warns)

    def _write_entities(self, ents: list[Entity]) -> list[str]:
        if not ents:
            return []
        filename = ents[0].filename
        sids = [ent.entity_id() for ent in ents]
        eids = self.writer.add_entities(ents)
        if len(eids) != len(ents):
            raise RuntimeError(f"expected to write {len(ents)} entities, got {len(eids)}")
        for sid, eid in zip(sids, eids):
            if sid:
                self.emap.set(filename, sid, eid)
        self.result.entity_count[filename] += len(ents)
        for eid, ent in zip(eids, ents):
            for ext in self._after_writers:
                self._call_hook(ext, "after_write", eid, ent, self.emap)
        return eids

    def _call_hook(self, ext: Any, hook: str, *args: Any) -> None:
        try:
            getattr(ext, hook)(*args)
        except HookError:
            raise
        except Exception as e:
            raise HookError(hook, ext, e) from e

    def _log_count(self, filename: str) -> None:
        saved = self.result.entity_count[filename]
        out = [f"Saved {saved} {filename.removesuffix('.txt')}"]
        for label, counts in (
            ("generated {}", self.result.generated_count),
            ("skipped {} with entity errors", self.result.skip_entity_error_count),
            ("skipped {} with reference errors", self.result.skip_entity_reference_count),
        ):
            if counts[filename]:
                out.append(label.format(counts[filename]))
        if saved == 0 and len(out) == 1:
            return
        logger.info("; ".join(out))

    # Copy steps, in reference order

    def _copy_agencies(self) -> None:
        written: list[tuple[str, str]] = []
        for ent in self.reader.agencies():
            eid = self.copy_entity(ent)
            if eid is not None:
                written.append((ent.agency_id, eid))
        if len(written) == 1:
            sid, eid = written[0]
            # A lone agency may omit agency_id; routes then reference it by the empty id.
            if not sid:
                self.emap.set(Agency.filename, "", eid)
            self._default_agency = sid
        self._log_count(Agency.filename)

    def _copy_routes(self) -> None:
        for batch in batched(self.reader.routes(), self.config.batch_size):
            for route in batch:
                if not route.agency_id and self._default_agency:
                    route.agency_id = self._default_agency
                if self.config.use_basic_route_types:
                    route.route_type = basic_route_type(route.route_type)
            self.copy_entities(batch)
        self._log_count(Route.filename)

    def _copy_shapes(self) -> None:
        for batch in batched(self.reader.shapes(), self.config.batch_size):
            for shape in batch:
                if self.config.simplify_shapes > 0:
                    shape.points, shape.dists = simplify_line(
                        shape.points, shape.dists, self.config.simplify_shapes
                    )
                self.geom_cache.add_shape(shape.shape_id, shape.points, shape.dists)
            self.copy_entities(batch)
        self._log_count(Shape.filename)

    def _copy_stops(self) -> None:
        # Parent stations first, then stops/entrances/generic nodes, then boarding areas.
        for location_types in ((1,), (0, 2, 3), (4,)):
            stops = (s for s in self.reader.stops() if s.location_type in location_types)
            for batch in batched(stops, self.config.batch_size):
                for stop in batch:
                    pt = stop.point() if isinstance(stop, HasPointGeometry) else None
                    if pt is not None:
                        self.geom_cache.add_stop(stop.entity_id(), pt)
                self.copy_entities(batch)
        self._log_count(Stop.filename)

    def _copy_calendars(self) -> None:
        cal_dates: dict[str, list[CalendarDate]] = {}
        for cd in self.reader.calendar_dates():
            cal_dates.setdefault(cd.service_id, []).append(cd)

        for batch in batched(self.reader.calendars(), self.config.batch_size):
            for cal in batch:
                cal.calendar_dates = cal_dates.pop(cal.service_id, [])
            self._copy_calendar_batch(batch)

        generated = [calendar_from_dates(sid, cds) for sid, cds in cal_dates.items()]
        if generated:
            before = self.result.entity_count[Calendar.filename]
            self._copy_calendar_batch(generated)
            self.result.generated_count[Calendar.filename] += (
                self.result.entity_count[Calendar.filename] - before
            )
        self._log_count(Calendar.filename)
        self._log_count(CalendarDate.filename)

    def _copy_calendar_batch(self, cals: list[Calendar]) -> None:
        ok_cals = [cal for cal in cals if self._check_entity(cal)]
        self._write_entities(ok_cals)
        self.copy_entities([cd for cal in ok_cals for cd in cal.calendar_dates])

    def _copy_trips_and_stop_times(self) -> None:
        trips: dict[str, Trip] = {}
        duplicates: list[Trip] = []
        for trip in self.reader.trips():
            if trip.trip_id in trips:
                duplicates.append(trip)
                continue
            trips[trip.trip_id] = trip
        logger.debug(f"Loaded {len(trips)} trips")

        stop_patterns: dict[tuple[str, ...], int] = {}
        pattern_shapes: dict[int, str] = {}
        journey_patterns: dict[tuple, tuple[str, int]] = {}
        deduplicated = 0
        groups = batched_by_trip(self.reader.stop_times_by_trip(), self.config.batch_size)
        for group in read_ahead(groups, self.config.read_ahead):
            batch_trips: list[Entity] = []
            orphan_stop_times: list[Entity] = []
            for sts in group:
                trip = trips.pop(sts[0].trip_id, None)
                if trip is None:
                    # Referenced trip is missing; these fail reference checks.
                    orphan_stop_times.extend(sts)
                    continue
                trip.stop_times = sts
                key = tuple(st.stop_id for st in sts)
                trip.stop_pattern_id = stop_patterns.setdefault(key, len(stop_patterns))
                if not trip.shape_id and self.config.create_missing_shapes:
                    self._set_missing_shape(trip, pattern_shapes)
                if self.config.interpolate_stop_times:
                    self._interpolate(trip)
                batch_trips.append(trip)

            ok_trips = [trip for trip in batch_trips if self._check_entity(trip)]
            for trip in ok_trips:
                self._set_journey_pattern(trip, journey_patterns)
            self._write_entities(ok_trips)
            batch_stop_times: list[Entity] = []
            for trip in ok_trips:
                repeated = trip.journey_pattern_id != trip.trip_id
                if repeated and self.config.deduplicate_journey_patterns:
                    deduplicated += 1
                    continue
                batch_stop_times.extend(trip.stop_times)
            self.copy_entities(batch_stop_times + orphan_stop_times)

        # Trips without stop times, then duplicate trip ids
        for batch in batched(list(trips.values()) + duplicates, self.config.batch_size):
            self.copy_entities(batch)
        self._log_count(Trip.filename)
        self._log_count(StopTime.filename)
        if deduplicated:
            logger.info(f"Omitted stop times of {deduplicated} trips repeating a journey pattern")

    def _set_journey_pattern(self, trip: Trip, patterns: dict[tuple, tuple[str, int]]) -> None:
        start = _start_time(trip.stop_times)
        key = journey_pattern_key(trip)
        if key in patterns:
            trip.journey_pattern_id, first_start = patterns[key]
            trip.journey_pattern_offset = start - first_start
        else:
            trip.journey_pattern_id = trip.trip_id
            trip.journey_pattern_offset = 0
            patterns[key] = (trip.trip_id, start)

    def _set_missing_shape(self, trip: Trip, pattern_shapes: dict[int, str]) -> None:
        shape_id = pattern_shapes.get(trip.stop_pattern_id)
        if shape_id is None:
            try:
                points, dists = self.geom_cache.make_shape([st.stop_id for st in trip.stop_times])
            except InterpolationError as e:
                logger.debug(f"Trip {trip.trip_id}: failed to create shape: {e}")
                trip.add_warning(e)
                return
            shape = Shape(
                shape_id=f"generated-{trip.stop_pattern_id}",
                points=points,
                dists=dists,
                generated=True,
            )
            self.geom_cache.add_shape(shape.shape_id, points, dists, generated=True)
            if self.copy_entity(shape) is None:
                return
            self.result.generated_count[Shape.filename] += 1
            shape_id = shape.shape_id
            pattern_shapes[trip.stop_pattern_id] = shape_id
        trip.shape_id = shape_id

    def _interpolate(self, trip: Trip) -> None:
        try:
            self.geom_cache.interpolate_stop_times(trip)
        except InterpolationError as e:
            logger.debug(f"Trip {trip.trip_id}: interpolation failed: {e}")
            trip.add_warning(e)
            return
        self.result.interpolated_stop_time_count += sum(st.interpolated for st in trip.stop_times)

    def _finalize(self) -> None:
        for ext in self._finalizers:
            logger.debug(f"Running finalizer {type(ext).__name__}")
            self._call_hook(ext, "finalize", self)
