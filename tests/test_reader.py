"""Tests for GTFS reader."""

from datetime import date
from pathlib import Path

import pytest

from conftest import FeedWriter, base_feed
from gtfs_copier.errors import ParseError, RequiredFieldError
from gtfs_copier.gtfs.reader import GTFSReader, parse_date, parse_time


def test_reader_basic(gtfs_minimal: Path) -> None:
    """Test basic GTFS reading."""
    reader = GTFSReader(str(gtfs_minimal))

    assert len(list(reader.agencies())) == 1
    assert len(list(reader.stops())) == 4
    assert len(list(reader.routes())) == 1
    assert len(list(reader.trips())) == 3
    assert len(list(reader.calendars())) == 1
    assert len(list(reader.calendar_dates())) == 2
    assert reader.validate_structure() == []


def test_reader_stop_times_grouped(gtfs_minimal: Path) -> None:
    """Test stop times are grouped per trip and sorted by sequence."""
    reader = GTFSReader(str(gtfs_minimal))
    groups = {sts[0].trip_id: sts for sts in reader.stop_times_by_trip()}

    assert sorted(groups) == ["T1", "T2", "T3"]
    t1 = groups["T1"]
    assert [st.stop_id for st in t1] == ["S1", "S2", "S3"]
    assert t1[0].arrival_time == 8 * 3600
    assert t1[1].arrival_time is None
    assert t1[1].departure_time is None


def test_reader_shapes(gtfs_minimal: Path) -> None:
    """Test shape rows are assembled into one line."""
    reader = GTFSReader(str(gtfs_minimal))
    shapes = list(reader.shapes())

    assert len(shapes) == 1
    assert shapes[0].shape_id == "SH1"
    assert len(shapes[0].points) == 3
    assert shapes[0].points[0].lat == 37.775
    assert shapes[0].dists is None


def test_reader_calendar(gtfs_minimal: Path) -> None:
    """Test calendar flags and dates are parsed."""
    reader = GTFSReader(str(gtfs_minimal))
    cal = next(reader.calendars())

    assert cal.monday and not cal.saturday
    assert cal.start_date == date(2024, 1, 1)
    assert cal.end_date == date(2024, 12, 31)


def test_parse_time_normal() -> None:
    """Test time parsing for normal times."""
    assert parse_time("08:30:45") == 8 * 3600 + 30 * 60 + 45
    assert parse_time("00:00:00") == 0
    assert parse_time("23:59:59") == 23 * 3600 + 59 * 60 + 59


def test_parse_time_over_24h() -> None:
    """Test time parsing for times over 24 hours."""
    assert parse_time("25:30:00") == 25 * 3600 + 30 * 60
    assert parse_time("48:00:00") == 48 * 3600


def test_parse_time_invalid() -> None:
    """Test malformed times are rejected."""
    with pytest.raises(ValueError):
        parse_time("8:30")


def test_parse_date() -> None:
    """Test YYYYMMDD parsing."""
    assert parse_date("20240229") == date(2024, 2, 29)


def test_reader_parse_errors_attached(write_feed: FeedWriter) -> None:
    """Test malformed values become entity errors instead of exceptions."""
    files = base_feed()
    files["stops.txt"].append(
        {"stop_id": "BAD", "stop_name": "Bad", "stop_lat": "north", "stop_lon": "-122.0"}
    )
    files["stops.txt"].append({"stop_id": "", "stop_name": "No id", "stop_lat": "1", "stop_lon": "1"})
    reader = GTFSReader(str(write_feed(files)))
    stops = {s.stop_name: s for s in reader.stops()}

    assert stops["First"].load_errors == []
    bad = stops["Bad"].load_errors
    assert len(bad) == 1
    assert isinstance(bad[0], ParseError)
    assert bad[0].field == "stop_lat"
    assert bad[0].filename == "stops.txt"
    assert bad[0].entity_id == "BAD"
    assert isinstance(stops["No id"].load_errors[0], RequiredFieldError)


def test_reader_missing_file(write_feed: FeedWriter) -> None:
    """Test structure validation reports missing required files."""
    reader = GTFSReader(str(write_feed(base_feed())))
    errors = reader.validate_structure()

    assert "Required file not found: trips.txt" in errors
    assert "Required file not found: stop_times.txt" in errors
    assert list(reader.trips()) == []


def test_reader_missing_path() -> None:
    """Test reader with a missing directory."""
    with pytest.raises(ValueError):
        GTFSReader("/nonexistent/path")


def test_reader_optional_coordinates(write_feed: FeedWriter) -> None:
    """Test empty coordinates are read as missing rather than as parse errors."""
    files = base_feed()
    files["stops.txt"].append(
        {"stop_id": "N1", "stop_name": "", "stop_lat": "", "stop_lon": "", "location_type": "3"}
    )
    reader = GTFSReader(str(write_feed(files)))
    stops = {s.stop_id: s for s in reader.stops()}

    assert stops["N1"].load_errors == []
    assert stops["N1"].stop_lat is None
    assert stops["N1"].point() is None
    assert stops["S1"].point() is not None
