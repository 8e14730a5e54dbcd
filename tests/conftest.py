"""Pytest configuration and fixtures."""

import csv
from collections.abc import Callable
from pathlib import Path

import pytest

from gtfs_copier.copier.copier import Copier
from gtfs_copier.gtfs.models import CopyConfig
from gtfs_copier.gtfs.reader import GTFSReader
from gtfs_copier.output.memory import MemoryWriter

FeedWriter = Callable[[dict[str, list[dict[str, str]]]], Path]


@pytest.fixture
def gtfs_minimal() -> Path:
    """Path to minimal GTFS fixture."""
    return Path(__file__).parent / "fixtures" / "gtfs_minimal"


@pytest.fixture
def places_csv() -> Path:
    """Path to populated places fixture."""
    return Path(__file__).parent / "fixtures" / "places.csv"


@pytest.fixture
def write_feed(tmp_path: Path) -> FeedWriter:
    """Write a GTFS feed from {filename: rows} and return its directory."""

    def _write(files: dict[str, list[dict[str, str]]]) -> Path:
        feed_dir = tmp_path / "feed"
        feed_dir.mkdir(exist_ok=True)
        for filename, rows in files.items():
            fieldnames: list[str] = []
            for row in rows:
                fieldnames.extend(k for k in row if k not in fieldnames)
            with open(feed_dir / filename, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(rows)
        return feed_dir

    return _write


@pytest.fixture
def run_copier() -> Callable[..., tuple[Copier, MemoryWriter]]:
    """Copy a feed directory into memory with the given builders."""

    def _run(feed_dir: Path, *builders: object, **options: object) -> tuple[Copier, MemoryWriter]:
        config = CopyConfig(input_path=str(feed_dir), output_path="", read_ahead=0, **options)
        writer = MemoryWriter()
        copier = Copier(GTFSReader(str(feed_dir)), writer, config)
        for builder in builders:
            copier.add_extension(builder)
        copier.copy()
        return copier, writer

    return _run


def base_feed() -> dict[str, list[dict[str, str]]]:
    """One agency, three stops on a line, one weekday service and one route."""
    return {
        "agency.txt": [
            {
                "agency_id": "A1",
                "agency_name": "Demo Transit",
                "agency_url": "http://example.com",
                "agency_timezone": "America/Los_Angeles",
            }
        ],
        "stops.txt": [
            {"stop_id": "S1", "stop_name": "First", "stop_lat": "37.775", "stop_lon": "-122.419"},
            {"stop_id": "S2", "stop_name": "Second", "stop_lat": "37.780", "stop_lon": "-122.410"},
            {"stop_id": "S3", "stop_name": "Third", "stop_lat": "37.785", "stop_lon": "-122.400"},
        ],
        "routes.txt": [
            {
                "route_id": "R1",
                "agency_id": "A1",
                "route_short_name": "1",
                "route_long_name": "Line One",
                "route_type": "3",
            }
        ],
        "calendar.txt": [
            {
                "service_id": "WK",
                "monday": "1",
                "tuesday": "1",
                "wednesday": "1",
                "thursday": "1",
                "friday": "1",
                "saturday": "0",
                "sunday": "0",
                "start_date": "20240101",
                "end_date": "20241231",
            }
        ],
    }


def stop_time_rows(trip_id: str, stop_ids: list[str], start: int, step: int = 600) -> list[dict[str, str]]:
    """Stop times for one trip, departing start seconds and step seconds apart."""
    rows = []
    for i, stop_id in enumerate(stop_ids):
        t = start + i * step
        hms = f"{t // 3600:02d}:{t % 3600 // 60:02d}:{t % 60:02d}"
        rows.append(
            {
                "trip_id": trip_id,
                "arrival_time": hms,
                "departure_time": hms,
                "stop_id": stop_id,
                "stop_sequence": str(i + 1),
            }
        )
    return rows
