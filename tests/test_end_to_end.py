"""End-to-end tests."""

import csv
import json
from pathlib import Path

from conftest import FeedWriter, base_feed, stop_time_rows
from gtfs_copier import Copier, CopyConfig, GTFSReader, MemoryWriter, copy_feed, validate


def _rows(path: Path) -> list[dict[str, str]]:
    with open(path, encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


def test_end_to_end_minimal(gtfs_minimal: Path, tmp_path: Path) -> None:
    """Test complete pipeline on minimal fixture."""
    output = tmp_path / "output"

    result = copy_feed(str(gtfs_minimal), str(output))

    assert result.ok
    assert result.entity_count["trips.txt"] == 3

    # Check files exist
    for filename in ("agency.txt", "stops.txt", "routes.txt", "trips.txt", "stop_times.txt"):
        assert (output / filename).exists()
    assert (output / "manifest.json").exists()

    # CSV output keeps source ids
    trips = {row["trip_id"]: row for row in _rows(output / "trips.txt")}
    assert trips["T1"]["route_id"] == "R1"
    assert trips["T3"]["service_id"] == "HOL"
    stop_times = _rows(output / "stop_times.txt")
    assert len(stop_times) == 9
    assert [st["interpolated"] for st in stop_times if st["trip_id"] == "T1"] == ["0", "1", "0"]
    shapes = _rows(output / "shapes.txt")
    assert [row["shape_pt_sequence"] for row in shapes] == ["0", "1", "2"]

    # Validate
    report = validate(str(output))
    assert report.valid
    assert len(report.errors) == 0
    assert report.stats["stop_times.txt"] == 9


def test_end_to_end_manifest(gtfs_minimal: Path, tmp_path: Path) -> None:
    """Test the manifest records inputs, checksums and counts."""
    output = tmp_path / "output"
    config = CopyConfig(
        input_path=str(gtfs_minimal),
        output_path=str(output),
        feed_version_id=9,
        builders=["route_stop", "convex_hull"],
    )

    copy_feed(str(gtfs_minimal), str(output), config)

    with open(output / "manifest.json", encoding="utf-8") as f:
        manifest = json.load(f)
    assert manifest["schema_version"] == 1
    assert manifest["inputs"]["feed_version_id"] == 9
    assert manifest["inputs"]["builders"] == ["route_stop", "convex_hull"]
    assert "tl_route_stops.txt" in manifest["outputs"]
    assert len(manifest["outputs"]["trips.txt"]) == 64
    assert manifest["stats"]["entity_count"]["calendar.txt"] == 2
    assert manifest["stats"]["generated_count"]["calendar.txt"] == 1
    assert manifest["stats"]["write_error"] is None

    route_stops = _rows(output / "tl_route_stops.txt")
    assert {row["feed_version_id"] for row in route_stops} == {"9"}
    assert {row["stop_id"] for row in route_stops} == {"S1", "S2", "S3"}


def test_validate_detects_tampering(gtfs_minimal: Path, tmp_path: Path) -> None:
    """Test modified outputs fail validation."""
    output = tmp_path / "output"
    copy_feed(str(gtfs_minimal), str(output))

    with open(output / "stops.txt", "a", encoding="utf-8") as f:
        f.write("X,Extra,0,0,0,\n")

    report = validate(str(output))
    assert not report.valid
    assert any("stops.txt" in e for e in report.errors)


def test_validate_missing_manifest(tmp_path: Path) -> None:
    """Test directories without a manifest are invalid."""
    report = validate(str(tmp_path))

    assert not report.valid
    assert "manifest.json" in report.errors[0]


def test_end_to_end_reference_errors(write_feed: FeedWriter, tmp_path: Path) -> None:
    """Test skipped entities are reported in the manifest and left out of the output."""
    files = base_feed()
    files["trips.txt"] = [
        {"route_id": "R1", "service_id": "WK", "trip_id": "T1"},
        {"route_id": "R9", "service_id": "WK", "trip_id": "T2"},
    ]
    files["stop_times.txt"] = stop_time_rows("T1", ["S1", "S2"], 8 * 3600)
    output = tmp_path / "output"

    result = copy_feed(str(write_feed(files)), str(output))

    assert result.ok
    assert [row["trip_id"] for row in _rows(output / "trips.txt")] == ["T1"]
    with open(output / "manifest.json", encoding="utf-8") as f:
        stats = json.load(f)["stats"]
    assert stats["skip_entity_reference_count"] == {"trips.txt": 1}
    assert stats["errors"][0]["error_type"] == "InvalidReferenceError"
    assert stats["errors"][0]["samples"][0]["entity_id"] == "T2"


def test_embedded_copy_in_memory(gtfs_minimal: Path) -> None:
    """Test the package exports what is needed to copy into memory."""
    config = CopyConfig(input_path=str(gtfs_minimal), output_path="")
    writer = MemoryWriter()
    result = Copier(GTFSReader(str(gtfs_minimal)), writer, config).copy()

    assert result.ok
    assert len(writer.get("trips.txt")) == result.entity_count["trips.txt"]
    assert writer.get("agency.txt")[0].agency_id == "A1"
