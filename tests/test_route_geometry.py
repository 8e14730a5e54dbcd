"""Tests for route geometry selection."""

from pathlib import Path

from shapely.geometry import LineString, MultiLineString

from gtfs_copier.builders.route_geometry import RouteGeometryBuilder
from gtfs_copier.copier.copier import Copier
from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.geom.xy import Point
from gtfs_copier.gtfs.models import CopyConfig, Shape, Trip
from gtfs_copier.gtfs.reader import GTFSReader
from gtfs_copier.output.memory import MemoryWriter

LONG = [Point(0.0, 0.0), Point(0.01, 0.0), Point(0.03, 0.0)]
SHORT = [Point(0.0, 0.0), Point(0.01, 0.0)]
SHORTEST = [Point(0.0, 0.0), Point(0.005, 0.0)]


def _add_trips(builder: RouteGeometryBuilder, shape_eid: str, count: int, direction_id: int = 0) -> None:
    emap = EntityMap()
    for i in range(count):
        trip = Trip(f"{shape_eid}-{i}", "1", "1", direction_id=direction_id, shape_id=shape_eid)
        builder.after_write(trip.trip_id, trip, emap)


def _add_shape(builder: RouteGeometryBuilder, eid: str, points: list[Point], generated: bool = False) -> None:
    builder.after_write(eid, Shape(eid, points=points, generated=generated), EntityMap())


def test_most_used_shape_is_primary() -> None:
    """Test the most used shape is the primary line and frequent shapes are included."""
    builder = RouteGeometryBuilder()
    _add_shape(builder, "10", LONG)
    _add_shape(builder, "11", SHORT)
    _add_shape(builder, "12", SHORTEST)
    _add_trips(builder, "10", 8)
    _add_trips(builder, "11", 2)
    _add_trips(builder, "12", 1)

    assert builder.select_shapes("1") == ["10", "11"]
    rg = builder.build_route_geometry("1")
    assert rg.geometry.equals(LineString([(p.lon, p.lat) for p in LONG]))
    assert isinstance(rg.combined_geometry, MultiLineString)
    assert len(rg.combined_geometry.geoms) == 2
    assert not rg.generated


def test_longest_shape_always_included() -> None:
    """Test a rarely used shape is kept when it is the longest."""
    builder = RouteGeometryBuilder()
    _add_shape(builder, "10", SHORT)
    _add_shape(builder, "11", LONG)
    _add_trips(builder, "10", 20)
    _add_trips(builder, "11", 1)

    assert builder.select_shapes("1") == ["10", "11"]
    rg = builder.build_route_geometry("1")
    assert rg.length == builder.shapes.get_shape_info("11").length


def test_each_direction_selected() -> None:
    """Test shapes are chosen per direction."""
    builder = RouteGeometryBuilder()
    _add_shape(builder, "10", LONG)
    _add_shape(builder, "11", list(reversed(LONG)))
    _add_trips(builder, "10", 10, direction_id=0)
    _add_trips(builder, "11", 3, direction_id=1)

    assert builder.select_shapes("1") == ["10", "11"]


def test_generated_shapes_dropped() -> None:
    """Test generated shapes are dropped when a recorded shape is selected."""
    builder = RouteGeometryBuilder()
    _add_shape(builder, "20", LONG, generated=True)
    _add_shape(builder, "21", SHORT)
    _add_trips(builder, "20", 5)
    _add_trips(builder, "21", 5)

    assert builder.select_shapes("1") == ["21"]
    assert not builder.build_route_geometry("1").generated


def test_only_generated_shapes() -> None:
    """Test generated shapes are used when nothing else is available."""
    builder = RouteGeometryBuilder()
    _add_shape(builder, "20", LONG, generated=True)
    _add_trips(builder, "20", 3)

    rg = builder.build_route_geometry("1")
    assert rg.generated
    assert builder.select_shapes("1") == ["20"]


def test_ties_are_deterministic() -> None:
    """Test equally used shapes are ordered by id."""
    builder = RouteGeometryBuilder()
    _add_shape(builder, "31", SHORT)
    _add_shape(builder, "30", SHORT)
    _add_trips(builder, "31", 4)
    _add_trips(builder, "30", 4)

    assert builder.select_shapes("1") == ["30", "31"]


def test_no_shapes() -> None:
    """Test routes without usable shapes get no geometry."""
    builder = RouteGeometryBuilder()
    _add_trips(builder, "99", 3)

    assert builder.build_route_geometry("1") is None


def test_route_geometry_written(gtfs_minimal: Path, run_copier) -> None:
    """Test the builder writes one geometry per route with shapes."""
    _, writer = run_copier(gtfs_minimal, RouteGeometryBuilder(), feed_version_id=3)
    rgs = writer.get("tl_route_geometries.txt")

    assert len(rgs) == 1
    row = rgs[0].to_row()
    assert row["route_id"] == "1"
    assert row["geometry"].startswith("LINESTRING")
    assert row["combined_geometry"].startswith("MULTILINESTRING")
    assert row["feed_version_id"] == "3"


def test_geom_cache_shared(gtfs_minimal: Path) -> None:
    """Test registration hands the copier's cache to the builder."""
    config = CopyConfig(input_path=str(gtfs_minimal), output_path="", read_ahead=0)
    copier = Copier(GTFSReader(str(gtfs_minimal)), MemoryWriter(), config)
    builder = RouteGeometryBuilder()
    copier.add_extension(builder)

    assert builder.shapes is copier.geom_cache


def test_shared_cache_looked_up_by_source_id(gtfs_minimal: Path, run_copier) -> None:
    """Test written shape ids are resolved to the source ids the shared cache uses."""
    builder = RouteGeometryBuilder()
    copier, writer = run_copier(gtfs_minimal, builder)

    assert builder.shape_sids == {"1": "SH1"}
    assert copier.geom_cache.shape_ids() == ["SH1"]
    assert builder.select_shapes("1") == ["1"]
    assert len(writer.get("tl_route_geometries.txt")) == 1
