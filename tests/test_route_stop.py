"""Tests for route stop and agency place builders."""

from pathlib import Path

from gtfs_copier.builders.agency_place import AgencyPlaceBuilder, PlaceIndex
from gtfs_copier.builders.route_stop import RouteStopBuilder
from gtfs_copier.geom import geohash


def test_route_stops(gtfs_minimal: Path, run_copier) -> None:
    """Test each visited stop is recorded once per route."""
    _, writer = run_copier(gtfs_minimal, RouteStopBuilder())
    rows = [(rs.route_id, rs.agency_id, rs.stop_id) for rs in writer.get("tl_route_stops.txt")]

    # stations are never visited by stop times
    assert rows == [("1", "1", "2"), ("1", "1", "3"), ("1", "1", "4")]


def test_place_index_nearest(places_csv: Path) -> None:
    """Test the nearest place within range is found."""
    index = PlaceIndex.from_csv(places_csv)

    assert len(index.places) == 3
    assert index.nearest(37.78, -122.41).name == "San Francisco"
    assert index.nearest(37.80, -122.27).name == "Oakland"
    assert index.nearest(0.0, 0.0) is None


def test_place_index_lookup(places_csv: Path) -> None:
    """Test cells are resolved in one batch and cells without a place are left out."""
    index = PlaceIndex.from_csv(places_csv)
    sf = geohash.encode(37.78, -122.41, 6)
    oakland = geohash.encode(37.80, -122.27, 6)
    ocean = geohash.encode(0.0, 0.0, 6)
    found = index.lookup([sf, oakland, ocean])

    assert sorted(found) == sorted([sf, oakland])
    assert found[sf].name == "San Francisco"
    assert found[oakland].name == "Oakland"
    assert index.lookup([]) == {}


def test_place_index_empty() -> None:
    """Test an index without places finds nothing."""
    index = PlaceIndex([])

    assert index.nearest(37.78, -122.41) is None
    assert index.lookup([geohash.encode(37.78, -122.41, 6)]) == {}


def test_agency_places(gtfs_minimal: Path, places_csv: Path, run_copier) -> None:
    """Test agency places are ranked by stop visits."""
    builder = AgencyPlaceBuilder(PlaceIndex.from_csv(places_csv))
    _, writer = run_copier(gtfs_minimal, builder)
    places = writer.get("tl_agency_places.txt")

    assert len(places) == 1
    assert places[0].agency_id == "1"
    assert places[0].name == "San Francisco"
    assert places[0].adm1name == "California"
    assert places[0].count == 9
    assert places[0].rank == 1.0


def test_agency_places_without_index(gtfs_minimal: Path, run_copier) -> None:
    """Test nothing is written without a place index."""
    _, writer = run_copier(gtfs_minimal, AgencyPlaceBuilder())

    assert writer.get("tl_agency_places.txt") == []
