"""Named places served by each agency, weighted by stop visits."""

import csv
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon, box
from shapely.strtree import STRtree

from gtfs_copier.copier.entity_map import EntityMap
from gtfs_copier.geom import geohash
from gtfs_copier.geom.xy import EARTH_RADIUS_METERS, Point, distance_haversine
from gtfs_copier.gtfs.models import Agency, DerivedEntity, Entity, Route, Stop, StopTime, Trip

if TYPE_CHECKING:
    from gtfs_copier.copier.copier import Copier

logger = logging.getLogger(__name__)

CELL_PRECISION = 6
MAX_PLACE_DISTANCE = 40000.0
MIN_RANK = 0.05


@dataclass
class AgencyPlace(DerivedEntity):
    filename: ClassVar[str] = "tl_agency_places.txt"
    table_name: ClassVar[str] = "tl_agency_places"

    agency_id: str
    name: str
    adm1name: str
    adm0name: str
    count: int
    rank: float


@dataclass(frozen=True)
class Place:
    name: str
    adm1name: str
    adm0name: str
    lat: float
    lon: float


class PlaceIndex:
    """
    Populated places, searched for the nearest place to a point.

    Places are held in an STRtree; a search takes the places inside a box
    covering max_distance around the point and ranks them by haversine distance.
    """

    def __init__(self, places: list[Place]) -> None:
        self.places = places
        self.tree = STRtree([ShapelyPoint(p.lon, p.lat) for p in places])

    @classmethod
    def from_csv(cls, path: str | Path) -> "PlaceIndex":
        """Load places from a CSV with name, adm1name, adm0name, lat and lon columns."""
        places = []
        with open(path, encoding="utf-8-sig", newline="") as f:
            for row in csv.DictReader(f):
                places.append(
                    Place(
                        name=row["name"].strip(),
                        adm1name=(row.get("adm1name") or "").strip(),
                        adm0name=(row.get("adm0name") or "").strip(),
                        lat=float(row["lat"]),
                        lon=float(row["lon"]),
                    )
                )
        logger.info(f"Loaded {len(places)} places from {path}")
        return cls(places)

    def nearest(self, lat: float, lon: float, max_distance: float = MAX_PLACE_DISTANCE) -> Place | None:
        """Closest place within max_distance meters, or None."""
        candidates = self.tree.query(_search_box(lat, lon, max_distance))
        return self._closest(lat, lon, [int(i) for i in candidates], max_distance)

    def lookup(self, cells: list[str], max_distance: float = MAX_PLACE_DISTANCE) -> dict[str, Place]:
        """Nearest place to the center of each geohash cell, for cells that have one."""
        if not cells:
            return {}
        centers = [geohash.decode(cell) for cell in cells]
        cell_idx, place_idx = self.tree.query(
            [_search_box(lat, lon, max_distance) for lat, lon in centers]
        )
        candidates: dict[int, list[int]] = {}
        for i, j in zip(cell_idx, place_idx):
            candidates.setdefault(int(i), []).append(int(j))

        ret = {}
        for i, idxs in candidates.items():
            lat, lon = centers[i]
            place = self._closest(lat, lon, idxs, max_distance)
            if place is not None:
                ret[cells[i]] = place
        return ret

    def _closest(self, lat: float, lon: float, idxs: list[int], max_distance: float) -> Place | None:
        pt = Point(lon=lon, lat=lat)
        best = None
        best_dist = max_distance
        for i in sorted(idxs):
            place = self.places[i]
            d = distance_haversine(pt, Point(lon=place.lon, lat=place.lat))
            if d <= best_dist:
                best = place
                best_dist = d
        return best


def _search_box(lat: float, lon: float, max_distance: float) -> Polygon:
    """Lon/lat box containing every point within max_distance meters."""
    dlat = math.degrees(max_distance / EARTH_RADIUS_METERS)
    dlon = min(dlat / max(math.cos(math.radians(lat)), 0.01), 180.0)
    return box(lon - dlon, lat - dlat, lon + dlon, lat + dlat)


class AgencyPlaceBuilder:
    """
    Rank the places each agency serves.

    Stop visits are counted per geohash cell during the pass. At finalization
    every distinct cell is resolved against the place index in one batch, and
    places holding more than 5% of an agency's visits are written.
    """

    def __init__(self, places: PlaceIndex | None = None) -> None:
        self.places = places
        self.stop_cells: dict[str, str] = {}
        self.route_agencies: dict[str, str] = {}
        self.trip_agencies: dict[str, str] = {}
        # agency id -> geohash cell -> stop time count
        self.agency_cells: dict[str, dict[str, int]] = {}

    def after_write(self, eid: str, ent: Entity, emap: EntityMap) -> None:
        if isinstance(ent, Agency):
            self.agency_cells[eid] = {}
        elif isinstance(ent, Stop) and ent.point() is not None:
            self.stop_cells[eid] = geohash.encode(ent.stop_lat, ent.stop_lon, CELL_PRECISION)
        elif isinstance(ent, Route):
            self.route_agencies[eid] = ent.agency_id
        elif isinstance(ent, Trip):
            self.trip_agencies[eid] = self.route_agencies.get(ent.route_id, "")
        elif isinstance(ent, StopTime):
            cell = self.stop_cells.get(ent.stop_id)
            cells = self.agency_cells.get(self.trip_agencies.get(ent.trip_id, ""))
            if cell is not None and cells is not None:
                cells[cell] = cells.get(cell, 0) + 1

    def finalize(self, copier: "Copier") -> None:
        if self.places is None:
            logger.info("AgencyPlaceBuilder: skipping, no place index configured")
            return
        ents = self.agency_places()
        copier.copy_entities(ents)
        logger.info(f"Built {len(ents)} agency places")

    def agency_places(self) -> list[AgencyPlace]:
        all_cells = sorted({cell for cells in self.agency_cells.values() for cell in cells})
        cell_places = self.places.lookup(all_cells) if self.places else {}

        ret = []
        for agency_id in sorted(self.agency_cells):
            cells = self.agency_cells[agency_id]
            total = sum(cells.values())
            if total == 0:
                continue
            weights: dict[Place, int] = {}
            for cell, count in cells.items():
                place = cell_places.get(cell)
                if place is not None:
                    weights[place] = weights.get(place, 0) + count
            for place, count in sorted(weights.items(), key=lambda kv: (-kv[1], kv[0].name)):
                rank = count / total
                if rank <= MIN_RANK:
                    continue
                ret.append(
                    AgencyPlace(
                        agency_id=agency_id,
                        name=place.name,
                        adm1name=place.adm1name,
                        adm0name=place.adm0name,
                        count=count,
                        rank=rank,
                    )
                )
        return ret
