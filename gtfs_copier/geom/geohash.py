"""Geohash encoding and grid neighbors."""

from gtfs_copier.geom.xy import Point

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(BASE32)}


def encode(lat: float, lon: float, precision: int = 10) -> str:
    """Encode a coordinate as a geohash of the given length."""
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars: list[str] = []
    bits = 0
    bit_count = 0
    even = True
    while len(chars) < precision:
        rng, value = (lon_range, lon) if even else (lat_range, lat)
        mid = (rng[0] + rng[1]) / 2
        if value >= mid:
            bits = (bits << 1) | 1
            rng[0] = mid
        else:
            bits = bits << 1
            rng[1] = mid
        even = not even
        bit_count += 1
        if bit_count == 5:
            chars.append(BASE32[bits])
            bits = 0
            bit_count = 0
    return "".join(chars)


def decode_bbox(geohash: str) -> tuple[float, float, float, float]:
    """Return (min_lat, max_lat, min_lon, max_lon) of a geohash cell."""
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    even = True
    for c in geohash:
        try:
            value = _DECODE_MAP[c]
        except KeyError:
            raise ValueError(f"Invalid geohash character '{c}' in '{geohash}'") from None
        for shift in range(4, -1, -1):
            rng = lon_range if even else lat_range
            mid = (rng[0] + rng[1]) / 2
            if (value >> shift) & 1:
                rng[0] = mid
            else:
                rng[1] = mid
            even = not even
    return lat_range[0], lat_range[1], lon_range[0], lon_range[1]


def decode(geohash: str) -> tuple[float, float]:
    """Return the (lat, lon) center of a geohash cell."""
    min_lat, max_lat, min_lon, max_lon = decode_bbox(geohash)
    return (min_lat + max_lat) / 2, (min_lon + max_lon) / 2


def neighbors(geohash: str) -> list[str]:
    """Return the geohashes of the (up to) 8 cells surrounding a cell."""
    min_lat, max_lat, min_lon, max_lon = decode_bbox(geohash)
    lat, lon = (min_lat + max_lat) / 2, (min_lon + max_lon) / 2
    height = max_lat - min_lat
    width = max_lon - min_lon
    precision = len(geohash)

    ret = []
    for dlat in (-1, 0, 1):
        for dlon in (-1, 0, 1):
            if dlat == 0 and dlon == 0:
                continue
            nlat = lat + dlat * height
            if nlat < -90 or nlat > 90:
                continue
            nlon = (lon + dlon * width + 180) % 360 - 180
            ret.append(encode(nlat, nlon, precision))
    return ret


def points_geohash(points: list[Point], min_precision: int = 1, max_precision: int = 6) -> str:
    """
    Find the consensus geohash prefix for a group of points.

    Starts from the geohash of the centroid at max_precision and shortens it
    until every point's geohash at that length is the prefix or one of its
    neighbors. Returns an empty string for an empty group.
    """
    if not points:
        return ""
    lat = sum(p.lat for p in points) / len(points)
    lon = sum(p.lon for p in points) / len(points)
    center = encode(lat, lon, max_precision)

    for precision in range(max_precision, min_precision - 1, -1):
        prefix = center[:precision]
        allowed = {prefix, *neighbors(prefix)}
        if all(encode(p.lat, p.lon, precision) in allowed for p in points):
            return prefix
    return center[:min_precision]
