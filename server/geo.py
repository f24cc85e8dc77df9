"""Coordinate helpers: distances, midpoints and shifted search centers."""
import math
from typing import Iterable, List, NamedTuple

from geopy.distance import great_circle


METERS_PER_DEG_LAT = 111_320.0
METERS_PER_MILE = 1609.344


class Coordinate(NamedTuple):
    lat: float
    lng: float

    def as_dict(self) -> dict:
        return {'lat': self.lat, 'lng': self.lng}


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in meters."""
    return great_circle((a.lat, a.lng), (b.lat, b.lng)).meters


def geographic_midpoint(a: Coordinate, b: Coordinate) -> Coordinate:
    return Coordinate((a.lat + b.lat) / 2.0, (a.lng + b.lng) / 2.0)


def _normalize(lat: float, lng: float) -> Coordinate:
    lat = max(-90.0, min(90.0, lat))
    if abs(lat) == 90.0:
        # every longitude is the same point at a pole
        lng = 0.0
    else:
        lng = ((lng + 180.0) % 360.0) - 180.0
    return Coordinate(round(lat, 6), round(lng, 6))


def offset_centers(center: Coordinate, offset_m: float) -> List[Coordinate]:
    """The center plus eight compass points ``offset_m`` meters away on each axis.

    Uses a flat meters-to-degrees approximation, which is plenty for moving a
    search window around.
    """
    meters_per_deg_lng = max(1.0, METERS_PER_DEG_LAT * math.cos(math.radians(center.lat)))
    d_lat = offset_m / METERS_PER_DEG_LAT
    d_lng = offset_m / meters_per_deg_lng
    shifts = [
        (0, 0),
        (d_lat, 0), (-d_lat, 0), (0, d_lng), (0, -d_lng),
        (d_lat, d_lng), (d_lat, -d_lng), (-d_lat, d_lng), (-d_lat, -d_lng),
    ]
    return [_normalize(center.lat + dy, center.lng + dx) for dy, dx in shifts]


def fallback_centers(center: Coordinate, offsets_m: Iterable[float]) -> List[Coordinate]:
    """Rings of shifted centers for every offset, duplicates collapsed in order."""
    seen = set()
    unique: List[Coordinate] = []
    for offset in offsets_m:
        for point in offset_centers(center, offset):
            if point in seen:
                continue
            seen.add(point)
            unique.append(point)
    return unique


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE
