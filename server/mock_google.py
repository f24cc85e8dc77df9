"""Stand-in for Google Maps when no API key is set and mock mode is allowed.

Everything here is deterministic and offline so the app can be run locally
without a Google Maps Platform project.
"""
import zlib
from typing import Dict, List, Optional

from . import config
from .geo import Coordinate
from .maps_service import photo_dimensions, validate_address

# (place_id, name, distance, lat offset, lng offset)
_MOCK_PLACES = [
    ("mock_place_1", "Mock Cafe", "0.4 mi", 0.0032, -0.0021),
    ("mock_place_2", "Mock Restaurant", "0.7 mi", -0.0041, 0.0019),
    ("mock_place_3", "Mock Bar", "1.1 mi", 0.0014, 0.0042),
    ("mock_place_4", "Mock Bakery", "1.6 mi", -0.0053, -0.0038),
    ("mock_place_5", "Mock Coffee", "2.0 mi", 0.0061, 0.0007),
]


def _crc32(value: str) -> int:
    return zlib.crc32(value.encode("utf-8")) & 0xFFFFFFFF


def mock_coordinate(address: str) -> Coordinate:
    """Pseudo-geocode an address to a stable point roughly inside the contiguous US."""
    trimmed = validate_address(address)
    r1 = _crc32("A|" + trimmed) / float(0xFFFFFFFF)
    r2 = _crc32("B|" + trimmed) / float(0xFFFFFFFF)
    return Coordinate(24.0 + r1 * 25.0, -125.0 + r2 * 59.0)


class MockMapsService:
    is_mock = True

    def geocode_address(self, address: str) -> Dict:
        coordinate = mock_coordinate(address)
        return {
            'formatted_address': f"{address.strip()} (mock)",
            'lat': coordinate.lat,
            'lng': coordinate.lng,
        }

    async def geocode_address_async(self, address: str) -> Dict:
        return self.geocode_address(address)

    def mock_places(self, center: Coordinate) -> List[Dict]:
        return [
            {
                'place_id': place_id,
                'name': name,
                'distance': distance,
                'lat': center.lat + d_lat,
                'lng': center.lng + d_lng,
            }
            for place_id, name, distance, d_lat, d_lng in _MOCK_PLACES
        ]

    def place_details(self, place_id: str) -> Dict:
        return {
            'place_id': place_id,
            'name': "Mock Place Details",
            'formatted_address': "123 Mock St, Test City",
            'lat': 0.0,
            'lng': 0.0,
            'rating': 4.6,
            'user_rating_count': 128,
            'google_maps_uri': "https://maps.google.com",
            'website_uri': None,
            'international_phone_number': None,
            'open_now': None,
            'weekday_descriptions': ["Mon-Fri: 9:00 AM - 6:00 PM", "Sat-Sun: 10:00 AM - 4:00 PM"],
            'photos': None,
        }

    def autocomplete(self, text: Optional[str]) -> List[Dict]:
        base = " ".join((text or "").split())
        if len(base) < config.MIN_AUTOCOMPLETE_LENGTH:
            return []
        return [
            {'place_id': f"mock_{_crc32('1|' + base):x}", 'description': f"{base} (mock)"},
            {'place_id': f"mock_{_crc32('2|' + base):x}", 'description': f"{base} Downtown (mock)"},
        ]

    def resolve_photo_uri(self, name: Optional[str], max_width_px: Optional[int] = None,
                          max_height_px: Optional[int] = None) -> str:
        width, height = photo_dimensions(max_width_px, max_height_px)
        return f"https://placehold.co/{width}x{height or 800}?text=Midlo%20Mock%20Photo"
