import asyncio
import concurrent.futures
import logging
import re
from typing import Dict, List, Optional, Tuple

import googlemaps
import requests

from . import config
from .errors import InvalidInput, NotFound, OracleError, UpstreamUnavailable
from .geo import Coordinate, geographic_midpoint
from .photo_cache import PhotoUriCache
from .places import PlaceRecord, QueryKind, QuerySpec, SearchPage

logger = logging.getLogger(__name__)

PLACE_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"

PLACE_DETAILS_FIELDS = [
    "place_id",
    "name",
    "formatted_address",
    "geometry/location",
    "rating",
    "user_ratings_total",
    "url",
    "website",
    "international_phone_number",
    "opening_hours",
    "photo",
]

_PHOTO_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def _to_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _error_suffix(error: Exception) -> str:
    message = getattr(error, 'message', None) or ""
    status = getattr(error, 'status', None)
    details = " ".join(part for part in (status, message) if part)
    return f" - {details}" if details else ""


def parse_place_record(place: Dict) -> Optional[PlaceRecord]:
    """Build a record from one search result; None when it has no id or name."""
    if not isinstance(place, dict):
        return None
    place_id = _text(place.get('place_id'))
    name = _text(place.get('name'))
    if place_id is None or name is None:
        return None
    location = (place.get('geometry') or {}).get('location') or {}
    return PlaceRecord(
        place_id=place_id,
        name=name,
        formatted_address=_text(place.get('formatted_address')) or _text(place.get('vicinity')),
        rating=_to_float(place.get('rating')),
        lat=_to_float(location.get('lat')),
        lng=_to_float(location.get('lng')),
    )


def validate_address(address: Optional[str]) -> str:
    trimmed = (address or "").strip()
    if len(trimmed) < config.MIN_ADDRESS_LENGTH:
        raise InvalidInput(
            f"Please enter a real address (at least {config.MIN_ADDRESS_LENGTH} characters)")
    return trimmed


def photo_dimensions(max_width_px: Optional[int], max_height_px: Optional[int]) -> Tuple[int, Optional[int]]:
    cap = config.MAX_PHOTO_DIMENSION_PX
    width = config.DEFAULT_PHOTO_WIDTH_PX if not max_width_px or max_width_px <= 0 else min(max_width_px, cap)
    height = None if not max_height_px or max_height_px <= 0 else min(max_height_px, cap)
    return width, height


class SingleAttemptClient(googlemaps.Client):
    """``googlemaps.Client`` that never re-sends a request.

    The stock client retries 500/503/504 answers with backoff until
    ``retry_timeout``; a failed place search must be skipped instead.
    """

    def _request(self, url, params, first_request_time=None, retry_counter=0, *args, **kwargs):
        if retry_counter > 0:
            raise googlemaps.exceptions.TransportError("Google answered with a retriable server error")
        return super()._request(url, params, first_request_time, retry_counter, *args, **kwargs)


class GoogleMapsService:
    """Service for interacting with Google Maps APIs"""

    is_mock = False

    def __init__(
        self,
        api_key: str,
        connect_timeout: float = config.DEFAULT_CONNECT_TIMEOUT_S,
        read_timeout: float = config.DEFAULT_READ_TIMEOUT_S,
        photo_cache: Optional[PhotoUriCache] = None,
        client=None,
        session: Optional[requests.Session] = None,
    ):
        if not api_key or api_key == config.PLACEHOLDER_API_KEY:
            raise ValueError("Valid Google Maps API key is required")
        self.api_key = api_key
        self.timeout = (connect_timeout, read_timeout)
        # A failed search is skipped, not retried; keep the client from retrying on its own.
        self.client = client or SingleAttemptClient(
            key=api_key,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retry_timeout=int(connect_timeout + read_timeout),
            retry_over_query_limit=False,
        )
        self.session = session or requests.Session()
        self.photo_cache = photo_cache or PhotoUriCache(config.PHOTO_CACHE_TTL_SECONDS)
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=4)

    def cleanup(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    def search(self, query: QuerySpec) -> SearchPage:
        """Run one place search and return up to a page of records.

        Categories go through Nearby Search, keywords through Text Search.
        Every failure is raised as ``OracleError``.
        """
        location = (query.center.lat, query.center.lng)
        try:
            if query.kind is QueryKind.TEXT_KEYWORD:
                response = self.client.places(
                    query=query.value,
                    location=location,
                    radius=query.radius_m,
                    page_token=query.continuation_token,
                )
            else:
                response = self.client.places_nearby(
                    location=location,
                    radius=query.radius_m,
                    type=query.value,
                    page_token=query.continuation_token,
                )
        except googlemaps.exceptions.Timeout as e:
            raise OracleError("Places request timed out") from e
        except googlemaps.exceptions.TransportError as e:
            raise OracleError("Places service unavailable") from e
        except googlemaps.exceptions.ApiError as e:
            raise OracleError("Places failed" + _error_suffix(e)) from e

        response = response or {}
        records = []
        for place in (response.get('results') or [])[:config.PLACES_PAGE_SIZE]:
            record = parse_place_record(place)
            if record is not None:
                records.append(record)
        return SearchPage(records=records, continuation_token=_text(response.get('next_page_token')))

    def geocode_address(self, address: str) -> Dict:
        """
        Geocode an address using Google Maps Geocoding API
        Returns formatted address and coordinates
        """
        try:
            result = self.client.geocode(address)
        except googlemaps.exceptions.Timeout as e:
            raise UpstreamUnavailable("Geocoding timed out") from e
        except googlemaps.exceptions.TransportError as e:
            raise UpstreamUnavailable("Geocoding service unavailable") from e
        except googlemaps.exceptions.ApiError as e:
            raise UpstreamUnavailable("Geocoding failed" + _error_suffix(e)) from e

        if not result:
            raise NotFound("Could not find that address. Try adding city/state.")
        location = result[0].get('geometry', {}).get('location') or {}
        lat = _to_float(location.get('lat'))
        lng = _to_float(location.get('lng'))
        if lat is None or lng is None:
            raise UpstreamUnavailable("Geocoding returned no location")
        return {
            'formatted_address': result[0].get('formatted_address'),
            'lat': lat,
            'lng': lng,
        }

    def place_details(self, place_id: str) -> Dict:
        if not place_id or not place_id.strip():
            raise InvalidInput("Missing placeId")
        try:
            response = self.client.place(place_id.strip(), fields=PLACE_DETAILS_FIELDS)
        except googlemaps.exceptions.Timeout as e:
            raise UpstreamUnavailable("Place details timed out") from e
        except googlemaps.exceptions.TransportError as e:
            raise UpstreamUnavailable("Place details service unavailable") from e
        except googlemaps.exceptions.ApiError as e:
            if e.status in ('NOT_FOUND', 'INVALID_REQUEST'):
                raise NotFound(f"Unknown place: {place_id}") from e
            raise UpstreamUnavailable("Place details failed" + _error_suffix(e)) from e

        body = (response or {}).get('result')
        if not body:
            raise UpstreamUnavailable("Place details returned empty response")
        return self._details_to_dict(body, place_id)

    @staticmethod
    def _details_to_dict(body: Dict, place_id: str) -> Dict:
        location = (body.get('geometry') or {}).get('location') or {}
        opening_hours = body.get('opening_hours') or {}

        weekday_descriptions = [
            line.strip() for line in opening_hours.get('weekday_text') or []
            if isinstance(line, str) and line.strip()
        ]

        photos = []
        for photo in body.get('photos') or []:
            if not isinstance(photo, dict):
                continue
            name = _text(photo.get('photo_reference'))
            if name is None:
                continue
            photos.append({
                'name': name,
                'width_px': photo.get('width') if isinstance(photo.get('width'), int) else None,
                'height_px': photo.get('height') if isinstance(photo.get('height'), int) else None,
            })

        open_now = opening_hours.get('open_now')
        rating_count = body.get('user_ratings_total')
        return {
            'place_id': _text(body.get('place_id')) or place_id,
            'name': _text(body.get('name')),
            'formatted_address': _text(body.get('formatted_address')),
            'lat': _to_float(location.get('lat')) or 0.0,
            'lng': _to_float(location.get('lng')) or 0.0,
            'rating': _to_float(body.get('rating')),
            'user_rating_count': rating_count if isinstance(rating_count, int) else None,
            'google_maps_uri': _text(body.get('url')),
            'website_uri': _text(body.get('website')),
            'international_phone_number': _text(body.get('international_phone_number')),
            'open_now': open_now if isinstance(open_now, bool) else None,
            'weekday_descriptions': weekday_descriptions or None,
            'photos': photos or None,
        }

    def autocomplete(self, text: Optional[str]) -> List[Dict]:
        trimmed = (text or "").strip()
        if len(trimmed) < config.MIN_AUTOCOMPLETE_LENGTH:
            return []
        try:
            predictions = self.client.places_autocomplete(input_text=trimmed)
        except googlemaps.exceptions.Timeout as e:
            raise UpstreamUnavailable("Autocomplete timed out") from e
        except googlemaps.exceptions.TransportError as e:
            raise UpstreamUnavailable("Autocomplete service unavailable") from e
        except googlemaps.exceptions.ApiError as e:
            raise UpstreamUnavailable("Autocomplete failed" + _error_suffix(e)) from e

        suggestions = []
        for prediction in (predictions or [])[:config.MAX_AUTOCOMPLETE_SUGGESTIONS]:
            if not isinstance(prediction, dict):
                continue
            place_id = _text(prediction.get('place_id'))
            description = _text(prediction.get('description'))
            if place_id is None or description is None:
                continue
            suggestions.append({'place_id': place_id, 'description': description})
        return suggestions

    def resolve_photo_uri(self, name: Optional[str], max_width_px: Optional[int] = None,
                          max_height_px: Optional[int] = None) -> str:
        """Turn a photo reference into the Google-hosted image URL without exposing the key."""
        trimmed = (name or "").strip()
        if not trimmed:
            raise InvalidInput("Missing photo name")
        if not _PHOTO_NAME.match(trimmed):
            raise InvalidInput("Invalid photo name")

        width, height = photo_dimensions(max_width_px, max_height_px)
        key = (trimmed, width, height)
        cached = self.photo_cache.get(key)
        if cached:
            return cached

        params = {'photo_reference': trimmed, 'maxwidth': width, 'key': self.api_key}
        if height is not None:
            params['maxheight'] = height
        try:
            resp = self.session.get(PLACE_PHOTO_URL, params=params, timeout=self.timeout,
                                    allow_redirects=False)
        except requests.RequestException as e:
            raise UpstreamUnavailable("Photo service unavailable") from e

        photo_uri = resp.headers.get('Location') if resp.is_redirect else None
        if not photo_uri:
            logger.warning("Photo lookup for %s returned HTTP %s", trimmed[:24], resp.status_code)
            raise UpstreamUnavailable("Photo lookup did not return a photo URI")

        self.photo_cache.put(key, photo_uri)
        return photo_uri

    # Async wrapper for parallel execution
    async def geocode_address_async(self, address: str) -> Dict:
        """Async wrapper for geocode_address"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, self.geocode_address, address)


class MiddlePointFinder:
    """Geocodes two addresses and averages them into a meeting midpoint"""

    def __init__(self, maps_service):
        self.maps_service = maps_service

    def find_midpoint(self, address_a: str, address_b: str) -> Dict:
        """
        Validate both addresses before any lookup, then geocode them in parallel
        """
        address_a = validate_address(address_a)
        address_b = validate_address(address_b)

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(self.find_midpoint_async(address_a, address_b))
        finally:
            loop.close()

    async def find_midpoint_async(self, address_a: str, address_b: str) -> Dict:
        location_a, location_b = await asyncio.gather(
            self.maps_service.geocode_address_async(address_a),
            self.maps_service.geocode_address_async(address_b),
        )
        midpoint = geographic_midpoint(
            Coordinate(location_a['lat'], location_a['lng']),
            Coordinate(location_b['lat'], location_b['lng']),
        )
        return {
            'lat': midpoint.lat,
            'lng': midpoint.lng,
            'address_a': {'input': address_a, 'geocoded': location_a},
            'address_b': {'input': address_b, 'geocoded': location_b},
        }
