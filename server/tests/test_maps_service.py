import googlemaps
import pytest
import requests

from server import config
from server.errors import InvalidInput, NotFound, OracleError, UpstreamUnavailable
from server.geo import Coordinate
from server.maps_service import GoogleMapsService, MiddlePointFinder, parse_place_record, photo_dimensions
from server.photo_cache import PhotoUriCache
from server.places import QueryKind, QuerySpec

CENTER = Coordinate(40.0, -75.0)


def _place(i, **extra):
    place = {
        'place_id': f"pid_{i}",
        'name': f"Cafe {i}",
        'vicinity': f"{i} Main St",
        'rating': 4.2,
        'geometry': {'location': {'lat': 40.0 + i / 1000, 'lng': -75.0}},
    }
    place.update(extra)
    return place


class FakeClient:
    """Records calls and answers like ``googlemaps.Client``; raise by setting ``error``."""

    def __init__(self, **responses):
        self.responses = responses
        self.error = None
        self.calls = []

    def _answer(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.get(method)

    def places_nearby(self, **kwargs):
        return self._answer('places_nearby', **kwargs)

    def places(self, **kwargs):
        return self._answer('places', **kwargs)

    def geocode(self, address):
        return self._answer('geocode', address)

    def place(self, place_id, **kwargs):
        return self._answer('place', place_id, **kwargs)

    def places_autocomplete(self, **kwargs):
        return self._answer('places_autocomplete', **kwargs)


class FakeResponse:
    def __init__(self, status_code=302, location="https://lh3.googleusercontent.com/photo"):
        self.status_code = status_code
        self.headers = {'Location': location} if location else {}

    @property
    def is_redirect(self):
        return 'Location' in self.headers and self.status_code in (301, 302, 303, 307, 308)


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _service(client=None, session=None, cache=None):
    return GoogleMapsService(
        "test-key",
        client=client or FakeClient(),
        session=session or FakeSession(),
        photo_cache=cache,
    )


@pytest.mark.parametrize("api_key", [None, "", config.PLACEHOLDER_API_KEY])
def test_requires_real_api_key(api_key):
    with pytest.raises(ValueError):
        GoogleMapsService(api_key, client=FakeClient())


def test_category_search_uses_nearby_search():
    client = FakeClient(places_nearby={'results': [_place(i) for i in range(3)], 'next_page_token': 'tok'})
    page = _service(client).search(QuerySpec(QueryKind.NEARBY_CATEGORY, "cafe", CENTER, 8_000))

    (method, _, kwargs), = client.calls
    assert method == 'places_nearby'
    assert kwargs['type'] == "cafe"
    assert kwargs['radius'] == 8_000
    assert kwargs['location'] == (40.0, -75.0)
    assert [r.place_id for r in page.records] == ["pid_0", "pid_1", "pid_2"]
    assert page.records[0].formatted_address == "0 Main St"
    assert page.continuation_token == 'tok'


def test_keyword_search_uses_text_search():
    client = FakeClient(places={'results': [_place(1)]})
    page = _service(client).search(QuerySpec(QueryKind.TEXT_KEYWORD, "board games", CENTER, 15_000))

    (method, _, kwargs), = client.calls
    assert method == 'places'
    assert kwargs['query'] == "board games"
    assert len(page.records) == 1
    assert page.continuation_token is None


def test_search_keeps_one_page_and_skips_unusable_results():
    results = [_place(i) for i in range(25)] + [{'name': "No id"}]
    results.insert(0, {'place_id': "pid_x"})
    client = FakeClient(places_nearby={'results': results})

    page = _service(client).search(QuerySpec(QueryKind.NEARBY_CATEGORY, "bar", CENTER, 8_000))

    assert len(page.records) == config.PLACES_PAGE_SIZE - 1
    assert all(r.name for r in page.records)


@pytest.mark.parametrize("error, message", [
    (googlemaps.exceptions.Timeout(), "Places request timed out"),
    (googlemaps.exceptions.TransportError(), "Places service unavailable"),
    (googlemaps.exceptions.ApiError("OVER_QUERY_LIMIT", "quota"), "Places failed - OVER_QUERY_LIMIT quota"),
])
def test_search_failures_become_oracle_errors(error, message):
    client = FakeClient()
    client.error = error

    with pytest.raises(OracleError) as exc_info:
        _service(client).search(QuerySpec(QueryKind.NEARBY_CATEGORY, "cafe", CENTER, 8_000))

    assert exc_info.value.message == message
    assert exc_info.value.status_code == 502


def test_parse_place_record_tolerates_missing_fields():
    record = parse_place_record({'place_id': "p", 'name': "Spot", 'rating': "n/a"})

    assert record.rating is None
    assert record.coordinate is None
    assert record.formatted_address is None
    assert parse_place_record("junk") is None


def test_geocode_address_returns_first_match():
    client = FakeClient(geocode=[{
        'formatted_address': "1600 Amphitheatre Pkwy, Mountain View, CA",
        'geometry': {'location': {'lat': 37.42, 'lng': -122.08}},
    }])

    result = _service(client).geocode_address("1600 Amphitheatre Pkwy")

    assert result == {
        'formatted_address': "1600 Amphitheatre Pkwy, Mountain View, CA",
        'lat': 37.42,
        'lng': -122.08,
    }


def test_geocode_address_without_match_is_not_found():
    with pytest.raises(NotFound):
        _service(FakeClient(geocode=[])).geocode_address("Nowhere at all")


def test_geocode_transport_error_is_upstream_unavailable():
    client = FakeClient()
    client.error = googlemaps.exceptions.TransportError()

    with pytest.raises(UpstreamUnavailable):
        _service(client).geocode_address("Somewhere")


def test_place_details_are_flattened():
    client = FakeClient(place={'result': {
        'place_id': "pid_1",
        'name': "Cafe One",
        'formatted_address': "1 Main St",
        'geometry': {'location': {'lat': 40.1, 'lng': -75.1}},
        'rating': 4.5,
        'user_ratings_total': 210,
        'url': "https://maps.google.com/?cid=1",
        'opening_hours': {'open_now': True, 'weekday_text': ["Monday: 8 AM - 5 PM", "  "]},
        'photos': [{'photo_reference': "ref_1", 'width': 800, 'height': 600}, {'width': 10}],
    }})

    details = _service(client).place_details("pid_1")

    (_, args, kwargs), = client.calls
    assert args == ("pid_1",)
    assert "geometry/location" in kwargs['fields']
    assert details['lat'] == 40.1
    assert details['user_rating_count'] == 210
    assert details['google_maps_uri'] == "https://maps.google.com/?cid=1"
    assert details['website_uri'] is None
    assert details['open_now'] is True
    assert details['weekday_descriptions'] == ["Monday: 8 AM - 5 PM"]
    assert details['photos'] == [{'name': "ref_1", 'width_px': 800, 'height_px': 600}]


def test_place_details_for_unknown_place_is_not_found():
    client = FakeClient()
    client.error = googlemaps.exceptions.ApiError("NOT_FOUND")

    with pytest.raises(NotFound):
        _service(client).place_details("missing")


def test_place_details_requires_place_id():
    client = FakeClient()

    with pytest.raises(InvalidInput):
        _service(client).place_details("  ")
    assert client.calls == []


def test_autocomplete_short_input_skips_google():
    client = FakeClient()

    assert _service(client).autocomplete(" ab ") == []
    assert client.calls == []


def test_autocomplete_caps_suggestions():
    predictions = [{'place_id': f"p{i}", 'description': f"Main St {i}"} for i in range(10)]
    client = FakeClient(places_autocomplete=predictions)

    suggestions = _service(client).autocomplete("Main")

    assert len(suggestions) == config.MAX_AUTOCOMPLETE_SUGGESTIONS
    assert suggestions[0] == {'place_id': "p0", 'description': "Main St 0"}
    assert client.calls[0][2]['input_text'] == "Main"


@pytest.mark.parametrize("width, height, expected", [
    (None, None, (config.DEFAULT_PHOTO_WIDTH_PX, None)),
    (0, -5, (config.DEFAULT_PHOTO_WIDTH_PX, None)),
    (400, 300, (400, 300)),
    (5000, 5000, (config.MAX_PHOTO_DIMENSION_PX, config.MAX_PHOTO_DIMENSION_PX)),
])
def test_photo_dimensions(width, height, expected):
    assert photo_dimensions(width, height) == expected


def test_resolve_photo_uri_reuses_cached_redirect():
    session = FakeSession()
    service = _service(session=session, cache=PhotoUriCache(60))

    first = service.resolve_photo_uri("ref_1", 800)
    second = service.resolve_photo_uri("ref_1", 800)

    assert first == second == "https://lh3.googleusercontent.com/photo"
    assert len(session.calls) == 1
    url, kwargs = session.calls[0]
    assert kwargs['allow_redirects'] is False
    assert kwargs['params']['maxwidth'] == 800
    assert 'maxheight' not in kwargs['params']


def test_resolve_photo_uri_cache_is_keyed_by_size():
    session = FakeSession()
    service = _service(session=session, cache=PhotoUriCache(60))

    service.resolve_photo_uri("ref_1", 800)
    service.resolve_photo_uri("ref_1", 400)

    assert len(session.calls) == 2


@pytest.mark.parametrize("name", [None, "", "../etc/passwd", "ref with spaces"])
def test_resolve_photo_uri_rejects_bad_names(name):
    session = FakeSession()

    with pytest.raises(InvalidInput):
        _service(session=session).resolve_photo_uri(name)
    assert session.calls == []


def test_resolve_photo_uri_without_redirect_is_upstream_error():
    session = FakeSession(response=FakeResponse(status_code=200, location=None))

    with pytest.raises(UpstreamUnavailable):
        _service(session=session).resolve_photo_uri("ref_1")


def test_resolve_photo_uri_transport_failure():
    session = FakeSession(error=requests.ConnectionError("boom"))

    with pytest.raises(UpstreamUnavailable):
        _service(session=session).resolve_photo_uri("ref_1")


class FakeGeocoder:
    def __init__(self, locations):
        self.locations = locations
        self.calls = []

    async def geocode_address_async(self, address):
        self.calls.append(address)
        return self.locations[address]


def test_find_midpoint_averages_both_addresses():
    geocoder = FakeGeocoder({
        "Philadelphia, PA": {'formatted_address': "Philadelphia", 'lat': 40.0, 'lng': -75.0},
        "New York, NY": {'formatted_address': "New York", 'lat': 41.0, 'lng': -74.0},
    })

    result = MiddlePointFinder(geocoder).find_midpoint("  Philadelphia, PA ", "New York, NY")

    assert result['lat'] == pytest.approx(40.5)
    assert result['lng'] == pytest.approx(-74.5)
    assert result['address_a']['input'] == "Philadelphia, PA"
    assert result['address_b']['geocoded']['formatted_address'] == "New York"


def test_find_midpoint_validates_before_geocoding():
    geocoder = FakeGeocoder({})

    with pytest.raises(InvalidInput):
        MiddlePointFinder(geocoder).find_midpoint("Philadelphia, PA", "NY")
    assert geocoder.calls == []


class FakeHttpResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self.body = body or {}
        self.headers = {}

    def json(self):
        return self.body


def _service_over_http(answer):
    """Service on the real googlemaps client with its HTTP layer replaced by ``answer``."""
    service = GoogleMapsService("AIzaTestKey", connect_timeout=1, read_timeout=2, session=FakeSession())
    attempts = []

    def get(url, **kwargs):
        attempts.append(url)
        return answer()

    service.client.session.get = get
    return service, attempts


def test_server_error_is_not_retried():
    service, attempts = _service_over_http(lambda: FakeHttpResponse(500))

    with pytest.raises(OracleError) as exc_info:
        service.search(QuerySpec(QueryKind.NEARBY_CATEGORY, "cafe", CENTER, 8_000))

    assert len(attempts) == 1
    assert exc_info.value.message == "Places service unavailable"


def test_http_timeout_is_one_attempt():
    def answer():
        raise requests.exceptions.Timeout()

    service, attempts = _service_over_http(answer)

    with pytest.raises(OracleError) as exc_info:
        service.search(QuerySpec(QueryKind.NEARBY_CATEGORY, "cafe", CENTER, 8_000))

    assert len(attempts) == 1
    assert exc_info.value.message == "Places request timed out"


def test_successful_search_over_http():
    service, attempts = _service_over_http(
        lambda: FakeHttpResponse(200, {'status': "OK", 'results': [_place(1), _place(2)]}))

    page = service.search(QuerySpec(QueryKind.NEARBY_CATEGORY, "cafe", CENTER, 8_000))

    assert len(attempts) == 1
    assert "type=cafe" in attempts[0]
    assert [r.place_id for r in page.records] == ["pid_1", "pid_2"]
