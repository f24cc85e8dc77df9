from flask import Flask, request, jsonify, g, redirect
from flask_cors import CORS
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
import logging
from time import perf_counter

from . import config
from .config import Settings
from .errors import ApiError, ConfigurationMissing, InvalidInput
from .maps_service import GoogleMapsService, MiddlePointFinder, validate_address
from .mock_google import MockMapsService
from .photo_cache import PhotoUriCache
from .places_service import PlacesService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

KPI_PATHS = {'/api/midpoint', '/api/places', '/api/find-middle-point'}
MAX_USER_AGENT_LENGTH = 180


def configure_logging(settings: Settings):
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def build_maps_service(settings: Settings):
    """Real Google client, the offline mock, or None when neither is allowed"""
    logger.info(f"API Key found: {'Yes' if settings.has_api_key else 'No'}")
    if settings.has_api_key:
        try:
            logger.info("Initializing Google Maps service...")
            return GoogleMapsService(
                settings.google_maps_api_key,
                connect_timeout=settings.connect_timeout_s,
                read_timeout=settings.read_timeout_s,
                photo_cache=PhotoUriCache(settings.photo_cache_ttl_seconds),
            )
        except ValueError as e:
            logger.error(f"Error initializing Google Maps service: {e}")
            return None
    if settings.allow_mock_google:
        logger.warning("GOOGLE_MAPS_API_KEY not configured; serving mock Google data")
        return MockMapsService()
    logger.warning("GOOGLE_MAPS_API_KEY not configured; Google-backed endpoints will return 503")
    return None


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('JSON data is required')
    return data


def _safe_user_agent() -> str:
    value = (request.headers.get('User-Agent') or '').strip()
    return value[:MAX_USER_AGENT_LENGTH]


def create_app(settings: Settings = None, maps_service=None, places_service: PlacesService = None) -> Flask:
    settings = settings or Settings.from_env()
    if maps_service is None:
        maps_service = build_maps_service(settings)
    places_service = places_service or PlacesService(maps_service, keywords=settings.place_keywords)
    middle_point_finder = MiddlePointFinder(maps_service) if maps_service else None

    app = Flask(__name__)
    app.config['MIDLO_SETTINGS'] = settings
    CORS(
        app,
        origins=settings.cors_origins(),
        methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
        allow_headers='*',
        expose_headers='*',
        supports_credentials=False,
        max_age=3600,
    )

    def require_maps_service():
        if maps_service is None:
            logger.error("Google Maps API key not configured - cannot process request")
            raise ConfigurationMissing()
        return maps_service

    # Per-request timing: record start time and log duration on completion
    @app.before_request
    def _start_timer():
        g._start_time = perf_counter()

    @app.after_request
    def _log_request_duration(response):
        start = getattr(g, '_start_time', None)
        if start is None:
            return response
        duration_ms = (perf_counter() - start) * 1000.0
        response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
        logger.info(
            "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
            request.method,
            request.full_path if request.query_string else request.path,
            response.status_code,
            duration_ms,
            request.remote_addr,
        )
        if settings.analytics_enabled and request.path in KPI_PATHS:
            logger.info(
                'kpi_event method=%s path=%s status=%s duration_ms=%.0f ua="%s"',
                request.method,
                request.path,
                response.status_code,
                duration_ms,
                _safe_user_agent(),
            )
        return response

    @app.teardown_request
    def _teardown_request_log(error=None):
        # If an unhandled exception occurred, ensure we still log duration
        if error is None:
            return
        start = getattr(g, '_start_time', None)
        duration_ms = (perf_counter() - start) * 1000.0 if start is not None else None
        logger.error(
            "request error: method=%s path=%s duration_ms=%s error=%s",
            request.method,
            request.path,
            f"{duration_ms:.1f}" if duration_ms is not None else 'unknown',
            repr(error),
        )

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        if error.status_code >= 500:
            logger.warning(f"{type(error).__name__} on {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'success': False, 'error': error.description, 'kind': 'http_error'}), error.code
        logger.error(f"Unhandled exception on {request.path}", exc_info=error)
        if settings.allow_mock_google:
            message = f"{type(error).__name__}: {error}".strip()
        else:
            message = 'Server error'
        return jsonify({'success': False, 'error': message}), 500

    @app.route('/', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'message': 'Midlo API is running!',
            'endpoints': {
                'geocode': '/api/geocode',
                'midpoint': '/api/midpoint',
                'places': '/api/places',
                'find_middle_point': '/api/find-middle-point',
                'place_details': '/api/places/<place_id>',
                'place_photo': '/api/place-photo',
                'autocomplete': '/api/autocomplete',
                'health': '/'
            },
            'mock': bool(maps_service is not None and maps_service.is_mock),
            'status': 'healthy'
        })

    @app.route('/api/geocode', methods=['POST'])
    def geocode_address():
        """
        Geocode a single address
        Expected JSON: {"address": "123 Main St, City, State"}
        """
        service = require_maps_service()
        data = _json_body()
        result = service.geocode_address(validate_address(data.get('address')))
        logger.info(f"Geocoding successful - lat: {result['lat']}, lng: {result['lng']}")
        return jsonify({'success': True, 'data': result})

    @app.route('/api/midpoint', methods=['POST'])
    def midpoint():
        """
        Midpoint between two addresses
        Expected JSON: {"address_a": "...", "address_b": "..."}
        """
        require_maps_service()
        data = _json_body()
        result = middle_point_finder.find_midpoint(data.get('address_a'), data.get('address_b'))
        return jsonify({'success': True, 'data': result})

    @app.route('/api/places', methods=['POST'])
    def places():
        """
        Meeting places around a coordinate
        Expected JSON: {"lat": 40.7128, "lng": -74.0060}
        """
        require_maps_service()
        data = _json_body()
        _algo_start = perf_counter()
        result = places_service.find_places(data.get('lat'), data.get('lng'))
        logger.info(
            "Found %d places in %.1f ms", len(result), (perf_counter() - _algo_start) * 1000.0
        )
        return jsonify({'success': True, 'data': result})

    @app.route('/api/find-middle-point', methods=['POST'])
    def find_middle_point():
        """
        Midpoint between two addresses plus meeting places around it
        Expected JSON: {"address_a": "...", "address_b": "..."}
        """
        logger.info("=== FIND MIDDLE POINT REQUEST ===")
        require_maps_service()
        data = _json_body()
        mid = middle_point_finder.find_midpoint(data.get('address_a'), data.get('address_b'))
        logger.info(f"Meeting point coordinates: lat={mid['lat']}, lng={mid['lng']}")
        found = places_service.find_places(mid['lat'], mid['lng'])
        return jsonify({'success': True, 'data': {'midpoint': mid, 'places': found}})

    @app.route('/api/places/<place_id>', methods=['GET'])
    def place_details(place_id):
        service = require_maps_service()
        return jsonify({'success': True, 'data': service.place_details(place_id)})

    @app.route('/api/place-photo', methods=['GET'])
    def place_photo():
        """
        Redirects to a Google-hosted photo URL without exposing the API key.
        Example: /api/place-photo?name=<photo_reference>&max_width_px=1200
        """
        service = require_maps_service()
        photo_uri = service.resolve_photo_uri(
            request.args.get('name'),
            request.args.get('max_width_px', type=int),
            request.args.get('max_height_px', type=int),
        )
        response = redirect(photo_uri, code=302)
        response.headers['Cache-Control'] = f"public, max-age={config.PHOTO_REDIRECT_MAX_AGE_SECONDS}"
        return response

    @app.route('/api/autocomplete', methods=['GET'])
    def autocomplete():
        service = require_maps_service()
        return jsonify({'success': True, 'data': service.autocomplete(request.args.get('input'))})

    return app


_settings = Settings.from_env()
configure_logging(_settings)
app = create_app(_settings)

