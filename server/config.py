"""Runtime configuration for the Midlo API.

Discovery tuning lives here as module-level constants; anything that differs
between deployments is read from the environment into ``Settings``.
"""
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple


PLACEHOLDER_API_KEY = "your_api_key_here"

# --- Place discovery ---
TARGET_UNIQUE_PLACES = 30
MIN_RATING = 2.5
MAX_TOTAL_QUERIES = 40

MAX_RADIUS_M = 50_000  # enforced by the Places API
RADIUS_PLAN_M: Tuple[int, ...] = (8_000, 15_000, 25_000, 40_000, MAX_RADIUS_M)
FALLBACK_TYPES_MIN_RADIUS_M = 25_000
RADIUS_JITTER_FLOOR = 0.90

FALLBACK_CENTER_OFFSETS_M: Tuple[int, ...] = (35_000, 80_000, 150_000, 250_000)

PRIMARY_PLACE_TYPES: Tuple[str, ...] = (
    "restaurant",
    "cafe",
    "bar",
    "bakery",
    "meal_takeaway",
    "meal_delivery",
    "park",
    "tourist_attraction",
    "movie_theater",
    "bowling_alley",
    "museum",
    "shopping_mall",
)

# Essentials that still exist where the "fun" categories don't.
FALLBACK_PLACE_TYPES: Tuple[str, ...] = (
    "gas_station",
    "supermarket",
    "grocery_or_supermarket",
    "convenience_store",
    "lodging",
    "pharmacy",
)

# Free-text searches run alongside the categories, e.g. "board game cafe".
# Extra ones can be added per deployment with MIDLO_PLACE_KEYWORDS.
PRIMARY_KEYWORDS: Tuple[str, ...] = ()

PLACES_PAGE_SIZE = 20

# --- Other Google lookups ---
MIN_ADDRESS_LENGTH = 3
MIN_AUTOCOMPLETE_LENGTH = 3
MAX_AUTOCOMPLETE_SUGGESTIONS = 6
DEFAULT_PHOTO_WIDTH_PX = 1200
MAX_PHOTO_DIMENSION_PX = 1600
PHOTO_CACHE_TTL_SECONDS = 6 * 60 * 60
PHOTO_REDIRECT_MAX_AGE_SECONDS = 24 * 60 * 60

DEFAULT_CONNECT_TIMEOUT_S = 4.0
DEFAULT_READ_TIMEOUT_S = 8.0

_TRUTHY = ("1", "true", "yes", "on")


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(environ: Mapping[str, str], name: str) -> List[str]:
    raw = environ.get(name) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    google_maps_api_key: Optional[str] = None
    allow_mock_google: bool = False
    cors_allowed_origins: List[str] = field(default_factory=list)
    cors_allowed_origin_patterns: List[str] = field(default_factory=list)
    analytics_enabled: bool = True
    log_file: Optional[str] = None
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    photo_cache_ttl_seconds: float = PHOTO_CACHE_TTL_SECONDS
    place_keywords: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        api_key = (env.get("GOOGLE_MAPS_API_KEY") or "").strip()
        if api_key == PLACEHOLDER_API_KEY:
            api_key = ""
        return cls(
            google_maps_api_key=api_key or None,
            allow_mock_google=_env_bool(env, "MIDLO_ALLOW_MOCK_GOOGLE", False),
            cors_allowed_origins=_env_list(env, "MIDLO_CORS_ALLOWED_ORIGINS"),
            cors_allowed_origin_patterns=_env_list(env, "MIDLO_CORS_ALLOWED_ORIGIN_PATTERNS"),
            analytics_enabled=_env_bool(env, "MIDLO_ANALYTICS_ENABLED", True),
            log_file=(env.get("MIDLO_LOG_FILE") or "").strip() or None,
            connect_timeout_s=_env_float(env, "GOOGLE_CONNECT_TIMEOUT_S", DEFAULT_CONNECT_TIMEOUT_S),
            read_timeout_s=_env_float(env, "GOOGLE_READ_TIMEOUT_S", DEFAULT_READ_TIMEOUT_S),
            photo_cache_ttl_seconds=_env_float(env, "PHOTO_CACHE_TTL_SECONDS", PHOTO_CACHE_TTL_SECONDS),
            place_keywords=_env_list(env, "MIDLO_PLACE_KEYWORDS"),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.google_maps_api_key)

    def cors_origins(self):
        """Origins for flask-cors; regex patterns win over plain origins."""
        if self.cors_allowed_origin_patterns:
            return list(self.cors_allowed_origin_patterns)
        if self.cors_allowed_origins:
            return list(self.cors_allowed_origins)
        return "*"
