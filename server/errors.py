"""Errors surfaced through the API, each mapped to an HTTP status."""

MISSING_API_KEY_MESSAGE = "Missing GOOGLE_MAPS_API_KEY (Google Maps Platform)"


class ApiError(Exception):
    status_code = 500
    kind = "server_error"

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.message, 'kind': self.kind}


class ConfigurationMissing(ApiError):
    """No credential and mock mode is not allowed. Not worth retrying."""
    status_code = 503
    kind = "configuration_missing"

    def __init__(self, message: str = MISSING_API_KEY_MESSAGE):
        super().__init__(message)


class InvalidInput(ApiError):
    status_code = 400
    kind = "invalid_input"


class NotFound(ApiError):
    status_code = 404
    kind = "not_found"


class UpstreamUnavailable(ApiError):
    """A Google Maps Platform call failed; callers may retry later."""
    status_code = 502
    kind = "upstream_unavailable"


class OracleError(UpstreamUnavailable):
    """A single place search failed (transport, timeout or API status)."""
    kind = "places_unavailable"
