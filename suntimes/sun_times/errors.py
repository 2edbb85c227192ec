"""
Error taxonomy for sun-time reconciliation. Every error carries the HTTP status and
machine-readable code the API renders as {"error": {"message", "code"}}.
"""
from typing import Optional


class SunTimesError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidParameters(SunTimesError):
    """Rejected before any network call (bad coordinates, bad dates)."""
    status_code = 422
    code = "VALIDATION_ERROR"


class InvalidDateRange(InvalidParameters):
    status_code = 400
    code = "INVALID_DATE_RANGE"


class MissingParameter(SunTimesError):
    status_code = 400
    code = "MISSING_PARAMETER"

    def __init__(self, param: str):
        super().__init__(f"Missing required parameter: {param}")
        self.param = param


class GeocodingError(SunTimesError):
    status_code = 422
    code = "GEOCODING_ERROR"


class ResolverUnavailable(GeocodingError):
    """Geocoding service down, timing out or over quota."""


class LocationNotFound(GeocodingError):
    code = "LOCATION_NOT_FOUND"


class ProviderError(SunTimesError):
    status_code = 502
    code = "EXTERNAL_API_ERROR"


class ProviderUnavailable(ProviderError):
    """Transient: timeouts, network errors, 5xx. Safe to retry the whole request."""


class RateLimited(ProviderUnavailable):
    pass


class InvalidQuery(ProviderError):
    """Permanent: the provider rejected the query itself."""


class MalformedResponse(ProviderError):
    pass


class RecordValidationError(SunTimesError):
    status_code = 422
    code = "VALIDATION_ERROR"


class StoreError(SunTimesError):
    """The database refused a write for a reason other than the unique key (locked, disconnected)."""
    status_code = 500
    code = "STORE_ERROR"


class DuplicateKeyError(SunTimesError):
    status_code = 409
    code = "DUPLICATE_RECORD"


class NotFound(SunTimesError):
    status_code = 404
    code = "NOT_FOUND"
