"""
Coordinate resolution: free-text location -> CoordinateSet via OpenStreetMap Nominatim (geopy).
Results are cached per normalized location for cache_days (default 30).
"""
import logging
import re
from datetime import timedelta
from typing import Any, Dict, Optional

from geopy.exc import GeocoderQueryError, GeocoderQuotaExceeded, GeocoderServiceError, GeopyError
from geopy.geocoders import Nominatim
from pydantic import BaseModel, ValidationError

from suntimes.core.cache_helper import CacheHelper
from suntimes.sun_times.errors import GeocodingError, LocationNotFound, ResolverUnavailable

DEFAULT_CACHE_DAYS = 30
DEFAULT_USER_AGENT = "suntimes/1.0"
DEFAULT_TIMEOUT = 10


class CoordinateSet(BaseModel):
    """Resolved coordinates plus whatever address detail the geocoder returned."""

    latitude: float
    longitude: float
    formatted_address: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None


def normalize_location(location: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", location.lower())


class CoordinateResolver:
    """Cache-aside wrapper around a geopy geocoder."""

    def __init__(
        self,
        cache: CacheHelper,
        config: Optional[Dict[str, Any]] = None,
        geolocator: Optional[Any] = None,
    ):
        self.config = config or {}
        self.cache = cache
        self.cache_expiry = timedelta(days=int(self.config.get("cache_days") or DEFAULT_CACHE_DAYS))
        self.timeout = self.config.get("timeout") or DEFAULT_TIMEOUT
        self.geolocator = geolocator or Nominatim(
            user_agent=self.config.get("user_agent") or DEFAULT_USER_AGENT,
            timeout=self.timeout,
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def cache_key(location: str) -> str:
        return f"geocoding:{normalize_location(location)}"

    def resolve(self, location: str) -> CoordinateSet:
        """Resolve location text. Raises LocationNotFound, ResolverUnavailable or GeocodingError."""
        location = (location or "").strip()
        if not location:
            raise GeocodingError("Location cannot be empty")

        key = self.cache_key(location)
        cached = self.cache.get(key)
        if cached:
            try:
                return CoordinateSet.model_validate(cached)
            except ValidationError:
                self.logger.warning(f"Discarding unreadable cached coordinates for {key}")
                self.cache.delete(key)

        try:
            result = self.geolocator.geocode(location, exactly_one=True, addressdetails=True)
        except GeocoderQuotaExceeded as e:
            raise ResolverUnavailable("Geocoding service rate limit exceeded. Please try again later.") from e
        except GeocoderQueryError as e:
            raise GeocodingError(f"Geocoding failed: {e}") from e
        except GeocoderServiceError as e:
            raise ResolverUnavailable(f"Geocoding failed: {e}") from e
        except GeopyError as e:
            raise GeocodingError(f"Geocoding failed: {e}") from e

        if result is None:
            raise LocationNotFound(
                f"Location '{location}' not found. Please check the spelling or try a "
                f"different format (e.g., 'City, Country')."
            )

        address = (getattr(result, "raw", None) or {}).get("address") or {}
        coords = CoordinateSet(
            latitude=result.latitude,
            longitude=result.longitude,
            formatted_address=getattr(result, "address", None) or location,
            country=address.get("country"),
            city=address.get("city") or address.get("town") or address.get("village"),
        )
        self.logger.info(f"Geocoded '{location}' to {coords.latitude}, {coords.longitude}")

        self.cache.set(key, coords.model_dump(exclude_none=True), self.cache_expiry)
        return coords
