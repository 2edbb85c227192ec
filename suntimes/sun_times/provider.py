"""
Client for the sunrisesunset.io daily sun-times API.

One GET covers the whole requested window. Failures are classified into the
ProviderError family; "no events" answers (polar day/night) come back as an
empty list, never as an error. The client does not retry.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict

from suntimes.sun_times.errors import (
    InvalidDateRange,
    InvalidParameters,
    InvalidQuery,
    MalformedResponse,
    ProviderError,
    ProviderUnavailable,
    RateLimited,
)

MAX_DATE_RANGE_DAYS = 365
DEFAULT_BASE_URL = "https://api.sunrisesunset.io"
DEFAULT_TIMEOUT = 15
DEFAULT_USER_AGENT = "SunTimes/1.0"


class ProviderResult(BaseModel):
    """One daily row as returned by the provider. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    date: date
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    solar_noon: Optional[str] = None
    day_length: Optional[str] = None
    civil_twilight_begin: Optional[str] = None
    civil_twilight_end: Optional[str] = None
    nautical_twilight_begin: Optional[str] = None
    nautical_twilight_end: Optional[str] = None
    astronomical_twilight_begin: Optional[str] = None
    astronomical_twilight_end: Optional[str] = None
    golden_hour: Optional[str] = None
    golden_hour_end: Optional[str] = None
    timezone: Optional[str] = None
    status: Optional[str] = None


@dataclass
class ProviderQuery:
    """Query string for /json. Fields left as None are not sent."""
    lat: float
    lng: float
    date_start: str
    date_end: str
    timezone: Optional[str] = None

    def to_params(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class SunriseSunsetClient:
    """Wraps api.sunrisesunset.io. Config keys: base_url, timeout, user_agent."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None):
        self.config = config or {}
        self.base_url = str(self.config.get("base_url") or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = float(self.config.get("timeout") or DEFAULT_TIMEOUT)
        self.user_agent = self.config.get("user_agent") or DEFAULT_USER_AGENT
        self.session = session or requests.Session()
        self.logger = logging.getLogger(self.__class__.__name__)

    def fetch(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        start_date: date,
        end_date: date,
        timezone: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return the provider's daily rows for [start_date, end_date]; [] means no data, not failure."""
        self._validate_coordinates(latitude, longitude)
        self._validate_date_range(start_date, end_date)

        query = ProviderQuery(
            lat=latitude,
            lng=longitude,
            date_start=start_date.isoformat(),
            date_end=end_date.isoformat(),
            timezone=timezone,
        )
        url = f"{self.base_url}/json"
        self.logger.debug(f"Making API request to {url} with params {query.to_params()}")

        try:
            response = self.session.get(
                url,
                params=query.to_params(),
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        except requests.Timeout as e:
            raise ProviderUnavailable("Request timed out. The API might be slow or unavailable.") from e
        except requests.ConnectionError as e:
            raise ProviderUnavailable(f"Network error: {e}. Please check your internet connection.") from e
        except requests.RequestException as e:
            raise ProviderUnavailable(f"HTTP request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            self._raise_for_http_status(response.status_code)

        body = self._parse_body(response)
        return self._extract_results(body, latitude, longitude)

    def _validate_coordinates(self, latitude: Optional[float], longitude: Optional[float]) -> None:
        if latitude is None or longitude is None:
            raise InvalidParameters("Latitude and longitude are required")
        if not -90 <= latitude <= 90:
            raise InvalidParameters("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise InvalidParameters("Longitude must be between -180 and 180")

    def _validate_date_range(self, start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise InvalidDateRange("End date must be after or equal to start date")
        days_diff = (end_date - start_date).days
        if days_diff > MAX_DATE_RANGE_DAYS:
            raise InvalidDateRange(
                f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days. Requested: {days_diff} days"
            )

    def _raise_for_http_status(self, status_code: int) -> None:
        if status_code == 429:
            raise RateLimited("API rate limit exceeded. Please try again later.")
        if status_code == 400:
            raise InvalidQuery("Bad request: Invalid parameters")
        if 500 <= status_code <= 599:
            raise ProviderUnavailable(f"API server error ({status_code}). Please try again later.")
        raise ProviderError(f"API returned error status {status_code}")

    def _parse_body(self, response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise MalformedResponse(f"Unexpected response type: {type(body).__name__}")
        return body

    def _extract_results(self, body: Dict[str, Any], latitude: float, longitude: float) -> List[Dict[str, Any]]:
        status = body.get("status")
        if status == "ZERO_RESULTS":
            self.logger.info("Zero results returned - might be polar region")
            return []
        if status == "INVALID_REQUEST":
            raise InvalidQuery(f"Invalid request: {body.get('error_message') or 'Unknown error'}")
        if status == "INVALID_DATE":
            raise InvalidQuery("Invalid date format", status_code=422)
        if status != "OK":
            raise ProviderError(f"API error: {status}")

        results = body.get("results")
        if not results:
            self.logger.warning(f"API returned no results for coordinates: {latitude}, {longitude}")
            return []

        if isinstance(results, dict):
            results = [results]
        if not isinstance(results, list):
            raise MalformedResponse(f"Unexpected results type: {type(results).__name__}")
        return results
