"""
Reconciliation: serve a location/date range from the store, fetching only what is missing.

validate -> resolve coordinates -> compute gaps -> (fetch once -> persist) -> read back.
Provider failures abort before anything is written; a single bad or racing row is
logged and skipped. The returned list is always a fresh read of the store.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from suntimes.sun_times import service
from suntimes.sun_times.errors import InvalidDateRange
from suntimes.sun_times.gaps import missing_dates
from suntimes.sun_times.geocoding import CoordinateSet
from suntimes.sun_times.models import (
    NO_DAYLIGHT,
    POLAR_NO_DATA_STATUS,
    TIME_FIELDS,
    UNAVAILABLE,
    SunTimeRecord,
)
from suntimes.sun_times.provider import ProviderResult


def record_fields_from_result(location: str, coords: CoordinateSet, result: ProviderResult) -> Dict[str, Any]:
    """Store fields for one provider row; blank time fields become 'unavailable'."""
    fields: Dict[str, Any] = {
        "location": location,
        "latitude": coords.latitude,
        "longitude": coords.longitude,
        "date": result.date,
        "day_length": result.day_length,
        "timezone": result.timezone,
        "status": result.status,
    }
    for name in TIME_FIELDS:
        value = getattr(result, name)
        fields[name] = value if value else UNAVAILABLE
    return fields


def placeholder_fields(location: str, coords: CoordinateSet, day: date) -> Dict[str, Any]:
    """Store fields for a date the provider has no events for (polar day/night)."""
    fields: Dict[str, Any] = {name: UNAVAILABLE for name in TIME_FIELDS}
    fields.update(
        location=location,
        latitude=coords.latitude,
        longitude=coords.longitude,
        date=day,
        day_length=NO_DAYLIGHT,
        status=POLAR_NO_DATA_STATUS,
    )
    return fields


class SunTimesReconciler:
    """Composes coordinate resolver, gap calculation, provider client and record store."""

    def __init__(self, resolver, provider):
        self.resolver = resolver
        self.provider = provider
        self.logger = logging.getLogger(self.__class__.__name__)

    def reconcile(self, location: str, start_date: date, end_date: date) -> List[SunTimeRecord]:
        if start_date > end_date:
            raise InvalidDateRange("End date cannot be before start date")

        location = location.strip()
        self.logger.info(f"Fetching data for location: {location}, dates: {start_date} to {end_date}")

        coords = self.resolver.resolve(location)
        self.logger.info(f"Geocoded to: {coords.latitude}, {coords.longitude}")

        existing = service.get_dates_present(location, start_date, end_date)
        gaps = missing_dates(start_date, end_date, existing)
        self.logger.info(f"Found {len(existing)} existing records, {len(gaps)} dates to fetch")

        if gaps:
            self._fill_gaps(location, coords, gaps, start_date, end_date)

        records = service.get_records(location, start_date, end_date)
        self.logger.info(f"Returning {len(records)} total records")
        return records

    def _fill_gaps(
        self,
        location: str,
        coords: CoordinateSet,
        gaps: List[date],
        start_date: date,
        end_date: date,
    ) -> None:
        # One call for the whole window, even when only part of it is missing
        results = self.provider.fetch(coords.latitude, coords.longitude, start_date, end_date)

        if not results:
            self.logger.warning(f"No results from API for {location} - might be polar region")
            self._persist_placeholders(location, coords, gaps)
            return

        self._persist_results(location, coords, results, set(gaps))

    def _persist_placeholders(self, location: str, coords: CoordinateSet, gaps: List[date]) -> None:
        created = 0
        for day in gaps:
            if self._insert(placeholder_fields(location, coords, day), "placeholder"):
                created += 1
        self.logger.info(f"Created {created}/{len(gaps)} placeholder records for {location}")

    def _persist_results(
        self,
        location: str,
        coords: CoordinateSet,
        results: List[Any],
        gaps: Set[date],
    ) -> None:
        created = skipped = 0
        for raw in results:
            try:
                result = ProviderResult.model_validate(raw)
            except ValidationError as e:
                self.logger.error(f"Failed to parse API result {raw!r}: {e}")
                skipped += 1
                continue

            # Rows for dates we already hold are redundant; stored records are never overwritten
            if result.date not in gaps:
                continue

            if self._insert(record_fields_from_result(location, coords, result), "record"):
                created += 1
            else:
                skipped += 1

        self.logger.info(
            f"Fetched {len(results)} results for {location}: created {created}, skipped {skipped}"
        )

    def _insert(self, fields: Dict[str, Any], kind: str) -> Optional[SunTimeRecord]:
        outcome = service.insert_record(fields)
        if outcome.ok:
            return outcome.record
        if outcome.is_duplicate:
            self.logger.info(f"Skipping {kind} for {fields['location']} {fields['date']}: already stored")
        else:
            self.logger.error(f"Failed to create {kind}: {outcome.error.message}")
        return None
