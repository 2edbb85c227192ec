"""
Sun-times API. Mounted at /api/v1/sunrise_sunsets/.
- POST "": reconcile location/date range and return every record in it.
- GET "": stored records with optional location/start_date/end_date filters (max 1000).
- GET /locations, GET /{id}, DELETE /{id}.
Uses SunTimeRecord ORM with Pydantic from_attributes.
"""
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Query, Response
from pydantic import BaseModel, ConfigDict

from .errors import InvalidDateRange, MissingParameter, NotFound
from .service import LIST_LIMIT, delete_record, get_record, list_locations, list_records


class SunTimeRecordResponse(BaseModel):
    """Pydantic view of SunTimeRecord for API; serializes from ORM including derived fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    location: str
    latitude: float
    longitude: float
    date: date
    formatted_date: str
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    solar_noon: Optional[str] = None
    day_length: Optional[str] = None
    day_length_minutes: Optional[float] = None
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
    is_polar_region: bool = False
    created_at: Optional[datetime] = None


class SunTimeRecordsResponse(BaseModel):
    data: List[SunTimeRecordResponse]


class SunTimeRecordDetailResponse(BaseModel):
    data: SunTimeRecordResponse


class LocationsResponse(BaseModel):
    locations: List[str]


class ReconcileRequest(BaseModel):
    """Body for POST. Fields are optional here so a missing one maps to MISSING_PARAMETER."""

    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


def parse_date_param(value: Optional[str], name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDateRange(f"Invalid date format for {name}: '{value}' (expected YYYY-MM-DD)")


def parse_record_id(value: str) -> int:
    """Ids that are not integers cannot exist, so they are reported as not found."""
    try:
        return int(value)
    except ValueError:
        raise NotFound("Record not found")


def _records_response(records) -> SunTimeRecordsResponse:
    return SunTimeRecordsResponse(data=[SunTimeRecordResponse.model_validate(r) for r in records])


def get_router(sun_app) -> APIRouter:
    """Return router for sun times; mounted with prefix /api/v1/sunrise_sunsets."""
    router = APIRouter(tags=["Sunrise Sunsets"])

    @router.post("", response_model=SunTimeRecordsResponse)
    def create(body: Optional[ReconcileRequest] = None) -> SunTimeRecordsResponse:
        """Fetch missing days from the provider, then return the whole range from the store."""
        body = body or ReconcileRequest()
        for name in ("location", "start_date", "end_date"):
            value = getattr(body, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise MissingParameter(name)

        start_date = parse_date_param(body.start_date, "start_date")
        end_date = parse_date_param(body.end_date, "end_date")
        records = sun_app.reconciler.reconcile(body.location.strip(), start_date, end_date)
        return _records_response(records)

    @router.get("", response_model=SunTimeRecordsResponse)
    def index(
        location: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = Query(LIST_LIMIT, ge=1, le=LIST_LIMIT),
    ) -> SunTimeRecordsResponse:
        """Return stored records ascending by date; never calls external services."""
        records = list_records(
            location=location or None,
            start_date=parse_date_param(start_date, "start_date"),
            end_date=parse_date_param(end_date, "end_date"),
            limit=limit,
        )
        return _records_response(records)

    @router.get("/locations", response_model=LocationsResponse)
    def locations() -> LocationsResponse:
        return LocationsResponse(locations=list_locations())

    @router.get("/{record_id}", response_model=SunTimeRecordDetailResponse)
    def show(record_id: str) -> SunTimeRecordDetailResponse:
        record = get_record(parse_record_id(record_id))
        return SunTimeRecordDetailResponse(data=SunTimeRecordResponse.model_validate(record))

    @router.delete("/{record_id}", status_code=204)
    def destroy(record_id: str) -> Response:
        delete_record(parse_record_id(record_id))
        return Response(status_code=204)

    return router
