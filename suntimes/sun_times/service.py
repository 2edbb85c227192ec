"""
Service layer: the sun-time record store. Range reads, write-once inserts, delete by id.
Uniqueness of (location, date) is enforced by the database constraint, never by a prior lookup.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from suntimes.core.db import session_scope
from suntimes.sun_times.errors import DuplicateKeyError, NotFound, RecordValidationError, StoreError, SunTimesError
from suntimes.sun_times.models import SunTimeRecord, TIME_FIELDS

logger = logging.getLogger(__name__)

LIST_LIMIT = 1000

_RECORD_FIELDS = frozenset(
    ("location", "latitude", "longitude", "date", "day_length", "timezone", "status") + TIME_FIELDS
)


@dataclass
class InsertOutcome:
    """Result of one insert attempt: the stored record, or the error that stopped it."""
    record: Optional[SunTimeRecord] = None
    error: Optional[SunTimesError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_duplicate(self) -> bool:
        return isinstance(self.error, DuplicateKeyError)


def validate_record_fields(fields: Dict[str, Any]) -> None:
    """Raise RecordValidationError for missing identity/geo fields or out-of-range coordinates."""
    unknown = set(fields) - _RECORD_FIELDS
    if unknown:
        raise RecordValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    location = fields.get("location")
    if not isinstance(location, str) or not location.strip():
        raise RecordValidationError("Location can't be blank")
    if not isinstance(fields.get("date"), date):
        raise RecordValidationError("Date can't be blank")

    for name, low, high in (("latitude", -90, 90), ("longitude", -180, 180)):
        value = fields.get(name)
        if value is None:
            raise RecordValidationError(f"{name.capitalize()} can't be blank")
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise RecordValidationError(f"{name.capitalize()} is not a number")
        if not low <= value <= high:
            raise RecordValidationError(f"{name.capitalize()} must be between {low} and {high}")


def insert_record(fields: Dict[str, Any]) -> InsertOutcome:
    """Insert one record. Never overwrites: a second insert for (location, date) yields DuplicateKeyError."""
    try:
        validate_record_fields(fields)
    except RecordValidationError as e:
        return InsertOutcome(error=e)

    record = SunTimeRecord(**fields)
    try:
        with session_scope() as session:
            session.add(record)
            session.flush()
    except IntegrityError:
        return InsertOutcome(
            error=DuplicateKeyError(f"{fields['location']} already has a record for {fields['date']}")
        )
    except SQLAlchemyError as e:
        logger.exception(f"Database error storing {fields['location']} {fields['date']}")
        return InsertOutcome(error=StoreError(f"Could not store record: {e.__class__.__name__}"))
    return InsertOutcome(record=record)


def get_records(location: str, start_date: date, end_date: date) -> List[SunTimeRecord]:
    """Records for location within [start_date, end_date], ascending by date."""
    with session_scope() as session:
        stmt = (
            select(SunTimeRecord)
            .where(
                SunTimeRecord.location == location,
                SunTimeRecord.date >= start_date,
                SunTimeRecord.date <= end_date,
            )
            .order_by(SunTimeRecord.date.asc())
        )
        return list(session.execute(stmt).scalars().all())


def get_dates_present(location: str, start_date: date, end_date: date) -> Set[date]:
    """Dates already stored for location within [start_date, end_date]."""
    with session_scope() as session:
        stmt = select(SunTimeRecord.date).where(
            SunTimeRecord.location == location,
            SunTimeRecord.date >= start_date,
            SunTimeRecord.date <= end_date,
        )
        return set(session.execute(stmt).scalars().all())


def get_record(record_id: int) -> SunTimeRecord:
    with session_scope() as session:
        record = session.get(SunTimeRecord, record_id)
        if record is None:
            raise NotFound("Record not found")
        return record


def delete_record(record_id: int) -> None:
    with session_scope() as session:
        result = session.execute(delete(SunTimeRecord).where(SunTimeRecord.id == record_id))
        if result.rowcount == 0:
            raise NotFound("Record not found")
    logger.info(f"Deleted sun time record {record_id}")


def list_records(
    location: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: Optional[int] = LIST_LIMIT,
) -> List[SunTimeRecord]:
    """Records with optional filters, ascending by date (then location), capped at limit."""
    with session_scope() as session:
        stmt = select(SunTimeRecord)
        if location:
            stmt = stmt.where(SunTimeRecord.location == location)
        if start_date is not None:
            stmt = stmt.where(SunTimeRecord.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(SunTimeRecord.date <= end_date)
        stmt = stmt.order_by(SunTimeRecord.date.asc(), SunTimeRecord.location.asc())
        if limit is not None:
            stmt = stmt.limit(min(limit, LIST_LIMIT))
        return list(session.execute(stmt).scalars().all())


def list_locations() -> List[str]:
    """Distinct stored locations, sorted."""
    with session_scope() as session:
        stmt = select(SunTimeRecord.location).distinct().order_by(SunTimeRecord.location)
        return list(session.execute(stmt).scalars().all())
