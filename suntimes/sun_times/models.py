"""
SQLAlchemy model for sun-time records: one immutable row per (location, date).
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, String, Date, DateTime, Float, Integer, Index, UniqueConstraint

from suntimes.core.db import Base

UNAVAILABLE = "unavailable"
NO_DAYLIGHT = "00:00:00"
POLAR_NO_DATA_STATUS = "POLAR_REGION_NO_DATA"
POLAR_MARKERS = ("POLAR", "MIDNIGHT")

TIME_FIELDS = (
    "sunrise",
    "sunset",
    "solar_noon",
    "civil_twilight_begin",
    "civil_twilight_end",
    "nautical_twilight_begin",
    "nautical_twilight_end",
    "astronomical_twilight_begin",
    "astronomical_twilight_end",
    "golden_hour",
    "golden_hour_end",
)


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_duration_to_minutes(duration: Optional[str]) -> Optional[float]:
    """'HH:MM:SS' -> minutes; None when absent or not three fields."""
    if not duration:
        return None
    try:
        parts = [int(p) for p in duration.split(":")]
    except ValueError:
        return None
    if len(parts) < 3:
        return None
    return parts[0] * 60 + parts[1] + round(parts[2] / 60.0, 2)


def parse_time_to_decimal(value: Optional[str]) -> Optional[float]:
    """'7:45:23 AM' or '07:45:23' -> 7.75 style decimal hours."""
    if not value or value == UNAVAILABLE:
        return None
    for fmt in ("%I:%M:%S %p", "%H:%M:%S", "%H:%M"):
        try:
            t = datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
        return t.hour + t.minute / 60.0
    return None


class SunTimeRecord(Base):
    """One calendar day of sun data for one location. Written once, never updated."""
    __tablename__ = "sun_time_records"
    __table_args__ = (
        UniqueConstraint("location", "date", name="uq_sun_time_records_location_date"),
        Index("ix_sun_time_records_coords_date", "latitude", "longitude", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    location = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    date = Column(Date, nullable=False, index=True)

    sunrise = Column(String(32), nullable=True)
    sunset = Column(String(32), nullable=True)
    solar_noon = Column(String(32), nullable=True)
    day_length = Column(String(16), nullable=True)  # HH:MM:SS
    civil_twilight_begin = Column(String(32), nullable=True)
    civil_twilight_end = Column(String(32), nullable=True)
    nautical_twilight_begin = Column(String(32), nullable=True)
    nautical_twilight_end = Column(String(32), nullable=True)
    astronomical_twilight_begin = Column(String(32), nullable=True)
    astronomical_twilight_end = Column(String(32), nullable=True)
    golden_hour = Column(String(32), nullable=True)
    golden_hour_end = Column(String(32), nullable=True)
    timezone = Column(String(64), nullable=True)
    status = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)

    @property
    def is_polar_region(self) -> bool:
        return bool(self.status) and any(marker in self.status for marker in POLAR_MARKERS)

    @property
    def has_sunrise(self) -> bool:
        return bool(self.sunrise) and self.sunrise != UNAVAILABLE

    @property
    def has_sunset(self) -> bool:
        return bool(self.sunset) and self.sunset != UNAVAILABLE

    @property
    def formatted_date(self) -> str:
        return self.date.strftime("%Y-%m-%d")

    @property
    def day_length_minutes(self) -> Optional[float]:
        return parse_duration_to_minutes(self.day_length)

    def to_chart_data(self) -> Dict[str, Any]:
        return {
            "date": self.formatted_date,
            "sunrise": parse_time_to_decimal(self.sunrise),
            "sunset": parse_time_to_decimal(self.sunset),
            "day_length_minutes": self.day_length_minutes,
        }

    def __repr__(self) -> str:
        return f"<SunTimeRecord {self.location} {self.date} sunrise={self.sunrise} sunset={self.sunset}>"
