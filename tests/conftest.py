"""
Shared fixtures: a throwaway SQLite database per test and in-process fakes for the
coordinate resolver and the sun-time provider that record every call.
"""
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import pytest
import yaml
from sqlalchemy.exc import OperationalError

from suntimes.core.app import SunTimesApp
from suntimes.core.cache_helper import CacheHelper
from suntimes.core.db import close_db, init_db
from suntimes.sun_times import service
from suntimes.sun_times.geocoding import CoordinateSet

LISBON = CoordinateSet(latitude=38.7223, longitude=-9.1393, formatted_address="Lisbon, Portugal")


def lisbon_result(day: str, sunrise: str = "7:45:23 AM", sunset: str = "5:30:15 PM") -> Dict[str, Any]:
    return {
        "date": day,
        "sunrise": sunrise,
        "sunset": sunset,
        "solar_noon": "12:37:49 PM",
        "day_length": "09:44:52",
        "golden_hour": "4:55:00 PM",
        "golden_hour_end": "8:15:00 AM",
        "timezone": "Europe/Lisbon",
    }


class FakeResolver:
    def __init__(self, coords: CoordinateSet = LISBON, error: Optional[Exception] = None):
        self.coords = coords
        self.error = error
        self.calls: List[str] = []

    def resolve(self, location: str) -> CoordinateSet:
        self.calls.append(location)
        if self.error is not None:
            raise self.error
        return self.coords


class FakeProvider:
    """Returns canned results; before_return runs just before returning (to simulate races)."""

    def __init__(
        self,
        results: Optional[List[Any]] = None,
        error: Optional[Exception] = None,
        before_return: Optional[Callable[[], None]] = None,
    ):
        self.results = results if results is not None else []
        self.error = error
        self.before_return = before_return
        self.calls: List[tuple] = []

    def fetch(self, latitude: float, longitude: float, start_date: date, end_date: date, timezone=None):
        self.calls.append((latitude, longitude, start_date, end_date))
        if self.error is not None:
            raise self.error
        if self.before_return is not None:
            self.before_return()
        return list(self.results)


@pytest.fixture
def db(tmp_path):
    init_db(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield
    close_db()


@pytest.fixture
def locked_dates(monkeypatch):
    """Make flushes of records for the given dates fail like a locked SQLite database."""
    real_scope = service.session_scope

    def _lock(*days: date) -> None:
        @contextmanager
        def scope():
            with real_scope() as session:
                real_flush = session.flush

                def flush(*args, **kwargs):
                    if any(getattr(obj, "date", None) in days for obj in session.new):
                        raise OperationalError("INSERT INTO sun_time_records", {}, Exception("database is locked"))
                    return real_flush(*args, **kwargs)

                session.flush = flush
                yield session

        monkeypatch.setattr(service, "session_scope", scope)

    return _lock


@pytest.fixture
def cache(tmp_path) -> CacheHelper:
    return CacheHelper(str(tmp_path / "cache"), "geocoding")


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "database": {"path": str(tmp_path / "app.db")},
                "cache": {"directory": str(tmp_path / "cache")},
                "logging": {"level": "DEBUG"},
            }
        )
    )
    return path


@pytest.fixture
def make_app(config_file):
    """Factory for a SunTimesApp on a temp config with fake resolver/provider."""
    apps = []

    def _make(resolver=None, provider=None) -> SunTimesApp:
        app = SunTimesApp(
            config_path=str(config_file),
            resolver=resolver or FakeResolver(),
            provider=provider or FakeProvider(),
        )
        apps.append(app)
        return app

    yield _make
    for app in apps:
        app.shutdown()
