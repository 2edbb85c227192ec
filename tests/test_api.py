"""
HTTP tests through FastAPI's TestClient on a SunTimesApp built from a temp config.
"""
from datetime import date

import pytest
import yaml
from fastapi.testclient import TestClient

from conftest import FakeProvider, FakeResolver, lisbon_result
from suntimes.api.server import API_PREFIX, create_app
from suntimes.core.app import SunTimesApp
from suntimes.sun_times import service
from suntimes.sun_times.errors import LocationNotFound, ProviderUnavailable
from suntimes.sun_times.models import POLAR_NO_DATA_STATUS


def make_client(make_app, resolver=None, provider=None, **kwargs) -> TestClient:
    return TestClient(create_app(make_app(resolver=resolver, provider=provider)), **kwargs)


def lisbon_body(start="2024-01-01", end="2024-01-03"):
    return {"location": "Lisbon", "start_date": start, "end_date": end}


def three_day_provider():
    return FakeProvider([lisbon_result("2024-01-01"), lisbon_result("2024-01-02"), lisbon_result("2024-01-03")])


class TestCreate:
    def test_post_returns_records(self, make_app):
        """POST reconciles and returns the records under data.

        Implementation: Posts a 3-day Lisbon range with a fake provider.
        Passing implies: 200, three records with derived fields, sorted by date.
        """
        client = make_client(make_app, provider=three_day_provider())

        response = client.post(API_PREFIX, json=lisbon_body())

        assert response.status_code == 200
        data = response.json()["data"]
        assert [r["date"] for r in data] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert data[0]["formatted_date"] == "2024-01-01"
        assert data[0]["sunrise"] == "7:45:23 AM"
        assert data[0]["day_length_minutes"] == pytest.approx(584.87)
        assert data[0]["is_polar_region"] is False
        assert data[0]["id"] > 0

    def test_repeat_post_uses_store(self, make_app):
        """A second identical POST is served from the store.

        Implementation: Posts the same body twice.
        Passing implies: Same ids both times; provider called once.
        """
        provider = three_day_provider()
        client = make_client(make_app, provider=provider)

        first = client.post(API_PREFIX, json=lisbon_body()).json()["data"]
        second = client.post(API_PREFIX, json=lisbon_body()).json()["data"]

        assert [r["id"] for r in first] == [r["id"] for r in second]
        assert len(provider.calls) == 1

    def test_polar_placeholders_over_http(self, make_app):
        """Polar gaps come back as placeholder records.

        Implementation: Provider returns no rows.
        Passing implies: Placeholder status and polar flag are serialized.
        """
        client = make_client(make_app, provider=FakeProvider([]))

        data = client.post(API_PREFIX, json=lisbon_body("2024-06-21", "2024-06-21")).json()["data"]

        assert len(data) == 1
        assert data[0]["status"] == POLAR_NO_DATA_STATUS
        assert data[0]["is_polar_region"] is True
        assert data[0]["sunrise"] == "unavailable"

    @pytest.mark.parametrize("missing", ["location", "start_date", "end_date"])
    def test_missing_parameter(self, make_app, missing):
        """Each required field is reported by name.

        Implementation: Drops one field at a time.
        Passing implies: 400 MISSING_PARAMETER naming the field, no provider call.
        """
        provider = FakeProvider()
        client = make_client(make_app, provider=provider)
        body = lisbon_body()
        del body[missing]

        response = client.post(API_PREFIX, json=body)

        assert response.status_code == 400
        assert response.json() == {
            "error": {"message": f"Missing required parameter: {missing}", "code": "MISSING_PARAMETER"}
        }
        assert provider.calls == []

    def test_blank_location_and_no_body(self, make_app):
        """Blank strings and an absent body count as missing.

        Implementation: Posts a whitespace location, then no body at all.
        Passing implies: Both are 400 MISSING_PARAMETER.
        """
        client = make_client(make_app)

        blank = client.post(API_PREFIX, json=dict(lisbon_body(), location="  "))
        empty = client.post(API_PREFIX)

        assert blank.status_code == 400
        assert blank.json()["error"]["code"] == "MISSING_PARAMETER"
        assert empty.status_code == 400
        assert empty.json()["error"]["code"] == "MISSING_PARAMETER"

    @pytest.mark.parametrize("start, end", [("2024-01-10", "2024-01-01"), ("01/01/2024", "2024-01-02")])
    def test_bad_dates(self, make_app, start, end):
        """Inverted ranges and bad formats are 400 INVALID_DATE_RANGE.

        Implementation: Posts each bad combination.
        Passing implies: Rejected before resolver and provider run.
        """
        resolver, provider = FakeResolver(), FakeProvider()
        client = make_client(make_app, resolver=resolver, provider=provider)

        response = client.post(API_PREFIX, json=lisbon_body(start, end))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATE_RANGE"
        assert resolver.calls == []
        assert provider.calls == []

    def test_unknown_location(self, make_app):
        """Geocoding misses are 422 LOCATION_NOT_FOUND.

        Implementation: Resolver raises LocationNotFound.
        Passing implies: The error body carries the resolver's message.
        """
        resolver = FakeResolver(error=LocationNotFound("Location 'Atlantis' not found"))
        client = make_client(make_app, resolver=resolver)

        response = client.post(API_PREFIX, json=dict(lisbon_body(), location="Atlantis"))

        assert response.status_code == 422
        assert response.json()["error"] == {
            "message": "Location 'Atlantis' not found",
            "code": "LOCATION_NOT_FOUND",
        }

    def test_provider_down(self, make_app):
        """Provider outages are 502 EXTERNAL_API_ERROR and write nothing.

        Implementation: Provider raises ProviderUnavailable.
        Passing implies: 502 with the provider message; store still empty.
        """
        client = make_client(make_app, provider=FakeProvider(error=ProviderUnavailable("Request timed out.")))

        response = client.post(API_PREFIX, json=lisbon_body())

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "EXTERNAL_API_ERROR"
        assert service.list_records() == []

    def test_unexpected_error_is_500(self, make_app):
        """Anything outside the taxonomy is a generic 500.

        Implementation: Provider raises RuntimeError.
        Passing implies: INTERNAL_ERROR body, internals not leaked.
        """
        client = make_client(
            make_app,
            provider=FakeProvider(error=RuntimeError("db password is hunter2")),
            raise_server_exceptions=False,
        )

        response = client.post(API_PREFIX, json=lisbon_body())

        assert response.status_code == 500
        assert response.json() == {"error": {"message": "An unexpected error occurred", "code": "INTERNAL_ERROR"}}


class TestReadEndpoints:
    def test_index_filters_and_never_fetches(self, make_app):
        """GET lists stored records without calling the provider.

        Implementation: Seeds via POST, then lists with filters.
        Passing implies: Filters apply; provider call count is unchanged.
        """
        provider = three_day_provider()
        client = make_client(make_app, provider=provider)
        client.post(API_PREFIX, json=lisbon_body())

        all_rows = client.get(API_PREFIX).json()["data"]
        filtered = client.get(API_PREFIX, params={"location": "Lisbon", "start_date": "2024-01-02"}).json()["data"]
        other = client.get(API_PREFIX, params={"location": "Porto"}).json()["data"]
        limited = client.get(API_PREFIX, params={"limit": 1}).json()["data"]

        assert len(all_rows) == 3
        assert [r["date"] for r in filtered] == ["2024-01-02", "2024-01-03"]
        assert other == []
        assert len(limited) == 1
        assert len(provider.calls) == 1

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 5000}, {"limit": "many"}])
    def test_index_bad_limit(self, make_app, params):
        """limit outside 1..1000 is a 422 VALIDATION_ERROR.

        Implementation: Lists with each bad limit.
        Passing implies: Request validation errors use the common error body.
        """
        response = make_client(make_app).get(API_PREFIX, params=params)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_index_bad_date_filter(self, make_app):
        """Unparseable filter dates are 400 INVALID_DATE_RANGE.

        Implementation: Lists with start_date=yesterday.
        Passing implies: Filters are parsed strictly.
        """
        response = make_client(make_app).get(API_PREFIX, params={"start_date": "yesterday"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATE_RANGE"

    def test_show_and_destroy(self, make_app):
        """Records can be read and deleted by id.

        Implementation: Seeds one day, GETs it, DELETEs it, GETs again.
        Passing implies: 200 then 204 then 404 NOT_FOUND.
        """
        client = make_client(make_app, provider=FakeProvider([lisbon_result("2024-01-01")]))
        record_id = client.post(API_PREFIX, json=lisbon_body("2024-01-01", "2024-01-01")).json()["data"][0]["id"]

        shown = client.get(f"{API_PREFIX}/{record_id}")
        deleted = client.delete(f"{API_PREFIX}/{record_id}")
        missing = client.get(f"{API_PREFIX}/{record_id}")

        assert shown.status_code == 200
        assert shown.json()["data"]["date"] == "2024-01-01"
        assert deleted.status_code == 204
        assert missing.status_code == 404
        assert missing.json() == {"error": {"message": "Record not found", "code": "NOT_FOUND"}}

    def test_destroy_unknown_id(self, make_app):
        """Deleting an unknown id is 404.

        Implementation: DELETE on an empty store.
        Passing implies: NotFound surfaces through the error handler.
        """
        response = make_client(make_app).delete(f"{API_PREFIX}/42")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_locations(self, make_app):
        """GET /locations lists distinct stored locations.

        Implementation: Seeds Lisbon for two days.
        Passing implies: One entry, route not shadowed by /{record_id}.
        """
        client = make_client(make_app, provider=three_day_provider())
        client.post(API_PREFIX, json=lisbon_body())

        response = client.get(f"{API_PREFIX}/locations")

        assert response.status_code == 200
        assert response.json() == {"locations": ["Lisbon"]}


class TestServiceEndpoints:
    def test_health(self, make_app):
        """GET /health reports ok with a timestamp.

        Implementation: Calls the health endpoint.
        Passing implies: The app starts and answers without touching sun-time code.
        """
        body = make_client(make_app).get("/health").json()

        assert body["status"] == "ok"
        assert "timestamp" in body

    def test_api_index(self, make_app):
        """GET /api lists the sun-time endpoints.

        Implementation: Calls the index endpoint.
        Passing implies: The mounted prefix is advertised.
        """
        body = make_client(make_app).get("/api").json()

        assert body["endpoints"]["sunrise_sunsets"]["create"] == f"POST {API_PREFIX}"


def test_cors_headers_follow_config(config_file):
    """api.cors_origins enables CORS for the listed origins.

    Implementation: Adds an origin to the temp config and sends a preflight request.
    Passing implies: The origin is echoed back in Access-Control-Allow-Origin.
    """
    data = yaml.safe_load(config_file.read_text())
    data["api"] = {"cors_origins": ["http://localhost:3000"]}
    config_file.write_text(yaml.safe_dump(data))

    app = SunTimesApp(config_path=str(config_file), resolver=FakeResolver(), provider=FakeProvider())
    try:
        client = TestClient(create_app(app))
        response = client.options(
            API_PREFIX,
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
        )
    finally:
        app.shutdown()

    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_records_written_over_http_are_in_store(make_app):
    """POST results are real store rows.

    Implementation: Posts one day, reads the store directly.
    Passing implies: API and service share the configured database.
    """
    client = make_client(make_app, provider=FakeProvider([lisbon_result("2024-01-01")]))
    client.post(API_PREFIX, json=lisbon_body("2024-01-01", "2024-01-01"))

    assert service.get_dates_present("Lisbon", date(2024, 1, 1), date(2024, 1, 1)) == {date(2024, 1, 1)}


@pytest.mark.parametrize("method", ["get", "delete"])
def test_non_integer_id_is_not_found(make_app, method):
    """An id that is not a number cannot match a record.

    Implementation: GET and DELETE /abc.
    Passing implies: 404 NOT_FOUND, same as any unknown id, not a validation error.
    """
    response = getattr(make_client(make_app), method)(f"{API_PREFIX}/abc")

    assert response.status_code == 404
    assert response.json() == {"error": {"message": "Record not found", "code": "NOT_FOUND"}}
