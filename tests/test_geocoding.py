import aiohttp
import pytest

from data_sources import async_geocoding
from data_sources.error_handling import APIError, GeocodeError


class DummyResp:
    def __init__(self, status=200, payload=None):
        self.status = status
        self._payload = payload if payload is not None else []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.gets = []

    def get(self, url, params=None, **kwargs):
        self.gets.append((url, params))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def use_session(monkeypatch):
    def install(session):
        async def fake_get_session():
            return session
        monkeypatch.setattr(async_geocoding, "get_session", fake_get_session)
        return session
    return install


def test_accept_language_mapping():
    assert async_geocoding.accept_language("ja") == "ja"
    assert async_geocoding.accept_language("MN") == "mn"
    assert async_geocoding.accept_language("pt") == "en"
    assert async_geocoding.accept_language(None) == "en"


@pytest.mark.asyncio
async def test_geocode_parses_results(use_session):
    session = use_session(FakeSession(DummyResp(200, [
        {"display_name": "東京都, 日本", "lat": "35.6828", "lon": "139.7595"},
        {"display_name": "broken", "lat": "not-a-number", "lon": "0"},
    ])))

    results = await async_geocoding.geocode("東京", "ja")

    assert len(results) == 1
    assert results[0].display_name == "東京都, 日本"
    assert (results[0].lat, results[0].lng) == (35.6828, 139.7595)

    url, params = session.gets[0]
    assert url == async_geocoding.NOMINATIM_URL
    assert params["q"] == "東京"
    assert params["format"] == "json"
    assert params["limit"] == 5
    assert params["addressdetails"] == 1
    assert params["accept-language"] == "ja"


@pytest.mark.asyncio
async def test_unsupported_language_falls_back_to_english(use_session):
    session = use_session(FakeSession(DummyResp(200, [])))
    assert await async_geocoding.geocode("Lisboa", "pt") == []
    assert session.gets[0][1]["accept-language"] == "en"


@pytest.mark.asyncio
async def test_non_200_raises_geocode_error(use_session):
    use_session(FakeSession(DummyResp(503)))
    with pytest.raises(GeocodeError):
        await async_geocoding.geocode("Paris", "fr")


@pytest.mark.asyncio
async def test_connection_error_raises_geocode_error(use_session):
    use_session(FakeSession(error=aiohttp.ClientConnectionError("connection refused")))
    with pytest.raises(GeocodeError):
        await async_geocoding.geocode("Paris", "fr")


@pytest.mark.asyncio
async def test_server_error_is_retried_once(use_session):
    session = use_session(FakeSession(DummyResp(502)))
    with pytest.raises(GeocodeError):
        await async_geocoding.geocode("Paris", "fr")
    assert len(session.gets) == 2


@pytest.mark.asyncio
async def test_timeout_raises_geocode_error(monkeypatch):
    calls = []

    async def timed_out(params):
        calls.append(params)
        raise APIError("Request timed out after 10 seconds", "_search", 408)

    monkeypatch.setattr(async_geocoding, "_search", timed_out)
    with pytest.raises(GeocodeError) as excinfo:
        await async_geocoding.geocode("Paris", "fr")
    assert isinstance(excinfo.value.__cause__, APIError)
    assert len(calls) == 1
