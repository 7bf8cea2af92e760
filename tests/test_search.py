import asyncio

import pytest

from amenities.labels import labels_for
from amenities.models import SearchResult
from amenities.search import SearchGeocodeAdapter, detect_language
from data_sources.error_handling import GeocodeError

DEBOUNCE = 0.01


class FakeGeocoder:
    def __init__(self, results=None, error=None, gates=None):
        self.results = results or {}
        self.error = error
        self.gates = gates or {}
        self.calls = []

    async def __call__(self, query, language):
        self.calls.append((query, language))
        gate = self.gates.get(query)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.results.get(query, [SearchResult(f"{query}, Somewhere", 1.0, 2.0)])


def test_detect_language_kanji_is_japanese():
    assert detect_language("東京") == "ja"


def test_detect_language_latin_is_none():
    assert detect_language("London") is None
    assert detect_language("") is None


@pytest.mark.parametrize("text,language", [
    ("とうきょう", "ja"),
    ("カタカナ", "ja"),
    ("㐀", "zh"),
    ("서울", "ko"),
    ("القاهرة", "ar"),
    ("Москва", "ru"),
    ("Tokyo 東京", "ja"),
])
def test_detect_language_scripts(text, language):
    assert detect_language(text) == language


def test_labels_fall_back_to_english():
    assert labels_for("ja").searching == "検索中..."
    assert labels_for("xx") == labels_for("en")
    assert labels_for(None).no_results == "No results found"


@pytest.mark.asyncio
async def test_only_last_query_is_sent():
    geocoder = FakeGeocoder()
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)

    first = adapter.search("Lo")
    second = adapter.search("Lon")
    last = adapter.search("London")
    results = await last.results()

    assert geocoder.calls == [("London", "en")]
    assert [r.display_name for r in results] == ["London, Somewhere"]
    assert adapter.results == results
    assert await first.results() == []
    assert await second.results() == []
    assert not first.valid and not second.valid and last.valid


@pytest.mark.asyncio
async def test_short_query_clears_results_without_request():
    geocoder = FakeGeocoder()
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)
    await adapter.search("Paris").results()
    assert adapter.results

    handle = adapter.search(" P ")
    assert await handle.results() == []
    assert adapter.results == []
    assert geocoder.calls == [("Paris", "en")]


@pytest.mark.asyncio
async def test_superseded_response_is_discarded():
    paris_gate = asyncio.Event()
    geocoder = FakeGeocoder(gates={"Paris": paris_gate})
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)

    paris = adapter.search("Paris")
    await asyncio.sleep(DEBOUNCE * 5)
    assert geocoder.calls == [("Paris", "en")]

    berlin = adapter.search("Berlin")
    berlin_results = await berlin.results()
    paris_gate.set()
    for _ in range(5):
        await asyncio.sleep(0)

    assert await paris.results() == []
    assert adapter.results == berlin_results
    assert adapter.results[0].display_name == "Berlin, Somewhere"


@pytest.mark.asyncio
async def test_geocode_failure_yields_empty_list():
    geocoder = FakeGeocoder(error=GeocodeError("Search request failed with status: 503"))
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)

    assert await adapter.search("Madrid").results() == []
    assert adapter.results == []


@pytest.mark.asyncio
async def test_language_detected_from_query_is_sent_as_hint():
    geocoder = FakeGeocoder()
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)

    await adapter.search("東京").results()

    assert geocoder.calls == [("東京", "ja")]
    assert adapter.language == "ja"


@pytest.mark.asyncio
async def test_language_detected_from_top_result():
    geocoder = FakeGeocoder(results={"Moscow": [SearchResult("Москва, Россия", 55.75, 37.62)]})
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)

    await adapter.search("Moscow").results()

    assert geocoder.calls == [("Moscow", "en")]
    assert adapter.language == "ru"


@pytest.mark.asyncio
async def test_language_kept_when_nothing_detected():
    geocoder = FakeGeocoder(results={"Madrid": [SearchResult("Madrid, España", 40.4, -3.7)]})
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE, language="es")

    await adapter.search("Madrid").results()

    assert geocoder.calls == [("Madrid", "es")]
    assert adapter.language == "es"


@pytest.mark.asyncio
async def test_on_results_callback():
    published = []
    adapter = SearchGeocodeAdapter(geocoder=FakeGeocoder(), debounce_seconds=DEBOUNCE,
                                   on_results=published.append)

    await adapter.search("Oslo").results()

    assert len(published) == 1
    assert published[0][0].display_name == "Oslo, Somewhere"


@pytest.mark.asyncio
async def test_cancel_drops_pending_query():
    geocoder = FakeGeocoder()
    adapter = SearchGeocodeAdapter(geocoder=geocoder, debounce_seconds=DEBOUNCE)

    handle = adapter.search("Rome")
    adapter.cancel()
    await asyncio.sleep(DEBOUNCE * 3)

    assert await handle.results() == []
    assert geocoder.calls == []
