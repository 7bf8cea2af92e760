import asyncio

import pytest

from amenities.models import BoundingBox, Vertical
from data_sources.cache import BoundsQueryCache
from data_sources.error_handling import APIError, GeodataFetchError

BBOX = BoundingBox(south=37.70, west=-122.52, north=37.82, east=-122.35)

ELEMENTS = [
    {"type": "node", "id": 1, "lat": 37.78, "lon": -122.42, "tags": {"amenity": "toilets"}},
    {"type": "node", "id": 2, "lat": 37.76, "lon": -122.45, "tags": {"amenity": "toilets", "wheelchair": "yes"}},
]


class FakeFetcher:
    def __init__(self, elements=None, failures=0, gate=None):
        self.elements = ELEMENTS if elements is None else elements
        self.failures = failures
        self.gate = gate
        self.calls = []

    async def __call__(self, vertical, bbox):
        self.calls.append((vertical, bbox))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.failures:
            self.failures -= 1
            raise APIError("Overpass returned HTTP 504", "overpass", 504)
        return self.elements


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_miss_then_hit():
    fetcher = FakeFetcher()
    cache = BoundsQueryCache(fetcher=fetcher)

    first = await cache.query(Vertical.RESTROOM, BBOX)
    second = await cache.query(Vertical.RESTROOM, BBOX)

    assert [a.id for a in first] == ["restroom:node_1", "restroom:node_2"]
    assert first == second
    assert len(fetcher.calls) == 1
    stats = cache.stats()
    assert stats["hits"] == 1 and stats["misses"] == 1


@pytest.mark.asyncio
async def test_malformed_element_does_not_fail_the_viewport():
    elements = ELEMENTS + [
        {"type": "node", "id": 3, "lat": 37.77, "lon": -122.43, "tags": "x"},
        None,
    ]
    cache = BoundsQueryCache(fetcher=FakeFetcher(elements=elements))

    amenities = await cache.query(Vertical.RESTROOM, BBOX)

    assert [a.id for a in amenities] == ["restroom:node_1", "restroom:node_2"]
    assert cache.stats()["failures"] == 0
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_fetcher_receives_quantized_bounds():
    fetcher = FakeFetcher()
    cache = BoundsQueryCache(fetcher=fetcher, precision=3)
    wobbly = BoundingBox(south=37.70004, west=-122.52003, north=37.82001, east=-122.35004)

    await cache.query(Vertical.RESTROOM, wobbly)
    await cache.query(Vertical.RESTROOM, BBOX)

    assert len(fetcher.calls) == 1
    assert fetcher.calls[0] == (Vertical.RESTROOM, BBOX.quantize(3))


@pytest.mark.asyncio
async def test_concurrent_queries_share_one_fetch():
    fetcher = FakeFetcher()
    cache = BoundsQueryCache(fetcher=fetcher)

    a, b = await asyncio.gather(cache.query(Vertical.RESTROOM, BBOX),
                                cache.query(Vertical.RESTROOM, BBOX))

    assert len(fetcher.calls) == 1
    assert a == b
    assert cache.stats()["coalesced"] == 1


@pytest.mark.asyncio
async def test_verticals_are_cached_separately():
    fetcher = FakeFetcher()
    cache = BoundsQueryCache(fetcher=fetcher)

    await cache.query(Vertical.RESTROOM, BBOX)
    await cache.query(Vertical.SHOWER, BBOX)

    assert [c[0] for c in fetcher.calls] == [Vertical.RESTROOM, Vertical.SHOWER]


@pytest.mark.asyncio
async def test_entry_expires_after_ttl():
    fetcher = FakeFetcher()
    clock = FakeClock()
    cache = BoundsQueryCache(fetcher=fetcher, ttl_seconds=300, clock=clock)

    await cache.query(Vertical.RESTROOM, BBOX)
    clock.now += 299
    await cache.query(Vertical.RESTROOM, BBOX)
    assert len(fetcher.calls) == 1

    clock.now += 2
    await cache.query(Vertical.RESTROOM, BBOX)
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_least_recently_used_entry_is_evicted():
    fetcher = FakeFetcher()
    cache = BoundsQueryCache(fetcher=fetcher, max_entries=2)
    box_a = BBOX
    box_b = BoundingBox(south=40.70, west=-74.02, north=40.80, east=-73.93)
    box_c = BoundingBox(south=51.45, west=-0.20, north=51.55, east=-0.05)

    await cache.query(Vertical.RESTROOM, box_a)
    await cache.query(Vertical.RESTROOM, box_b)
    await cache.query(Vertical.RESTROOM, box_a)  # a is now most recent
    await cache.query(Vertical.RESTROOM, box_c)  # evicts b

    assert len(cache) == 2
    assert cache.stats()["evictions"] == 1

    await cache.query(Vertical.RESTROOM, box_a)
    assert len(fetcher.calls) == 3
    await cache.query(Vertical.RESTROOM, box_b)
    assert len(fetcher.calls) == 4


@pytest.mark.asyncio
async def test_failure_is_not_cached():
    fetcher = FakeFetcher(failures=1)
    cache = BoundsQueryCache(fetcher=fetcher)

    with pytest.raises(GeodataFetchError) as excinfo:
        await cache.query(Vertical.RESTROOM, BBOX)
    assert excinfo.value.vertical is Vertical.RESTROOM
    assert excinfo.value.bbox == BBOX.quantize(3)
    assert isinstance(excinfo.value.cause, APIError)
    assert cache.stats()["in_flight"] == 0
    assert len(cache) == 0

    amenities = await cache.query(Vertical.RESTROOM, BBOX)
    assert len(amenities) == 2
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_waiting_callers_share_the_same_failure():
    fetcher = FakeFetcher(failures=1)
    cache = BoundsQueryCache(fetcher=fetcher)

    results = await asyncio.gather(cache.query(Vertical.RESTROOM, BBOX),
                                   cache.query(Vertical.RESTROOM, BBOX),
                                   return_exceptions=True)

    assert len(fetcher.calls) == 1
    assert all(isinstance(r, GeodataFetchError) for r in results)
    assert results[0] is results[1]


@pytest.mark.asyncio
async def test_result_is_stored_even_if_caller_cancels():
    gate = asyncio.Event()
    fetcher = FakeFetcher(gate=gate)
    cache = BoundsQueryCache(fetcher=fetcher)

    caller = asyncio.ensure_future(cache.query(Vertical.RESTROOM, BBOX))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    caller.cancel()
    gate.set()
    for _ in range(10):
        await asyncio.sleep(0)

    assert caller.cancelled()
    assert len(cache) == 1
    await cache.query(Vertical.RESTROOM, BBOX)
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_sweep_and_clear():
    fetcher = FakeFetcher()
    clock = FakeClock()
    cache = BoundsQueryCache(fetcher=fetcher, ttl_seconds=60, clock=clock)

    await cache.query(Vertical.RESTROOM, BBOX)
    await cache.query(Vertical.DOG_PARK, BBOX)
    clock.now += 61
    assert cache.sweep_expired() == 2
    assert len(cache) == 0

    await cache.query(Vertical.RESTROOM, BBOX)
    cache.clear()
    assert len(cache) == 0


def test_invalid_configuration():
    with pytest.raises(ValueError):
        BoundsQueryCache(fetcher=FakeFetcher(), max_entries=0)
    with pytest.raises(ValueError):
        BoundsQueryCache(fetcher=FakeFetcher(), ttl_seconds=0)
