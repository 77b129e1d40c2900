import asyncio

import pytest

from autotrader.core import TTLCache, Ticker

from fakes import FakeClock


def test_cache_expiry_uses_injected_clock():
    clock = FakeClock(0.0)
    cache = TTLCache(ttl=60, clock=clock)
    cache.set("a", 1)

    assert cache.get("a") == 1
    assert "a" in cache
    clock.advance(60)
    assert cache.get("a") is None
    assert "a" not in cache
    assert cache.stats()['hits'] == 1
    assert cache.stats()['misses'] == 1


def test_cache_per_entry_ttl_and_purge():
    clock = FakeClock(0.0)
    cache = TTLCache(ttl=60, clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2)
    clock.advance(10)

    assert cache.purge_expired() == 1
    assert len(cache) == 1
    cache.delete("long")
    cache.delete("missing")
    assert len(cache) == 0


def test_cache_evicts_entry_closest_to_expiry():
    clock = FakeClock(0.0)
    cache = TTLCache(ttl=60, max_size=2, clock=clock)
    cache.set("first", 1)
    clock.advance(1)
    cache.set("second", 2)
    cache.set("third", 3)

    assert "first" not in cache
    assert cache.get("second") == 2
    assert cache.get("third") == 3


def test_get_or_load_caches_values_but_not_failures():
    cache = TTLCache(ttl=60, clock=FakeClock(0.0))
    calls = []

    async def load_value():
        calls.append("value")
        return {"score": 80}

    async def load_none():
        calls.append("none")
        return None

    async def load_error():
        calls.append("error")
        raise ConnectionError("down")

    async def run():
        assert await cache.get_or_load("a", load_value) == {"score": 80}
        assert await cache.get_or_load("a", load_value) == {"score": 80}
        assert await cache.get_or_load("b", load_none) is None
        assert await cache.get_or_load("b", load_none) is None
        with pytest.raises(ConnectionError):
            await cache.get_or_load("c", load_error)
        assert "c" not in cache

    asyncio.run(run())
    assert calls == ["value", "none", "none", "error"]


def test_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Ticker("bad", 0, None)


def test_ticker_runs_and_counts_errors():
    seen = []

    async def flaky():
        seen.append(len(seen))
        if len(seen) == 1:
            raise RuntimeError("first iteration fails")

    async def run():
        ticker = Ticker("flaky", 0.01, flaky)
        ticker.start()
        with pytest.raises(RuntimeError):
            ticker.start()
        await asyncio.sleep(0.1)
        await ticker.stop()
        return ticker

    ticker = asyncio.run(run())
    assert ticker.errors == 1
    assert ticker.iterations >= 2
    assert ticker.last_run is not None
    assert not ticker.running


def test_stop_waits_for_in_flight_iteration():
    finished = []

    async def slow():
        await asyncio.sleep(0.05)
        finished.append(True)

    async def run():
        ticker = Ticker("slow", 10.0, slow)
        ticker.start()
        await asyncio.sleep(0.01)
        assert ticker.in_flight
        await ticker.stop()
        return ticker

    ticker = asyncio.run(run())
    assert finished == [True]
    assert ticker.iterations == 1
    assert not ticker.in_flight


def test_trigger_refused_while_in_flight():
    release = []

    async def gated():
        while not release:
            await asyncio.sleep(0.005)

    async def run():
        ticker = Ticker("gated", 10.0, gated, run_immediately=False)
        first = asyncio.ensure_future(ticker.trigger())
        await asyncio.sleep(0.01)
        refused = await ticker.trigger()
        release.append(True)
        accepted = await first
        return ticker, refused, accepted

    ticker, refused, accepted = asyncio.run(run())
    assert accepted
    assert not refused
    assert ticker.rejected_triggers == 1
    assert ticker.iterations == 1


def test_delayed_ticker_stopped_before_first_interval():
    calls = []

    async def tick():
        calls.append(1)

    async def run():
        ticker = Ticker("delayed", 10.0, tick, run_immediately=False)
        ticker.start()
        await asyncio.sleep(0.01)
        await ticker.stop()

    asyncio.run(run())
    assert calls == []
