from __future__ import annotations

from datetime import timedelta

import pytest

from services.ttl_cache import TtlCache
from tests.helpers.clocks import FakeUtcClock


def test_entry_is_served_until_expiry(utc_clock: FakeUtcClock) -> None:
    cache: TtlCache[int] = TtlCache(default_ttl=timedelta(seconds=60), clock=utc_clock)
    cache.put("AAPL", 1, source="finnhub")

    utc_clock.advance(seconds=59)
    entry = cache.get("AAPL")

    assert entry is not None
    assert entry.value == 1
    assert entry.source == "finnhub"


def test_entry_at_expiry_is_a_miss_and_is_dropped(utc_clock: FakeUtcClock) -> None:
    cache: TtlCache[int] = TtlCache(default_ttl=timedelta(seconds=60), clock=utc_clock)
    cache.put("AAPL", 1, source="finnhub")

    utc_clock.advance(seconds=60)

    assert cache.get("AAPL") is None
    assert len(cache) == 0


def test_explicit_ttl_overrides_default(utc_clock: FakeUtcClock) -> None:
    cache: TtlCache[int] = TtlCache(default_ttl=timedelta(hours=1), clock=utc_clock)
    cache.put("MSFT", 2, source="polygon", ttl=timedelta(milliseconds=500))

    utc_clock.advance(seconds=1)

    assert cache.get("MSFT") is None


def test_last_writer_wins(utc_clock: FakeUtcClock) -> None:
    cache: TtlCache[int] = TtlCache(default_ttl=timedelta(seconds=60), clock=utc_clock)
    cache.put("AAPL", 1, source="finnhub")
    cache.put("AAPL", 2, source="polygon")

    entry = cache.get("AAPL")

    assert entry is not None
    assert (entry.value, entry.source) == (2, "polygon")


def test_invalidate_and_clear(utc_clock: FakeUtcClock) -> None:
    cache: TtlCache[int] = TtlCache(default_ttl=timedelta(seconds=60), clock=utc_clock)
    cache.put("A", 1, source="x")
    cache.put("B", 2, source="x")

    cache.invalidate("A")
    assert cache.get("A") is None
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_default_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TtlCache(default_ttl=timedelta(0))
