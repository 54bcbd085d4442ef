import time
from datetime import datetime, timedelta, timezone

from slippage_monitor.comparator import build_record
from slippage_monitor.exchanges import Snapshot
from slippage_monitor.orderbook import book_from_levels
from slippage_monitor.slippage import FillResult

T0 = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_book(bids, asks, timestamp=0.0):
    return book_from_levels(bids, asks, timestamp=timestamp)


def deep_book(mid=100.0, step=1.0, size=1.0, depth=5):
    bids = [(mid - step * (i + 1), size) for i in range(depth)]
    asks = [(mid + step * (i + 1), size) for i in range(depth)]
    return make_book(bids, asks)


def fill(pct, mid=100.0):
    """A valid FillResult with the given slippage percentage."""
    return FillResult(valid=True, side='buy', mid_price=mid, avg_execution_price=mid * (1 + pct / 100),
                      slippage_pct=pct, slippage_bps=pct * 100, levels_consumed=1)


def record_at(minutes, winner_pcts, asset='BTC', notional=100000.0):
    """Record dict `minutes` after T0; winner_pcts maps venue -> pct or None (invalid)."""
    per_venue = {
        venue: fill(pct) if pct is not None else FillResult.invalid('upstream_unavailable', 'buy')
        for venue, pct in winner_pcts.items()
    }
    record = build_record(asset, notional, 'buy', per_venue, now=T0 + timedelta(minutes=minutes))
    return record.to_dict()


class FakeProvider:
    """Stands in for a venue adapter."""

    endpoint = 'https://example.invalid/depth'

    def __init__(self, name, book=None, error=None, delay=0.0, stale=False):
        self.name = name
        self.book = book
        self.error = error
        self.delay = delay
        self.stale = stale
        self.calls = []

    def fetch_snapshot(self, asset):
        self.calls.append(asset)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return Snapshot(venue=self.name, book=self.book, stale=self.stale, age=5.0 if self.stale else 0.0)


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
