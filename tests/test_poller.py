import time
from unittest.mock import patch

import pytest

from slippage_monitor import poller
from slippage_monitor.errors import NonRetryableError, RetryableError, UnknownAssetError
from slippage_monitor.poller import SlippageComparator, fetch_all
from slippage_monitor.slippage import estimate

from helpers import FakeProvider, deep_book, make_book

SHALLOW = make_book([(99, 1)], [(101, 1)])
DEEP = deep_book(mid=100.0, step=0.1, size=1000.0, depth=20)


def _providers(**books):
    return {name: FakeProvider(name, book=book) for name, book in books.items()}


class TestFetchAll:
    def test_results_in_venue_order(self):
        providers = _providers(binance=DEEP, hyperliquid=DEEP, aster=DEEP)
        results = fetch_all(providers, 'BTC', timeout=2.0)
        assert list(results) == ['hyperliquid', 'aster', 'binance']
        assert all(r.ok for r in results.values())
        assert providers['aster'].calls == ['BTC']

    def test_errors_are_isolated(self):
        providers = {
            'hyperliquid': FakeProvider('hyperliquid', book=DEEP),
            'lighter': FakeProvider('lighter', error=RetryableError("lighter timeout")),
            'aster': FakeProvider('aster', error=RuntimeError("boom")),
        }
        results = fetch_all(providers, 'BTC', timeout=2.0)
        assert results['hyperliquid'].ok
        assert results['lighter'].error == "lighter timeout"
        assert results['aster'].error == "RuntimeError: boom"

    def test_slow_venue_misses_deadline(self):
        providers = {
            'hyperliquid': FakeProvider('hyperliquid', book=DEEP),
            'binance': FakeProvider('binance', book=DEEP, delay=1.0),
        }
        start = time.monotonic()
        results = fetch_all(providers, 'ETH', timeout=0.2)
        assert time.monotonic() - start < 0.9
        assert results['hyperliquid'].ok
        assert not results['binance'].ok
        assert results['binance'].error.startswith('timeout after')

    def test_no_providers(self):
        assert fetch_all({}, 'BTC', timeout=1.0) == {}


class TestSlippageComparator:
    def test_lowest_slippage_wins(self):
        comparator = SlippageComparator(_providers(hyperliquid=SHALLOW, lighter=DEEP), fetch_timeout=2.0)
        record = comparator.compare_asset('btc', 50.0, 'buy')

        assert record.asset == 'BTC'
        assert record.winner == 'lighter'
        assert record.valid_venue_count == 2
        assert record.per_venue['lighter'].slippage_pct < record.per_venue['hyperliquid'].slippage_pct

    def test_failed_venue_is_upstream_unavailable(self):
        providers = _providers(hyperliquid=DEEP)
        providers['aster'] = FakeProvider('aster', error=NonRetryableError("aster API error: 400"))
        record = SlippageComparator(providers).compare_asset('BTC', 1000.0)

        assert record.per_venue['aster'].valid is False
        assert record.per_venue['aster'].reason == 'upstream_unavailable'
        assert record.winner == 'hyperliquid'

    def test_invalid_books_skip_estimation(self):
        crossed = make_book([(101, 1)], [(100, 1)])
        empty = make_book([], [(100, 1)])
        providers = _providers(hyperliquid=crossed, lighter=empty, aster=DEEP)

        with patch.object(poller, 'estimate', wraps=estimate) as spy:
            record = SlippageComparator(providers).compare_asset('BTC', 1000.0, 'sell')

        assert spy.call_count == 1
        assert spy.call_args[0][0] is DEEP
        assert record.per_venue['hyperliquid'].reason == 'crossed_book'
        assert record.per_venue['lighter'].reason == 'empty_book'
        assert record.winner == 'aster'
        assert record.valid_venue_count == 1

    def test_no_valid_venue_still_produces_record(self):
        providers = {
            'hyperliquid': FakeProvider('hyperliquid', error=RetryableError("down")),
            'lighter': FakeProvider('lighter', book=make_book([], [])),
        }
        record = SlippageComparator(providers).compare_asset('SOL', 500.0)
        assert record.winner is None
        assert record.valid_venue_count == 0
        assert record.mean_mid_price is None
        assert set(record.per_venue) == {'hyperliquid', 'lighter'}

    def test_stale_venues_are_flagged(self):
        providers = _providers(hyperliquid=DEEP)
        providers['lighter'] = FakeProvider('lighter', book=DEEP, stale=True)
        record = SlippageComparator(providers).compare_asset('BTC', 1000.0)
        assert record.stale_venues == ('lighter',)
        assert record.per_venue['lighter'].valid

    def test_rejects_bad_input(self):
        comparator = SlippageComparator(_providers(hyperliquid=DEEP))
        with pytest.raises(UnknownAssetError):
            comparator.compare_asset('DOGE', 1000.0)
        with pytest.raises(ValueError):
            comparator.compare_asset('BTC', 1000.0, 'hold')
        with pytest.raises(ValueError):
            comparator.compare_asset('BTC', 0)
        assert comparator.providers['hyperliquid'].calls == []

    def test_snapshot_books(self):
        comparator = SlippageComparator(_providers(aster=DEEP, lighter=SHALLOW))
        fetches = comparator.snapshot_books('eth')
        assert comparator.venues == ['lighter', 'aster']
        assert list(fetches) == ['lighter', 'aster']
        assert fetches['lighter'].snapshot.book is SHALLOW
        assert comparator.providers['aster'].calls == ['ETH']
