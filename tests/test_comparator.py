import itertools
from datetime import datetime, timezone

import pytest

from slippage_monitor.comparator import (
    ComparisonRecord,
    build_record,
    compare,
    mean_mid_price,
    venue_order,
)
from slippage_monitor.slippage import FillResult

from helpers import fill

INVALID = FillResult.invalid('upstream_unavailable', 'buy')


def test_lowest_slippage_wins():
    result = compare({'hyperliquid': fill(0.5), 'lighter': fill(0.3), 'aster': INVALID})
    assert result.winner == 'lighter'
    assert result.valid_count == 2


def test_no_valid_venues():
    result = compare({'hyperliquid': INVALID, 'lighter': FillResult.invalid('crossed_book')})
    assert result.winner is None
    assert result.valid_count == 0


def test_empty_input():
    result = compare({})
    assert result.winner is None
    assert result.valid_count == 0


def test_tie_goes_to_canonical_order():
    assert compare({'binance': fill(0.2), 'lighter': fill(0.2)}).winner == 'lighter'
    assert compare({'aster': fill(0.2), 'hyperliquid': fill(0.2)}).winner == 'hyperliquid'


def test_independent_of_input_order():
    results = [('hyperliquid', fill(0.4)), ('lighter', fill(0.1)), ('aster', fill(0.1)), ('binance', INVALID)]
    outcomes = {compare(dict(perm)) for perm in itertools.permutations(results)}
    assert outcomes == {compare(dict(results))}
    assert compare(dict(results)).winner == 'lighter'


def test_valid_result_without_slippage_is_ignored():
    broken = FillResult(valid=True, slippage_pct=float('nan'))
    assert compare({'hyperliquid': broken, 'aster': fill(1.0)}).winner == 'aster'


def test_venue_order_puts_unknown_venues_last():
    assert venue_order(['zeta', 'binance', 'alpha', 'hyperliquid']) == ['hyperliquid', 'binance', 'alpha', 'zeta']


def test_mean_mid_price_over_valid_venues():
    per_venue = {'hyperliquid': fill(0.1, mid=100.0), 'lighter': fill(0.2, mid=102.0), 'aster': INVALID}
    assert mean_mid_price(per_venue) == pytest.approx(101.0)
    assert mean_mid_price({'aster': INVALID}) is None


class TestBuildRecord:
    def setup_method(self):
        self.now = datetime(2026, 10, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)
        self.record = build_record(
            'BTC', 100000.0, 'buy',
            {'aster': INVALID, 'hyperliquid': fill(0.05, mid=60000.0), 'lighter': fill(0.02, mid=60010.0)},
            stale_venues=['lighter'],
            now=self.now,
        )

    def test_fields(self):
        r = self.record
        assert r.timestamp == '2026-10-01T12:30:15.250Z'
        assert r.timestamp_ms == int(self.now.timestamp() * 1000)
        assert r.winner == 'lighter'
        assert r.valid_venue_count == 2
        assert r.mean_mid_price == pytest.approx(60005.0)
        assert r.stale_venues == ('lighter',)
        assert r.venues == ['hyperliquid', 'lighter', 'aster']

    def test_per_venue_is_read_only(self):
        with pytest.raises(TypeError):
            self.record.per_venue['binance'] = INVALID

    def test_naive_datetime_treated_as_utc(self):
        record = build_record('ETH', 10.0, 'sell', {}, now=datetime(2026, 1, 2, 3, 4, 5))
        assert record.timestamp == '2026-01-02T03:04:05.000Z'
        assert record.winner is None

    def test_dict_shape(self):
        data = self.record.to_dict()
        assert data['asset'] == 'BTC'
        assert data['tradeSize'] == 100000.0
        assert data['winner'] == 'lighter'
        assert data['validPlatforms'] == 2
        assert data['staleVenues'] == ['lighter']
        assert data['aster']['valid'] is False
        assert data['lighter']['slippage'] == pytest.approx(0.02)

    def test_from_dict_restores_record(self):
        restored = ComparisonRecord.from_dict(self.record.to_dict())
        assert restored.winner == self.record.winner
        assert restored.venues == self.record.venues
        assert restored.per_venue['hyperliquid'].slippage_pct == pytest.approx(0.05)
        assert compare(restored.per_venue).winner == 'lighter'
