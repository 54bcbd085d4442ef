# -*- coding: utf-8 -*-
"""
Reports over collected slippage records.

Usage:
    python -m slippage_monitor.viewer [summary|last [n]|hourly|winners|export]
"""
import argparse
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .comparator import VENUES, venue_order
from .config import load_settings
from .errors import StorageError
from .storage import RecordStore, export_csv

LABELS = {'hyperliquid': 'Hyperliquid', 'lighter': 'Lighter', 'aster': 'Aster', 'binance': 'Binance'}
SHORT = {'hyperliquid': 'HL', 'lighter': 'LT', 'aster': 'AS', 'binance': 'BN'}


def parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def record_venues(records: Sequence[Mapping[str, Any]]) -> List[str]:
    """Venues appearing in any record, canonical order first."""
    names = set()
    for r in records:
        names.update(r.get('venues') or [v for v in VENUES if isinstance(r.get(v), Mapping)])
    return venue_order(names)


def venue_bps(record: Mapping[str, Any], venue: str) -> Optional[float]:
    result = record.get(venue)
    if not isinstance(result, Mapping) or not result.get('valid'):
        return None
    return result.get('slippageBps')


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def top_winner(wins: Mapping[str, int], venues: Sequence[str]) -> Optional[str]:
    """Venue with most wins; earlier venue wins ties. None if nobody won."""
    best = None
    for venue in venues:
        count = wins.get(venue, 0)
        if count > 0 and (best is None or count > wins[best]):
            best = venue
    return best


# =============================================================================
# REPORT BUILDERS
# =============================================================================

def build_summary(records: Sequence[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not records:
        return None

    venues = record_venues(records)
    total = len(records)
    wins = {v: 0 for v in venues}
    samples: Dict[str, List[float]] = {v: [] for v in venues}

    for r in records:
        if r.get('winner') in wins:
            wins[r['winner']] += 1
        for v in venues:
            bps = venue_bps(r, v)
            if bps is not None:
                samples[v].append(bps)

    return {
        'total': total,
        'first': records[0].get('timestamp'),
        'last': records[-1].get('timestamp'),
        'asset': records[0].get('asset'),
        'tradeSize': records[0].get('tradeSize'),
        'wins': {v: {'count': wins[v], 'pct': wins[v] / total * 100} for v in venues},
        'slippage': {
            v: {
                'avg': _mean(samples[v]),
                'min': min(samples[v]) if samples[v] else None,
                'max': max(samples[v]) if samples[v] else None,
                'samples': len(samples[v]),
            }
            for v in venues
        },
    }


def build_last(records: Sequence[Mapping[str, Any]], n: int = 10) -> List[Dict[str, Any]]:
    venues = record_venues(records)
    rows = []
    for r in reversed(records[-n:] if n > 0 else []):
        rows.append({
            'timestamp': r.get('timestamp'),
            'winner': r.get('winner'),
            'bps': {v: venue_bps(r, v) for v in venues},
        })
    return rows


def _bucketed(records: Sequence[Mapping[str, Any]], key_format: str) -> 'OrderedDict[str, List[Mapping[str, Any]]]':
    buckets: 'OrderedDict[str, List[Mapping[str, Any]]]' = OrderedDict()
    for r in records:
        key = parse_timestamp(r['timestamp']).strftime(key_format)
        buckets.setdefault(key, []).append(r)
    return OrderedDict(sorted(buckets.items()))


def build_hourly(records: Sequence[Mapping[str, Any]], limit: int = 24) -> List[Dict[str, Any]]:
    """Per UTC hour: count, most frequent winner and mean bps per venue."""
    venues = record_venues(records)
    rows = []
    for hour, bucket in _bucketed(records, '%Y-%m-%dT%H:00').items():
        wins = {v: 0 for v in venues}
        for r in bucket:
            if r.get('winner') in wins:
                wins[r['winner']] += 1
        avg = {}
        for v in venues:
            values = [b for b in (venue_bps(r, v) for r in bucket) if b is not None]
            avg[v] = _mean(values)
        rows.append({'hour': hour, 'count': len(bucket), 'winner': top_winner(wins, venues), 'avg': avg})
    return rows[-limit:]


def build_daily_winners(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    venues = record_venues(records)
    rows = []
    for day, bucket in _bucketed(records, '%Y-%m-%d').items():
        wins = {v: 0 for v in venues}
        for r in bucket:
            if r.get('winner') in wins:
                wins[r['winner']] += 1
        rows.append({'day': day, 'total': len(bucket), 'wins': wins, 'winner': top_winner(wins, venues)})
    return rows


# =============================================================================
# PRINTING
# =============================================================================

def _fmt(value: Optional[float], width: int = 8) -> str:
    text = f"{value:.2f}" if value is not None else 'N/A'
    return text.ljust(width)


def print_summary(records: Sequence[Mapping[str, Any]]) -> None:
    summary = build_summary(records)
    if not summary:
        print("No records found.")
        return

    print("\n" + "=" * 66)
    print("DATA SUMMARY")
    print("=" * 66)
    print(f"Total Records:    {summary['total']}")
    print(f"First Record:     {summary['first']}")
    print(f"Last Record:      {summary['last']}")
    print(f"Asset:            {summary['asset']}")
    print(f"Trade Size:       ${summary['tradeSize']:,.0f}")
    print("-" * 66)
    print("WIN COUNTS")
    for venue, w in summary['wins'].items():
        print(f"  {LABELS.get(venue, venue):<16}{w['count']:<10} ({w['pct']:.1f}%)")
    print("-" * 66)
    print("SLIPPAGE STATS (bps)")
    print(f"  {'Platform':<14}| {'Avg':<8} | {'Min':<8} | {'Max':<8} | Samples")
    for venue, s in summary['slippage'].items():
        print(f"  {LABELS.get(venue, venue):<14}| {_fmt(s['avg'])} | {_fmt(s['min'])} | {_fmt(s['max'])} | {s['samples']}")
    print("=" * 66 + "\n")


def print_last(records: Sequence[Mapping[str, Any]], n: int = 10) -> None:
    rows = build_last(records, n)
    venues = record_venues(records)
    print(f"\nLast {len(rows)} Records:\n")
    print(f"{'Timestamp':<25} | {'Winner':<11} | " + " | ".join(f"{SHORT.get(v, v) + ' (bps)':<9}" for v in venues))
    print("-" * (40 + 12 * len(venues)))
    for row in rows:
        cells = " | ".join(_fmt(row['bps'][v], 9) for v in venues)
        print(f"{row['timestamp']:<25} | {(row['winner'] or 'N/A'):<11} | {cells}")
    print("")


def print_hourly(records: Sequence[Mapping[str, Any]]) -> None:
    rows = build_hourly(records)
    venues = record_venues(records)
    print("\nHourly Summary:\n")
    print(f"{'Hour (UTC)':<20} | {'Count':<5} | {'Winner':<11} | " + " | ".join(f"{'Avg ' + SHORT.get(v, v):<8}" for v in venues))
    print("-" * (45 + 11 * len(venues)))
    for row in rows:
        cells = " | ".join(_fmt(row['avg'][v]) for v in venues)
        print(f"{row['hour']:<20} | {row['count']:<5} | {(row['winner'] or 'N/A'):<11} | {cells}")
    print("")


def print_winners(records: Sequence[Mapping[str, Any]]) -> None:
    rows = build_daily_winners(records)
    venues = record_venues(records)
    print("\nDaily Winner Breakdown:\n")
    print(f"{'Date':<10} | {'Total':<5} | " + " | ".join(f"{LABELS.get(v, v):<11}" for v in venues) + " | Top Winner")
    print("-" * (30 + 14 * len(venues)))
    for row in rows:
        cells = " | ".join(f"{row['wins'][v]:<11}" for v in venues)
        print(f"{row['day']:<10} | {row['total']:<5} | {cells} | {row['winner'] or 'N/A'}")
    print("")


def export_records(records: Sequence[Mapping[str, Any]], filename: Optional[str] = None) -> str:
    filename = filename or f"slippage-export-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.csv"
    count = export_csv(records, filename, record_venues(records) or VENUES)
    print(f"Exported {count} records to {filename}")
    return filename


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Analyze collected slippage data")
    parser.add_argument('command', nargs='?', default='summary',
                        choices=['summary', 'last', 'hourly', 'winners', 'export'])
    parser.add_argument('n', nargs='?', type=int, default=10, help="Records to show for 'last'")
    parser.add_argument('--data-file', help="JSON record file")
    args = parser.parse_args(argv)

    settings = load_settings()
    store = RecordStore(args.data_file or settings.data_file)
    try:
        records = store.records()
    except StorageError as e:
        print(f"Error: {e}")
        return 1
    if not records:
        print("No data found. Run the collector first.")
        return 1

    if args.command == 'summary':
        print_summary(records)
    elif args.command == 'last':
        print_last(records, args.n)
    elif args.command == 'hourly':
        print_hourly(records)
    elif args.command == 'winners':
        print_winners(records)
    elif args.command == 'export':
        export_records(records)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
