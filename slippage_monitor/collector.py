# -*- coding: utf-8 -*-
"""
Periodic slippage collector.

Runs one comparison cycle immediately and then every `refresh_interval`
seconds, appending each ComparisonRecord to the record file.

Usage:
    python -m slippage_monitor.collector --asset BTC --size 100000 --side buy
"""
import argparse
import logging
import threading
import time
from typing import Callable, List, Optional

from .comparator import ComparisonRecord
from .config import ASSETS, Settings, load_settings
from .errors import StorageError
from .logger import setup_logger
from .poller import SlippageComparator
from .storage import RecordStore

logger = logging.getLogger(__name__)

VENUE_LABELS = {'hyperliquid': 'HL', 'lighter': 'LT', 'aster': 'AS', 'binance': 'BN'}


def format_summary(record: ComparisonRecord) -> str:
    """One log line per cycle: mid, per-venue bps, winner."""
    mid = f"${record.mean_mid_price:,.2f}" if record.mean_mid_price else "N/A"
    parts = []
    for venue in record.venues:
        result = record.per_venue[venue]
        label = VENUE_LABELS.get(venue, venue)
        bps = f"{result.slippage_bps:.2f}" if result.valid else 'N/A'
        if venue in record.stale_venues:
            bps += '*'
        parts.append(f"{label}={bps}")
    winner = record.winner.upper() if record.winner else 'N/A'
    return f"{record.asset} Mid Price: {mid} | Slippage (bps): {', '.join(parts)} | Winner: {winner}"


class Collector:
    """
    Drives polling cycles on a fixed schedule.

    Cycles never overlap: a cycle that overruns the interval makes the
    loop skip the ticks it missed, and a second run_cycle() call while one
    is in flight is refused.
    """

    def __init__(
        self,
        comparator: SlippageComparator,
        store: RecordStore,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.comparator = comparator
        self.store = store
        self.settings = settings
        self.clock = clock
        self.sleep = sleep
        self._cycle_lock = threading.Lock()

    def run_cycle(self) -> Optional[ComparisonRecord]:
        """
        Run and persist one cycle. Returns None if a cycle is already running.
        StorageError propagates to the caller.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Previous cycle still running; skipping this one")
            return None
        try:
            s = self.settings
            logger.info(f"Collecting {s.asset} data...")
            record = self.comparator.compare_asset(s.asset, s.trade_size, s.side)
            logger.info(format_summary(record))
            total = self.store.append(record)
            logger.info(f"Saved! Total records: {total}")
            return record
        finally:
            self._cycle_lock.release()

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """Run cycles until interrupted (or max_cycles). Returns cycles run."""
        interval = self.settings.refresh_interval
        next_tick = self.clock()
        cycles = 0

        while max_cycles is None or cycles < max_cycles:
            try:
                self.run_cycle()
            except StorageError as e:
                logger.error(f"Could not save record: {e}")
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            next_tick += interval
            now = self.clock()
            if now > next_tick:
                missed = int((now - next_tick) // interval) + 1
                logger.warning(f"Cycle overran the {interval:.0f}s interval; skipping {missed} tick(s)")
                next_tick += missed * interval
            self.sleep(max(0.0, next_tick - now))

        return cycles


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collect cross-venue slippage records")
    parser.add_argument('--asset', choices=sorted(ASSETS), help="Asset to poll")
    parser.add_argument('--size', type=float, help="Trade size in USD")
    parser.add_argument('--side', choices=['buy', 'sell'])
    parser.add_argument('--interval', type=float, help="Seconds between cycles")
    parser.add_argument('--data-file', help="JSON record file")
    parser.add_argument('--once', action='store_true', help="Run a single cycle and exit")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    if args.asset:
        settings.asset = args.asset
    if args.size is not None:
        settings.trade_size = args.size
    if args.side:
        settings.side = args.side
    if args.interval is not None:
        settings.refresh_interval = args.interval
    if args.data_file:
        settings.data_file = args.data_file
    settings.validate()

    setup_logger('slippage_monitor', level=settings.log_level)

    logger.info("=" * 60)
    logger.info("Slippage Data Collector")
    logger.info(f"Asset: {settings.asset} | Trade Size: ${settings.trade_size:,.0f} | "
                f"Side: {settings.side} | Interval: {settings.refresh_interval:.0f}s | "
                f"Data File: {settings.data_file}")
    logger.info("=" * 60)

    comparator = SlippageComparator.from_settings(settings)
    store = RecordStore(settings.data_file, settings.max_records, config={
        'asset': settings.asset,
        'tradeSize': settings.trade_size,
        'side': settings.side,
        'refreshInterval': settings.refresh_interval,
        'maxRecords': settings.max_records,
    })
    collector = Collector(comparator, store, settings)

    if args.once:
        collector.run_cycle()
        return 0

    try:
        collector.run_forever()
    except KeyboardInterrupt:
        logger.info("Collector stopped.")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
