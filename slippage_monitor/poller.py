# -*- coding: utf-8 -*-
"""
One polling cycle: fetch every venue at once, estimate, compare.

Fetches fan out over a thread pool and the cycle joins on all of them,
bounded by a deadline. A venue that errors or misses the deadline is
recorded as unavailable; it never blocks or fails the other venues.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .comparator import ComparisonRecord, build_record, venue_order
from .config import Settings, get_asset
from .errors import ExchangeError
from .exchanges import Snapshot, build_providers
from .orderbook import invalid_reason
from .slippage import SIDES, FillResult, estimate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VenueFetch:
    """Outcome of one venue fetch: a snapshot or an error message."""
    venue: str
    snapshot: Optional[Snapshot] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None


def fetch_all(providers: Mapping[str, Any], asset: str, timeout: float) -> Dict[str, VenueFetch]:
    """
    Fetch `asset` from every provider concurrently.

    Args:
        providers: venue name -> object with fetch_snapshot(asset)
        asset: Asset key, already validated by the caller
        timeout: Seconds to wait for the slowest venue

    Returns:
        venue -> VenueFetch, in canonical venue order
    """
    order = venue_order(providers)
    if not order:
        return {}

    pool = ThreadPoolExecutor(max_workers=len(order), thread_name_prefix='venue-fetch')
    try:
        futures = {venue: pool.submit(providers[venue].fetch_snapshot, asset) for venue in order}
        wait(futures.values(), timeout=timeout)
    finally:
        # Stalled fetches are abandoned, not joined
        pool.shutdown(wait=False, cancel_futures=True)

    results: Dict[str, VenueFetch] = {}
    for venue in order:
        future = futures[venue]
        if not future.done():
            future.cancel()
            logger.warning(f"{venue}: no order book within {timeout:.1f}s")
            results[venue] = VenueFetch(venue, error=f"timeout after {timeout:.1f}s")
            continue
        try:
            results[venue] = VenueFetch(venue, snapshot=future.result())
        except ExchangeError as e:
            logger.warning(f"{venue}: {e}")
            results[venue] = VenueFetch(venue, error=str(e))
        except Exception as e:
            logger.exception(f"{venue}: unexpected error while fetching {asset}")
            results[venue] = VenueFetch(venue, error=f"{type(e).__name__}: {e}")
    return results


class SlippageComparator:
    """Fetches books for an asset and turns them into a ComparisonRecord."""

    def __init__(self, providers: Mapping[str, Any], fetch_timeout: float = 5.0):
        self.providers = dict(providers)
        self.fetch_timeout = fetch_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> 'SlippageComparator':
        return cls(build_providers(settings), fetch_timeout=settings.fetch_timeout)

    @property
    def venues(self):
        return venue_order(self.providers)

    def snapshot_books(self, asset: str) -> Dict[str, VenueFetch]:
        """Raw normalized books per venue. Unknown assets raise UnknownAssetError."""
        get_asset(asset)
        return fetch_all(self.providers, asset.upper(), self.fetch_timeout)

    def compare_asset(self, asset: str, notional: float, side: str = 'buy') -> ComparisonRecord:
        """
        Run one full cycle for an asset.

        Args:
            asset: Asset key such as 'BTC'
            notional: Order size in USD
            side: 'buy' or 'sell'

        Returns:
            ComparisonRecord; always produced, even with zero valid venues
        """
        get_asset(asset)
        if side not in SIDES:
            raise ValueError(f"side must be one of {SIDES}, got {side!r}")
        if notional is None or not math.isfinite(notional) or notional <= 0:
            raise ValueError(f"notional must be a positive number, got {notional!r}")

        asset_key = asset.upper()
        fetches = fetch_all(self.providers, asset_key, self.fetch_timeout)

        per_venue: Dict[str, FillResult] = {}
        stale = []
        for venue, fetch in fetches.items():
            if not fetch.ok:
                per_venue[venue] = FillResult.invalid('upstream_unavailable', side)
                continue
            if fetch.snapshot.stale:
                stale.append(venue)

            book = fetch.snapshot.book
            reason = invalid_reason(book)
            if reason:
                # Invalid books never reach the estimator
                logger.info(f"{venue}: {reason} for {asset_key}")
                per_venue[venue] = FillResult.invalid(reason, side)
                continue

            result = estimate(book, notional, side)
            if not result.valid:
                logger.info(f"{venue}: {result.reason} for {asset_key} ${notional:,.0f} {side}")
            per_venue[venue] = result

        return build_record(asset_key, notional, side, per_venue, stale_venues=stale)
