# -*- coding: utf-8 -*-
"""
Cross-venue comparator.

Pure functions over per-venue FillResults: pick the venue with the lowest
slippage and build the immutable record a polling cycle produces.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .slippage import FillResult

# Canonical venue order. Ties on slippage go to the venue listed first.
VENUES: Tuple[str, ...] = ('hyperliquid', 'lighter', 'aster', 'binance')


def venue_order(venues: Iterable[str]) -> List[str]:
    """Known venues in canonical order, then any others sorted by name."""
    names = set(venues)
    known = [v for v in VENUES if v in names]
    extra = sorted(names.difference(VENUES))
    return known + extra


def _is_comparable(result: Optional[FillResult]) -> bool:
    return (
        result is not None
        and result.valid
        and result.slippage_pct is not None
        and math.isfinite(result.slippage_pct)
    )


@dataclass(frozen=True)
class Comparison:
    winner: Optional[str]
    valid_count: int


def compare(per_venue: Mapping[str, FillResult]) -> Comparison:
    """
    Select the venue with the lowest slippage_pct among valid results.

    The scan runs in canonical venue order with a strict comparison, so the
    outcome does not depend on the mapping's iteration order. With no valid
    venue the winner is None.
    """
    winner = None
    best_pct = None
    valid_count = 0

    for venue in venue_order(per_venue):
        result = per_venue[venue]
        if not _is_comparable(result):
            continue
        valid_count += 1
        if best_pct is None or result.slippage_pct < best_pct:
            winner = venue
            best_pct = result.slippage_pct

    return Comparison(winner=winner, valid_count=valid_count)


def mean_mid_price(per_venue: Mapping[str, FillResult]) -> Optional[float]:
    """Average mid price across valid venues, None when there are none."""
    mids = [r.mid_price for r in per_venue.values() if _is_comparable(r) and r.mid_price]
    if not mids:
        return None
    return sum(mids) / len(mids)


# =============================================================================
# COMPARISON RECORD
# =============================================================================

def _iso_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class ComparisonRecord:
    """One polling cycle's outcome. Owns its FillResults; never mutated."""
    timestamp: str
    timestamp_ms: int
    asset: str
    notional: float
    side: str
    per_venue: Mapping[str, FillResult]
    winner: Optional[str]
    valid_venue_count: int
    mean_mid_price: Optional[float] = None
    stale_venues: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def venues(self) -> List[str]:
        return venue_order(self.per_venue)

    def to_dict(self) -> Dict[str, Any]:
        """
        Flat JSON shape: record fields plus one key per venue holding that
        venue's FillResult.
        """
        data: Dict[str, Any] = {
            'timestamp': self.timestamp,
            'timestampMs': self.timestamp_ms,
            'asset': self.asset,
            'tradeSize': self.notional,
            'side': self.side,
            'winner': self.winner,
            'validPlatforms': self.valid_venue_count,
            'meanMidPrice': self.mean_mid_price,
            'staleVenues': list(self.stale_venues),
            'venues': self.venues,
        }
        for venue in self.venues:
            data[venue] = self.per_venue[venue].to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ComparisonRecord':
        venues = data.get('venues') or [v for v in VENUES if isinstance(data.get(v), Mapping)]
        per_venue = {v: FillResult.from_dict(data[v]) for v in venues if isinstance(data.get(v), Mapping)}
        return cls(
            timestamp=data.get('timestamp', ''),
            timestamp_ms=int(data.get('timestampMs') or 0),
            asset=data.get('asset', ''),
            notional=data.get('tradeSize', 0.0),
            side=data.get('side', ''),
            per_venue=MappingProxyType(per_venue),
            winner=data.get('winner'),
            valid_venue_count=int(data.get('validPlatforms') or 0),
            mean_mid_price=data.get('meanMidPrice'),
            stale_venues=tuple(data.get('staleVenues') or ()),
        )


def build_record(
    asset: str,
    notional: float,
    side: str,
    per_venue: Mapping[str, FillResult],
    stale_venues: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> ComparisonRecord:
    """Run compare() over per_venue and freeze the cycle's result."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    results = dict(per_venue)
    comparison = compare(results)
    return ComparisonRecord(
        timestamp=_iso_utc(moment),
        timestamp_ms=int(moment.timestamp() * 1000),
        asset=asset,
        notional=notional,
        side=side,
        per_venue=MappingProxyType(results),
        winner=comparison.winner,
        valid_venue_count=comparison.valid_count,
        mean_mid_price=mean_mid_price(results),
        stale_venues=tuple(venue_order(stale_venues)),
    )
