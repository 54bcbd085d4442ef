# -*- coding: utf-8 -*-
"""
Slippage estimation engine.

Simulates a market order of a given USD notional against one side of a
validated order book and reports what it would cost relative to mid.

Formulas:
    mid_price = (best_bid + best_ask) / 2
    avg_execution_price = total_cost / total_base  (from walking the book)
    slippage_pct = abs(avg_execution_price - mid_price) / mid_price * 100
    slippage_bps = slippage_pct * 100
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .orderbook import OrderBook, invalid_reason

logger = logging.getLogger(__name__)

SIDES = ('buy', 'sell')


@dataclass(frozen=True)
class FillResult:
    """
    Outcome of one simulated fill. An invalid result carries no derived
    numbers, only the reason it could not be computed.
    """
    valid: bool
    side: Optional[str] = None
    mid_price: Optional[float] = None
    avg_execution_price: Optional[float] = None
    slippage_pct: Optional[float] = None
    slippage_bps: Optional[float] = None
    spread_pct: Optional[float] = None
    notional_filled: float = 0.0
    base_filled: float = 0.0
    levels_consumed: int = 0
    partial_fill: bool = False
    unfilled_notional: float = 0.0
    reason: Optional[str] = None

    @classmethod
    def invalid(cls, reason: str, side: Optional[str] = None) -> 'FillResult':
        return cls(valid=False, side=side, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase view, the shape stored in the record file."""
        return {
            'valid': self.valid,
            'side': self.side,
            'midPrice': self.mid_price,
            'avgPrice': self.avg_execution_price,
            'slippage': self.slippage_pct,
            'slippageBps': self.slippage_bps,
            'spread': self.spread_pct,
            'levels': self.levels_consumed,
            'filledUsd': self.notional_filled,
            'filledBase': self.base_filled,
            'partialFill': self.partial_fill,
            'unfilledUsd': self.unfilled_notional,
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FillResult':
        return cls(
            valid=bool(data.get('valid')),
            side=data.get('side'),
            mid_price=data.get('midPrice'),
            avg_execution_price=data.get('avgPrice'),
            slippage_pct=data.get('slippage'),
            slippage_bps=data.get('slippageBps'),
            spread_pct=data.get('spread'),
            notional_filled=data.get('filledUsd') or 0.0,
            base_filled=data.get('filledBase') or 0.0,
            levels_consumed=data.get('levels') or 0,
            partial_fill=bool(data.get('partialFill', False)),
            unfilled_notional=data.get('unfilledUsd') or 0.0,
            reason=data.get('reason'),
        )


def estimate(book: Optional[OrderBook], notional: float, side: str) -> FillResult:
    """
    Walk the ladder to fill `notional` USD and return the resulting FillResult.

    Args:
        book: Order book snapshot; invalid books short-circuit to valid=False
        notional: Order size in quote currency (USD), must be positive
        side: 'buy' walks the asks, 'sell' walks the bids

    Returns:
        FillResult. Never raises for data conditions: empty or crossed books,
        bad notionals and empty fills all come back as valid=False.
    """
    if side not in SIDES:
        raise ValueError(f"side must be one of {SIDES}, got {side!r}")

    reason = invalid_reason(book)
    if reason:
        return FillResult.invalid(reason, side)

    if notional is None or not math.isfinite(notional) or notional <= 0:
        return FillResult.invalid('bad_notional', side)

    mid_price = book.mid_price
    if not mid_price or mid_price <= 0:
        return FillResult.invalid('bad_mid_price', side)

    ladder = book.asks if side == 'buy' else book.bids

    remaining = notional
    total_cost = 0.0
    total_base = 0.0
    levels_consumed = 0

    for level in ladder:
        if remaining <= 0:
            break
        fill_usd = min(remaining, level.notional)
        total_cost += fill_usd
        total_base += fill_usd / level.price
        remaining -= fill_usd
        levels_consumed += 1

    if total_base <= 0:
        logger.debug(f"No liquidity on {side} side after {levels_consumed} levels")
        return FillResult.invalid('no_liquidity', side)

    avg_price = total_cost / total_base
    slippage_pct = abs(avg_price - mid_price) / mid_price * 100
    slippage_bps = slippage_pct * 100

    return FillResult(
        valid=True,
        side=side,
        mid_price=mid_price,
        avg_execution_price=avg_price,
        slippage_pct=slippage_pct,
        slippage_bps=slippage_bps,
        spread_pct=book.spread_pct,
        notional_filled=total_cost,
        base_filled=total_base,
        levels_consumed=levels_consumed,
        partial_fill=remaining > 0,
        unfilled_notional=max(remaining, 0.0),
    )
