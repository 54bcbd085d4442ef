# -*- coding: utf-8 -*-
"""
Order book model and validator.

Every venue hands back its ladder in its own shape: [price, size] pairs,
{'px', 'sz'} objects, {'price', 'qty'} objects and so on. Raw payloads are
parsed here into one canonical, immutable OrderBook before any slippage is
computed from them.

Parsing is done by small tagged strategies tried in a fixed priority order.
A strategy either returns the fields it recognises or None to say the shape
is not its own; the first strategy that applies wins.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceLevel:
    """One rung of a ladder: quantity available at a price. Both positive."""
    price: float
    size: float

    @property
    def notional(self) -> float:
        return self.price * self.size


@dataclass(frozen=True)
class OrderBook:
    """
    Point-in-time snapshot of both sides of a book.

    bids are sorted best to worst (highest first), asks best to worst
    (lowest first). A book is never mutated; a newer fetch replaces it.
    """
    bids: Tuple[PriceLevel, ...] = ()
    asks: Tuple[PriceLevel, ...] = ()
    timestamp: float = 0.0

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None

    @property
    def mid_price(self) -> Optional[float]:
        if not self.bids or not self.asks:
            return None
        return (self.bids[0].price + self.asks[0].price) / 2

    @property
    def spread_pct(self) -> Optional[float]:
        mid = self.mid_price
        if not mid:
            return None
        return (self.asks[0].price - self.bids[0].price) / mid * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bids': [{'price': l.price, 'size': l.size} for l in self.bids],
            'asks': [{'price': l.price, 'size': l.size} for l in self.asks],
            'timestamp': self.timestamp,
        }


# =============================================================================
# LEVEL PARSE STRATEGIES
# =============================================================================

LevelParser = Callable[[Any], Optional[Tuple[Any, Any]]]


def _pair_level(raw: Any) -> Optional[Tuple[Any, Any]]:
    """[price, size, ...] as sent by Binance-compatible depth endpoints."""
    if isinstance(raw, (list, tuple)) and len(raw) >= 2:
        return raw[0], raw[1]
    return None


def _keyed_level(price_key: str, size_key: str) -> LevelParser:
    def parse(raw: Any) -> Optional[Tuple[Any, Any]]:
        if isinstance(raw, Mapping) and price_key in raw and size_key in raw:
            return raw[price_key], raw[size_key]
        return None
    return parse


# Order matters: the first strategy that recognises a level decides its fields.
LEVEL_PARSERS: Tuple[Tuple[str, LevelParser], ...] = (
    ('pair', _pair_level),
    ('price/size', _keyed_level('price', 'size')),
    ('px/sz', _keyed_level('px', 'sz')),
    ('price/qty', _keyed_level('price', 'qty')),
    ('price/quantity', _keyed_level('price', 'quantity')),
    ('price/remaining_base_amount', _keyed_level('price', 'remaining_base_amount')),
)


def parse_level(raw: Any) -> Optional[PriceLevel]:
    """Parse one raw level. Unrecognised, non-numeric or non-positive levels give None."""
    for _tag, parser in LEVEL_PARSERS:
        fields = parser(raw)
        if fields is None:
            continue
        try:
            price = float(fields[0])
            size = float(fields[1])
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(price) and math.isfinite(size)):
            return None
        if price <= 0 or size <= 0:
            return None
        return PriceLevel(price=price, size=size)
    return None


def normalize(raw_levels: Any, side: str) -> Tuple[PriceLevel, ...]:
    """
    Convert a raw ladder into sorted PriceLevels.

    Args:
        raw_levels: Sequence of raw levels in any supported shape
        side: 'bids' (sorted descending) or 'asks' (sorted ascending)

    Returns:
        Tuple of PriceLevel, best price first. Feeds are re-sorted even when
        they claim to be sorted already.
    """
    if side not in ('bids', 'asks'):
        raise ValueError(f"side must be 'bids' or 'asks', got {side!r}")
    if not isinstance(raw_levels, (list, tuple)):
        return ()

    levels: List[PriceLevel] = []
    for raw in raw_levels:
        level = parse_level(raw)
        if level is not None:
            levels.append(level)

    levels.sort(key=lambda l: l.price, reverse=(side == 'bids'))
    return tuple(levels)


# =============================================================================
# BOOK PARSE STRATEGIES
# =============================================================================

BookParser = Callable[[Any], Optional[Tuple[Any, Any]]]


def _bids_asks_book(payload: Any) -> Optional[Tuple[Any, Any]]:
    """{'bids': [...], 'asks': [...]} (Binance, Aster, Lighter)."""
    if isinstance(payload, Mapping) and 'bids' in payload and 'asks' in payload:
        return payload['bids'], payload['asks']
    return None


def _levels_book(payload: Any) -> Optional[Tuple[Any, Any]]:
    """{'levels': [bids, asks]} (Hyperliquid l2Book)."""
    if not isinstance(payload, Mapping):
        return None
    levels = payload.get('levels')
    if isinstance(levels, (list, tuple)) and len(levels) == 2:
        return levels[0], levels[1]
    return None


def _ladder_pair_book(payload: Any) -> Optional[Tuple[Any, Any]]:
    """[bids, asks] with no envelope."""
    if (isinstance(payload, (list, tuple)) and len(payload) == 2
            and all(isinstance(side, (list, tuple)) for side in payload)):
        return payload[0], payload[1]
    return None


def _bid_ask_book(payload: Any) -> Optional[Tuple[Any, Any]]:
    """{'bid': [...], 'ask': [...]} (singular keys)."""
    if isinstance(payload, Mapping) and 'bid' in payload and 'ask' in payload:
        return payload['bid'], payload['ask']
    return None


BOOK_PARSERS: Tuple[Tuple[str, BookParser], ...] = (
    ('bids/asks', _bids_asks_book),
    ('levels', _levels_book),
    ('ladder pair', _ladder_pair_book),
    ('bid/ask', _bid_ask_book),
)


def parse_book(payload: Any, timestamp: Optional[float] = None) -> OrderBook:
    """
    Turn a raw venue payload into an OrderBook.

    A payload no strategy recognises gives an empty book, which validate()
    rejects. This is a data condition, not an error.
    """
    ts = time.time() if timestamp is None else timestamp
    for _tag, parser in BOOK_PARSERS:
        sides = parser(payload)
        if sides is None:
            continue
        return OrderBook(
            bids=normalize(sides[0], 'bids'),
            asks=normalize(sides[1], 'asks'),
            timestamp=ts,
        )
    logger.debug(f"Unrecognised order book payload of type {type(payload).__name__}")
    return OrderBook(timestamp=ts)


def book_from_levels(
    bids: Sequence[Tuple[float, float]],
    asks: Sequence[Tuple[float, float]],
    timestamp: float = 0.0,
) -> OrderBook:
    """Build a book from (price, size) pairs, applying the same normalization."""
    return OrderBook(
        bids=normalize(list(bids), 'bids'),
        asks=normalize(list(asks), 'asks'),
        timestamp=timestamp,
    )


# =============================================================================
# VALIDATION
# =============================================================================

def invalid_reason(book: Optional[OrderBook]) -> Optional[str]:
    """Why a book cannot be walked, or None if it is valid."""
    if book is None or not book.bids or not book.asks:
        return 'empty_book'
    if book.bids[0].price >= book.asks[0].price:
        return 'crossed_book'
    return None


def validate(book: Optional[OrderBook]) -> bool:
    """True iff both sides are non-empty and best bid < best ask."""
    return invalid_reason(book) is None
