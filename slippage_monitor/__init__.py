"""
Cross-venue slippage monitor.

Polls perp order books from several venues, simulates a market order of a
given USD size against each book and reports which venue fills it cheapest.

Main components:
- orderbook: canonical order book model, payload parsing, validation
- slippage: ladder-walk fill simulation
- comparator: winner selection and the per-cycle ComparisonRecord
"""

from .comparator import VENUES, Comparison, ComparisonRecord, build_record, compare
from .orderbook import OrderBook, PriceLevel, normalize, parse_book, validate
from .slippage import FillResult, estimate

__all__ = [
    "VENUES",
    "Comparison",
    "ComparisonRecord",
    "FillResult",
    "OrderBook",
    "PriceLevel",
    "build_record",
    "compare",
    "estimate",
    "normalize",
    "parse_book",
    "validate",
]
