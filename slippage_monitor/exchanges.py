# -*- coding: utf-8 -*-
"""
Venue adapters.

Each adapter knows one venue's depth endpoint and symbol scheme. It either
returns a normalized OrderBook or raises ExchangeError; the poller turns
those errors into invalid results, so nothing here decides validity.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import AssetConfig, Settings, get_asset
from .errors import ExchangeError, NonRetryableError, RetryableError
from .orderbook import OrderBook, parse_book, validate

logger = logging.getLogger(__name__)

RETRY_ATTEMPTS = 2
RETRY_BACKOFF = 0.2  # seconds before the second attempt

# Network/timeout errors get one more try; everything else fails fast
retryable = retry(
    retry=retry_if_exception_type(RetryableError),
    stop=stop_after_attempt(RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=RETRY_BACKOFF, max=1.0),
    reraise=True,
)


def request_timeout(deadline: float) -> float:
    """
    Per-request timeout for a venue fetch that must finish within `deadline`.

    Both attempts plus the backoff between them finish inside the deadline,
    so a stalled venue fails while the poller is still waiting on it.
    """
    return max(0.05, (deadline - RETRY_BACKOFF) / (RETRY_ATTEMPTS + 1))


@dataclass(frozen=True)
class Snapshot:
    """An order book plus where and how fresh it is."""
    venue: str
    book: OrderBook
    stale: bool = False
    age: float = 0.0


class VenueAPI:
    """Shared HTTP plumbing for the REST depth adapters."""

    name = ''
    BASE_URL = ''

    def __init__(
        self,
        timeout: float = 5.0,
        depth_limit: int = 100,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.depth_limit = depth_limit
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

    @property
    def endpoint(self) -> str:
        return self.BASE_URL

    def _timeouts(self) -> Tuple[float, float]:
        """(connect, read) timeout pair for requests."""
        return (min(3.05, self.timeout), self.timeout)

    @retryable
    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, url, timeout=self._timeouts(), **kwargs)
        except requests.exceptions.Timeout as e:
            raise RetryableError(f"{self.name} timeout: {e}")
        except requests.exceptions.ConnectionError as e:
            raise RetryableError(f"{self.name} connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise NonRetryableError(f"{self.name} request failed: {e}")

        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableError(f"{self.name} API error: {response.status_code}")
        if response.status_code != 200:
            raise NonRetryableError(f"{self.name} API error: {response.status_code}")

        try:
            return response.json()
        except ValueError:
            raise NonRetryableError(f"{self.name} returned a non-JSON body")

    def symbol_for(self, config: AssetConfig) -> Any:
        raise NotImplementedError

    def get_orderbook(self, symbol: Any) -> Any:
        """Raw depth payload for a venue symbol."""
        raise NotImplementedError

    def fetch_order_book(self, asset: str) -> OrderBook:
        config = get_asset(asset)
        symbol = self.symbol_for(config)
        if symbol is None:
            raise NonRetryableError(f"{self.name} does not list {asset}")
        raw = self.get_orderbook(symbol)
        return parse_book(raw)

    def fetch_snapshot(self, asset: str) -> Snapshot:
        return Snapshot(venue=self.name, book=self.fetch_order_book(asset))


class HyperliquidAPI(VenueAPI):
    name = 'hyperliquid'
    BASE_URL = "https://api.hyperliquid.xyz/info"

    def symbol_for(self, config: AssetConfig) -> Optional[str]:
        return config.hyperliquid_symbol

    def get_orderbook(self, symbol: str) -> Any:
        payload = {"type": "l2Book", "coin": symbol}
        return self._request('POST', self.BASE_URL, json=payload)


class LighterAPI(VenueAPI):
    name = 'lighter'
    BASE_URL = "https://mainnet.zklighter.elliot.ai/api/v1"

    def __init__(self, auth_token: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        # Read-only token; public depth works without it
        if auth_token:
            self.session.headers.update({'Authorization': auth_token})

    @property
    def endpoint(self) -> str:
        return f"{self.BASE_URL}/orderBookOrders"

    def symbol_for(self, config: AssetConfig) -> Optional[int]:
        return config.lighter_market_id

    def get_orderbook(self, market_id: int) -> Any:
        params = {'market_id': market_id, 'limit': self.depth_limit}
        return self._request('GET', self.endpoint, params=params)


class AsterAPI(VenueAPI):
    name = 'aster'
    BASE_URL = "https://fapi.asterdex.com/fapi/v1"

    @property
    def endpoint(self) -> str:
        return f"{self.BASE_URL}/depth"

    def symbol_for(self, config: AssetConfig) -> Optional[str]:
        return config.aster_symbol

    def get_orderbook(self, symbol: str) -> Any:
        params = {'symbol': symbol, 'limit': self.depth_limit}
        return self._request('GET', self.endpoint, params=params)


class BinanceAPI(AsterAPI):
    """Binance USD-M futures; Aster serves the same depth format."""
    name = 'binance'
    BASE_URL = "https://fapi.binance.com/fapi/v1"

    def symbol_for(self, config: AssetConfig) -> Optional[str]:
        return config.binance_symbol


# =============================================================================
# STALENESS-TOLERANT PROVIDER
# =============================================================================

class StaleTolerantProvider:
    """
    Wraps an adapter and remembers its last valid book per asset.

    When the venue fails, the remembered book is served instead, labeled
    stale, as long as it is no older than `ttl` seconds by `clock`.
    Otherwise the original error is re-raised.
    """

    def __init__(self, inner: VenueAPI, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.inner = inner
        self.ttl = ttl
        self.clock = clock
        self._last_good: Dict[str, Tuple[float, OrderBook]] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.inner.name

    @property
    def endpoint(self) -> str:
        return self.inner.endpoint

    def fetch_snapshot(self, asset: str) -> Snapshot:
        try:
            book = self.inner.fetch_order_book(asset)
        except ExchangeError as e:
            with self._lock:
                cached = self._last_good.get(asset)
            if cached is None:
                raise
            fetched_at, book = cached
            age = self.clock() - fetched_at
            if age > self.ttl:
                raise
            logger.warning(f"{self.name} unavailable ({e}); serving {asset} book {age:.1f}s old")
            return Snapshot(venue=self.name, book=book, stale=True, age=age)

        if validate(book):
            with self._lock:
                self._last_good[asset] = (self.clock(), book)
        return Snapshot(venue=self.name, book=book)

    def fetch_order_book(self, asset: str) -> OrderBook:
        return self.fetch_snapshot(asset).book


def build_providers(settings: Settings) -> Dict[str, Any]:
    """One provider per venue in canonical order, wrapped for stale fallback."""
    kwargs = {'timeout': request_timeout(settings.fetch_timeout), 'depth_limit': settings.depth_limit}
    adapters = [
        HyperliquidAPI(**kwargs),
        LighterAPI(auth_token=settings.lighter_auth_token, **kwargs),
        AsterAPI(**kwargs),
        BinanceAPI(**kwargs),
    ]
    if settings.stale_ttl <= 0:
        return {a.name: a for a in adapters}
    return {a.name: StaleTolerantProvider(a, ttl=settings.stale_ttl) for a in adapters}
