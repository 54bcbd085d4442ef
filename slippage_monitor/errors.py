"""Exception types shared across the slippage monitor."""


class SlippageMonitorError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(SlippageMonitorError):
    """Invalid or missing configuration value."""


class UnknownAssetError(SlippageMonitorError, KeyError):
    """Requested asset is not in the asset table."""

    def __init__(self, asset: str):
        super().__init__(asset)
        self.asset = asset

    def __str__(self) -> str:
        return f"Unknown asset: {self.asset}"


# ---- Upstream venue failures ----
class ExchangeError(SlippageMonitorError):
    """A venue could not deliver an order book."""


class RetryableError(ExchangeError):
    """Timeouts, dropped connections, rate limits and 5xx responses."""


class NonRetryableError(ExchangeError):
    """Client errors and undecodable payloads."""


class StorageError(SlippageMonitorError):
    """The record file could not be read or written."""
