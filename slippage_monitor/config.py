# -*- coding: utf-8 -*-
"""
Asset table and environment-driven settings.

Values come from the process environment, optionally seeded from a `.env`
file in the working directory.
"""
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigError, UnknownAssetError
from .slippage import SIDES

load_dotenv()

########################################################

def get_env(key: str, default: Optional[str] = None) -> str:
    """Read an environment variable, falling back to default."""
    value = os.getenv(key, default)
    if value is None:
        raise ConfigError(f"Environment variable {key} is not set")
    return value

def get_int(key: str, default: int) -> int:
    raw = os.getenv(key, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")

def get_float(key: str, default: float) -> float:
    raw = os.getenv(key, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")

########################################################

# ASSETS - one row per asset, one symbol per venue
@dataclass(frozen=True)
class AssetConfig:
    name: str
    hyperliquid_symbol: Optional[str]
    lighter_market_id: Optional[int]
    aster_symbol: Optional[str]
    binance_symbol: Optional[str]

ASSETS: Dict[str, AssetConfig] = {
    'BTC': AssetConfig('BTC-PERP', 'BTC', 1, 'BTCUSDT', 'BTCUSDT'),
    'ETH': AssetConfig('ETH-PERP', 'ETH', 0, 'ETHUSDT', 'ETHUSDT'),
    'SOL': AssetConfig('SOL-PERP', 'SOL', 2, 'SOLUSDT', 'SOLUSDT'),
    'ARB': AssetConfig('ARB-PERP', 'ARB', 50, 'ARBUSDT', 'ARBUSDT'),
    'AVAX': AssetConfig('AVAX-PERP', 'AVAX', 9, 'AVAXUSDT', 'AVAXUSDT'),
}

def get_asset(asset_key: str) -> AssetConfig:
    """Look up an asset, raising UnknownAssetError for anything not listed."""
    config = ASSETS.get(str(asset_key).upper())
    if config is None:
        raise UnknownAssetError(asset_key)
    return config

@dataclass
class Settings:
    """Runtime settings for the collector, viewer and API server."""
    asset: str = 'BTC'
    trade_size: float = 100000.0   # USD notional
    side: str = 'buy'
    refresh_interval: float = 30.0  # seconds between cycles
    data_file: str = 'slippage-data.json'
    max_records: int = 100000       # ~35 days at 30s intervals
    fetch_timeout: float = 5.0      # per-venue deadline, seconds
    stale_ttl: float = 60.0         # how long a last-good book may be reused
    depth_limit: int = 100
    lighter_auth_token: Optional[str] = None
    port: int = 5001
    log_level: str = 'INFO'

    def validate(self) -> 'Settings':
        if self.asset.upper() not in ASSETS:
            raise ConfigError(f"Unknown asset {self.asset!r}; valid assets: {', '.join(ASSETS)}")
        if self.side not in SIDES:
            raise ConfigError(f"Side must be one of {SIDES}, got {self.side!r}")
        if self.trade_size <= 0:
            raise ConfigError("Trade size must be positive")
        if self.refresh_interval <= 0:
            raise ConfigError("Refresh interval must be positive")
        if self.fetch_timeout <= 0:
            raise ConfigError("Fetch timeout must be positive")
        if self.max_records <= 0:
            raise ConfigError("Max records must be positive")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"Unknown log level {self.log_level!r}")
        self.log_level = str(self.log_level).upper()
        self.asset = self.asset.upper()
        return self

def load_settings() -> Settings:
    """Build Settings from the environment."""
    settings = Settings(
        asset=get_env("SLIPPAGE_ASSET", "BTC"),
        trade_size=get_float("SLIPPAGE_TRADE_SIZE", 100000.0),
        side=get_env("SLIPPAGE_SIDE", "buy").lower(),
        refresh_interval=get_float("SLIPPAGE_REFRESH_INTERVAL", 30.0),
        data_file=get_env("SLIPPAGE_DATA_FILE", "slippage-data.json"),
        max_records=get_int("SLIPPAGE_MAX_RECORDS", 100000),
        fetch_timeout=get_float("SLIPPAGE_FETCH_TIMEOUT", 5.0),
        stale_ttl=get_float("SLIPPAGE_STALE_TTL", 60.0),
        depth_limit=get_int("SLIPPAGE_DEPTH_LIMIT", 100),
        lighter_auth_token=os.getenv("LIGHTER_AUTH_TOKEN") or None,
        port=get_int("PORT", 5001),
        log_level=get_env("SLIPPAGE_LOG_LEVEL", "INFO").upper(),
    )
    return settings.validate()
