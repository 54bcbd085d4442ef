#!/usr/bin/env python3
"""
Cross-Venue Slippage Comparison API

Fetches BTC/ETH/SOL/ARB/AVAX perp order books from:
- Hyperliquid
- Lighter
- Aster
- Binance

and reports which venue fills a market order of a given USD size with the
least slippage.
"""
import math
import os
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO, emit

from .config import ASSETS, get_asset, load_settings
from .errors import StorageError, UnknownAssetError
from .logger import setup_logger
from .poller import SlippageComparator
from .slippage import SIDES
from .storage import RecordStore

settings = load_settings()
logger = setup_logger('slippage_monitor', level=settings.log_level)

app = Flask(__name__)
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*")

comparator = SlippageComparator.from_settings(settings)
store = RecordStore(settings.data_file, settings.max_records)


def _unknown_asset(asset: Any):
    return jsonify({
        'success': False,
        'error': f'Invalid asset: {asset}',
        'available_assets': list(ASSETS.keys()),
    }), 400


def _parse_compare_args(data: Mapping[str, Any]) -> Tuple[str, float, str]:
    """(asset, order_size, side) from a request body or query string.

    Raises UnknownAssetError for unlisted assets and ValueError for bad size or side.
    """
    asset = str(data.get('asset') or settings.asset).upper()
    get_asset(asset)
    try:
        order_size = float(data.get('order_size', data.get('size', settings.trade_size)))
    except (TypeError, ValueError):
        raise ValueError('order_size must be a number')
    if not math.isfinite(order_size) or order_size <= 0:
        raise ValueError('order_size must be positive')
    side = str(data.get('side') or settings.side).lower()
    if side not in SIDES:
        raise ValueError(f"side must be one of {', '.join(SIDES)}")
    return asset, order_size, side


def _run_compare(data: Mapping[str, Any]):
    try:
        asset, order_size, side = _parse_compare_args(data)
    except UnknownAssetError as e:
        return _unknown_asset(e.asset)
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    record = comparator.compare_asset(asset, order_size, side)
    return jsonify(record.to_dict())


# --- FLASK ROUTES ---

@app.route('/health', methods=['GET'])
def health():
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'supported_assets': list(ASSETS.keys()),
        'endpoints': {name: p.endpoint for name, p in comparator.providers.items()},
    })


@app.route('/api/assets', methods=['GET'])
def get_assets():
    """Return list of available assets."""
    assets_list = []
    for key, config in ASSETS.items():
        assets_list.append({
            'key': key,
            'name': config.name,
            'exchanges': {
                'hyperliquid': config.hyperliquid_symbol is not None,
                'lighter': config.lighter_market_id is not None,
                'aster': config.aster_symbol is not None,
                'binance': config.binance_symbol is not None,
            }
        })
    return jsonify({'assets': assets_list})


@app.route('/api/orderbook', methods=['POST'])
def orderbook():
    """Normalized order books from every venue, fetched simultaneously."""
    data = request.get_json(silent=True) or {}
    asset = str(data.get('asset', 'BTC')).upper()
    if asset not in ASSETS:
        return _unknown_asset(asset)

    start = time.time()
    fetches = comparator.snapshot_books(asset)
    duration_ms = int((time.time() - start) * 1000)

    exchanges = {}
    for venue, fetch in fetches.items():
        if fetch.ok:
            book = fetch.snapshot.book.to_dict()
            book['stale'] = fetch.snapshot.stale
            exchanges[venue] = book
        else:
            exchanges[venue] = {'error': fetch.error}

    return jsonify({
        'success': True,
        'asset': asset,
        'timestamp': int(start * 1000),
        'fetch_duration_ms': duration_ms,
        'exchanges': exchanges,
    })


@app.route('/api/compare', methods=['POST'])
def compare():
    """Compare slippage across venues for given asset, order size and side."""
    return _run_compare(request.get_json(silent=True) or {})


@app.route('/api/compare/<asset>', methods=['GET'])
def compare_get(asset):
    """
    GET endpoint for comparing slippage across venues.

    URL: /api/compare/<asset>?size=100000&side=buy

    Example:
        GET /api/compare/BTC?size=50000
        GET /api/compare/ETH?size=1000000&side=sell
    """
    data = {
        'asset': asset,
        'size': request.args.get('size', settings.trade_size),
        'side': request.args.get('side', settings.side),
    }
    return _run_compare(data)


@app.route('/api/records', methods=['GET'])
def records():
    """Most recent stored records, newest last."""
    try:
        limit = int(request.args.get('limit', 100))
    except ValueError:
        return jsonify({'success': False, 'error': 'limit must be an integer'}), 400
    try:
        stored = store.records()
    except StorageError as e:
        logger.error(f"Could not read records: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    selected = stored[-limit:] if limit > 0 else []
    return jsonify({'total': len(stored), 'records': selected})


# =============================================================================
# WEBSOCKET EVENT HANDLERS
# =============================================================================

@socketio.on('compare')
def handle_compare(data):
    """Handle WebSocket compare request."""
    try:
        asset, order_size, side = _parse_compare_args(data or {})
    except (UnknownAssetError, ValueError) as e:
        emit('compare_error', {'error': str(e)})
        return

    record = comparator.compare_asset(asset, order_size, side)
    emit('compare_result', record.to_dict())


def main():
    port = settings.port
    debug = os.environ.get("FLASK_DEBUG", "").lower() in ('1', 'true', 'yes')
    logger.info("=" * 60)
    logger.info("CROSS-VENUE SLIPPAGE COMPARISON API SERVER")
    logger.info(f"Running on port {port} (debug={debug})")
    logger.info("=" * 60)
    socketio.run(app, host='0.0.0.0', port=port, debug=debug, allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
