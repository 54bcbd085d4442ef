# -*- coding: utf-8 -*-
"""
Append-only JSON record file and CSV export.

The file holds {'records': [...], 'metadata': {...}} and keeps only the
newest `max_records` entries.
"""
import csv
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .comparator import VENUES, ComparisonRecord
from .errors import StorageError

logger = logging.getLogger(__name__)

# Short column prefixes used in the CSV export
VENUE_PREFIXES = {
    'hyperliquid': 'hl',
    'lighter': 'lt',
    'aster': 'as',
    'binance': 'bn',
}

VENUE_COLUMNS = ('valid', 'midPrice', 'slippage', 'slippageBps', 'levels')


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class RecordStore:
    """JSON file of ComparisonRecords, bounded to the last max_records."""

    def __init__(self, path: str, max_records: int = 100000, config: Optional[Dict[str, Any]] = None):
        self.path = path
        self.max_records = max_records
        self.config = config or {}
        self._lock = threading.Lock()

    def _empty(self) -> Dict[str, Any]:
        return {'records': [], 'metadata': {'created': _now_iso(), 'config': self.config}}

    def load(self) -> Dict[str, Any]:
        """Whole document; an absent file is an empty document."""
        if not os.path.exists(self.path):
            return self._empty()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not load {self.path}: {e}")
        if not isinstance(data, dict) or not isinstance(data.get('records'), list):
            raise StorageError(f"{self.path} is not a record file")
        data.setdefault('metadata', {})
        return data

    def records(self) -> List[Dict[str, Any]]:
        return self.load()['records']

    def _write(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(prefix='.records-', suffix='.json', dir=directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Could not write {self.path}: {e}")

    def append(self, record: ComparisonRecord) -> int:
        """Append one record and persist. Returns the number of stored records."""
        with self._lock:
            data = self.load()
            data['records'].append(record.to_dict())
            if len(data['records']) > self.max_records:
                data['records'] = data['records'][-self.max_records:]
            data['metadata']['lastUpdated'] = _now_iso()
            data['metadata']['totalRecords'] = len(data['records'])
            self._write(data)
            return len(data['records'])


# =============================================================================
# CSV EXPORT
# =============================================================================

def csv_header(venues: Sequence[str] = VENUES) -> List[str]:
    header = ['timestamp', 'asset', 'tradeSize', 'side', 'winner']
    for venue in venues:
        prefix = VENUE_PREFIXES.get(venue, venue)
        header.extend(f"{prefix}_{column}" for column in VENUE_COLUMNS)
    return header


def csv_row(record: Mapping[str, Any], venues: Sequence[str] = VENUES) -> List[Any]:
    row = [
        record.get('timestamp', ''),
        record.get('asset', ''),
        record.get('tradeSize', ''),
        record.get('side', ''),
        record.get('winner') or '',
    ]
    for venue in venues:
        result = record.get(venue) or {}
        for column in VENUE_COLUMNS:
            value = result.get(column)
            row.append('' if value is None else value)
    return row


def export_csv(records: Iterable[Mapping[str, Any]], path: str, venues: Sequence[str] = VENUES) -> int:
    """Write records to a CSV file. Returns the number of rows written."""
    count = 0
    try:
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(csv_header(venues))
            for record in records:
                writer.writerow(csv_row(record, venues))
                count += 1
    except OSError as e:
        raise StorageError(f"Could not write {path}: {e}")
    logger.info(f"Exported {count} records to {path}")
    return count
