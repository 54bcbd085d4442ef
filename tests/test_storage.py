import csv
import json
import os

import pytest

from slippage_monitor.comparator import VENUES, ComparisonRecord
from slippage_monitor.errors import StorageError
from slippage_monitor.storage import RecordStore, csv_header, csv_row, export_csv

from helpers import record_at


def _record(minutes, **pcts):
    return ComparisonRecord.from_dict(record_at(minutes, pcts))


@pytest.fixture
def path(tmp_path):
    return str(tmp_path / 'records.json')


def test_missing_file_is_empty(path):
    store = RecordStore(path)
    assert store.records() == []
    assert not os.path.exists(path)


def test_append_persists(path):
    store = RecordStore(path, config={'asset': 'BTC'})
    assert store.append(_record(0, hyperliquid=0.1, lighter=0.05)) == 1
    assert store.append(_record(1, hyperliquid=0.2, lighter=None)) == 2

    with open(path) as f:
        data = json.load(f)
    assert data['metadata']['totalRecords'] == 2
    assert data['metadata']['config'] == {'asset': 'BTC'}
    assert 'lastUpdated' in data['metadata']
    assert [r['winner'] for r in data['records']] == ['lighter', 'hyperliquid']
    assert data['records'][1]['lighter']['valid'] is False


def test_keeps_newest_records(path):
    store = RecordStore(path, max_records=3)
    for minute in range(5):
        store.append(_record(minute, hyperliquid=0.1))
    stored = store.records()
    assert len(stored) == 3
    assert stored[0]['timestamp'] == record_at(2, {'hyperliquid': 0.1})['timestamp']


def test_no_temp_files_left(tmp_path, path):
    RecordStore(path).append(_record(0, aster=0.3))
    assert os.listdir(tmp_path) == ['records.json']


def test_corrupt_file(path):
    with open(path, 'w') as f:
        f.write('{not json')
    with pytest.raises(StorageError):
        RecordStore(path).records()


def test_wrong_document_shape(path):
    with open(path, 'w') as f:
        json.dump([1, 2, 3], f)
    with pytest.raises(StorageError):
        RecordStore(path).load()


def test_write_failure(tmp_path):
    store = RecordStore(str(tmp_path / 'missing-dir' / 'records.json'))
    with pytest.raises(StorageError):
        store.append(_record(0, hyperliquid=0.1))


class TestCsv:
    def test_header(self):
        header = csv_header()
        assert header[:5] == ['timestamp', 'asset', 'tradeSize', 'side', 'winner']
        assert 'hl_slippageBps' in header
        assert 'bn_levels' in header
        assert len(header) == 5 + 5 * len(VENUES)

    def test_invalid_venue_gives_blank_cells(self):
        row = csv_row(record_at(0, {'hyperliquid': 0.1, 'lighter': None}), ['hyperliquid', 'lighter'])
        assert row[4] == 'hyperliquid'
        assert row[5:10] == [True, 100.0, 0.1, pytest.approx(10.0), 1]
        assert row[10:] == [False, '', '', '', 0]

    def test_export(self, tmp_path):
        records = [record_at(m, {'hyperliquid': 0.1, 'aster': 0.2}) for m in range(3)]
        out = str(tmp_path / 'export.csv')
        assert export_csv(records, out, ['hyperliquid', 'aster']) == 3

        with open(out, newline='') as f:
            rows = list(csv.reader(f))
        assert rows[0][:6] == ['timestamp', 'asset', 'tradeSize', 'side', 'winner', 'hl_valid']
        assert len(rows) == 4
        assert rows[1][4] == 'hyperliquid'

    def test_export_failure(self, tmp_path):
        with pytest.raises(StorageError):
            export_csv([], str(tmp_path / 'nope' / 'out.csv'))
