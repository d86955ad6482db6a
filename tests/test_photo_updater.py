import threading

import pytest

import database
from errors import UpstreamError
from services import photo_updater

FUJI_THUMB = 'https://upload.wikimedia.org/wikipedia/commons/thumb/1/1a/Fuji.jpg/800px-Fuji.jpg'
FUJI = 'https://upload.wikimedia.org/wikipedia/commons/1/1a/Fuji.jpg'


@pytest.fixture
def mountains(app):
    return {
        'fuji': database.add_mountain('富士山'),
        'kita': database.add_mountain('北岳'),
        'tate': database.add_mountain('立山', photo_url='https://upload.wikimedia.org/wikipedia/commons/0/0a/Tate.jpg'),
        'nameless': database.add_mountain('名無山'),
    }


def _lookup(table):
    calls = []
    lock = threading.Lock()

    def lookup(title):
        with lock:
            calls.append(title)
        result = table.get(title)
        if isinstance(result, Exception):
            raise result
        return result

    lookup.calls = calls
    return lookup


def test_clamp_limit():
    assert photo_updater.clamp_limit(0) == 1
    assert photo_updater.clamp_limit(500) == 100
    assert photo_updater.clamp_limit('20') == 20
    assert photo_updater.clamp_limit('many') == 100


def test_discover_photo_tries_disambiguated_title_second():
    lookup = _lookup({'北岳 (山)': FUJI_THUMB})
    assert photo_updater.discover_photo('北岳', lookup=lookup) == FUJI
    assert lookup.calls == ['北岳', '北岳 (山)']


def test_discover_photo_stops_at_first_hit():
    lookup = _lookup({'富士山': FUJI_THUMB})
    assert photo_updater.discover_photo('富士山', lookup=lookup) == FUJI
    assert lookup.calls == ['富士山']


def test_run_batch_applies_updates_and_counts_skips(mountains):
    lookup = _lookup({'富士山': FUJI_THUMB, '北岳 (山)': FUJI_THUMB})
    result = photo_updater.run_batch(lookup=lookup)

    assert result.applied == 2
    assert result.skipped == 1
    assert result.errors == []
    assert database.get_mountain(mountains['fuji'])['photo_url'] == FUJI
    assert database.get_mountain(mountains['kita'])['photo_url'] == FUJI
    assert database.get_mountain(mountains['nameless'])['photo_url'] is None
    # rows that already had a photo are not even looked up
    assert '立山' not in lookup.calls


def test_run_batch_dry_run_never_writes(mountains):
    lookup = _lookup({'富士山': FUJI_THUMB, '北岳': FUJI_THUMB, '名無山': FUJI_THUMB})
    before = database.list_mountains()
    result = photo_updater.run_batch(dry_run=True, force=True, lookup=lookup)

    assert len(result.updates) == 3
    assert result.applied == 0
    assert database.list_mountains() == before


def test_run_batch_force_includes_rows_with_photos(mountains):
    lookup = _lookup({'立山': FUJI_THUMB})
    photo_updater.run_batch(force=True, lookup=lookup)
    assert database.get_mountain(mountains['tate'])['photo_url'] == FUJI


def test_run_batch_respects_limit_in_name_order(mountains):
    lookup = _lookup({})
    result = photo_updater.run_batch(limit=1, lookup=lookup)
    first = sorted(['富士山', '北岳', '名無山'])[0]
    assert result.skipped == 1
    assert lookup.calls == [first, f'{first} (山)']


def test_run_batch_reports_transport_errors(mountains):
    lookup = _lookup({'富士山': UpstreamError('down'), '北岳': FUJI_THUMB})
    result = photo_updater.run_batch(lookup=lookup)
    assert result.applied == 1
    assert [e['id'] for e in result.errors] == [mountains['fuji']]
    assert database.get_mountain(mountains['fuji'])['photo_url'] is None


def test_run_batch_with_no_candidates(app):
    result = photo_updater.run_batch(lookup=_lookup({}))
    assert result.updates == [] and result.applied == 0 and result.skipped == 0
