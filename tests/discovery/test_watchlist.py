import json

from analysis.models import WatchlistEntry
from discovery.watchlist import SeenSet, Watchlist


def entry(n, ts=1_700_000_000.0):
    return WatchlistEntry(f"Mint{n:040d}", f"T{n}", 'pump.fun', ts + n)


def test_add_is_newest_first_and_persisted(tmp_path):
    path = tmp_path / 'watchlist.json'
    watchlist = Watchlist(path, capacity=5)

    assert watchlist.add(entry(1)) is True
    assert watchlist.add(entry(2)) is True

    on_disk = json.loads(path.read_text())
    assert [e['symbol'] for e in on_disk] == ['T2', 'T1']
    assert set(on_disk[0]) == {'assetId', 'symbol', 'source', 'discoveredAt'}
    assert not (tmp_path / 'watchlist.json.tmp').exists()


def test_duplicate_is_rejected(tmp_path):
    watchlist = Watchlist(tmp_path / 'watchlist.json')
    assert watchlist.add(entry(1)) is True
    assert watchlist.add(entry(1)) is False
    assert len(watchlist) == 1


def test_capacity_evicts_exactly_the_oldest(tmp_path):
    watchlist = Watchlist(tmp_path / 'watchlist.json', capacity=3)
    for n in range(1, 4):
        watchlist.add(entry(n))

    watchlist.add(entry(4))

    symbols = [e.symbol for e in watchlist.load()]
    assert symbols == ['T4', 'T3', 'T2']


def test_load_reads_legacy_format_and_hand_edits(tmp_path):
    path = tmp_path / 'watchlist.json'
    path.write_text(json.dumps([
        {'mint': 'LegacyMint1111', 'symbol': 'OLD', 'source': 'pump.fun', 'graduatedAt': 1_700_000_000_000},
        {'symbol': 'no id'},
        'garbage',
    ]))

    entries = Watchlist(path).load()

    assert len(entries) == 1
    assert entries[0].asset_id == 'LegacyMint1111'
    assert entries[0].discovered_at == 1_700_000_000.0


def test_corrupt_file_is_treated_as_empty(tmp_path):
    path = tmp_path / 'watchlist.json'
    path.write_text('{not json')
    watchlist = Watchlist(path)
    assert watchlist.load() == []
    assert watchlist.add(entry(1)) is True


def test_seen_set_persists_across_instances(tmp_path):
    path = tmp_path / 'logs' / 'seen.json'
    seen = SeenSet(path)
    seen.add('b')
    seen.update(['a', 'c'])

    reloaded = SeenSet(path)
    assert 'a' in reloaded
    assert len(reloaded) == 3
    assert json.loads(path.read_text()) == ['a', 'b', 'c']


def test_load_trims_oversized_file_to_capacity(tmp_path):
    path = tmp_path / 'watchlist.json'
    path.write_text(json.dumps([entry(n).to_json() for n in range(6, 0, -1)]))
    watchlist = Watchlist(path, capacity=4)

    entries = watchlist.load()

    assert [e.symbol for e in entries] == ['T6', 'T5', 'T4', 'T3']
    assert len(watchlist) == 4
