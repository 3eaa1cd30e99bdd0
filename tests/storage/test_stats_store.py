import json

import pytest

from analysis.models import TradeOutcome, TradeStatus
from storage import StatsStore


def outcome(status, profit=0.0, reason=None):
    return TradeOutcome(status=status, token_asset_id='Mint', route_label='WSOL→T→WSOL',
                        realized_profit=profit, reason=reason)


def test_records_trades_and_skips(tmp_path):
    path = tmp_path / 'logs' / 'stats.json'
    stats = StatsStore(path)

    stats.record(outcome(TradeStatus.SUCCESS, 0.002))
    stats.record(outcome(TradeStatus.SUCCESS, -0.0005))
    stats.record(outcome(TradeStatus.FAILED, reason='buy_failed'))
    stats.record(outcome(TradeStatus.STRANDED, reason='sell_failed'))
    stats.record(outcome(TradeStatus.SKIPPED, reason='simulation_rejected'))
    stats.record(outcome(TradeStatus.SKIPPED, reason='build_failed'))

    snap = stats.snapshot()
    assert snap['totalTrades'] == 4
    assert snap['successfulTrades'] == 2
    assert snap['failedTrades'] == 2
    assert snap['simulationSkipped'] == 1
    assert snap['buildSkipped'] == 1
    assert snap['totalProfit'] == pytest.approx(0.002)
    assert snap['totalLoss'] == pytest.approx(0.0005)
    assert snap['netProfit'] == pytest.approx(0.0015)

    on_disk = json.loads(path.read_text())
    assert on_disk['totalTrades'] == 4
    assert on_disk['buildSkipped'] == 1


def test_reload_and_legacy_keys(tmp_path):
    path = tmp_path / 'stats.json'
    path.write_text(json.dumps({
        'totalTrades': 3,
        'successfulTrades': 2,
        'failedTrades': 1,
        'totalProfitSol': 0.01,
        'totalLossSol': 0.002,
        'netProfitSol': 0.008,
        'startTime': 1_700_000_000.0,
    }))

    snap = StatsStore(path).snapshot()

    assert snap['totalTrades'] == 3
    assert snap['totalProfit'] == pytest.approx(0.01)
    assert snap['netProfit'] == pytest.approx(0.008)
    assert snap['simulationSkipped'] == 0
    assert snap['startTime'] == 1_700_000_000.0


def test_corrupt_file_starts_fresh(tmp_path):
    path = tmp_path / 'stats.json'
    path.write_text('[')
    assert StatsStore(path).snapshot()['totalTrades'] == 0


def test_summary_lines(tmp_path):
    stats = StatsStore(tmp_path / 'stats.json')
    stats.record(outcome(TradeStatus.SUCCESS, 0.001))
    lines = stats.summary_lines()
    assert len(lines) == 4
    assert lines[1].startswith('Trades: 1 (1 ok / 0 failed, 100% win)')
    assert '+0.001000 SOL' in lines[3]
