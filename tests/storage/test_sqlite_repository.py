import pytest

from analysis.models import TradeOutcome, TradeStatus
from storage import SQLiteRepository


@pytest.mark.asyncio
async def test_persist_scan_cycle_and_trade_outcome(tmp_path):
    db_path = tmp_path / "test.db"
    repository = SQLiteRepository(db_path=db_path)

    scan_id = await repository.record_scan_cycle_start(["MintB", "MintA", "MintB"])
    assert isinstance(scan_id, int)

    outcome = TradeOutcome(
        status=TradeStatus.SUCCESS,
        token_asset_id="MintA",
        route_label="WSOL→AAA→WSOL",
        realized_profit=0.0004,
        buy_signature="BuySig",
        sell_signature="SellSig",
        created_at=1_700_000_000.0,
    )
    trade_id = await repository.record_trade_outcome(outcome, scan_cycle_id=scan_id, estimated_profit=0.0004)

    await repository.record_scan_cycle_finish(scan_id, 1, 1)

    cycle = await repository.fetch_scan_cycle(scan_id)
    assert cycle is not None
    assert cycle.candidates == ["MintA", "MintB"]
    assert cycle.opportunities_found == 1
    assert cycle.trades_attempted == 1
    assert cycle.finished_at is not None

    trades = await repository.fetch_recent_trades()
    assert len(trades) == 1
    assert trades[0].id == trade_id
    assert trades[0].scan_cycle_id == scan_id
    assert trades[0].status == "SUCCESS"
    assert trades[0].route == "WSOL→AAA→WSOL"
    assert trades[0].sell_signature == "SellSig"
    assert trades[0].created_at.year == 2023

    await repository.close()


@pytest.mark.asyncio
async def test_fetch_recent_trades_filters_and_orders(tmp_path):
    repository = SQLiteRepository(db_path=tmp_path / "trades.db")

    for offset, status in enumerate([TradeStatus.SUCCESS, TradeStatus.STRANDED, TradeStatus.SKIPPED]):
        await repository.record_trade_outcome(
            TradeOutcome(
                status=status,
                token_asset_id=f"Mint{offset}",
                route_label=f"WSOL→T{offset}→WSOL",
                reason=None if status is TradeStatus.SUCCESS else "why",
                created_at=1_700_000_000.0 + offset,
            ),
        )

    newest_first = await repository.fetch_recent_trades(limit=2)
    assert [t.token for t in newest_first] == ["Mint2", "Mint1"]

    stranded = await repository.fetch_recent_trades(status="stranded")
    assert len(stranded) == 1
    assert stranded[0].status == "STRANDED"
    assert stranded[0].scan_cycle_id is None
    assert stranded[0].estimated_profit is None

    await repository.close()


@pytest.mark.asyncio
async def test_missing_scan_cycle_returns_none(tmp_path):
    repository = SQLiteRepository(db_path=tmp_path / "empty.db")
    assert await repository.fetch_scan_cycle(999) is None
    await repository.close()
