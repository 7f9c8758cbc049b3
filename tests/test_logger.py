"""Tests for the CSV trade log."""

import csv

from conftest import make_position
from logger import CLOSURE_HEADER, TRADE_HEADER, TradeLogger
from models import AgentTrade, ClosedPosition, ExitReason, TradeSide


def _rows(path):
    with open(path) as f:
        return list(csv.reader(f))


def test_trades_and_closures_appended(tmp_path):
    trades_csv = tmp_path / "trades.csv"
    closures_csv = tmp_path / "closures.csv"
    trade_logger = TradeLogger(str(trades_csv), str(closures_csv))

    trade_logger.log_trades(3, [AgentTrade(
        id="GPT_5-m1-1", agent_id="GPT_5", market_id="m1", question="Will it?", side=TradeSide.NO,
        confidence=0.8123, investment_usd=243.69, entry_probability=0.4, created_at=1,
    )])
    trade_logger.log_closures("GPT_5", [
        ClosedPosition(make_position(), realized_pnl=-4.5, reason=ExitReason.DELISTED),
    ])

    trades = _rows(trades_csv)
    assert trades[0] == TRADE_HEADER
    assert trades[1][1:4] == ["3", "GPT_5", "GPT_5-m1-1"]
    assert trades[1][6:9] == ["NO", "0.812", "243.69"]

    closures = _rows(closures_csv)
    assert closures[0] == CLOSURE_HEADER
    assert closures[1][6] == ""
    assert closures[1][-2:] == ["-4.50", "delisted"]


def test_empty_batches_write_nothing(tmp_path):
    trade_logger = TradeLogger(str(tmp_path / "t.csv"), str(tmp_path / "c.csv"))
    trade_logger.log_trades(1, [])
    trade_logger.log_closures("GPT_5", [])
    assert len(_rows(tmp_path / "t.csv")) == 1


def test_unwritable_path_never_raises(tmp_path):
    trade_logger = TradeLogger(str(tmp_path / "missing" / "t.csv"), str(tmp_path / "missing" / "c.csv"))
    trade_logger.log_closures("GPT_5", [ClosedPosition(make_position(), 1.0, ExitReason.MANUAL, 0.6)])
