"""Tests for the portfolio ledger."""

from datetime import timedelta

import pytest

from accountant import Accountant
from conftest import NOW, NOW_MS, make_market
from models import AgentTrade, ExitReason, TradeSide, TradeStatus, UnknownAgentError


def _trade(market_id="m1", side=TradeSide.YES, size=100.0, entry=0.5, agent_id="GPT_5") -> AgentTrade:
    return AgentTrade(
        id=f"{agent_id}-{market_id}-{NOW_MS}",
        agent_id=agent_id,
        market_id=market_id,
        question="Will it happen?",
        side=side,
        confidence=0.7,
        investment_usd=size,
        entry_probability=entry,
        created_at=NOW_MS,
    )


@pytest.fixture
def books() -> Accountant:
    return Accountant(agent_ids=("GPT_5", "GROK_4"))


class TestOpenPosition:

    def test_records_trade_and_position(self, books):
        position = books.open_position(_trade(), now=NOW)
        assert position.size_usd == 100.0
        assert books.get_portfolio("GPT_5").exposure_usd == 100.0
        assert [t.market_id for t in books.get_trades("GPT_5")] == ["m1"]

    def test_one_position_per_market(self, books):
        books.open_position(_trade(side=TradeSide.YES), now=NOW)
        assert books.open_position(_trade(side=TradeSide.NO), now=NOW) is None
        assert len(books.get_trades("GPT_5")) == 1
        assert books.get_portfolio("GPT_5").open_positions["m1"].side is TradeSide.YES

    def test_insufficient_cash(self):
        books = Accountant(agent_ids=("GPT_5",), starting_capital=150.0)
        books.open_position(_trade("m1", size=100.0), now=NOW)
        assert books.open_position(_trade("m2", size=100.0), now=NOW) is None

    def test_unknown_agent(self, books):
        with pytest.raises(UnknownAgentError):
            books.open_position(_trade(agent_id="NOBODY"))

    def test_opened_at_defaults_to_trade_time(self, books):
        position = books.open_position(_trade())
        assert position.opened_at == NOW


class TestClosing:

    def test_explicit_close_settles_trade(self, books):
        books.open_position(_trade(entry=0.4), now=NOW)
        result = books.close_position("GPT_5", "m1", 0.7, ExitReason.FLIP, now=NOW)

        assert result.realized_pnl == pytest.approx(30.0)
        trade = books.get_trades("GPT_5")[0]
        assert trade.status is TradeStatus.CLOSED
        assert trade.pnl == pytest.approx(30.0)
        assert trade.closed_at == NOW_MS
        portfolio = books.get_portfolio("GPT_5")
        assert portfolio.current_capital_usd == pytest.approx(portfolio.starting_capital_usd + 30.0)

    def test_close_missing_is_none(self, books):
        assert books.close_position("GPT_5", "nope", 0.5) is None

    def test_lifecycle_across_agents(self, books):
        books.open_position(_trade("m1", entry=0.5), now=NOW)
        books.open_position(_trade("m2", entry=0.5, agent_id="GROK_4"), now=NOW)
        markets = {"m1": make_market("m1", probability=0.82), "m2": make_market("m2", probability=0.5)}

        closed = books.run_lifecycle(markets, now=NOW + timedelta(hours=1))

        assert list(closed) == ["GPT_5"]
        assert closed["GPT_5"][0].reason is ExitReason.TAKE_PROFIT
        assert books.get_portfolio("GROK_4").open_positions

    def test_mark_to_market_then_delist(self, books):
        books.open_position(_trade("m1", side=TradeSide.NO, entry=0.6), now=NOW)
        books.mark_to_market({"m1": make_market("m1", probability=0.5)})
        assert books.unrealized_pnl("GPT_5") == pytest.approx(10.0)

        closed = books.run_lifecycle({}, now=NOW)
        assert closed["GPT_5"][0].realized_pnl == pytest.approx(10.0)
        assert books.get_trades("GPT_5")[0].pnl == pytest.approx(10.0)
        assert books.unrealized_pnl("GPT_5") == 0


class TestPersistence:

    def test_round_trip(self, books, tmp_path):
        path = str(tmp_path / "state.json")
        books.open_position(_trade("m1"), now=NOW)
        books.open_position(_trade("m2", side=TradeSide.NO), now=NOW)
        books.close_position("GPT_5", "m2", 0.3, now=NOW)
        books.save_state(path)

        restored = Accountant(agent_ids=("GPT_5", "GROK_4"), state_file=path)
        portfolio = restored.get_portfolio("GPT_5")
        assert set(portfolio.open_positions) == {"m1"}
        assert portfolio.open_positions["m1"].opened_at == NOW
        assert portfolio.realized_pnl_usd == pytest.approx(20.0)
        statuses = {t.market_id: t.status for t in restored.get_trades("GPT_5")}
        assert statuses == {"m1": TradeStatus.OPEN, "m2": TradeStatus.CLOSED}

    def test_missing_file(self, tmp_path):
        assert Accountant(agent_ids=("GPT_5",)).load_state(str(tmp_path / "none.json")) is False
