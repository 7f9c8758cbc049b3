"""
Accountant: the portfolio ledger for every agent.

It:
  - Holds one Portfolio (capital, realized P&L, open positions) per agent
  - Records every trade the generator produced and which ones became positions
  - Books closes coming from the lifecycle pass or from an explicit flip
  - Optionally persists state to JSON so simulated books survive restarts

Only two things mutate the ledger: new trades (open_position) and closes
(run_lifecycle / close_position). Everything else reads.
"""

import json
import os
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

import structlog

from lifecycle import calculate_unrealized_pnl, close_position, process_position_lifecycle
from models import (
    STARTING_CAPITAL_USD,
    AgentTrade,
    ClosedPosition,
    ExitReason,
    Market,
    Portfolio,
    Position,
    TradeSide,
    TradeStatus,
)
from profiles import ALL_AGENT_IDS, get_agent_profile

log = structlog.get_logger()


class Accountant:
    """Per-agent books. Agent ids are validated against the profile registry."""

    def __init__(
        self,
        agent_ids=ALL_AGENT_IDS,
        starting_capital: float = STARTING_CAPITAL_USD,
        state_file: Optional[str] = None,
    ):
        self.starting_capital = starting_capital
        self.state_file = state_file
        self.portfolios: dict[str, Portfolio] = {}
        self.trades: dict[str, list[AgentTrade]] = {}
        for agent_id in agent_ids:
            get_agent_profile(agent_id)
            self.portfolios[agent_id] = Portfolio(
                agent_id=agent_id,
                starting_capital_usd=starting_capital,
                current_capital_usd=starting_capital,
            )
            self.trades[agent_id] = []

        if state_file:
            self.load_state(state_file)

    def get_portfolio(self, agent_id: str) -> Portfolio:
        get_agent_profile(agent_id)
        if agent_id not in self.portfolios:
            self.portfolios[agent_id] = Portfolio(
                agent_id=agent_id,
                starting_capital_usd=self.starting_capital,
                current_capital_usd=self.starting_capital,
            )
            self.trades[agent_id] = []
        return self.portfolios[agent_id]

    def get_trades(self, agent_id: str) -> list[AgentTrade]:
        self.get_portfolio(agent_id)
        return list(self.trades[agent_id])

    def trades_by_agent(self) -> dict[str, list[AgentTrade]]:
        return {agent_id: list(trades) for agent_id, trades in self.trades.items()}

    def _find_trade(self, agent_id: str, trade_id: str) -> Optional[AgentTrade]:
        for trade in self.trades.get(agent_id, []):
            if trade.id == trade_id:
                return trade
        return None

    def open_position(self, trade: AgentTrade, now: Optional[datetime] = None) -> Optional[Position]:
        """
        Turn a generated trade into a position.

        Returns None (and records nothing) when the agent already holds the
        market or cannot cover the size with its free cash.
        """
        portfolio = self.get_portfolio(trade.agent_id)

        existing = portfolio.open_positions.get(trade.market_id)
        if existing is not None:
            log.info("position_suppressed", agent=trade.agent_id, market_id=trade.market_id,
                     held_side=existing.side.value, new_side=trade.side.value)
            return None

        if trade.investment_usd > portfolio.cash_usd:
            log.warning("insufficient_cash", agent=trade.agent_id, size=f"${trade.investment_usd:.2f}",
                        cash=f"${portfolio.cash_usd:.2f}")
            return None

        opened_at = now or datetime.fromtimestamp(trade.created_at / 1000, tz=timezone.utc)
        position = Position(
            trade_id=trade.id,
            market_id=trade.market_id,
            side=trade.side,
            entry_probability=trade.entry_probability,
            size_usd=trade.investment_usd,
            opened_at=opened_at,
        )
        portfolio.open_positions[trade.market_id] = position
        self.trades[trade.agent_id].append(trade)

        log.info(
            "position_opened",
            agent=trade.agent_id,
            market_id=trade.market_id,
            side=trade.side.value,
            size=f"${trade.investment_usd:.2f}",
            open_positions=len(portfolio.open_positions),
        )
        self._save_if_configured()
        return position

    def close_position(
        self,
        agent_id: str,
        market_id: str,
        exit_probability: Optional[float],
        reason: ExitReason = ExitReason.MANUAL,
        now: Optional[datetime] = None,
    ) -> Optional[ClosedPosition]:
        """Explicit close, e.g. the first half of a flip."""
        portfolio = self.get_portfolio(agent_id)
        result = close_position(portfolio, market_id, exit_probability, reason)
        if result is None:
            return None
        self._settle_trades(agent_id, [result], now)
        log.info("position_closed", agent=agent_id, market_id=market_id,
                 pnl=f"${result.realized_pnl:.2f}", reason=reason.value)
        self._save_if_configured()
        return result

    def mark_to_market(self, markets_by_id: dict[str, Market]):
        """Refresh unrealized P&L for positions whose market is in the snapshot."""
        for portfolio in self.portfolios.values():
            for market_id, position in portfolio.open_positions.items():
                market = markets_by_id.get(market_id)
                if market is not None:
                    position.unrealized_pnl = calculate_unrealized_pnl(position, market)

    def run_lifecycle(
        self,
        markets_by_id: dict[str, Market],
        scores_by_agent: Optional[dict[str, dict[str, float]]] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, list[ClosedPosition]]:
        """Lifecycle pass over every portfolio. Returns closes per agent."""
        scores_by_agent = scores_by_agent or {}
        closed_by_agent = {}
        for agent_id, portfolio in self.portfolios.items():
            closed = process_position_lifecycle(portfolio, markets_by_id, scores_by_agent.get(agent_id), now)
            if closed:
                self._settle_trades(agent_id, closed, now)
                closed_by_agent[agent_id] = closed

        if closed_by_agent:
            self._save_if_configured()
        return closed_by_agent

    def _settle_trades(self, agent_id: str, closed: list[ClosedPosition], now: Optional[datetime]):
        closed_ms = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
        for result in closed:
            trade = self._find_trade(agent_id, result.position.trade_id)
            if trade is None:
                log.warning("closed_trade_not_found", agent=agent_id, trade_id=result.position.trade_id)
                continue
            trade.status = TradeStatus.CLOSED
            trade.pnl = result.realized_pnl
            trade.closed_at = closed_ms

    def unrealized_pnl(self, agent_id: str) -> float:
        return self.get_portfolio(agent_id).unrealized_pnl_usd

    def unrealized_by_agent(self) -> dict[str, float]:
        return {agent_id: p.unrealized_pnl_usd for agent_id, p in self.portfolios.items()}

    def _save_if_configured(self):
        if self.state_file:
            self.save_state(self.state_file)

    def save_state(self, path: str):
        """Persist all books to disk."""
        try:
            state = {
                "last_saved": datetime.now(timezone.utc).isoformat(),
                "portfolios": {
                    agent_id: {
                        "starting_capital_usd": p.starting_capital_usd,
                        "current_capital_usd": p.current_capital_usd,
                        "realized_pnl_usd": p.realized_pnl_usd,
                        "open_positions": [
                            {**asdict(pos), "side": pos.side.value, "opened_at": pos.opened_at.isoformat()}
                            for pos in p.open_positions.values()
                        ],
                    }
                    for agent_id, p in self.portfolios.items()
                },
                "trades": {
                    agent_id: [
                        {**asdict(t), "side": t.side.value, "status": t.status.value}
                        for t in trades
                    ]
                    for agent_id, trades in self.trades.items()
                },
            }
            with open(path, "w") as f:
                json.dump(state, f, indent=2)
        except Exception as e:
            log.error("state_save_failed", error=str(e))

    def load_state(self, path: str) -> bool:
        """Load books from disk. Returns True if loaded."""
        if not os.path.exists(path):
            return False

        try:
            with open(path, "r") as f:
                state = json.load(f)

            for agent_id, raw in state.get("portfolios", {}).items():
                portfolio = self.get_portfolio(agent_id)
                portfolio.starting_capital_usd = raw["starting_capital_usd"]
                portfolio.current_capital_usd = raw["current_capital_usd"]
                portfolio.realized_pnl_usd = raw["realized_pnl_usd"]
                portfolio.open_positions = {}
                for pos in raw.get("open_positions", []):
                    position = Position(
                        **{**pos, "side": TradeSide(pos["side"]),
                           "opened_at": datetime.fromisoformat(pos["opened_at"])}
                    )
                    portfolio.open_positions[position.market_id] = position

            for agent_id, raw_trades in state.get("trades", {}).items():
                self.get_portfolio(agent_id)
                self.trades[agent_id] = [
                    AgentTrade(**{**t, "side": TradeSide(t["side"]), "status": TradeStatus(t["status"])})
                    for t in raw_trades
                ]

            log.info("state_loaded", agents=len(self.portfolios),
                     trades=sum(len(t) for t in self.trades.values()))
            return True
        except Exception as e:
            log.error("state_load_failed", error=str(e))
            return False
