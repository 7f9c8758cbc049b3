"""
Agent Trading Engine
====================

Runs every configured AI agent against the same market + news snapshot:

  1. Fetches markets and news concurrently (either failing aborts the cycle)
  2. Marks open positions to market and runs the exit rules
  3. For each agent (concurrently, one cycle per agent at a time):
       filter -> score -> rank -> oracle calls -> trades
  4. Books new trades into the agent's portfolio, flipping losing positions
     when the new call is strong enough
  5. Prints per-agent stats

Usage:
  python agent.py                      # Loop forever in the configured mode
  python agent.py --once               # One cycle then exit
  python agent.py --agent GPT_5        # Only some agents (repeatable)
  python agent.py --mode LIVE          # Use Claude as the decision oracle
"""

import argparse
import asyncio
import signal
import sys
import time
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog

from accountant import Accountant
from cache import SUMMARY_CACHE_TTL_SECONDS, AgentTradeCache, DecisionCache
from generator import TradeGenerator
from lifecycle import flip_possible, should_flip_position
from logger import TradeLogger, configure_logging
from models import (
    AgentProfile,
    AgentStats,
    AgentTrade,
    ClosedPosition,
    Config,
    EngineMode,
    ExitReason,
    Market,
    NewsArticle,
    SnapshotError,
    SummaryStats,
    get_config,
)
from news import NewsScanner
from oracle import DecisionOracle, build_oracle
from profiles import ALL_AGENT_IDS, get_agent_profile
from scanner import MarketScanner
from scorer import score_market
from stats import build_agent_summary, calculate_all_agent_stats, compute_summary_stats

log = structlog.get_logger()


class MarketSource(Protocol):
    async def fetch_markets(self) -> list[Market]:
        ...


class NewsSource(Protocol):
    async def fetch_news(self) -> list[NewsArticle]:
        ...


class TradingAgent:
    """Owns the caches, the ledger and the per-agent locks for one process."""

    def __init__(
        self,
        config: Config,
        market_source: Optional[MarketSource] = None,
        news_source: Optional[NewsSource] = None,
        oracle: Optional[DecisionOracle] = None,
        accountant: Optional[Accountant] = None,
        trade_cache: Optional[AgentTradeCache] = None,
        summary_cache: Optional[AgentTradeCache] = None,
        decision_cache: Optional[DecisionCache] = None,
        trade_logger: Optional[TradeLogger] = None,
        agent_ids=ALL_AGENT_IDS,
        clock=time.time,
    ):
        self.config = config
        self.agent_ids = tuple(agent_ids)
        for agent_id in self.agent_ids:
            get_agent_profile(agent_id)

        self.market_source = market_source or MarketScanner(config)
        self.news_source = news_source or NewsScanner(config)
        if accountant is None:
            accountant = Accountant(self.agent_ids, state_file=config.state_file)
        self.accountant = accountant
        self.trade_cache = trade_cache if trade_cache is not None else AgentTradeCache()
        self.summary_cache = summary_cache if summary_cache is not None else AgentTradeCache(SUMMARY_CACHE_TTL_SECONDS)
        self.generator = TradeGenerator(
            oracle=oracle or build_oracle(config),
            decision_cache=decision_cache if decision_cache is not None else DecisionCache(),
            oracle_timeout=config.oracle_timeout_seconds,
            adaptive=config.enable_adaptive,
        )
        self.trade_logger = trade_logger
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last_news: list[NewsArticle] = []
        self._last_lifecycle = 0.0
        self.cycle_count = 0
        self._running = True

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._shutdown)
        signal.signal(signal.SIGTERM, self._shutdown)

    def _shutdown(self, signum, frame):
        log.info("shutdown_signal_received", signal=signum)
        self._running = False

    async def fetch_snapshot(self) -> tuple[list[Market], list[NewsArticle]]:
        """Markets and news, fetched concurrently. Either failing is fatal."""
        async def no_news():
            return []

        news_call = self.news_source.fetch_news() if self.config.enable_news_search else no_news()
        try:
            markets, news = await asyncio.gather(self.market_source.fetch_markets(), news_call)
        except SnapshotError:
            raise
        except Exception as e:
            raise SnapshotError(f"snapshot fetch failed: {e}") from e

        self._last_news = news
        log.info("snapshot_fetched", markets=len(markets), news=len(news))
        return markets, news

    async def generate_for_agent(
        self,
        agent_id: str,
        snapshot: Optional[tuple[list[Market], list[NewsArticle]]] = None,
    ) -> list[AgentTrade]:
        """
        One agent's generation cycle. Reuses cached trades while the TTL holds
        and the market set is unchanged; otherwise regenerates and books the
        new trades.
        """
        profile = get_agent_profile(agent_id)

        async with self._locks[agent_id]:
            markets, news = snapshot if snapshot is not None else await self.fetch_snapshot()
            market_ids = sorted(m.id for m in markets)

            cached = self.trade_cache.get(agent_id, market_ids)
            if cached is not None:
                log.debug("trade_cache_hit", agent=agent_id, trades=len(cached))
                return cached

            start = time.monotonic()
            markets_by_id = {m.id: m for m in markets}
            trades = await self.generator.generate(
                profile, markets, news, self._now_ms(),
                skip_market_ids=self._unflippable_markets(agent_id, markets_by_id),
            )
            booked = self._apply_trades(profile, trades, markets_by_id)
            self.trade_cache.set(agent_id, booked, market_ids)
            self.summary_cache.set(agent_id, booked, market_ids)

            log.info("agent_cycle_complete", agent=agent_id, trades=len(booked),
                     suppressed=len(trades) - len(booked),
                     duration_ms=int((time.monotonic() - start) * 1000))
            return booked

    def _unflippable_markets(self, agent_id: str, markets_by_id: dict[str, Market]) -> set[str]:
        """Held markets no new trade could change: not losing, or not moved enough to flip."""
        portfolio = self.accountant.get_portfolio(agent_id)
        return {
            market_id
            for market_id, position in portfolio.open_positions.items()
            if market_id in markets_by_id and not flip_possible(position, markets_by_id[market_id])
        }

    def _apply_trades(
        self,
        profile: AgentProfile,
        trades: list[AgentTrade],
        markets_by_id: dict[str, Market],
    ) -> list[AgentTrade]:
        """
        Book trades and return the ones that made it into the ledger. An
        opposite-side trade on a held market flips it only if the flip rule
        agrees; duplicates and trades cash cannot cover are dropped.
        """
        portfolio = self.accountant.get_portfolio(profile.id)
        booked = []
        for trade in trades:
            held = portfolio.open_positions.get(trade.market_id)
            market = markets_by_id.get(trade.market_id)
            if held is not None and market is not None and held.side is not trade.side:
                if should_flip_position(held, market, profile, trade.confidence):
                    closed = self.accountant.close_position(
                        profile.id, trade.market_id, market.probability, ExitReason.FLIP, now=self._now()
                    )
                    if closed and self.trade_logger:
                        self.trade_logger.log_closures(profile.id, [closed])

            if self.accountant.open_position(trade, now=self._now()) is not None:
                booked.append(trade)

        if booked and self.trade_logger:
            self.trade_logger.log_trades(self.cycle_count, booked)
        return booked

    async def run_all_agents(
        self,
        snapshot: Optional[tuple[list[Market], list[NewsArticle]]] = None,
    ) -> dict[str, list[AgentTrade]]:
        """Generate for every agent concurrently over one shared snapshot."""
        if snapshot is None:
            snapshot = await self.fetch_snapshot()

        results = await asyncio.gather(
            *(self.generate_for_agent(agent_id, snapshot) for agent_id in self.agent_ids),
            return_exceptions=True,
        )

        trades_by_agent = {}
        for agent_id, result in zip(self.agent_ids, results):
            if isinstance(result, Exception):
                log.error("agent_cycle_failed", agent=agent_id, error=str(result))
                continue
            trades_by_agent[agent_id] = result
        return trades_by_agent

    def run_lifecycle(self, markets: list[Market]) -> dict[str, list[ClosedPosition]]:
        """Mark positions to market and apply the exit rules. No await points."""
        if not self.config.enable_lifecycle:
            return {}

        now = self._now()
        markets_by_id = {m.id: m for m in markets}
        self.accountant.mark_to_market(markets_by_id)

        scores_by_agent: dict[str, dict[str, float]] = {}
        for agent_id in self.agent_ids:
            profile = get_agent_profile(agent_id)
            portfolio = self.accountant.get_portfolio(agent_id)
            scores_by_agent[agent_id] = {
                market_id: score_market(markets_by_id[market_id], self._last_news, profile, now,
                                        adaptive=self.config.enable_adaptive).score
                for market_id in portfolio.open_positions
                if market_id in markets_by_id
            }

        closed_by_agent = self.accountant.run_lifecycle(markets_by_id, scores_by_agent, now)
        if self.trade_logger:
            for agent_id, closed in closed_by_agent.items():
                self.trade_logger.log_closures(agent_id, closed)
        self._last_lifecycle = self._clock()
        return closed_by_agent

    def lifecycle_due(self) -> bool:
        return self._clock() - self._last_lifecycle >= self.config.lifecycle_interval

    def get_cached_trades(self, agent_id: str) -> Optional[list[AgentTrade]]:
        """Last generated trades, up to SUMMARY_CACHE_TTL_SECONDS old. May not match the current snapshot."""
        get_agent_profile(agent_id)
        return self.summary_cache.get_quick(agent_id)

    def get_stats(self) -> list[AgentStats]:
        return calculate_all_agent_stats(
            self.accountant.trades_by_agent(),
            self.accountant.unrealized_by_agent(),
            {agent_id: p.starting_capital_usd for agent_id, p in self.accountant.portfolios.items()},
        )

    def get_summary(self) -> SummaryStats:
        return compute_summary_stats(self.accountant.trades_by_agent())

    def get_report(self) -> str:
        summary = self.get_summary()
        lines = [
            f"=== cycle {self.cycle_count} | realized P&L ${summary.total_pnl:,.2f} | "
            f"open {summary.open_trades_count} | closed {summary.closed_trades_count} | "
            f"best {summary.best_agent_by_pnl or '-'} ===",
        ]
        for s in self.get_stats():
            lines.append(
                f"  {s.emoji} {s.name:<12} total ${s.total:>10,.2f}  cash ${s.cash:>10,.2f}  "
                f"pnl ${s.pnl:>+9,.2f}  win {s.win_rate:5.1f}%  exposure {s.max_exposure:4.1f}%"
            )
        for agent_id, trades in self.accountant.trades_by_agent().items():
            lines.append(f"  {build_agent_summary(trades, get_agent_profile(agent_id))}")
        return "\n".join(lines)

    async def run_cycle(self):
        self.cycle_count += 1
        markets, news = await self.fetch_snapshot()
        if self.lifecycle_due():
            self.run_lifecycle(markets)
        await self.run_all_agents((markets, news))

    async def run(self, once: bool = False):
        """Main loop. Runs until a shutdown signal unless once=True."""
        log.info(
            "engine_starting",
            mode=self.config.mode.value,
            agents=len(self.agent_ids),
            lifecycle=self.config.enable_lifecycle,
            adaptive=self.config.enable_adaptive,
            news=self.config.enable_news_search,
            refresh_interval=f"{self.config.refresh_interval}s",
        )

        while self._running:
            try:
                await self.run_cycle()
            except SnapshotError as e:
                log.error("cycle_failed", error=str(e), cycle=self.cycle_count)

            print(self.get_report())

            if once:
                break

            for _ in range(self.config.refresh_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        await self.close()
        log.info("engine_stopped")

    async def close(self):
        for source in (self.market_source, self.news_source):
            closer = getattr(source, "close", None)
            if closer is not None:
                await closer()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Simulated AI agent trading on prediction markets")
    parser.add_argument("--once", action="store_true", help="Run one cycle then exit")
    parser.add_argument("--agent", action="append", dest="agents", help="Agent id to run (repeatable)")
    parser.add_argument("--mode", choices=[m.value for m in EngineMode], help="Override PREDICTION_ENGINE_MODE")
    args = parser.parse_args(argv)

    config = get_config()
    if args.mode:
        mode = EngineMode(args.mode)
        config = replace(config, mode=mode, debug=config.debug or mode is EngineMode.DEBUG)

    configure_logging(config.debug)

    agent_ids = tuple(args.agents) if args.agents else ALL_AGENT_IDS
    try:
        engine = TradingAgent(config, agent_ids=agent_ids, trade_logger=TradeLogger())
    except KeyError as e:
        log.error("invalid_agent", error=str(e))
        return 2

    engine.install_signal_handlers()
    asyncio.run(engine.run(once=args.once))
    return 0


if __name__ == "__main__":
    sys.exit(main())
