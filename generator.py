"""
Trade Generator: ranked candidates -> oracle decisions -> AgentTrade objects.

Pipeline per agent:
  1. Filter the snapshot to candidates (volume/liquidity floors)
  2. Score and rank them (ties broken by market id), dropping any below
     the score-decay floor and any market the caller asked to skip
  3. Keep the top `candidate_multiplier * max_trades` as a safety buffer
  4. Walk that list in score order, one oracle call at a time,
     until the quota is met or the list runs out

Oracle calls go through the DecisionCache. A failed or timed-out call skips
that market; it never fails the batch.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

import structlog

from cache import DecisionCache
from lifecycle import MIN_SCORE_THRESHOLD
from models import (
    STARTING_CAPITAL_USD,
    AgentProfile,
    AgentTrade,
    Decision,
    Market,
    NewsArticle,
    RiskTier,
    ScoredMarket,
)
from oracle import DecisionOracle
from scorer import rank_markets

log = structlog.get_logger()

DEFAULT_CANDIDATE_MULTIPLIER = 2
DEFAULT_ORACLE_TIMEOUT_SECONDS = 20.0

# Fraction of starting capital committed per trade at 100% confidence
RISK_ALLOCATION = {
    RiskTier.LOW: 0.02,
    RiskTier.MEDIUM: 0.03,
    RiskTier.HIGH: 0.05,
}


def size_trade(profile: AgentProfile, confidence: float) -> float:
    return round(STARTING_CAPITAL_USD * RISK_ALLOCATION[profile.risk] * confidence, 2)


def quota_reached(accepted: int, max_trades: int) -> bool:
    return accepted >= max_trades


def iter_ranked_candidates(ranked: list[ScoredMarket], limit: int) -> Iterator[ScoredMarket]:
    """Bounded walk over ranked candidates, best first."""
    for scored in ranked[:max(limit, 0)]:
        yield scored


def build_trade(profile: AgentProfile, scored: ScoredMarket, decision: Decision, now_ms: int) -> AgentTrade:
    market = scored.market
    return AgentTrade(
        id=f"{profile.id}-{market.id}-{now_ms}",
        agent_id=profile.id,
        market_id=market.id,
        question=market.question,
        side=decision.side,
        confidence=decision.confidence,
        investment_usd=size_trade(profile, decision.confidence),
        entry_probability=market.probability,
        created_at=now_ms,
        reasoning=decision.reasoning,
    )


class TradeGenerator:
    """Turns one agent's view of a snapshot into at most `max_trades` trades."""

    def __init__(
        self,
        oracle: DecisionOracle,
        decision_cache: Optional[DecisionCache] = None,
        oracle_timeout: float = DEFAULT_ORACLE_TIMEOUT_SECONDS,
        candidate_multiplier: int = DEFAULT_CANDIDATE_MULTIPLIER,
        adaptive: bool = True,
        min_score: float = MIN_SCORE_THRESHOLD,
    ):
        self.oracle = oracle
        self.decision_cache = decision_cache if decision_cache is not None else DecisionCache()
        self.oracle_timeout = oracle_timeout
        self.candidate_multiplier = candidate_multiplier
        self.adaptive = adaptive
        self.min_score = min_score
        self.oracle_calls = 0
        self.oracle_failures = 0

    async def generate(
        self,
        profile: AgentProfile,
        markets: list[Market],
        news: list[NewsArticle],
        now_ms: int,
        max_trades: Optional[int] = None,
        skip_market_ids: Iterable[str] = (),
    ) -> list[AgentTrade]:
        """
        Generate trades for one agent. Output is in acceptance order.

        Candidates scoring below `min_score` never reach the oracle, so a fresh
        trade is not closed for score decay on the next lifecycle pass.
        `skip_market_ids` are markets the caller could not book anyway.
        """
        max_trades = profile.max_trades if max_trades is None else max_trades
        now = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)

        ranked = rank_markets(profile, markets, news, now, adaptive=self.adaptive)
        skip = set(skip_market_ids)
        eligible = [s for s in ranked if s.score >= self.min_score and s.market.id not in skip]
        if len(eligible) < len(ranked):
            log.debug(
                "candidates_dropped",
                agent=profile.id,
                below_score=sum(1 for s in ranked if s.score < self.min_score),
                held=sum(1 for s in ranked if s.market.id in skip),
            )
        ranked = eligible
        if not ranked:
            log.info("no_candidate_markets", agent=profile.id, markets=len(markets))
            return []

        limit = max_trades * self.candidate_multiplier
        log.info(
            "generating_trades",
            agent=profile.id,
            candidates=len(ranked),
            considering=min(limit, len(ranked)),
            max_trades=max_trades,
            top_score=round(ranked[0].score, 1),
        )

        trades: list[AgentTrade] = []
        for scored in iter_ranked_candidates(ranked, limit):
            if quota_reached(len(trades), max_trades):
                log.info("max_trades_reached", agent=profile.id, max_trades=max_trades)
                break

            try:
                decision = await self._decide(profile, scored)
            except asyncio.TimeoutError:
                self.oracle_failures += 1
                log.warning("oracle_timeout", agent=profile.id, market_id=scored.market.id,
                            timeout=self.oracle_timeout)
                continue
            except Exception as e:
                self.oracle_failures += 1
                log.error("oracle_call_failed", agent=profile.id, market_id=scored.market.id, error=str(e))
                continue

            if decision is None or decision.confidence < profile.min_confidence:
                log.debug("market_skipped", agent=profile.id, market_id=scored.market.id,
                          score=round(scored.score, 1))
                continue

            trade = build_trade(profile, scored, decision, now_ms)
            trades.append(trade)
            log.info(
                "trade_generated",
                agent=profile.id,
                n=len(trades),
                side=trade.side.value,
                confidence=f"{trade.confidence:.0%}",
                size=f"${trade.investment_usd:.2f}",
                question=trade.question[:60],
            )

        log.info("generation_complete", agent=profile.id, trades=len(trades))
        return trades

    async def _decide(self, profile: AgentProfile, scored: ScoredMarket) -> Optional[Decision]:
        hit, decision = self.decision_cache.lookup(profile.id, scored.market.id)
        if hit:
            return decision

        self.oracle_calls += 1
        decision = await asyncio.wait_for(
            self.oracle.decide(profile, scored, scored.relevant_news),
            timeout=self.oracle_timeout,
        )
        # Only answers are cached; a raise above leaves the slot empty for a retry
        self.decision_cache.set(profile.id, scored.market.id, decision)
        return decision
