"""Shared fixtures for the agent trade engine test suite."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from models import (
    AgentProfile,
    Config,
    Decision,
    Market,
    NewsArticle,
    Position,
    RiskTier,
    ScoredMarket,
    TradeSide,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedOracle:
    """Returns a fixed decision per market id; records every call."""

    def __init__(self, decisions: Optional[dict] = None, default: Optional[Decision] = None):
        self.decisions = decisions or {}
        self.default = default
        self.calls: list[tuple[str, str]] = []

    async def decide(self, profile, scored: ScoredMarket, news):
        self.calls.append((profile.id, scored.market.id))
        answer = self.decisions.get(scored.market.id, self.default)
        if isinstance(answer, Exception):
            raise answer
        return answer


def make_market(market_id: str = "m1", **overrides) -> Market:
    fields = dict(
        id=market_id,
        question=f"Will the Fed cut interest rates in meeting {market_id}?",
        probability=0.65,
        volume_24h=200_000,
        liquidity=50_000,
        category="Finance",
        price_change_24h=0.03,
    )
    fields.update(overrides)
    return Market(**fields)


def make_article(article_id: str = "a1", age_hours: float = 1.0, **overrides) -> NewsArticle:
    fields = dict(
        id=article_id,
        title="Fed signals interest rates cut at next meeting",
        published_at=NOW - timedelta(hours=age_hours),
        description="Officials point to cooling inflation.",
        category="Finance",
    )
    fields.update(overrides)
    return NewsArticle(**fields)


def make_position(side: TradeSide = TradeSide.YES, entry: float = 0.50, size: float = 100.0,
                  market_id: str = "m1", opened_at: datetime = NOW) -> Position:
    return Position(
        trade_id=f"T-{market_id}",
        market_id=market_id,
        side=side,
        entry_probability=entry,
        size_usd=size,
        opened_at=opened_at,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def small_profile() -> AgentProfile:
    """Profile with floors 50k/10k and room for two trades."""
    return AgentProfile(
        id="GPT_5",
        display_name="GPT-5",
        avatar="✨",
        risk=RiskTier.MEDIUM,
        min_volume=50_000,
        min_liquidity=10_000,
        max_trades=2,
        focus_categories=frozenset({"Finance"}),
    )


@pytest.fixture
def sim_config() -> Config:
    return Config(news_feeds=[], refresh_interval=1, lifecycle_interval=0)
