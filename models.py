"""Configuration and data models for the agent trading engine."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

STARTING_CAPITAL_USD = 10_000.0


class RiskTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TradeSide(str, Enum):
    YES = "YES"
    NO = "NO"

    @property
    def opposite(self) -> "TradeSide":
        return TradeSide.NO if self is TradeSide.YES else TradeSide.YES


class TradeStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class EngineMode(str, Enum):
    LIVE = "LIVE"
    SIMULATION = "SIMULATION"
    DEBUG = "DEBUG"


class ExitReason(str, Enum):
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    MAX_HOLDING = "max_holding"
    SCORE_DECAY = "score_decay"
    DELISTED = "delisted"
    FLIP = "flip"
    MANUAL = "manual"


class EngineError(Exception):
    """Base class for engine errors."""


class UnknownAgentError(EngineError, KeyError):
    """Raised when an agent id is not in the profile registry."""

    def __str__(self):
        return f"Unknown agent ID: {self.args[0]}" if self.args else "Unknown agent ID"


class SnapshotError(EngineError):
    """A market or news snapshot could not be fetched. Fatal for a cycle."""


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    mode: EngineMode = EngineMode.SIMULATION
    debug: bool = False

    # Feature flags
    enable_lifecycle: bool = True
    enable_adaptive: bool = True
    enable_news_search: bool = True

    # Anthropic
    anthropic_api_key: str = ""
    oracle_model: str = "claude-sonnet-4-20250514"
    oracle_timeout_seconds: float = 20.0

    # Loop params
    refresh_interval: int = 60
    lifecycle_interval: int = 30
    max_markets: int = 500
    news_feeds: list[str] = field(default_factory=list)
    state_file: Optional[str] = None


DEFAULT_NEWS_FEEDS = [
    "https://feeds.bbci.co.uk/news/world/rss.xml",
    "https://feeds.a.dj.com/rss/RSSMarketsMain.xml",
    "https://www.coindesk.com/arc/outboundfeeds/rss/",
]


def load_config() -> Config:
    """Build a Config from the environment."""
    raw_mode = os.getenv("PREDICTION_ENGINE_MODE", "SIMULATION").strip().upper()
    try:
        mode = EngineMode(raw_mode)
    except ValueError:
        mode = EngineMode.SIMULATION

    feeds_raw = os.getenv("NEWS_FEEDS", "")
    feeds = [f.strip() for f in feeds_raw.split(",") if f.strip()] or list(DEFAULT_NEWS_FEEDS)

    return Config(
        mode=mode,
        debug=mode is EngineMode.DEBUG or _env_bool("PREDICTION_ENGINE_DEBUG", False),
        enable_lifecycle=_env_bool("ENABLE_LIFECYCLE", True),
        enable_adaptive=_env_bool("ENABLE_ADAPTIVE_SCORING", True),
        enable_news_search=_env_bool("ENABLE_NEWS_SEARCH", True),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        oracle_model=os.getenv("ORACLE_MODEL", "claude-sonnet-4-20250514"),
        oracle_timeout_seconds=float(os.getenv("ORACLE_TIMEOUT_SECONDS", "20")),
        refresh_interval=int(os.getenv("REFRESH_INTERVAL_SECONDS", "60")),
        lifecycle_interval=int(os.getenv("LIFECYCLE_INTERVAL_SECONDS", "30")),
        max_markets=int(os.getenv("MAX_MARKETS", "500")),
        news_feeds=feeds,
        state_file=os.getenv("STATE_FILE") or None,
    )


_config: Optional[Config] = None


def get_config() -> Config:
    """Process-wide config, read from the environment on first access."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    global _config
    _config = None


def is_lifecycle_enabled() -> bool:
    return get_config().enable_lifecycle


def is_adaptive_enabled() -> bool:
    return get_config().enable_adaptive


def is_news_search_enabled() -> bool:
    return get_config().enable_news_search


def is_debug_mode() -> bool:
    return get_config().debug


@dataclass(frozen=True)
class ScoringWeights:
    volume_weight: float = 1.0
    liquidity_weight: float = 1.0
    price_movement_weight: float = 1.0
    news_weight: float = 1.0
    prob_weight: float = 1.0


@dataclass(frozen=True)
class AgentProfile:
    """Static per-agent configuration."""
    id: str
    display_name: str
    avatar: str
    risk: RiskTier
    min_volume: float
    min_liquidity: float
    max_trades: int
    focus_categories: frozenset[str] = frozenset()
    weights: ScoringWeights = ScoringWeights()
    min_confidence: float = 0.60  # Oracle answers below this are "no trade"


@dataclass
class Market:
    """A prediction market as seen in one snapshot."""
    id: str
    question: str
    probability: float  # YES probability, 0-1
    volume_24h: float
    liquidity: float
    category: Optional[str] = None
    volume_1wk: float = 0.0
    price_change_24h: float = 0.0  # Probability delta over the last day
    description: str = ""
    image: Optional[str] = None
    slug: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class NewsArticle:
    id: str  # url
    title: str
    published_at: datetime
    description: str = ""
    category: Optional[str] = None
    source: str = ""


@dataclass
class ScoreBreakdown:
    """Weighted sub-scores behind a market score."""
    volume: float
    liquidity: float
    price_movement: float
    news: float
    probability: float
    focus_bonus: float = 1.0

    @property
    def subtotal(self) -> float:
        return self.volume + self.liquidity + self.price_movement + self.news + self.probability


@dataclass
class ScoredMarket:
    """A market scored for one agent. Recomputed every cycle."""
    market: Market
    score: float
    agent_id: str
    relevant_news: list[NewsArticle] = field(default_factory=list)
    breakdown: Optional[ScoreBreakdown] = None

    @property
    def id(self) -> str:
        return self.market.id

    @property
    def question(self) -> str:
        return self.market.question


@dataclass
class Decision:
    """An oracle recommendation for one (agent, market) pair."""
    side: TradeSide
    confidence: float
    reasoning: str = ""


@dataclass
class AgentTrade:
    id: str
    agent_id: str
    market_id: str
    question: str
    side: TradeSide
    confidence: float
    investment_usd: float
    entry_probability: float
    created_at: int  # epoch ms
    status: TradeStatus = TradeStatus.OPEN
    pnl: Optional[float] = None
    reasoning: str = ""
    closed_at: Optional[int] = None


@dataclass
class Position:
    """An open position. One per (agent, market) at most."""
    trade_id: str
    market_id: str
    side: TradeSide
    entry_probability: float
    size_usd: float
    opened_at: datetime
    unrealized_pnl: float = 0.0


@dataclass
class Portfolio:
    agent_id: str
    starting_capital_usd: float = STARTING_CAPITAL_USD
    current_capital_usd: float = STARTING_CAPITAL_USD
    realized_pnl_usd: float = 0.0
    open_positions: dict[str, Position] = field(default_factory=dict)

    @property
    def exposure_usd(self) -> float:
        return sum(p.size_usd for p in self.open_positions.values())

    @property
    def cash_usd(self) -> float:
        return self.current_capital_usd - self.exposure_usd

    @property
    def unrealized_pnl_usd(self) -> float:
        return sum(p.unrealized_pnl for p in self.open_positions.values())


@dataclass
class ClosedPosition:
    position: Position
    realized_pnl: float
    reason: ExitReason
    exit_probability: Optional[float] = None  # None when the market was delisted


@dataclass
class AgentStats:
    """Per-agent display stats."""
    id: str
    name: str
    emoji: str
    color: str
    cash: float
    total: float
    pnl: float
    win_rate: float  # percent
    wins: int
    losses: int
    exposure: float
    max_exposure: float  # percent of starting capital
    calls: int
    min_conf: float


@dataclass
class SummaryStats:
    total_pnl: float
    open_trades_count: int
    closed_trades_count: int
    best_agent_by_pnl: Optional[str]
