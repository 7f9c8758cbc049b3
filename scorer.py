"""
Candidate filter + market scorer.

Every agent scores the same snapshot differently. A score is the weighted sum
of five sub-scores, each normalized to [0, SUBSCORE_MAX]:

  volume          log-scaled volume relative to the agent's minimum
  liquidity       same treatment against the liquidity minimum
  price movement  size of the last 24h probability move
  news            keyword/category matches, decayed by article age
  probability     distance from 0.5 (conviction opportunity)

A market in one of the agent's focus categories gets FOCUS_CATEGORY_BONUS on
top. Focus categories never exclude a market, they only rank it higher.
"""

import math
import re
from datetime import datetime, timezone
from typing import Optional

import structlog

from models import AgentProfile, Market, NewsArticle, ScoreBreakdown, ScoredMarket, ScoringWeights

log = structlog.get_logger()

SUBSCORE_MAX = 20.0
SATURATION_RATIO = 100.0         # volume/liquidity at 100x the minimum scores full marks
PRICE_MOVE_SATURATION = 0.10     # a 10-point daily move scores full marks
NEWS_HALF_LIFE_HOURS = 6.0
CATEGORY_MATCH_STRENGTH = 0.5
FOCUS_CATEGORY_BONUS = 1.15
MAX_RELEVANT_NEWS = 5

UNIFORM_WEIGHTS = ScoringWeights()

STOPWORDS = frozenset({
    "will", "what", "when", "which", "who", "whom", "whose", "with", "without", "this", "that",
    "these", "those", "there", "their", "they", "them", "then", "than", "from", "into", "onto",
    "over", "under", "about", "after", "before", "between", "during", "above", "below", "have",
    "has", "had", "been", "being", "were", "was", "are", "is", "the", "and", "for", "not", "but",
    "you", "your", "more", "most", "less", "least", "some", "such", "only", "other", "also",
    "says", "said", "year", "years", "week", "month", "today", "news", "2024", "2025", "2026",
    "end", "by", "of", "in", "on", "at", "to", "be", "or", "an", "a", "as", "it", "its", "new",
})

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9$&.'-]*")


def filter_candidates(profile: AgentProfile, markets: list[Market]) -> list[Market]:
    """Markets clearing the agent's volume and liquidity floors."""
    return [
        m for m in markets
        if m.volume_24h >= profile.min_volume and m.liquidity >= profile.min_liquidity
    ]


def extract_keywords(text: str) -> set[str]:
    words = (w.strip(".'-") for w in _WORD_RE.findall((text or "").lower()))
    return {w for w in words if len(w) >= 3 and w not in STOPWORDS}


def _same_category(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def article_age_hours(article: NewsArticle, now: datetime) -> float:
    published = article.published_at
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return max((now - published).total_seconds() / 3600.0, 0.0)


def recency_decay(age_hours: float) -> float:
    """Geometric decay: an article loses half its weight every NEWS_HALF_LIFE_HOURS."""
    return 0.5 ** (age_hours / NEWS_HALF_LIFE_HOURS)


def match_strength(market: Market, article: NewsArticle, market_keywords: Optional[set[str]] = None) -> float:
    """Undecayed relevance of one article. Zero unless a keyword overlaps."""
    if market_keywords is None:
        market_keywords = extract_keywords(market.question)
    overlap = market_keywords & extract_keywords(f"{article.title} {article.description}")
    if not overlap:
        return 0.0
    strength = float(len(overlap))
    if _same_category(market.category, article.category):
        strength += CATEGORY_MATCH_STRENGTH
    return strength


def compute_news_relevance(
    market: Market,
    news: list[NewsArticle],
    now: datetime,
) -> list[tuple[NewsArticle, float]]:
    """Matching articles with their decayed relevance, strongest first."""
    market_keywords = extract_keywords(market.question)
    if not market_keywords:
        return []

    matches = []
    for article in news:
        strength = match_strength(market, article, market_keywords)
        if strength <= 0:
            continue
        matches.append((article, strength * recency_decay(article_age_hours(article, now))))

    matches.sort(key=lambda x: (-x[1], x[0].id))
    return matches


def _log_ratio_subscore(value: float, floor: float) -> float:
    base = max(floor, 1.0)
    ratio = max(value, 0.0) / base
    if ratio <= 1.0:
        return 0.0
    return min(math.log10(ratio) / math.log10(SATURATION_RATIO), 1.0) * SUBSCORE_MAX


def volume_subscore(market: Market, profile: AgentProfile) -> float:
    return _log_ratio_subscore(market.volume_24h, profile.min_volume)


def liquidity_subscore(market: Market, profile: AgentProfile) -> float:
    return _log_ratio_subscore(market.liquidity, profile.min_liquidity)


def price_movement_subscore(market: Market) -> float:
    return min(abs(market.price_change_24h) / PRICE_MOVE_SATURATION, 1.0) * SUBSCORE_MAX


def news_subscore(total_relevance: float) -> float:
    # Smooth saturation keeps the sub-score strictly monotone in relevance
    return SUBSCORE_MAX * (1.0 - math.exp(-max(total_relevance, 0.0)))


def probability_subscore(market: Market) -> float:
    p = min(max(market.probability, 0.0), 1.0)
    return abs(p - 0.5) * 2.0 * SUBSCORE_MAX


def score_market(
    market: Market,
    news: list[NewsArticle],
    profile: AgentProfile,
    now: datetime,
    adaptive: bool = True,
) -> ScoredMarket:
    """
    Score one market for one agent. Pure: same inputs and `now` give the same score.

    With adaptive=False the agent's own weights are replaced by uniform ones.
    """
    weights = profile.weights if adaptive else UNIFORM_WEIGHTS
    relevance = compute_news_relevance(market, news, now)
    total_relevance = sum(r for _, r in relevance)

    bonus = FOCUS_CATEGORY_BONUS if market.category in profile.focus_categories else 1.0
    breakdown = ScoreBreakdown(
        volume=weights.volume_weight * volume_subscore(market, profile),
        liquidity=weights.liquidity_weight * liquidity_subscore(market, profile),
        price_movement=weights.price_movement_weight * price_movement_subscore(market),
        news=weights.news_weight * news_subscore(total_relevance),
        probability=weights.prob_weight * probability_subscore(market),
        focus_bonus=bonus,
    )

    return ScoredMarket(
        market=market,
        score=breakdown.subtotal * bonus,
        agent_id=profile.id,
        relevant_news=[a for a, _ in relevance[:MAX_RELEVANT_NEWS]],
        breakdown=breakdown,
    )


def rank_markets(
    profile: AgentProfile,
    markets: list[Market],
    news: list[NewsArticle],
    now: datetime,
    adaptive: bool = True,
) -> list[ScoredMarket]:
    """Filter, score and sort by score descending; ties broken by market id."""
    candidates = filter_candidates(profile, markets)
    scored = [score_market(m, news, profile, now, adaptive=adaptive) for m in candidates]
    scored.sort(key=lambda s: (-s.score, s.market.id))

    log.debug(
        "markets_ranked",
        agent=profile.id,
        candidates=len(candidates),
        total=len(markets),
        top_score=round(scored[0].score, 2) if scored else None,
    )
    return scored
