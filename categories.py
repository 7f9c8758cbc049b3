"""
Category heuristics for markets and news articles.

Best-effort keyword classification. Rules are checked in order and the first
match wins, so more specific categories sit above broader ones:

    Elections > Politics > Sports > Crypto > Earnings > Finance > Tech
    > Entertainment > Geopolitics > World (default)

Keywords overlap across categories ("president" is both politics and
geopolitics, "revenue" can be a box office number). Those overlaps are a
known source of misclassification and are resolved only by rule order and
each rule's exclusion list.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

DEFAULT_CATEGORY = "World"


@dataclass(frozen=True)
class CategoryRule:
    category: str
    keywords: tuple[str, ...]
    aliases: tuple[str, ...] = ()   # matched against the provider's category field
    exclude: tuple[str, ...] = ()   # any hit in the text vetoes this rule


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Elections",
        keywords=("election", "elections", "vote", "votes", "ballot", "primary", "electoral"),
        aliases=("election",),
    ),
    CategoryRule(
        "Politics",
        keywords=("president", "trump", "biden", "congress", "senate", "government",
                  "politics", "governor", "impeach", "cabinet"),
        aliases=("politic",),
    ),
    CategoryRule(
        "Sports",
        keywords=("super bowl", "nfl", "nba", "mlb", "nhl", "football", "basketball", "soccer",
                  "baseball", "hockey", "tennis", "championship", "playoff", "playoffs",
                  "world cup", "olympics", "ncaa", "ufc", "premier league", "grand slam"),
        aliases=("sport",),
    ),
    CategoryRule(
        "Crypto",
        keywords=("bitcoin", "ethereum", "crypto", "cryptocurrency", "btc", "eth", "solana",
                  "blockchain", "defi", "nft", "stablecoin", "dogecoin", "xrp"),
        aliases=("crypto",),
    ),
    CategoryRule(
        "Earnings",
        keywords=("earnings", "quarterly", "revenue", "eps", "earnings per share",
                  "earnings call", "guidance"),
        aliases=("earnings",),
        exclude=("top grossing", "grossing", "box office", "movie", "film"),
    ),
    CategoryRule(
        "Finance",
        keywords=("stock", "stocks", "dow", "s&p", "nasdaq", "fed", "interest rate",
                  "interest rates", "inflation", "recession", "treasury", "ipo"),
        aliases=("finance", "stocks", "economy", "business"),
    ),
    CategoryRule(
        "Tech",
        keywords=("artificial intelligence", "ai", "chatgpt", "gpt", "openai", "software",
                  "algorithm", "machine learning", "neural network", "iphone", "spacex"),
        aliases=("tech", "science"),
    ),
    CategoryRule(
        "Entertainment",
        keywords=("movie", "film", "cinema", "box office", "top grossing", "celebrity",
                  "actor", "actress", "oscar", "oscars", "emmy", "grammy", "premiere",
                  "trailer", "sequel", "hollywood", "netflix", "tv show", "album", "billboard"),
        aliases=("entertainment", "movies", "film", "pop-culture", "culture"),
    ),
    CategoryRule(
        "Geopolitics",
        keywords=("geopolitics", "geopolitical", "ukraine", "russia", "china", "taiwan",
                  "israel", "palestine", "iran", "nato", "sanctions", "embargo", "treaty",
                  "middle east", "gaza", "ceasefire", "invasion", "putin", "zelenskyy"),
        aliases=("geopolitic", "world affairs"),
    ),
)


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"(?<![\w])" + re.escape(keyword) + r"(?![\w])")


def _mentions(text: str, keywords: Iterable[str]) -> bool:
    return any(_keyword_pattern(k).search(text) for k in keywords)


def detect_category(
    question: str,
    category: Optional[str] = None,
    description: str = "",
    tags: Iterable[str] = (),
) -> str:
    """Classify free text (plus an optional provider category and tags)."""
    provider = (category or "").lower().strip()
    text = " ".join([question or "", description or "", *[str(t) for t in tags if t]]).lower()

    for rule in CATEGORY_RULES:
        if rule.exclude and _mentions(text, rule.exclude):
            continue
        if provider and (provider == rule.category.lower() or any(a in provider for a in rule.aliases)):
            return rule.category
        if _mentions(text, rule.keywords):
            return rule.category

    return DEFAULT_CATEGORY


def classify_market(market) -> str:
    return detect_category(market.question, market.category, market.description)


def classify_article(article) -> str:
    return detect_category(article.title, article.category, article.description)
