"""News Scanner: pulls recent headlines from RSS feeds into NewsArticle records."""

import asyncio
import calendar
import html
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import feedparser
import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from categories import detect_category
from models import Config, NewsArticle, SnapshotError

log = structlog.get_logger()

MAX_ENTRIES_PER_FEED = 25
MAX_ARTICLE_AGE = timedelta(days=3)

_TAG_RE = re.compile(r"<[^>]+>")


def _clean(text: str) -> str:
    return " ".join(html.unescape(_TAG_RE.sub(" ", text or "")).split())


def _entry_time(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


def parse_feed(content: str, feed_url: str, now: Optional[datetime] = None) -> list[NewsArticle]:
    """Parse one RSS/Atom document. Entries without a date or older than MAX_ARTICLE_AGE are dropped."""
    now = now or datetime.now(timezone.utc)
    feed = feedparser.parse(content)
    source = feed.feed.get("title", feed_url) if hasattr(feed, "feed") else feed_url

    articles = []
    for entry in feed.entries[:MAX_ENTRIES_PER_FEED]:
        published = _entry_time(entry)
        title = _clean(entry.get("title", ""))
        if published is None or not title or now - published > MAX_ARTICLE_AGE:
            continue
        description = _clean(entry.get("summary", ""))[:500]
        articles.append(NewsArticle(
            id=entry.get("link") or entry.get("id") or f"{feed_url}#{title}",
            title=title,
            description=description,
            published_at=published,
            category=detect_category(title, None, description),
            source=source,
        ))
    return articles


class NewsScanner:
    """Fetches all configured feeds concurrently."""

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.feeds = list(config.news_feeds)
        self.client = client or httpx.AsyncClient(timeout=15.0, follow_redirects=True)

    async def fetch_news(self) -> list[NewsArticle]:
        """
        Recent articles from every feed, newest first, de-duplicated by id.

        Individual feeds may fail; if all of them do the snapshot is unusable
        and SnapshotError is raised.
        """
        if not self.feeds:
            return []

        results = await asyncio.gather(*(self._fetch_feed(url) for url in self.feeds), return_exceptions=True)

        articles: dict[str, NewsArticle] = {}
        failures = 0
        for url, result in zip(self.feeds, results):
            if isinstance(result, Exception):
                failures += 1
                log.warning("news_feed_failed", feed=url, error=str(result))
                continue
            for article in result:
                articles.setdefault(article.id, article)

        if failures == len(self.feeds):
            raise SnapshotError(f"all {failures} news feeds failed")

        ordered = sorted(articles.values(), key=lambda a: a.published_at, reverse=True)
        log.info("news_fetched", feeds=len(self.feeds), failed=failures, articles=len(ordered))
        return ordered

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=10), reraise=True)
    async def _fetch_feed(self, url: str) -> list[NewsArticle]:
        resp = await self.client.get(url)
        resp.raise_for_status()
        return parse_feed(resp.text, url)

    async def close(self):
        await self.client.aclose()
