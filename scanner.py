"""Scanner: fetches active markets from Polymarket's Gamma API and normalizes them."""

import json
from typing import Optional

import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from categories import detect_category
from models import Config, Market

log = structlog.get_logger()

GAMMA_API_BASE = "https://gamma-api.polymarket.com"
PAGE_SIZE = 100


def _as_list(value) -> list:
    """Gamma returns some list fields as JSON strings."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (ValueError, TypeError):
            return []
    return value if isinstance(value, list) else []


def _as_float(value, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None and value != "" else default
    except (ValueError, TypeError):
        return default


def parse_market(raw: dict) -> Optional[Market]:
    """Build a Market from a Gamma API record. None if it has no usable price."""
    market_id = raw.get("id") or raw.get("conditionId") or raw.get("condition_id")
    question = raw.get("question", "")
    if not market_id or not question:
        return None

    probability = None
    prices = _as_list(raw.get("outcomePrices"))
    if prices:
        probability = _as_float(prices[0], default=None)
    if probability is None:
        last = _as_float(raw.get("lastTradePrice"), default=0.0)
        probability = last if last > 0 else None
    if probability is None or not 0.0 <= probability <= 1.0:
        return None

    tags = [t.get("label", "") if isinstance(t, dict) else str(t) for t in raw.get("tags") or []]
    description = (raw.get("description") or "")[:500]  # Truncate for prompt size

    return Market(
        id=str(market_id),
        question=question,
        probability=probability,
        volume_24h=_as_float(raw.get("volume24hr", raw.get("volume_24h"))),
        volume_1wk=_as_float(raw.get("volume1wk")),
        liquidity=_as_float(raw.get("liquidityNum", raw.get("liquidity"))),
        price_change_24h=_as_float(raw.get("oneDayPriceChange")),
        category=detect_category(question, raw.get("category"), description, tags),
        description=description,
        image=raw.get("image"),
        slug=raw.get("slug"),
        end_date=raw.get("endDate", raw.get("end_date_iso")),
    )


class MarketScanner:
    """Pulls the active market snapshot."""

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def fetch_markets(self) -> list[Market]:
        """Active markets sorted by 24h volume, up to config.max_markets."""
        log.info("scanning_markets", max_markets=self.config.max_markets)
        raw_markets = await self._fetch_gamma_markets()

        markets = []
        seen = set()
        for raw in raw_markets[:self.config.max_markets]:
            try:
                market = parse_market(raw)
            except Exception as e:
                log.warning("market_parse_failed", market=raw.get("question", "?")[:60], error=str(e))
                continue
            if market is None or market.id in seen:
                continue
            seen.add(market.id)
            markets.append(market)

        log.info("markets_fetched", raw=len(raw_markets), usable=len(markets))
        return markets

    async def _fetch_gamma_markets(self) -> list[dict]:
        all_markets = []
        offset = 0
        while len(all_markets) < self.config.max_markets:
            batch = await self._fetch_page(offset)
            if not batch:
                break
            all_markets.extend(batch)
            offset += PAGE_SIZE
        return all_markets

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=10), reraise=True)
    async def _fetch_page(self, offset: int) -> list[dict]:
        resp = await self.client.get(
            f"{GAMMA_API_BASE}/markets",
            params={
                "active": "true",
                "closed": "false",
                "limit": PAGE_SIZE,
                "offset": offset,
                "order": "volume24hr",
                "ascending": "false",
            },
        )
        resp.raise_for_status()
        return resp.json()

    async def close(self):
        await self.client.aclose()
