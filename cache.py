"""
In-memory caches for the generation pipeline.

DecisionCache  memoizes oracle answers per (agent, market) for a few seconds.
AgentTradeCache keeps copies of an agent's booked trade list, valid only while
               the TTL holds AND the snapshot's market-id set is unchanged.

Both are plain objects owned by whoever builds the pipeline. Expired entries
are evicted lazily when read; nothing sweeps them in the background.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

import structlog

from models import AgentTrade, Decision

log = structlog.get_logger()

DECISION_CACHE_TTL_SECONDS = 30.0
AGENT_TRADE_CACHE_TTL_SECONDS = 30.0
SUMMARY_CACHE_TTL_SECONDS = 120.0  # For read-only summaries that tolerate staler data

Clock = Callable[[], float]


@dataclass
class _DecisionEntry:
    decision: Optional[Decision]
    cached_at: float


class DecisionCache:
    """Short-lived oracle answers keyed by (agent_id, market_id)."""

    def __init__(self, ttl_seconds: float = DECISION_CACHE_TTL_SECONDS, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], _DecisionEntry] = {}

    def lookup(self, agent_id: str, market_id: str) -> tuple[bool, Optional[Decision]]:
        """(hit, decision). A hit may carry None: the oracle said "no trade"."""
        key = (agent_id, market_id)
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if self._clock() - entry.cached_at >= self.ttl_seconds:
            del self._entries[key]
            return False, None
        return True, entry.decision

    def get(self, agent_id: str, market_id: str) -> Optional[Decision]:
        return self.lookup(agent_id, market_id)[1]

    def set(self, agent_id: str, market_id: str, decision: Optional[Decision]):
        self._entries[(agent_id, market_id)] = _DecisionEntry(decision, self._clock())

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


def _copies(trades: Iterable[AgentTrade]) -> list[AgentTrade]:
    # Snapshots; the ledger keeps mutating its own trade objects
    return [replace(t) for t in trades]


@dataclass
class _TradeEntry:
    trades: list[AgentTrade]
    generated_at: float
    market_ids: list[str] = field(default_factory=list)


class AgentTradeCache:
    """Generated trade lists per agent, bound to the market-id set they came from."""

    def __init__(self, ttl_seconds: float = AGENT_TRADE_CACHE_TTL_SECONDS, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _TradeEntry] = {}

    def _fresh_entry(self, agent_id: str) -> Optional[_TradeEntry]:
        entry = self._entries.get(agent_id)
        if entry is None:
            return None
        if self._clock() - entry.generated_at >= self.ttl_seconds:
            del self._entries[agent_id]
            return None
        return entry

    def get(self, agent_id: str, current_market_ids: Iterable[str]) -> Optional[list[AgentTrade]]:
        entry = self._fresh_entry(agent_id)
        if entry is None:
            return None

        current = sorted(current_market_ids)
        if current != entry.market_ids:
            del self._entries[agent_id]
            log.debug("trade_cache_invalidated", agent=agent_id,
                      cached_markets=len(entry.market_ids), current_markets=len(current))
            return None

        return _copies(entry.trades)

    def get_quick(self, agent_id: str) -> Optional[list[AgentTrade]]:
        """TTL-only lookup. Skips the market-id check, so it may be stale."""
        entry = self._fresh_entry(agent_id)
        return _copies(entry.trades) if entry is not None else None

    def set(self, agent_id: str, trades: list[AgentTrade], market_ids: Iterable[str]):
        ids = sorted(market_ids)
        self._entries[agent_id] = _TradeEntry(_copies(trades), self._clock(), ids)
        log.debug("trade_cache_set", agent=agent_id, trades=len(trades), markets=len(ids))

    def invalidate(self, agent_id: str):
        self._entries.pop(agent_id, None)

    def clear(self):
        self._entries.clear()
