"""Read-side projections of agent trades for display. Nothing here mutates state."""

from typing import Optional

from models import STARTING_CAPITAL_USD, AgentProfile, AgentStats, AgentTrade, SummaryStats, TradeStatus
from profiles import get_agent_profile

AGENT_COLORS = {
    "deepseek": "#8b91a8",
    "claude": "#9d8b6b",
    "qwen": "#6b9e7d",
    "gemini": "#9ca3af",
    "grok": "#ba6b6b",
    "gpt5": "#8b7aa8",
}
DEFAULT_COLOR = "#64748b"

FRONTEND_IDS = {
    "DEEPSEEK_V3": "deepseek",
    "CLAUDE_4_5": "claude",
    "QWEN_2_5": "qwen",
    "GEMINI_2_5": "gemini",
    "GROK_4": "grok",
    "GPT_5": "gpt5",
}


def _closed_with_pnl(trades: list[AgentTrade]) -> list[AgentTrade]:
    return [t for t in trades if t.status is TradeStatus.CLOSED and t.pnl is not None]


def _open(trades: list[AgentTrade]) -> list[AgentTrade]:
    return [t for t in trades if t.status is TradeStatus.OPEN]


def calculate_agent_stats(
    agent_id: str,
    trades: list[AgentTrade],
    unrealized_pnl: float = 0.0,
    starting_capital: float = STARTING_CAPITAL_USD,
) -> AgentStats:
    """
    Stats for one agent.

    total = starting capital + realized + unrealized
    cash  = total - exposure, clamped at zero
    win rate is a percentage over closed trades with a P&L; a zero-P&L close
    counts as a loss.
    """
    profile = get_agent_profile(agent_id)
    frontend_id = FRONTEND_IDS.get(agent_id, agent_id.lower())

    closed = _closed_with_pnl(trades)
    realized = sum(t.pnl for t in closed)
    exposure = sum(t.investment_usd for t in _open(trades))
    total = starting_capital + realized + unrealized_pnl

    wins = sum(1 for t in closed if t.pnl > 0)
    losses = len(closed) - wins
    win_rate = wins / (wins + losses) * 100 if (wins + losses) > 0 else 0.0

    return AgentStats(
        id=frontend_id,
        name=profile.display_name,
        emoji=profile.avatar,
        color=AGENT_COLORS.get(frontend_id, DEFAULT_COLOR),
        cash=max(0.0, total - exposure),
        total=max(0.0, total),
        pnl=realized + unrealized_pnl,
        win_rate=win_rate,
        wins=wins,
        losses=losses,
        exposure=exposure,
        max_exposure=exposure / starting_capital * 100 if starting_capital > 0 else 0.0,
        calls=len(trades),
        min_conf=profile.min_confidence,
    )


def calculate_all_agent_stats(
    trades_by_agent: dict[str, list[AgentTrade]],
    unrealized_by_agent: Optional[dict[str, float]] = None,
    starting_capital_by_agent: Optional[dict[str, float]] = None,
) -> list[AgentStats]:
    """Stats for every agent, best total P&L first. Missing starting capital defaults to STARTING_CAPITAL_USD."""
    unrealized_by_agent = unrealized_by_agent or {}
    starting_capital_by_agent = starting_capital_by_agent or {}
    stats = [
        calculate_agent_stats(
            agent_id,
            trades,
            unrealized_by_agent.get(agent_id, 0.0),
            starting_capital_by_agent.get(agent_id, STARTING_CAPITAL_USD),
        )
        for agent_id, trades in trades_by_agent.items()
    ]
    stats.sort(key=lambda s: s.pnl, reverse=True)
    return stats


def compute_summary_stats(trades_by_agent: dict[str, list[AgentTrade]]) -> SummaryStats:
    total_pnl = 0.0
    open_count = 0
    closed_count = 0
    best_agent: Optional[str] = None
    best_pnl: Optional[float] = None

    for agent_id, trades in trades_by_agent.items():
        closed = [t for t in trades if t.status is TradeStatus.CLOSED]
        agent_pnl = sum(t.pnl or 0.0 for t in closed)
        total_pnl += agent_pnl
        open_count += len(_open(trades))
        closed_count += len(closed)

        # Agents with nothing closed cannot be "best"
        if closed and (best_pnl is None or agent_pnl > best_pnl):
            best_pnl = agent_pnl
            best_agent = agent_id

    return SummaryStats(
        total_pnl=total_pnl,
        open_trades_count=open_count,
        closed_trades_count=closed_count,
        best_agent_by_pnl=best_agent,
    )


def build_agent_summary(trades: list[AgentTrade], agent: AgentProfile) -> str:
    """One-line human summary, e.g. "GPT-5 has 2 open positions, 1 closed trade, +$12.50 realized PnL."."""
    if not trades:
        return f"{agent.display_name} has no active trades."

    open_trades = _open(trades)
    closed = [t for t in trades if t.status is TradeStatus.CLOSED]
    total_pnl = sum(t.pnl or 0.0 for t in closed)

    parts = []
    if open_trades:
        parts.append(f"{len(open_trades)} open position{'s' if len(open_trades) > 1 else ''}")
    if closed:
        parts.append(f"{len(closed)} closed trade{'s' if len(closed) > 1 else ''}")
        if total_pnl != 0:
            sign = "+" if total_pnl > 0 else "-"
            parts.append(f"{sign}${abs(total_pnl):.2f} realized PnL")

    return f"{agent.display_name} has {', '.join(parts)}."
