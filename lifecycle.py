"""
Position Lifecycle: decides when open positions exit and books realized P&L.

A position is OPEN until one rule fires, then CLOSED for good. Rules, checked
in order against the latest snapshot:

  take profit   YES at p >= 0.80, NO at p <= 0.20
  stop loss     YES at p <= 0.30, NO at p >= 0.70
  max holding   open for 30 days or more
  score decay   latest score for the market below 20 (when a score is known)

A position whose market vanished from the snapshot is force-closed at its last
unrealized P&L. Flips are only proposed here: the caller closes the position
and opens a fresh trade on the other side.

P&L uses a linear binary payoff on the YES probability:
  YES: (exit - entry) * size
  NO:  (entry - exit) * size
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from models import AgentProfile, ClosedPosition, ExitReason, Market, Portfolio, Position, TradeSide

log = structlog.get_logger()

TAKE_PROFIT_YES = 0.80
TAKE_PROFIT_NO = 0.20
STOP_LOSS_YES = 0.30
STOP_LOSS_NO = 0.70
MAX_HOLDING_DAYS = 30
MIN_SCORE_THRESHOLD = 20.0

FLIP_MIN_CONFIDENCE = 0.70
FLIP_MIN_MOVE = 0.10


def _days_open(position: Position, now: datetime) -> float:
    opened = position.opened_at
    if opened.tzinfo is None:
        opened = opened.replace(tzinfo=timezone.utc)
    return (now - opened).total_seconds() / 86400


def exit_reason(
    position: Position,
    market: Market,
    score: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Optional[ExitReason]:
    """First exit rule that fires for this position, or None to hold."""
    now = now or datetime.now(timezone.utc)
    p = market.probability

    if position.side is TradeSide.YES and p >= TAKE_PROFIT_YES:
        return ExitReason.TAKE_PROFIT
    if position.side is TradeSide.NO and p <= TAKE_PROFIT_NO:
        return ExitReason.TAKE_PROFIT

    if position.side is TradeSide.YES and p <= STOP_LOSS_YES:
        return ExitReason.STOP_LOSS
    if position.side is TradeSide.NO and p >= STOP_LOSS_NO:
        return ExitReason.STOP_LOSS

    if _days_open(position, now) >= MAX_HOLDING_DAYS:
        return ExitReason.MAX_HOLDING

    if score is not None and score < MIN_SCORE_THRESHOLD:
        return ExitReason.SCORE_DECAY

    return None


def should_close_position(
    position: Position,
    market: Market,
    score: Optional[float] = None,
    now: Optional[datetime] = None,
) -> bool:
    return exit_reason(position, market, score, now) is not None


def calculate_realized_pnl(position: Position, exit_probability: float) -> float:
    if position.side is TradeSide.YES:
        return (exit_probability - position.entry_probability) * position.size_usd
    return (position.entry_probability - exit_probability) * position.size_usd


def calculate_unrealized_pnl(position: Position, market: Market) -> float:
    """Mark-to-market estimate at the market's current probability."""
    return calculate_realized_pnl(position, market.probability)


def is_losing(position: Position, market: Market) -> bool:
    if position.side is TradeSide.YES:
        return market.probability < position.entry_probability
    return market.probability > position.entry_probability


def flip_possible(position: Position, market: Market) -> bool:
    """Losing and moved far enough that a strong opposite call could flip it."""
    if not is_losing(position, market):
        return False
    # Rounded so a 0.10 move on binary floats (0.6 - 0.5) still counts
    return round(abs(market.probability - position.entry_probability), 9) >= FLIP_MIN_MOVE


def should_flip_position(
    position: Position,
    market: Market,
    agent: AgentProfile,
    new_confidence: float,
) -> bool:
    """
    Propose closing a losing position and opening the other side.

    All of: the position is losing, the opposite-side confidence is above
    FLIP_MIN_CONFIDENCE, and the probability moved at least FLIP_MIN_MOVE
    from entry. Never executes anything.
    """
    if not flip_possible(position, market):
        return False
    if new_confidence <= FLIP_MIN_CONFIDENCE:
        return False
    log.debug("flip_proposed", agent=agent.id, market_id=market.id, side=position.side.value,
              confidence=new_confidence)
    return True


def close_position(
    portfolio: Portfolio,
    market_id: str,
    exit_probability: Optional[float],
    reason: ExitReason,
) -> Optional[ClosedPosition]:
    """Remove one position and book its P&L. exit_probability=None uses the last unrealized P&L."""
    position = portfolio.open_positions.pop(market_id, None)
    if position is None:
        return None

    if exit_probability is None:
        realized = position.unrealized_pnl
    else:
        realized = calculate_realized_pnl(position, exit_probability)

    portfolio.realized_pnl_usd += realized
    portfolio.current_capital_usd += realized
    return ClosedPosition(
        position=position,
        realized_pnl=realized,
        reason=reason,
        exit_probability=exit_probability,
    )


def process_position_lifecycle(
    portfolio: Portfolio,
    markets_by_id: dict[str, Market],
    scores_by_id: Optional[dict[str, float]] = None,
    now: Optional[datetime] = None,
) -> list[ClosedPosition]:
    """
    One pass over every open position. Returns what was closed.

    Positions are evaluated independently: a delisted market or a bad record
    on one position does not stop the scan.
    """
    now = now or datetime.now(timezone.utc)
    scores_by_id = scores_by_id or {}
    closed: list[ClosedPosition] = []

    for market_id in list(portfolio.open_positions):
        position = portfolio.open_positions[market_id]
        market = markets_by_id.get(market_id)

        if market is None:
            result = close_position(portfolio, market_id, None, ExitReason.DELISTED)
            closed.append(result)
            log.info("position_force_closed", agent=portfolio.agent_id, market_id=market_id,
                     pnl=f"${result.realized_pnl:.2f}", reason=result.reason.value)
            continue

        try:
            reason = exit_reason(position, market, scores_by_id.get(market_id), now)
        except Exception as e:
            log.error("position_eval_failed", agent=portfolio.agent_id, market_id=market_id, error=str(e))
            continue

        if reason is None:
            continue

        result = close_position(portfolio, market_id, market.probability, reason)
        closed.append(result)
        log.info(
            "position_closed",
            agent=portfolio.agent_id,
            market_id=market_id,
            side=position.side.value,
            entry=round(position.entry_probability, 3),
            exit=round(market.probability, 3),
            pnl=f"${result.realized_pnl:.2f}",
            reason=reason.value,
        )

    if closed:
        log.info("lifecycle_pass_complete", agent=portfolio.agent_id, closed=len(closed),
                 still_open=len(portfolio.open_positions))
    return closed
