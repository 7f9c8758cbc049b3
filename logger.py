"""
Logging setup + Trade Logger (CSV) for analysis.

configure_logging() installs the structlog processor chain used by every module.
TradeLogger appends generated trades and closed positions to CSV files for
later review. It is separate from the Accountant, which owns the books.
"""

import csv
import logging
import os
from datetime import datetime, timezone

import structlog

from models import AgentTrade, ClosedPosition

log = structlog.get_logger()

TRADE_CSV = "trades.csv"
CLOSURE_CSV = "closures.csv"

TRADE_HEADER = [
    "timestamp", "cycle", "agent", "trade_id", "market_id", "question",
    "side", "confidence", "investment_usd", "entry_probability",
]
CLOSURE_HEADER = [
    "timestamp", "agent", "trade_id", "market_id", "side",
    "entry_probability", "exit_probability", "size_usd", "pnl", "reason",
]


def configure_logging(debug: bool = False):
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
    )


class TradeLogger:
    """Logs trades and closes to CSV for review. Never raises."""

    def __init__(self, trade_csv: str = TRADE_CSV, closure_csv: str = CLOSURE_CSV):
        self.trade_csv = trade_csv
        self.closure_csv = closure_csv
        self._ensure_csv(self.trade_csv, TRADE_HEADER)
        self._ensure_csv(self.closure_csv, CLOSURE_HEADER)

    def _ensure_csv(self, path: str, header: list[str]):
        if os.path.exists(path):
            return
        try:
            with open(path, "w", newline="") as f:
                csv.writer(f).writerow(header)
        except OSError as e:
            log.debug("csv_init_failed", path=path, error=str(e))

    def log_trades(self, cycle: int, trades: list[AgentTrade]):
        if not trades:
            return
        try:
            now = datetime.now(timezone.utc).isoformat()
            with open(self.trade_csv, "a", newline="") as f:
                w = csv.writer(f)
                for t in trades:
                    w.writerow([
                        now, cycle, t.agent_id, t.id, t.market_id, t.question[:100],
                        t.side.value, f"{t.confidence:.3f}", f"{t.investment_usd:.2f}",
                        f"{t.entry_probability:.4f}",
                    ])
        except Exception as e:
            log.debug("trade_log_failed", error=str(e))

    def log_closures(self, agent_id: str, closed: list[ClosedPosition]):
        if not closed:
            return
        try:
            now = datetime.now(timezone.utc).isoformat()
            with open(self.closure_csv, "a", newline="") as f:
                w = csv.writer(f)
                for c in closed:
                    p = c.position
                    w.writerow([
                        now, agent_id, p.trade_id, p.market_id, p.side.value,
                        f"{p.entry_probability:.4f}",
                        "" if c.exit_probability is None else f"{c.exit_probability:.4f}",
                        f"{p.size_usd:.2f}", f"{c.realized_pnl:.2f}", c.reason.value,
                    ])
        except Exception as e:
            log.debug("closure_log_failed", error=str(e))
