"""
Trade ledger: turns fill reports into round trips and running statistics.

A round trip starts with the fill that takes the position off zero and ends
with the fill that brings it back to zero or flips its sign. PnL of partial
reductions accumulates into the round trip; the round trip is counted as one
win or loss when it ends. On a flip, the excess volume is a new entry at the
fill price.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from multi_strategy.analytics.metrics import compute_metrics
from multi_strategy.core.types import Fill, SignalSide, Trade

logger = logging.getLogger("multi_strategy.ledger")


@dataclass
class TradeStats:
    """Cumulative statistics; append-only until reset()."""
    win_count: int = 0
    loss_count: int = 0
    total_pnl: float = 0.0
    winning_pnl: float = 0.0
    losing_pnl: float = 0.0  # magnitude

    def record(self, pnl: float) -> None:
        self.total_pnl += pnl
        if pnl > 0:
            self.win_count += 1
            self.winning_pnl += pnl
        else:
            self.loss_count += 1
            self.losing_pnl += abs(pnl)

    @property
    def total_trades(self) -> int:
        return self.win_count + self.loss_count

    @property
    def win_rate(self) -> float:
        return self.win_count / self.total_trades if self.total_trades else 0.0

    @property
    def profit_factor(self) -> float:
        return self.winning_pnl / self.losing_pnl if self.losing_pnl else 0.0

    @property
    def average_win(self) -> float:
        return self.winning_pnl / self.win_count if self.win_count else 0.0

    @property
    def average_loss(self) -> float:
        return self.losing_pnl / self.loss_count if self.loss_count else 0.0

    @property
    def reward_risk(self) -> float:
        return self.average_win / self.average_loss if self.average_loss else 0.0


class TradeLedger:
    """Tracks entry price/volume from fills and realises PnL on closing fills."""

    def __init__(self, symbol: str = ""):
        self.symbol = symbol
        self.stats = TradeStats()
        self.trades: List[Trade] = []
        self._clear_round_trip()

    def _clear_round_trip(self) -> None:
        self.side: Optional[SignalSide] = None
        self.entry_price = 0.0
        self.open_volume = 0.0
        self.entry_time: Optional[datetime] = None
        self._round_trip_pnl = 0.0
        self._exit_value = 0.0
        self._exit_volume = 0.0

    def _start_round_trip(self, fill: Fill, size: float) -> None:
        self._clear_round_trip()
        self.side = SignalSide.LONG if size > 0 else SignalSide.SHORT
        self.entry_price = fill.price
        self.open_volume = abs(size)
        self.entry_time = fill.timestamp
        logger.info("Entry recorded: %s %s @ %.8f (%.2f notional)", self.side.value, self.open_volume, fill.price, fill.price * self.open_volume)

    def reset(self) -> None:
        """Explicit re-initialisation: drops statistics and history."""
        self.stats = TradeStats()
        self.trades = []
        self._clear_round_trip()
        logger.info("Statistics initialised")

    def record_fill(self, fill: Fill, before: float, after: float, reason: Optional[str] = None) -> Optional[Trade]:
        """
        Account for one fill given the position size before and after it.
        Returns the Trade booked when a round trip ends, else None.
        """
        if before == 0:
            if after != 0:
                self._start_round_trip(fill, after)
            return None

        if after != 0 and (after > 0) == (before > 0) and abs(after) > abs(before):
            added = abs(after) - abs(before)
            self.entry_price = (self.entry_price * self.open_volume + fill.price * added) / (self.open_volume + added)
            self.open_volume += added
            return None

        closed = min(abs(before), fill.volume)
        if fill.side == SignalSide.LONG:
            # closing buy: exiting a short
            pnl = (self.entry_price - fill.price) * closed
        else:
            pnl = (fill.price - self.entry_price) * closed
        self._round_trip_pnl += pnl
        self._exit_value += fill.price * closed
        self._exit_volume += closed

        flipped = after != 0 and (after > 0) != (before > 0)
        if after != 0 and not flipped:
            self.open_volume = abs(after)
            logger.info("Partial exit %s @ %.8f, realised %.8f, %s left", closed, fill.price, pnl, self.open_volume)
            return None

        trade = self._book(fill, reason)
        if flipped:
            self._start_round_trip(fill, after)
        else:
            self._clear_round_trip()
        return trade

    def _book(self, fill: Fill, reason: Optional[str]) -> Trade:
        pnl = self._round_trip_pnl
        self.stats.record(pnl)
        trade = Trade(
            symbol=self.symbol,
            side=self.side,
            quantity=self._exit_volume,
            entry_price=self.entry_price,
            exit_price=self._exit_value / self._exit_volume if self._exit_volume else fill.price,
            pnl=pnl,
            entry_time=self.entry_time,
            exit_time=fill.timestamp,
            exit_reason=reason or "",
        )
        self.trades.append(trade)
        logger.info(
            "Trade %s. PnL: %.8f. Total PnL: %.8f",
            "WIN" if pnl > 0 else "LOSS", pnl, self.stats.total_pnl,
        )
        logger.info(
            "Stats: wins=%d losses=%d win rate=%.2f%%",
            self.stats.win_count, self.stats.loss_count, self.stats.win_rate * 100,
        )
        return trade

    def summary(self) -> Dict[str, float]:
        metrics = compute_metrics([t.pnl for t in self.trades])
        return {
            "total_trades": self.stats.total_trades,
            "wins": self.stats.win_count,
            "losses": self.stats.loss_count,
            "total_pnl": self.stats.total_pnl,
            "win_rate": self.stats.win_rate,
            "profit_factor": self.stats.profit_factor,
            "average_win": self.stats.average_win,
            "average_loss": self.stats.average_loss,
            "reward_risk": self.stats.reward_risk,
            "expectancy": metrics.expectancy,
            "max_drawdown": metrics.max_drawdown,
        }

    def log_summary(self) -> None:
        s = self.summary()
        logger.info("===== FINAL STATISTICS %s =====", self.symbol)
        logger.info("Total PnL: %.2f", s["total_pnl"])
        logger.info("Win rate: %.2f%%", s["win_rate"] * 100)
        logger.info("Profit factor: %.2f", s["profit_factor"])
        logger.info("Average win: %.2f | average loss: %.2f | reward/risk: %.2f", s["average_win"], s["average_loss"], s["reward_risk"])
        logger.info("Expectancy: %.2f | max drawdown: %.2f", s["expectancy"], s["max_drawdown"])
        logger.info("Trades: %d (wins %d, losses %d)", s["total_trades"], s["wins"], s["losses"])
