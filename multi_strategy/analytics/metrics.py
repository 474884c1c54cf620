"""
Performance metrics over a list of closed-trade PnLs: win rate, profit factor,
expectancy, max drawdown of the cumulative PnL curve.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List

import numpy as np


@dataclass
class PerformanceMetrics:
    """Aggregate performance metrics."""
    total_pnl: float
    max_drawdown: float
    win_rate: float
    profit_factor: float
    expectancy: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    avg_win: float
    avg_loss: float


def max_drawdown(pnls: List[float]) -> float:
    """Largest peak-to-trough fall of the cumulative PnL (absolute, >= 0)."""
    if not pnls:
        return 0.0
    equity = np.concatenate([[0.0], np.cumsum(pnls)])
    peak = np.maximum.accumulate(equity)
    return float(np.max(peak - equity))


def win_rate(pnls: List[float]) -> float:
    """Fraction of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. Returns 0 if there are no losses."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p <= 0)
    if losses <= 0:
        return 0.0
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def compute_metrics(pnls: List[float]) -> PerformanceMetrics:
    """Full metrics from the list of trade PnLs; a zero PnL counts as a loss."""
    wins = [p for p in pnls if p > 0]
    losses = [-p for p in pnls if p <= 0]
    return PerformanceMetrics(
        total_pnl=float(sum(pnls)),
        max_drawdown=max_drawdown(pnls),
        win_rate=win_rate(pnls),
        profit_factor=profit_factor(pnls),
        expectancy=expectancy(pnls),
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
    )
