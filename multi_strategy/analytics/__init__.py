"""Analytics: trade ledger, running statistics and PnL metrics."""

from multi_strategy.analytics.ledger import TradeLedger, TradeStats
from multi_strategy.analytics.metrics import (
    compute_metrics,
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
)

__all__ = [
    "TradeLedger",
    "TradeStats",
    "compute_metrics",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "expectancy",
]
