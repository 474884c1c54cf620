"""
Core data types for bars, signals, orders, fills, positions, and trades.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class SignalSide(str, Enum):
    LONG = "BUY"
    SHORT = "SELL"

    @property
    def sign(self) -> int:
        return 1 if self is SignalSide.LONG else -1

    @property
    def opposite(self) -> "SignalSide":
        return SignalSide.SHORT if self is SignalSide.LONG else SignalSide.LONG


@dataclass(frozen=True)
class Bar:
    """OHLCV candle. Only finished bars drive the strategy."""
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    finished: bool = True

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low


@dataclass
class Signal:
    """Entry request produced by the signal evaluator; volume is sized later."""
    side: SignalSide
    entry_price: float
    timestamp: datetime
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RiskConfig:
    """ATR multipliers and sizing inputs used at entry."""
    stop_loss_mult: float = 1.5
    take_profit_mults: Tuple[float, float, float] = (2.0, 3.0, 5.0)
    trailing_stop_mult: float = 2.0
    trailing_stop_step: float = 0.5
    risk_per_trade: float = 0.01
    min_volatility_mult: float = 10.0
    trade_notional: float = 1.0


@dataclass
class OrderRequest:
    """Market order handed to the execution gateway."""
    side: SignalSide
    volume: float
    reference_price: float
    reason: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class Fill:
    """Execution report for (part of) a market order."""
    trade_id: str
    price: float
    volume: float
    side: SignalSide
    timestamp: Optional[datetime] = None

    @property
    def signed_volume(self) -> float:
        return self.volume * self.side.sign


@dataclass
class Position:
    """Open position state. size > 0 long, < 0 short, 0 flat."""
    size: float = 0.0
    entry_time: Optional[datetime] = None
    entry_price: float = 0.0
    entry_volume: float = 0.0

    @property
    def is_flat(self) -> bool:
        return abs(self.size) < 1e-12

    @property
    def side(self) -> Optional[SignalSide]:
        if self.is_flat:
            return None
        return SignalSide.LONG if self.size > 0 else SignalSide.SHORT


@dataclass
class TrailingState:
    """Stop levels of the open position; trailing moves only after TP1."""
    activated: bool = False
    stop_price: float = 0.0
    trailing_stop_price: float = 0.0


@dataclass
class Trade:
    """Closed round trip for analytics."""
    symbol: str
    side: SignalSide
    quantity: float
    entry_price: float
    exit_price: float
    pnl: float
    entry_time: Optional[datetime]
    exit_time: Optional[datetime]
    exit_reason: str  # e.g. "stop-loss", "take-profit 3", "reversal: doji"
