"""
Streaming indicators: each consumes one finished bar at a time and keeps only
the state it needs. `value` is 0.0 until the indicator is formed; callers must
check `is_formed` before reading it.
"""

from __future__ import annotations
import logging
import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional, Tuple

import numpy as np

from multi_strategy.core.types import Bar

logger = logging.getLogger("multi_strategy.indicators")

# Bands used when the standard deviation cannot be derived: middle +/- 2%.
BOLLINGER_FALLBACK_PCT = 0.02


class StreamingIndicator(ABC):
    """Base: fixed lookback `length`, formed once `length` values were consumed."""

    def __init__(self, length: int):
        if length <= 0:
            raise ValueError(f"{type(self).__name__} length must be positive, got {length}")
        self.length = length
        self.value = 0.0
        self._count = 0

    @property
    def is_formed(self) -> bool:
        return self._count >= self.length

    @abstractmethod
    def update(self, bar: Bar) -> float:
        """Consume one finished bar and return the current value."""
        pass

    def reset(self) -> None:
        self.value = 0.0
        self._count = 0


class EMA(StreamingIndicator):
    """Exponential moving average of close, seeded with the SMA of the first `length` closes."""

    def __init__(self, length: int):
        super().__init__(length)
        self._k = 2.0 / (length + 1)
        self._seed_sum = 0.0

    def update(self, bar: Bar) -> float:
        return self.update_value(bar.close)

    def update_value(self, price: float) -> float:
        self._count += 1
        if self._count < self.length:
            self._seed_sum += price
            return self.value
        if self._count == self.length:
            self._seed_sum += price
            self.value = self._seed_sum / self.length
            return self.value
        self.value = price * self._k + self.value * (1 - self._k)
        return self.value

    def reset(self) -> None:
        super().reset()
        self._seed_sum = 0.0


class RSI(StreamingIndicator):
    """Wilder RSI on close-to-close changes; formed after `length` changes."""

    def __init__(self, length: int):
        super().__init__(length)
        self._prev_close: Optional[float] = None
        self._avg_gain = 0.0
        self._avg_loss = 0.0

    def update(self, bar: Bar) -> float:
        close = bar.close
        if self._prev_close is None:
            self._prev_close = close
            return self.value
        change = close - self._prev_close
        self._prev_close = close
        gain = max(change, 0.0)
        loss = max(-change, 0.0)
        self._count += 1
        if self._count <= self.length:
            # SMA seed
            self._avg_gain += gain / self.length
            self._avg_loss += loss / self.length
            if self._count < self.length:
                return self.value
        else:
            self._avg_gain = (self._avg_gain * (self.length - 1) + gain) / self.length
            self._avg_loss = (self._avg_loss * (self.length - 1) + loss) / self.length
        self.value = self._rsi(self._avg_gain, self._avg_loss)
        return self.value

    @staticmethod
    def _rsi(avg_gain: float, avg_loss: float) -> float:
        if avg_loss <= 0:
            return 100.0 if avg_gain > 0 else 50.0
        rs = avg_gain / avg_loss
        return 100.0 - 100.0 / (1.0 + rs)

    def reset(self) -> None:
        super().reset()
        self._prev_close = None
        self._avg_gain = 0.0
        self._avg_loss = 0.0


class ATR(StreamingIndicator):
    """Average true range with Wilder smoothing; first bar's true range is high - low."""

    def __init__(self, length: int):
        super().__init__(length)
        self._prev_close: Optional[float] = None
        self._seed_sum = 0.0

    def update(self, bar: Bar) -> float:
        if self._prev_close is None:
            tr = bar.high - bar.low
        else:
            tr = max(bar.high - bar.low, abs(bar.high - self._prev_close), abs(bar.low - self._prev_close))
        self._prev_close = bar.close
        self._count += 1
        if self._count < self.length:
            self._seed_sum += tr
        elif self._count == self.length:
            self._seed_sum += tr
            self.value = self._seed_sum / self.length
        else:
            self.value = (self.value * (self.length - 1) + tr) / self.length
        return self.value

    def reset(self) -> None:
        super().reset()
        self._prev_close = None
        self._seed_sum = 0.0


class OBV(StreamingIndicator):
    """On-balance volume: adds volume on up closes, subtracts on down closes."""

    def __init__(self):
        super().__init__(1)
        self._prev_close: Optional[float] = None

    def update(self, bar: Bar) -> float:
        if self._prev_close is not None:
            if bar.close > self._prev_close:
                self.value += bar.volume
            elif bar.close < self._prev_close:
                self.value -= bar.volume
        self._prev_close = bar.close
        self._count += 1
        return self.value

    def reset(self) -> None:
        super().reset()
        self._prev_close = None


class BollingerBands(StreamingIndicator):
    """
    SMA middle band with upper/lower = middle +/- width * population std of
    the last `length` closes. If the deviation cannot be computed the bands
    degrade to middle +/- BOLLINGER_FALLBACK_PCT and the bar is still used.
    """

    def __init__(self, length: int, width: float = 2.0):
        super().__init__(length)
        self.width = width
        self._window: Deque[float] = deque(maxlen=length)
        self.upper = 0.0
        self.lower = 0.0

    @property
    def middle(self) -> float:
        return self.value

    @property
    def bands(self) -> Tuple[float, float, float]:
        return self.upper, self.value, self.lower

    def update(self, bar: Bar) -> float:
        self._window.append(bar.close)
        self._count += 1
        if not self.is_formed:
            return self.value
        closes = np.fromiter(self._window, dtype=float)
        self.value = float(closes.mean())
        try:
            std = float(np.std(closes))
            if not math.isfinite(std):
                raise FloatingPointError(f"non-finite deviation {std}")
            self.upper = self.value + self.width * std
            self.lower = self.value - self.width * std
        except (ArithmeticError, ValueError) as e:
            logger.error("Bollinger bands failed, using +/-%.0f%% fallback: %s", BOLLINGER_FALLBACK_PCT * 100, e)
            self.upper = self.value * (1 + BOLLINGER_FALLBACK_PCT)
            self.lower = self.value * (1 - BOLLINGER_FALLBACK_PCT)
        return self.value

    def reset(self) -> None:
        super().reset()
        self._window.clear()
        self.upper = 0.0
        self.lower = 0.0
