"""
Indicator bank: owns every streaming indicator and publishes an immutable
IndicatorSnapshot after each finished bar. Previous values are always the
prior snapshot's current values, captured before the indicators update.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Dict

from multi_strategy.core.types import Bar
from multi_strategy.indicators.streaming import ATR, EMA, OBV, RSI, BollingerBands

logger = logging.getLogger("multi_strategy.indicators.bank")

INDICATOR_NAMES = ("fast_ema", "slow_ema", "long_ema", "rsi", "atr", "obv", "bollinger")


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Current and previous indicator values plus per-indicator formed flags."""
    fast_ema: float = 0.0
    fast_ema_prev: float = 0.0
    slow_ema: float = 0.0
    slow_ema_prev: float = 0.0
    long_ema: float = 0.0
    long_ema_prev: float = 0.0
    rsi: float = 0.0
    rsi_prev: float = 0.0
    atr: float = 0.0
    atr_prev: float = 0.0
    obv: float = 0.0
    obv_prev: float = 0.0
    bb_upper: float = 0.0
    bb_upper_prev: float = 0.0
    bb_middle: float = 0.0
    bb_middle_prev: float = 0.0
    bb_lower: float = 0.0
    bb_lower_prev: float = 0.0
    formed: Dict[str, bool] = field(default_factory=lambda: {name: False for name in INDICATOR_NAMES})

    def are_formed(self) -> bool:
        """True only when all seven indicators have enough history."""
        return all(self.formed.get(name, False) for name in INDICATOR_NAMES)


class IndicatorBank:
    """
    Fast timeframe drives fast/slow EMA, RSI, ATR, OBV and Bollinger bands;
    slow timeframe drives only the long (trend) EMA.
    """

    def __init__(
        self,
        fast_ema_len: int = 8,
        slow_ema_len: int = 21,
        long_ema_len: int = 55,
        rsi_len: int = 14,
        bb_len: int = 20,
        bb_width: float = 2.0,
        atr_len: int = 14,
    ):
        self.fast_ema = EMA(fast_ema_len)
        self.slow_ema = EMA(slow_ema_len)
        self.long_ema = EMA(long_ema_len)
        self.rsi = RSI(rsi_len)
        self.atr = ATR(atr_len)
        self.obv = OBV()
        self.bollinger = BollingerBands(bb_len, bb_width)
        self._snapshot = IndicatorSnapshot()

    @property
    def snapshot(self) -> IndicatorSnapshot:
        return self._snapshot

    def _formed_flags(self) -> Dict[str, bool]:
        return {name: getattr(self, name).is_formed for name in INDICATOR_NAMES}

    def update_fast(self, bar: Bar) -> IndicatorSnapshot:
        """Process one finished fast-timeframe bar and replace the snapshot."""
        prev = self._snapshot
        self.fast_ema.update(bar)
        self.slow_ema.update(bar)
        self.rsi.update(bar)
        self.atr.update(bar)
        self.obv.update(bar)
        self.bollinger.update(bar)
        upper, middle, lower = self.bollinger.bands
        self._snapshot = replace(
            prev,
            fast_ema=self.fast_ema.value,
            fast_ema_prev=prev.fast_ema,
            slow_ema=self.slow_ema.value,
            slow_ema_prev=prev.slow_ema,
            rsi=self.rsi.value,
            rsi_prev=prev.rsi,
            atr=self.atr.value,
            atr_prev=prev.atr,
            obv=self.obv.value,
            obv_prev=prev.obv,
            bb_upper=upper,
            bb_upper_prev=prev.bb_upper,
            bb_middle=middle,
            bb_middle_prev=prev.bb_middle,
            bb_lower=lower,
            bb_lower_prev=prev.bb_lower,
            formed=self._formed_flags(),
        )
        return self._snapshot

    def update_slow(self, bar: Bar) -> IndicatorSnapshot:
        """Process one finished slow-timeframe bar: only the long EMA moves."""
        prev = self._snapshot
        self.long_ema.update(bar)
        self._snapshot = replace(
            prev,
            long_ema=self.long_ema.value,
            long_ema_prev=prev.long_ema,
            formed=self._formed_flags(),
        )
        logger.debug("Long EMA %.8f (prev %.8f)", self._snapshot.long_ema, self._snapshot.long_ema_prev)
        return self._snapshot

    def are_formed(self) -> bool:
        return self._snapshot.are_formed()

    def reset(self) -> None:
        for name in INDICATOR_NAMES:
            getattr(self, name).reset()
        self._snapshot = IndicatorSnapshot()
