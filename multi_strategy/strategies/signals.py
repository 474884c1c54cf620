"""
Entry and reversal signals from an IndicatorSnapshot.

Long: fast EMA crosses above slow EMA, close > long EMA, RSI back above 40
from below 30, close within 2% above the lower Bollinger band, OBV rising.
Short is the mirror. Raw signals pass a volatility floor, an optional
session-hours filter and the global trend filter (long EMA direction).
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from multi_strategy.core.types import Bar, Signal, SignalSide
from multi_strategy.indicators.bank import IndicatorSnapshot

logger = logging.getLogger("multi_strategy.signals")

RSI_LONG_NOW = 40.0
RSI_LONG_PREV = 30.0
RSI_SHORT_NOW = 60.0
RSI_SHORT_PREV = 70.0
RSI_REVERSAL_HIGH = 80.0
RSI_REVERSAL_LOW = 20.0
LOWER_BAND_TOLERANCE = 1.02
UPPER_BAND_TOLERANCE = 0.98
DOJI_MAX_BODY_PCT = 0.001
DOJI_MIN_RANGE_PCT = 0.005


def crossed_above(s: IndicatorSnapshot) -> bool:
    return s.fast_ema > s.slow_ema and s.fast_ema_prev <= s.slow_ema_prev


def crossed_below(s: IndicatorSnapshot) -> bool:
    return s.fast_ema < s.slow_ema and s.fast_ema_prev >= s.slow_ema_prev


def is_doji(bar: Bar) -> bool:
    """Tiny body with a wide range, relative to the open price."""
    if bar.open <= 0:
        return False
    return bar.body / bar.open < DOJI_MAX_BODY_PCT and bar.range / bar.open > DOJI_MIN_RANGE_PCT


class SignalEvaluator:
    """Stateless rules over the indicator snapshot; all thresholds per bar close."""

    def __init__(
        self,
        price_step: float,
        min_volatility_mult: float = 10.0,
        session_start_hour: Optional[int] = None,
        session_end_hour: Optional[int] = None,
    ):
        self.price_step = price_step
        self.min_volatility_mult = min_volatility_mult
        self.session_start_hour = session_start_hour
        self.session_end_hour = session_end_hour

    @property
    def min_atr(self) -> float:
        return self.price_step * self.min_volatility_mult

    def check_time_filter(self, when: datetime) -> bool:
        """Trading session in UTC hours [start, end); wraps past midnight. Always open if unset."""
        if self.session_start_hour is None or self.session_end_hour is None:
            return True
        hour = when.hour
        start, end = self.session_start_hour, self.session_end_hour
        if start <= end:
            return start <= hour < end
        return hour >= start or hour < end

    def check_volatility_filter(self, snapshot: IndicatorSnapshot) -> bool:
        if snapshot.atr > self.min_atr:
            return True
        logger.info("Low volatility: ATR=%.8f, need more than %.8f", snapshot.atr, self.min_atr)
        return False

    def check_global_trend(self, snapshot: IndicatorSnapshot, is_long: bool) -> bool:
        """Trade only with the long EMA: rising for longs, falling for shorts."""
        if is_long:
            ok = snapshot.long_ema > snapshot.long_ema_prev
        else:
            ok = snapshot.long_ema < snapshot.long_ema_prev
        if not ok:
            logger.info(
                "Global trend filter rejected %s: long EMA %.8f vs prev %.8f",
                "LONG" if is_long else "SHORT", snapshot.long_ema, snapshot.long_ema_prev,
            )
        return ok

    def is_long_setup(self, s: IndicatorSnapshot, close: float) -> bool:
        return (
            crossed_above(s)
            and close > s.long_ema
            and s.rsi > RSI_LONG_NOW and s.rsi_prev < RSI_LONG_PREV
            and close <= s.bb_lower * LOWER_BAND_TOLERANCE
            and s.obv > s.obv_prev
        )

    def is_short_setup(self, s: IndicatorSnapshot, close: float) -> bool:
        return (
            crossed_below(s)
            and close < s.long_ema
            and s.rsi < RSI_SHORT_NOW and s.rsi_prev > RSI_SHORT_PREV
            and close >= s.bb_upper * UPPER_BAND_TOLERANCE
            and s.obv < s.obv_prev
        )

    def check_entry(self, snapshot: IndicatorSnapshot, bar: Bar) -> Optional[Signal]:
        """
        Return an entry Signal for this finished bar or None.
        Only meaningful while flat; returns None until all indicators are formed.
        """
        if not snapshot.are_formed():
            return None
        if not self.check_time_filter(bar.close_time) or not self.check_volatility_filter(snapshot):
            return None
        close = bar.close
        long_ok = self.is_long_setup(snapshot, close)
        short_ok = self.is_short_setup(snapshot, close)
        if long_ok:
            logger.info("LONG setup detected at %.8f", close)
        if short_ok:
            logger.info("SHORT setup detected at %.8f", close)

        if long_ok and self.check_global_trend(snapshot, is_long=True):
            side = SignalSide.LONG
        elif short_ok and self.check_global_trend(snapshot, is_long=False):
            side = SignalSide.SHORT
        else:
            return None
        return Signal(
            side=side,
            entry_price=close,
            timestamp=bar.close_time,
            metadata={"atr": snapshot.atr, "rsi": snapshot.rsi, "long_ema": snapshot.long_ema},
        )

    def reversal_reason(self, snapshot: IndicatorSnapshot, bar: Bar, side: SignalSide) -> Optional[str]:
        """Why the held position should be closed for reversal, or None."""
        if (side == SignalSide.LONG and crossed_below(snapshot)) or (
            side == SignalSide.SHORT and crossed_above(snapshot)
        ):
            return "EMA cross against position"
        if (side == SignalSide.LONG and snapshot.rsi > RSI_REVERSAL_HIGH) or (
            side == SignalSide.SHORT and snapshot.rsi < RSI_REVERSAL_LOW
        ):
            return f"RSI extreme {snapshot.rsi:.1f}"
        if is_doji(bar):
            return "doji"
        return None
