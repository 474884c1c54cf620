"""
Position manager: one position per instrument through its exit lifecycle.

FLAT -> OPEN on the first entry fill. While OPEN, each finished bar is checked
in priority order and at most one order is sent:
  max holding time > stop-loss > trailing stop > reversal >
  half close by time > take-profit tiers (TP1 30%, TP2 30%, TP3 rest),
and otherwise the trailing stop is ratcheted.
Stop-loss and take-profit levels are fixed at entry from the ATR at that bar.
Orders are requests only: position size, trailing activation and the flat
reset are committed when the gateway reports the fill.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from multi_strategy.core.types import (
    Bar,
    Fill,
    OrderRequest,
    Position,
    RiskConfig,
    Signal,
    SignalSide,
    TrailingState,
)
from multi_strategy.execution.base import ExecutionPort
from multi_strategy.indicators.bank import IndicatorSnapshot
from multi_strategy.risk.sizer import RiskSizer
from multi_strategy.utils.instrument import Instrument, floor_to_step, round_price

logger = logging.getLogger("multi_strategy.position")

# ATR substitute (fraction of price) when ATR is not available.
ATR_FALLBACK_PCT = 0.01
TP1_FRACTION = 0.7
TP2_FRACTION = 0.4
TIER_CLOSE_OF_ORIGINAL = 0.3
TIME_PARTIAL_PART = 0.5
EPS = 1e-9


class PositionState(str, Enum):
    FLAT = "flat"
    OPEN = "open"


@dataclass(frozen=True)
class PositionLevels:
    """Exit levels fixed at entry."""
    stop_loss: float
    take_profits: Tuple[float, float, float]


@dataclass
class PendingOrder:
    """Order sent to the gateway and not yet fully reported."""
    order: OrderRequest
    remaining: float
    levels: Optional[PositionLevels] = None
    entry_time: Optional[datetime] = None
    trailing_activation: Optional[float] = None


def compute_levels(
    side: SignalSide, price: float, atr: float, risk: RiskConfig, price_step: Optional[float] = None,
) -> PositionLevels:
    """Stop = price -/+ atr*stop_mult, targets = price +/- atr*tp_mult_k, rounded to the price step."""
    sign = side.sign
    stop = price - sign * atr * risk.stop_loss_mult
    tps = tuple(price + sign * atr * m for m in risk.take_profit_mults)
    if price_step:
        stop = round_price(stop, price_step)
        tps = tuple(round_price(tp, price_step) for tp in tps)
    return PositionLevels(stop_loss=stop, take_profits=tps)


class PositionManager:
    """Owns Position, TrailingState and the in-flight order for one instrument."""

    def __init__(
        self,
        port: ExecutionPort,
        sizer: RiskSizer,
        instrument: Instrument,
        risk: RiskConfig,
        max_holding_minutes: float = 60.0,
        partial_exit_minutes: float = 30.0,
    ):
        self.port = port
        self.sizer = sizer
        self.instrument = instrument
        self.risk = risk
        self.max_holding_minutes = max_holding_minutes
        self.partial_exit_minutes = partial_exit_minutes
        self.position = Position()
        self.trailing = TrailingState()
        self.levels: Optional[PositionLevels] = None
        self._pending: Optional[PendingOrder] = None
        self._last_atr = 0.0
        self._last_bar_time: Optional[datetime] = None

    @property
    def state(self) -> PositionState:
        return PositionState.FLAT if self.position.is_flat else PositionState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state == PositionState.OPEN

    @property
    def has_pending_order(self) -> bool:
        return self._pending is not None

    @property
    def pending_reason(self) -> Optional[str]:
        return self._pending.order.reason if self._pending else None

    # ------------------------------------------------------------------ entry

    def open_position(self, signal: Signal, snapshot: IndicatorSnapshot, equity: Optional[float] = None) -> bool:
        """Size and send the entry order. Returns True if an order was submitted."""
        price = signal.entry_price
        if price is None or price <= 0:
            logger.error("Entry aborted: invalid reference price %s", price)
            return False
        if self.is_open or self.has_pending_order:
            logger.debug("Entry ignored: position open or order in flight")
            return False

        atr = snapshot.atr if snapshot.atr > 0 else price * ATR_FALLBACK_PCT
        levels = compute_levels(signal.side, price, atr, self.risk, self.instrument.price_step)
        sizing = self.sizer.size(price, signal.side, levels.stop_loss, equity)
        if not sizing.allowed:
            logger.warning("Entry rejected by sizer: %s", sizing.reason)
            return False

        order = OrderRequest(
            side=signal.side,
            volume=sizing.volume,
            reference_price=price,
            reason="entry",
            timestamp=signal.timestamp,
        )
        pending = PendingOrder(order=order, remaining=sizing.volume, levels=levels, entry_time=signal.timestamp)
        if not self._submit(pending):
            return False
        tp1, tp2, tp3 = levels.take_profits
        logger.info(
            "Open %s requested: price=%.8f volume=%s SL=%.8f TP1=%.8f TP2=%.8f TP3=%.8f",
            signal.side.value, price, sizing.volume, levels.stop_loss, tp1, tp2, tp3,
        )
        return True

    # ------------------------------------------------------------- management

    def on_bar(self, bar: Bar, snapshot: IndicatorSnapshot, reversal_reason: Optional[str] = None) -> Optional[str]:
        """
        Evaluate exits for the open position on a finished bar.
        Returns the reason of the order sent, or None.
        """
        if snapshot.atr > 0:
            self._last_atr = snapshot.atr
        self._last_bar_time = bar.close_time
        if not self.is_open or self.levels is None:
            return None
        if self.has_pending_order:
            logger.debug("Order in flight (%s), skipping bar %s", self.pending_reason, bar.close_time)
            return None

        side = self.position.side
        sign = side.sign
        price = bar.close
        now = bar.close_time
        atr = snapshot.atr if snapshot.atr > 0 else price * ATR_FALLBACK_PCT
        elapsed = self._elapsed_minutes(now)

        if elapsed > self.max_holding_minutes:
            return self.close_position(price, f"max holding time ({self.max_holding_minutes:g} min)", now)

        if sign * (price - self.trailing.stop_price) <= 0:
            return self.close_position(price, "stop-loss", now)

        if self.trailing.activated and sign * (price - self.trailing.trailing_stop_price) <= 0:
            return self.close_position(price, "trailing-stop triggered", now)

        if reversal_reason:
            return self.close_position(price, f"reversal: {reversal_reason}", now)

        if elapsed > self.partial_exit_minutes and self._holds_entry_volume():
            return self.close_partial(price, TIME_PARTIAL_PART, f"half closed by time ({self.partial_exit_minutes:g} min)", now)

        action = self._check_take_profits(side, price, atr, now)
        if action:
            return action

        if self.trailing.activated:
            self._update_trailing(side, price, atr)
        return None

    def _elapsed_minutes(self, now: datetime) -> float:
        if self.position.entry_time is None:
            return 0.0
        return (now - self.position.entry_time).total_seconds() / 60.0

    def _holds_entry_volume(self) -> bool:
        return math.isclose(abs(self.position.size), self.position.entry_volume, abs_tol=EPS)

    def _check_take_profits(self, side: SignalSide, price: float, atr: float, now: datetime) -> Optional[str]:
        if self.position.entry_volume <= 0:
            return None
        sign = side.sign
        tp1, tp2, tp3 = self.levels.take_profits
        fraction = abs(self.position.size) / self.position.entry_volume

        if fraction > TP1_FRACTION and sign * (price - tp1) >= 0:
            activation = None
            if not self.trailing.activated:
                activation = price - sign * atr * self.risk.trailing_stop_mult
            return self.close_partial(
                price, TIER_CLOSE_OF_ORIGINAL / fraction, "take-profit 1", now, trailing_activation=activation,
            )
        if TP2_FRACTION < fraction <= TP1_FRACTION and sign * (price - tp2) >= 0:
            return self.close_partial(price, TIER_CLOSE_OF_ORIGINAL / fraction, "take-profit 2", now)
        if fraction <= TP2_FRACTION and sign * (price - tp3) >= 0:
            return self.close_position(price, "take-profit 3", now)
        return None

    def _update_trailing(self, side: SignalSide, price: float, atr: float) -> None:
        """Move the trailing stop only in the holder's favour and by at least atr*step."""
        sign = side.sign
        candidate = price - sign * atr * self.risk.trailing_stop_mult
        threshold = self.trailing.trailing_stop_price + sign * atr * self.risk.trailing_stop_step
        if sign * (candidate - threshold) > 0:
            self.trailing.trailing_stop_price = candidate
            logger.info("Trailing stop moved to %.8f", candidate)

    # ----------------------------------------------------------------- orders

    def close_position(self, price: float, reason: str, when: Optional[datetime] = None) -> Optional[str]:
        """Request a market order closing the whole position."""
        if self.position.is_flat:
            return None
        volume = abs(self.position.size)
        order = OrderRequest(
            side=self.position.side.opposite,
            volume=volume,
            reference_price=price,
            reason=reason,
            timestamp=when,
        )
        if not self._submit(PendingOrder(order=order, remaining=volume)):
            return None
        logger.info("Close requested: price=%.8f volume=%s reason=%s", price, volume, reason)
        return reason

    def close_partial(
        self,
        price: float,
        part: float,
        reason: str,
        when: Optional[datetime] = None,
        trailing_activation: Optional[float] = None,
    ) -> Optional[str]:
        """
        Close `part` of the current size. Volume is floored to the increment and
        is at least one increment; if at most one increment would remain, the
        whole position is closed instead.
        """
        if self.position.is_flat:
            return None
        size = abs(self.position.size)
        step = self.instrument.volume_step
        volume = floor_to_step(round(size * part, 8), step)
        if volume < step:
            volume = step
        if volume >= size - step - EPS:
            return self.close_position(price, reason, when)

        order = OrderRequest(
            side=self.position.side.opposite,
            volume=volume,
            reference_price=price,
            reason=reason,
            timestamp=when,
        )
        pending = PendingOrder(order=order, remaining=volume, trailing_activation=trailing_activation)
        if not self._submit(pending):
            return None
        logger.info("Partial close requested (%.0f%%): price=%.8f volume=%s reason=%s", part * 100, price, volume, reason)
        return reason

    def _submit(self, pending: PendingOrder) -> bool:
        # In flight before submit: a synchronous gateway may report the fill inline.
        self._pending = pending
        try:
            self.port.submit_market_order(pending.order)
        except Exception as e:
            logger.exception("Order submission failed (%s): %s", pending.order.reason, e)
            self._pending = None
            return False
        return True

    # ------------------------------------------------------------ execution

    def on_order_failed(self, reason: str) -> None:
        """Gateway rejected the in-flight order; nothing was committed, nothing is retried."""
        if self._pending is None:
            logger.error("Order failed with no order in flight: %s", reason)
            return
        logger.error("Order failed (%s): %s. Position unchanged: %s", self._pending.order.reason, reason, self.position.size)
        self._pending = None

    def apply_fill(self, fill: Fill) -> Tuple[float, float]:
        """Commit a fill to the position. Returns (size_before, size_after)."""
        before = self.position.size
        after = round(before + fill.signed_volume, 10)
        if abs(after) < EPS:
            after = 0.0
        pending = self._pending

        if abs(before) < EPS and after != 0:
            self._open_from_fill(fill, after, pending)
        elif after == 0:
            logger.info("Position closed at %.8f", fill.price)
            self._reset()
        elif (before > 0) != (after > 0):
            logger.warning("Position flipped by fill %s: %s -> %s; adopting new position", fill.trade_id, before, after)
            self._reset()
            self._open_from_fill(fill, after, None)
        elif abs(after) > abs(before):
            # Scale-in (partial entry fills): average the entry price
            added = abs(after) - abs(before)
            self.position.entry_price = (
                self.position.entry_price * abs(before) + fill.price * added
            ) / abs(after)
            self.position.entry_volume = abs(after)
            self.position.size = after
        else:
            self.position.size = after
            if pending is not None and pending.trailing_activation is not None and not self.trailing.activated:
                self.trailing.activated = True
                self.trailing.trailing_stop_price = pending.trailing_activation
                pending.trailing_activation = None
                logger.info("Trailing stop activated at %.8f", self.trailing.trailing_stop_price)

        if pending is not None:
            pending.remaining = round(pending.remaining - fill.volume, 10)
            if pending.remaining <= EPS:
                self._pending = None
        return before, after

    def _open_from_fill(self, fill: Fill, size: float, pending: Optional[PendingOrder]) -> None:
        side = SignalSide.LONG if size > 0 else SignalSide.SHORT
        if pending is not None and pending.levels is not None:
            levels = pending.levels
            entry_time = pending.entry_time
        else:
            atr = self._last_atr if self._last_atr > 0 else fill.price * ATR_FALLBACK_PCT
            levels = compute_levels(side, fill.price, atr, self.risk, self.instrument.price_step)
            entry_time = fill.timestamp or self._last_bar_time
        self.levels = levels
        self.position = Position(
            size=size,
            entry_time=entry_time,
            entry_price=fill.price,
            entry_volume=abs(size),
        )
        self.trailing = TrailingState(
            activated=False,
            stop_price=levels.stop_loss,
            trailing_stop_price=levels.stop_loss,
        )
        logger.info("Position opened: %s %s @ %.8f, SL=%.8f", side.value, abs(size), fill.price, levels.stop_loss)

    def _reset(self) -> None:
        self.position = Position()
        self.trailing = TrailingState()
        self.levels = None
