"""
Risk sizer: order volume from a fixed notional, capped by an equity risk budget.
volume = min(notional / price, (equity * risk / price) / |price - stop)),
floored to the volume increment and never below one increment.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from multi_strategy.core.types import SignalSide
from multi_strategy.utils.instrument import Instrument

logger = logging.getLogger("multi_strategy.risk")


@dataclass
class SizingResult:
    """Result of sizing: allowed or rejected + reason."""
    allowed: bool
    volume: float = 0.0
    risk_amount: float = 0.0
    reason: str = ""


class RiskSizer:
    """Never sizes above the fixed notional even when the risk budget would allow more."""

    def __init__(
        self,
        instrument: Instrument,
        trade_notional: float = 1.0,
        risk_per_trade: float = 0.01,
    ):
        self.instrument = instrument
        self.trade_notional = trade_notional
        self.risk_per_trade = risk_per_trade

    def size(
        self,
        price: float,
        side: SignalSide,
        stop_price: float,
        equity: Optional[float] = None,
    ) -> SizingResult:
        """Volume for an entry at `price` with the stop at `stop_price`."""
        if price is None or price <= 0:
            logger.error("Cannot size %s entry: invalid reference price %s", side.value, price)
            return SizingResult(allowed=False, reason="invalid reference price")

        volume = self.trade_notional / price
        risk_amount = self.trade_notional * self.risk_per_trade
        if equity is not None and equity > 0 and self.risk_per_trade > 0:
            risk_amount = equity * self.risk_per_trade
            price_risk = abs(price - stop_price)
            if price_risk > 0:
                risk_volume = (risk_amount / price) / price_risk
                volume = min(volume, risk_volume)
            logger.info("Stop distance %.2f%% of price, risk budget %.4f", 100 * price_risk / price, risk_amount)

        step = self.instrument.volume_step
        volume = self.instrument.floor_volume(volume)
        if volume < step:
            volume = step
        logger.info("Sized %s: volume=%s (notional %.4f)", side.value, volume, volume * price)
        return SizingResult(allowed=True, volume=volume, risk_amount=risk_amount)
