"""Instrument metadata: price and volume increments, step rounding."""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional

DEFAULT_PRICE_STEP = 0.0001
DEFAULT_VOLUME_STEP = 0.01


@dataclass(frozen=True)
class Instrument:
    """Traded security: symbol plus the exchange's price and volume increments."""
    symbol: str
    price_step: float = DEFAULT_PRICE_STEP
    volume_step: float = DEFAULT_VOLUME_STEP

    @classmethod
    def from_symbol_info(cls, symbol: str, symbol_info: Optional[dict]) -> "Instrument":
        """
        Build from exchange symbol info (LOT_SIZE stepSize, PRICE_FILTER tickSize).
        Missing filters fall back to the defaults.
        """
        price_step = DEFAULT_PRICE_STEP
        volume_step = DEFAULT_VOLUME_STEP
        if symbol_info:
            for f in symbol_info.get("filters", []):
                if f.get("filterType") == "LOT_SIZE":
                    volume_step = float(f.get("stepSize", volume_step))
                if f.get("filterType") == "PRICE_FILTER":
                    price_step = float(f.get("tickSize", price_step))
        return cls(symbol=symbol, price_step=price_step, volume_step=volume_step)

    def validate(self) -> None:
        """Raise ValueError when increments are unusable."""
        if not self.symbol:
            raise ValueError("instrument symbol is empty")
        for name in ("price_step", "volume_step"):
            value = getattr(self, name)
            if value is None or not math.isfinite(value) or value <= 0:
                raise ValueError(f"instrument {name} must be positive, got {value}")

    def floor_volume(self, volume: float) -> float:
        return floor_to_step(volume, self.volume_step)


def floor_to_step(qty: float, step_size: float) -> float:
    """Round down to a multiple of step_size (tolerates float noise like 0.3/0.1)."""
    if qty <= 0:
        return 0.0
    steps = math.floor(qty / step_size + 1e-9)
    return round(steps * step_size, 8)


def round_price(price: float, tick_size: float) -> float:
    """Round price to exchange tick."""
    return round(round(price / tick_size) * tick_size, 8)
