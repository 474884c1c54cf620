"""Utils: Telegram, timeframes, instrument metadata."""

from multi_strategy.utils.telegram import send_telegram
from multi_strategy.utils.timeframes import timeframe_minutes, timeframe_delta
from multi_strategy.utils.instrument import Instrument, floor_to_step

__all__ = ["send_telegram", "timeframe_minutes", "timeframe_delta", "Instrument", "floor_to_step"]
