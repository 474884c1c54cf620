"""Indicators: streaming estimators and the snapshot-publishing bank."""

from multi_strategy.indicators.bank import IndicatorBank, IndicatorSnapshot
from multi_strategy.indicators.streaming import ATR, EMA, OBV, RSI, BollingerBands

__all__ = ["IndicatorBank", "IndicatorSnapshot", "ATR", "EMA", "OBV", "RSI", "BollingerBands"]
