"""Strategies: base interface, signal rules and the multi-timeframe strategy."""

from multi_strategy.strategies.base import BaseStrategy
from multi_strategy.strategies.signals import SignalEvaluator
from multi_strategy.strategies.multi_timeframe import MultiTimeframeStrategy, StrategyState

__all__ = ["BaseStrategy", "SignalEvaluator", "MultiTimeframeStrategy", "StrategyState"]
