"""Abstract strategy: consumes finished bars on two timeframes and execution events."""

from __future__ import annotations
from abc import abstractmethod

from multi_strategy.core.types import Bar
from multi_strategy.execution.base import ExecutionListener


class BaseStrategy(ExecutionListener):
    """Lifecycle plus one callback per timeframe. Unfinished bars must be ignored."""

    @abstractmethod
    def start(self) -> None:
        """Validate collaborators and reset statistics. Raises ConfigurationError."""
        pass

    @abstractmethod
    def on_fast_bar(self, bar: Bar) -> None:
        """Trading timeframe bar."""
        pass

    @abstractmethod
    def on_slow_bar(self, bar: Bar) -> None:
        """Trend timeframe bar."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass
