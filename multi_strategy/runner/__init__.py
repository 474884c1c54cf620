"""Runner: single-threaded dispatch of bars and execution events."""

from multi_strategy.runner.dispatcher import Dispatcher

__all__ = ["Dispatcher"]
