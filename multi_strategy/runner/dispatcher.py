"""
Dispatch loop: one queue per timeframe plus one queue of execution events,
all consumed on a single thread so strategy state is never mutated concurrently.
Execution events are delivered before the next bar. Between the two bar
queues the earliest close time goes first; the slow bar wins ties so the
trend EMA is current when the fast bar closing at the same instant arrives.
"""

from __future__ import annotations
import logging
from collections import deque
from typing import Deque, Iterable, Optional, Tuple, Union

from multi_strategy.core.types import Bar, Fill
from multi_strategy.strategies.base import BaseStrategy

logger = logging.getLogger("multi_strategy.runner")

FILL = "fill"
ORDER_FAILED = "order_failed"


class Dispatcher:
    """Serialises bars and execution events onto one strategy."""

    def __init__(self, strategy: Optional[BaseStrategy] = None):
        self.strategy = strategy
        self.fast_bars: Deque[Bar] = deque()
        self.slow_bars: Deque[Bar] = deque()
        self.events: Deque[Tuple[str, Union[Fill, str]]] = deque()
        self.processed = 0
        self.errors = 0

    def bind(self, strategy: BaseStrategy) -> None:
        self.strategy = strategy

    def post_fast_bar(self, bar: Bar) -> None:
        self.fast_bars.append(bar)

    def post_slow_bar(self, bar: Bar) -> None:
        self.slow_bars.append(bar)

    def extend(self, fast: Iterable[Bar] = (), slow: Iterable[Bar] = ()) -> None:
        self.fast_bars.extend(fast)
        self.slow_bars.extend(slow)

    def post_fill(self, fill: Fill) -> None:
        self.events.append((FILL, fill))

    def post_order_failed(self, reason: str) -> None:
        self.events.append((ORDER_FAILED, reason))

    def pending(self) -> int:
        return len(self.fast_bars) + len(self.slow_bars) + len(self.events)

    def step(self) -> bool:
        """Deliver one item. Returns False when every queue is empty."""
        if self.strategy is None:
            raise RuntimeError("Dispatcher has no strategy bound")
        try:
            if self.events:
                kind, payload = self.events.popleft()
                if kind == FILL:
                    self.strategy.on_fill(payload)
                else:
                    self.strategy.on_order_failed(payload)
            elif self.slow_bars and (
                not self.fast_bars or self.slow_bars[0].close_time <= self.fast_bars[0].close_time
            ):
                self.strategy.on_slow_bar(self.slow_bars.popleft())
            elif self.fast_bars:
                self.strategy.on_fast_bar(self.fast_bars.popleft())
            else:
                return False
        except Exception as e:
            self.errors += 1
            logger.exception("Dispatch error: %s", e)
        self.processed += 1
        return True

    def run(self) -> int:
        """Drain all queues. Returns the number of items delivered."""
        start = self.processed
        while self.step():
            pass
        logger.info("Dispatcher drained: %d items, %d errors", self.processed - start, self.errors)
        return self.processed - start
