"""
Paper gateway: fills every market order at its reference price by posting a
Fill event back to the dispatcher. No fees, slippage or partial fills.
"""

from __future__ import annotations
import itertools
import logging
from typing import TYPE_CHECKING, List, Optional

from multi_strategy.core.types import Fill, OrderRequest
from multi_strategy.execution.base import ExecutionPort

if TYPE_CHECKING:
    from multi_strategy.runner.dispatcher import Dispatcher

logger = logging.getLogger("multi_strategy.execution.paper")


class PaperGateway(ExecutionPort):
    """Asynchronous from the strategy's view: results are queued, not called back inline."""

    def __init__(self, dispatcher: "Dispatcher", reject_reason: Optional[str] = None):
        self.dispatcher = dispatcher
        self.reject_reason = reject_reason
        self.orders: List[OrderRequest] = []
        self._ids = itertools.count(1)

    def submit_market_order(self, order: OrderRequest) -> None:
        self.orders.append(order)
        if self.reject_reason:
            logger.warning("Paper order rejected: %s %s (%s)", order.side.value, order.volume, self.reject_reason)
            self.dispatcher.post_order_failed(self.reject_reason)
            return
        fill = Fill(
            trade_id=f"paper-{next(self._ids)}",
            price=order.reference_price,
            volume=order.volume,
            side=order.side,
            timestamp=order.timestamp,
        )
        logger.debug("Paper fill %s: %s %s @ %.8f (%s)", fill.trade_id, order.side.value, order.volume, order.reference_price, order.reason)
        self.dispatcher.post_fill(fill)
