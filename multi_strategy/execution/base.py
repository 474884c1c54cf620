"""Execution and account ports the strategy depends on."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from multi_strategy.core.types import Fill, OrderRequest


class ExecutionPort(ABC):
    """Gateway accepting market orders. Fire-and-forget: results arrive later as events."""

    @abstractmethod
    def submit_market_order(self, order: OrderRequest) -> None:
        """Queue a market order; report the outcome through the listener."""
        pass


class ExecutionListener(ABC):
    """Receiver of execution events, implemented by the strategy."""

    @abstractmethod
    def on_fill(self, fill: Fill) -> None:
        pass

    @abstractmethod
    def on_order_failed(self, reason: str) -> None:
        pass


class AccountProvider(ABC):
    """Account equity, read when a position is opened."""

    currency: str = ""

    @abstractmethod
    def get_equity(self) -> Optional[float]:
        """Current equity, or None if unknown."""
        pass


class StaticAccount(AccountProvider):
    """Fixed equity, e.g. for paper runs. None disables risk-budget sizing."""

    def __init__(self, equity: Optional[float] = None, currency: str = "USDT"):
        self.equity = equity
        self.currency = currency

    def get_equity(self) -> Optional[float]:
        return self.equity
