"""Core: config, types, logging."""

from multi_strategy.core.config import load_config, Config
from multi_strategy.core.errors import ConfigurationError
from multi_strategy.core.types import Signal, SignalSide, Bar, Fill, OrderRequest, Position, RiskConfig, Trade
from multi_strategy.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "ConfigurationError",
    "Signal",
    "SignalSide",
    "Bar",
    "Fill",
    "OrderRequest",
    "Position",
    "RiskConfig",
    "Trade",
    "setup_logging",
]
