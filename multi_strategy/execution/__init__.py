"""Execution: gateway/account ports, position manager and paper gateway."""

from multi_strategy.execution.base import AccountProvider, ExecutionListener, ExecutionPort, StaticAccount
from multi_strategy.execution.position_manager import PositionManager, PositionLevels, PositionState
from multi_strategy.execution.paper import PaperGateway

__all__ = [
    "AccountProvider",
    "ExecutionListener",
    "ExecutionPort",
    "StaticAccount",
    "PositionManager",
    "PositionLevels",
    "PositionState",
    "PaperGateway",
]
