"""Risk management: position sizing from notional cap and equity risk budget."""

from multi_strategy.risk.sizer import RiskSizer, SizingResult

__all__ = ["RiskSizer", "SizingResult"]
