"""
Multi-timeframe trend strategy: fast bars drive indicators, entries and exit
management; slow bars drive the long trend EMA. Fills and order failures are
routed to the position manager and the trade ledger.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from multi_strategy.analytics.ledger import TradeLedger
from multi_strategy.core.config import Config
from multi_strategy.core.errors import ConfigurationError
from multi_strategy.core.types import Bar, Fill
from multi_strategy.execution.base import AccountProvider, ExecutionPort
from multi_strategy.execution.position_manager import PositionManager
from multi_strategy.indicators.bank import IndicatorBank, IndicatorSnapshot
from multi_strategy.risk.sizer import RiskSizer
from multi_strategy.strategies.base import BaseStrategy
from multi_strategy.strategies.signals import SignalEvaluator
from multi_strategy.utils.instrument import Instrument

logger = logging.getLogger("multi_strategy.strategy")


@dataclass
class StrategyState:
    """Everything mutable the strategy owns; touched only from the dispatch loop."""
    bank: IndicatorBank
    manager: PositionManager
    ledger: TradeLedger
    started: bool = False

    @property
    def snapshot(self) -> IndicatorSnapshot:
        return self.bank.snapshot


class MultiTimeframeStrategy(BaseStrategy):
    """EMA cross + RSI + Bollinger + OBV entries, ATR-based exits, long-EMA trend filter."""

    def __init__(
        self,
        config: Config,
        port: ExecutionPort,
        account: Optional[AccountProvider] = None,
        instrument: Optional[Instrument] = None,
    ):
        self.config = config
        self.account = account
        self.instrument = instrument or config.instrument()
        risk = config.risk_config()
        self.evaluator = SignalEvaluator(
            price_step=self.instrument.price_step,
            min_volatility_mult=risk.min_volatility_mult,
            session_start_hour=config.session_start_hour,
            session_end_hour=config.session_end_hour,
        )
        sizer = RiskSizer(self.instrument, trade_notional=risk.trade_notional, risk_per_trade=risk.risk_per_trade)
        self.state = StrategyState(
            bank=IndicatorBank(
                fast_ema_len=config.fast_ema_len,
                slow_ema_len=config.slow_ema_len,
                long_ema_len=config.long_ema_len,
                rsi_len=config.rsi_len,
                bb_len=config.bb_len,
                bb_width=config.bb_width,
                atr_len=config.atr_len,
            ),
            manager=PositionManager(
                port=port,
                sizer=sizer,
                instrument=self.instrument,
                risk=risk,
                max_holding_minutes=config.max_holding_minutes,
                partial_exit_minutes=config.partial_exit_minutes,
            ),
            ledger=TradeLedger(self.instrument.symbol),
        )

    @property
    def manager(self) -> PositionManager:
        return self.state.manager

    @property
    def ledger(self) -> TradeLedger:
        return self.state.ledger

    def start(self) -> None:
        try:
            self.instrument.validate()
        except ValueError as e:
            logger.error("Bad instrument metadata, strategy not started: %s", e)
            raise ConfigurationError(str(e)) from e
        self.state.ledger.reset()
        self.state.started = True
        logger.info(
            "Strategy started: %s fast=%s slow=%s price_step=%s volume_step=%s",
            self.instrument.symbol, self.config.fast_timeframe, self.config.slow_timeframe,
            self.instrument.price_step, self.instrument.volume_step,
        )

    def stop(self) -> None:
        self.state.ledger.log_summary()
        self.state.started = False
        logger.info("Strategy stopped.")

    def on_slow_bar(self, bar: Bar) -> None:
        if not self.state.started or not bar.finished:
            return
        try:
            self.state.bank.update_slow(bar)
        except Exception as e:
            logger.exception("Slow bar %s failed: %s", bar.close_time, e)

    def on_fast_bar(self, bar: Bar) -> None:
        if not self.state.started:
            logger.warning("Bar %s ignored: strategy not started", bar.close_time)
            return
        if not bar.finished:
            return
        try:
            snapshot = self.state.bank.update_fast(bar)
        except Exception as e:
            logger.exception("Indicator update failed for bar %s: %s", bar.close_time, e)
            return
        if not snapshot.are_formed():
            return
        try:
            self._process(bar, snapshot)
        except Exception as e:
            logger.exception("Fast bar %s (%s - %s) failed: %s", bar.close, bar.open_time, bar.close_time, e)

    def _process(self, bar: Bar, snapshot: IndicatorSnapshot) -> None:
        manager = self.state.manager
        if manager.is_open:
            reason = None
            if not manager.has_pending_order:
                reason = self.evaluator.reversal_reason(snapshot, bar, manager.position.side)
            manager.on_bar(bar, snapshot, reason)
            return
        if manager.has_pending_order:
            return
        signal = self.evaluator.check_entry(snapshot, bar)
        if signal is None:
            return
        manager.open_position(signal, snapshot, equity=self._equity())

    def _equity(self) -> Optional[float]:
        if self.account is None:
            return None
        try:
            equity = self.account.get_equity()
        except Exception as e:
            logger.warning("Could not read account equity: %s", e)
            return None
        logger.info("Equity=%s%s, risk per trade=%.2f%%", equity, self.account.currency, self.config.risk_per_trade * 100)
        return equity

    def on_fill(self, fill: Fill) -> None:
        try:
            reason = self.state.manager.pending_reason
            before, after = self.state.manager.apply_fill(fill)
            self.state.ledger.record_fill(fill, before, after, reason)
            logger.info("Fill %s %s %s @ %.8f. Position now: %s", fill.trade_id, fill.side.value, fill.volume, fill.price, after)
        except Exception as e:
            logger.exception("Fill %s could not be processed: %s", fill.trade_id, e)

    def on_order_failed(self, reason: str) -> None:
        self.state.manager.on_order_failed(reason)
