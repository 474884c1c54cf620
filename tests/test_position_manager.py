"""Unit tests for execution.position_manager."""

from datetime import datetime, timedelta, timezone

import pytest
from multi_strategy.core.types import Bar, Fill, RiskConfig, Signal, SignalSide, TrailingState
from multi_strategy.execution.base import ExecutionPort
from multi_strategy.execution.position_manager import PositionManager, PositionState, compute_levels
from multi_strategy.indicators.bank import IndicatorSnapshot
from multi_strategy.risk.sizer import RiskSizer
from multi_strategy.utils.instrument import Instrument

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakePort(ExecutionPort):
    """Records orders; fills are applied by the test."""

    def __init__(self, fail=False):
        self.orders = []
        self.fail = fail

    def submit_market_order(self, order):
        if self.fail:
            raise ConnectionError("gateway down")
        self.orders.append(order)


def make_manager(notional=100.0, volume_step=0.01, port=None):
    instrument = Instrument("TEST", price_step=0.01, volume_step=volume_step)
    risk = RiskConfig(trade_notional=notional)
    sizer = RiskSizer(instrument, trade_notional=notional, risk_per_trade=0.01)
    port = port or FakePort()
    return PositionManager(port, sizer, instrument, risk, max_holding_minutes=60, partial_exit_minutes=30), port


def snap(atr=2.0):
    return IndicatorSnapshot(atr=atr)


def bar(close, minutes=5):
    return Bar(
        open_time=T0 + timedelta(minutes=minutes - 5),
        close_time=T0 + timedelta(minutes=minutes),
        open=close,
        high=close,
        low=close,
        close=close,
        volume=1.0,
    )


def fill_last(manager, port, price=None):
    order = port.orders[-1]
    fill = Fill(
        trade_id=str(len(port.orders)),
        price=order.reference_price if price is None else price,
        volume=order.volume,
        side=order.side,
        timestamp=order.timestamp,
    )
    return manager.apply_fill(fill)


def open_position(side=SignalSide.LONG, price=100.0, atr=2.0, **kwargs):
    manager, port = make_manager(**kwargs)
    assert manager.open_position(Signal(side=side, entry_price=price, timestamp=T0), snap(atr))
    fill_last(manager, port)
    return manager, port


def test_entry_committed_on_fill():
    manager, port = make_manager()
    assert manager.open_position(Signal(SignalSide.LONG, 100.0, T0), snap(2.0))
    assert manager.state == PositionState.FLAT
    assert manager.has_pending_order
    assert port.orders[0].volume == pytest.approx(1.0)
    assert port.orders[0].reason == "entry"

    before, after = fill_last(manager, port)
    assert (before, after) == (0.0, pytest.approx(1.0))
    assert manager.state == PositionState.OPEN
    assert not manager.has_pending_order
    assert manager.levels.stop_loss == pytest.approx(97.0)
    assert manager.levels.take_profits == pytest.approx((104.0, 106.0, 110.0))
    assert manager.trailing.stop_price == pytest.approx(97.0)
    assert not manager.trailing.activated
    assert manager.position.entry_time == T0


def test_entry_ignored_when_open():
    manager, port = open_position()
    assert not manager.open_position(Signal(SignalSide.LONG, 101.0, T0), snap())
    assert len(port.orders) == 1


def test_stop_loss_closes_long():
    manager, port = open_position()
    assert manager.on_bar(bar(96.5), snap(2.0)) == "stop-loss"
    order = port.orders[-1]
    assert order.side == SignalSide.SHORT
    assert order.volume == pytest.approx(1.0)
    assert manager.is_open  # not committed until the fill

    fill_last(manager, port)
    assert manager.state == PositionState.FLAT
    assert manager.trailing == TrailingState()
    assert manager.levels is None


def test_stop_loss_closes_short():
    manager, port = open_position(side=SignalSide.SHORT)
    assert manager.levels.stop_loss == pytest.approx(103.0)
    assert manager.on_bar(bar(103.5), snap()) == "stop-loss"
    assert port.orders[-1].side == SignalSide.LONG


def test_take_profit_one_activates_trailing_on_fill():
    manager, port = open_position()
    assert manager.on_bar(bar(104.5), snap(2.0)) == "take-profit 1"
    assert port.orders[-1].volume == pytest.approx(0.3)
    assert not manager.trailing.activated

    fill_last(manager, port)
    assert manager.position.size == pytest.approx(0.7)
    assert manager.trailing.activated
    assert manager.trailing.trailing_stop_price == pytest.approx(100.5)


def test_take_profit_tiers():
    manager, port = open_position()
    manager.on_bar(bar(104.5, 5), snap())
    fill_last(manager, port)
    assert manager.on_bar(bar(106.5, 10), snap()) == "take-profit 2"
    assert port.orders[-1].volume == pytest.approx(0.3)
    fill_last(manager, port)
    assert manager.position.size == pytest.approx(0.4)
    assert manager.on_bar(bar(110.5, 15), snap()) == "take-profit 3"
    assert port.orders[-1].volume == pytest.approx(0.4)
    fill_last(manager, port)
    assert manager.state == PositionState.FLAT


def test_trailing_stop_only_moves_in_favour():
    manager, port = open_position()
    manager.on_bar(bar(104.5, 5), snap())
    fill_last(manager, port)

    # candidate 101.0 is not a full step (1.0) above 100.5
    assert manager.on_bar(bar(105.0, 10), snap()) is None
    assert manager.trailing.trailing_stop_price == pytest.approx(100.5)
    assert manager.on_bar(bar(105.8, 15), snap()) is None
    assert manager.trailing.trailing_stop_price == pytest.approx(101.8)
    assert manager.on_bar(bar(104.0, 20), snap()) is None
    assert manager.trailing.trailing_stop_price == pytest.approx(101.8)

    assert manager.on_bar(bar(101.5, 25), snap()) == "trailing-stop triggered"
    assert port.orders[-1].volume == pytest.approx(0.7)


def test_max_holding_time_has_priority():
    manager, port = open_position()
    assert manager.on_bar(bar(96.0, 61), snap()) == "max holding time (60 min)"
    assert port.orders[-1].volume == pytest.approx(1.0)


def test_stop_loss_before_reversal():
    manager, _ = open_position()
    assert manager.on_bar(bar(96.0), snap(), reversal_reason="doji") == "stop-loss"


def test_reversal_closes_position():
    manager, port = open_position()
    assert manager.on_bar(bar(100.5), snap(), reversal_reason="doji") == "reversal: doji"
    assert port.orders[-1].volume == pytest.approx(1.0)


def test_half_close_by_time_once():
    manager, port = open_position()
    assert manager.on_bar(bar(100.5, 31), snap()) == "half closed by time (30 min)"
    assert port.orders[-1].volume == pytest.approx(0.5)
    fill_last(manager, port)
    assert manager.on_bar(bar(100.5, 35), snap()) is None
    assert len(port.orders) == 2


def test_partial_close_leaving_dust_closes_all():
    manager, port = open_position(notional=2.0)
    assert manager.position.size == pytest.approx(0.02)
    assert manager.on_bar(bar(100.5, 31), snap()) == "half closed by time (30 min)"
    assert port.orders[-1].volume == pytest.approx(0.02)


def test_pending_order_blocks_new_orders():
    manager, port = open_position()
    manager.on_bar(bar(104.5), snap())
    assert manager.on_bar(bar(96.0, 10), snap()) is None
    assert len(port.orders) == 2


def test_failed_order_leaves_position_unchanged():
    manager, port = open_position()
    manager.on_bar(bar(96.5), snap())
    manager.on_order_failed("rejected")
    assert manager.is_open
    assert manager.position.size == pytest.approx(1.0)
    assert not manager.has_pending_order
    assert manager.on_bar(bar(96.4, 10), snap()) == "stop-loss"


def test_submit_exception_clears_pending():
    manager, _ = make_manager(port=FakePort(fail=True))
    assert not manager.open_position(Signal(SignalSide.LONG, 100.0, T0), snap())
    assert not manager.has_pending_order
    assert manager.state == PositionState.FLAT


def test_invalid_reference_price_rejected():
    manager, port = make_manager()
    assert not manager.open_position(Signal(SignalSide.LONG, 0.0, T0), snap())
    assert port.orders == []


def test_flip_adopts_new_position():
    manager, _ = open_position()
    manager.on_bar(bar(100.5), snap(2.0))
    before, after = manager.apply_fill(Fill("x", 101.0, 1.5, SignalSide.SHORT, T0 + timedelta(minutes=7)))
    assert (before, after) == (pytest.approx(1.0), pytest.approx(-0.5))
    assert manager.position.side == SignalSide.SHORT
    assert manager.position.entry_price == pytest.approx(101.0)
    assert manager.levels.stop_loss == pytest.approx(104.0)
    assert not manager.trailing.activated


def test_levels_rounded_to_price_step():
    levels = compute_levels(SignalSide.LONG, 100.0, 1.1111, RiskConfig(), price_step=0.01)
    assert levels.stop_loss == pytest.approx(98.33)
    assert levels.take_profits == pytest.approx((102.22, 103.33, 105.56))
    raw = compute_levels(SignalSide.LONG, 100.0, 1.1111, RiskConfig())
    assert raw.stop_loss == pytest.approx(100.0 - 1.1111 * 1.5)
