"""Unit tests for strategies.signals."""

from dataclasses import replace
from datetime import datetime, timezone

from multi_strategy.core.types import Bar, SignalSide
from multi_strategy.indicators.bank import INDICATOR_NAMES, IndicatorSnapshot
from multi_strategy.strategies.signals import SignalEvaluator, crossed_above, crossed_below, is_doji

CLOSE_TIME = datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc)


def make_bar(close, open_=None, high=None, low=None, close_time=CLOSE_TIME):
    open_ = close - 1.0 if open_ is None else open_
    return Bar(
        open_time=close_time.replace(minute=0),
        close_time=close_time,
        open=open_,
        high=max(open_, close) + 1.0 if high is None else high,
        low=min(open_, close) - 1.0 if low is None else low,
        close=close,
        volume=100.0,
    )


def formed(**overrides):
    flags = {name: True for name in INDICATOR_NAMES}
    flags.update(overrides)
    return flags


def long_snapshot():
    return IndicatorSnapshot(
        fast_ema=101.0, fast_ema_prev=99.0,
        slow_ema=100.0, slow_ema_prev=100.0,
        long_ema=100.0, long_ema_prev=99.0,
        rsi=42.0, rsi_prev=28.0,
        atr=2.0, atr_prev=2.0,
        obv=1000.0, obv_prev=900.0,
        bb_upper=110.0, bb_middle=106.5, bb_lower=103.0,
        formed=formed(),
    )


def short_snapshot():
    return IndicatorSnapshot(
        fast_ema=99.0, fast_ema_prev=101.0,
        slow_ema=100.0, slow_ema_prev=100.0,
        long_ema=110.0, long_ema_prev=111.0,
        rsi=58.0, rsi_prev=72.0,
        atr=2.0, atr_prev=2.0,
        obv=900.0, obv_prev=1000.0,
        bb_upper=107.0, bb_middle=103.0, bb_lower=99.0,
        formed=formed(),
    )


def evaluator(**kwargs):
    return SignalEvaluator(price_step=0.125, min_volatility_mult=8.0, **kwargs)


def test_cross_helpers():
    assert crossed_above(long_snapshot())
    assert not crossed_below(long_snapshot())
    assert crossed_below(short_snapshot())


def test_long_entry():
    signal = evaluator().check_entry(long_snapshot(), make_bar(105.0))
    assert signal is not None
    assert signal.side == SignalSide.LONG
    assert signal.entry_price == 105.0
    assert signal.timestamp == CLOSE_TIME
    assert signal.metadata["atr"] == 2.0


def test_short_entry():
    signal = evaluator().check_entry(short_snapshot(), make_bar(105.0, open_=106.0))
    assert signal is not None
    assert signal.side == SignalSide.SHORT


def test_global_trend_filter_blocks_long():
    snap = replace(long_snapshot(), long_ema_prev=101.0)
    assert evaluator().check_entry(snap, make_bar(105.0)) is None


def test_volatility_floor_is_strict():
    snap = replace(long_snapshot(), atr=1.0)  # exactly 0.125 * 8
    assert evaluator().check_entry(snap, make_bar(105.0)) is None
    snap = replace(long_snapshot(), atr=1.01)
    assert evaluator().check_entry(snap, make_bar(105.0)) is not None


def test_no_entry_until_formed():
    snap = replace(long_snapshot(), formed=formed(bollinger=False))
    assert evaluator().check_entry(snap, make_bar(105.0)) is None


def test_close_too_far_above_lower_band():
    assert evaluator().check_entry(long_snapshot(), make_bar(105.1)) is None


def test_rsi_must_recover_from_oversold():
    snap = replace(long_snapshot(), rsi_prev=31.0)
    assert evaluator().check_entry(snap, make_bar(105.0)) is None


def test_obv_must_confirm():
    snap = replace(long_snapshot(), obv=900.0)
    assert evaluator().check_entry(snap, make_bar(105.0)) is None


def test_session_filter():
    ev = evaluator(session_start_hour=8, session_end_hour=16)
    late = make_bar(105.0, close_time=datetime(2024, 1, 1, 20, 5, tzinfo=timezone.utc))
    assert ev.check_entry(long_snapshot(), late) is None
    assert ev.check_entry(long_snapshot(), make_bar(105.0)) is not None


def test_session_filter_wraps_midnight():
    ev = evaluator(session_start_hour=22, session_end_hour=2)
    assert ev.check_time_filter(datetime(2024, 1, 1, 23, 0))
    assert ev.check_time_filter(datetime(2024, 1, 1, 1, 0))
    assert not ev.check_time_filter(datetime(2024, 1, 1, 12, 0))
    assert evaluator().check_time_filter(datetime(2024, 1, 1, 3, 0))


def test_doji():
    assert is_doji(make_bar(100.05, open_=100.0, high=100.4, low=99.8))
    assert not is_doji(make_bar(101.0, open_=100.0))
    assert not is_doji(make_bar(100.05, open_=100.0, high=100.1, low=99.9))


def test_reversal_reasons():
    ev = evaluator()
    bar = make_bar(105.0)
    assert ev.reversal_reason(short_snapshot(), bar, SignalSide.LONG) == "EMA cross against position"
    assert ev.reversal_reason(long_snapshot(), bar, SignalSide.SHORT) == "EMA cross against position"
    hot = replace(long_snapshot(), rsi=85.0)
    assert ev.reversal_reason(hot, bar, SignalSide.LONG) == "RSI extreme 85.0"
    cold = replace(short_snapshot(), rsi=15.0)
    assert ev.reversal_reason(cold, bar, SignalSide.SHORT) == "RSI extreme 15.0"
    doji = make_bar(100.05, open_=100.0, high=100.4, low=99.8)
    assert ev.reversal_reason(long_snapshot(), doji, SignalSide.LONG) == "doji"
    assert ev.reversal_reason(long_snapshot(), bar, SignalSide.LONG) is None
