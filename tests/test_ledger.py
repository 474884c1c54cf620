"""Unit tests for analytics.ledger."""

from datetime import datetime, timedelta, timezone

import pytest
from multi_strategy.analytics.ledger import TradeLedger, TradeStats
from multi_strategy.core.types import Fill, SignalSide

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def fill(price, volume, side, minutes=0):
    return Fill(trade_id=f"t{minutes}", price=price, volume=volume, side=side, timestamp=T0 + timedelta(minutes=minutes))


def test_round_trip_long():
    ledger = TradeLedger("TEST")
    assert ledger.record_fill(fill(100.0, 1.0, SignalSide.LONG), 0.0, 1.0) is None
    trade = ledger.record_fill(fill(103.0, 1.0, SignalSide.SHORT, 10), 1.0, 0.0, "stop-loss")
    assert trade.pnl == pytest.approx(3.0)
    assert trade.side == SignalSide.LONG
    assert trade.exit_reason == "stop-loss"
    assert trade.entry_time == T0
    assert ledger.stats.win_count == 1
    assert ledger.side is None


def test_round_trip_short_loss():
    ledger = TradeLedger("TEST")
    ledger.record_fill(fill(100.0, 2.0, SignalSide.SHORT), 0.0, -2.0)
    trade = ledger.record_fill(fill(101.0, 2.0, SignalSide.LONG, 5), -2.0, 0.0)
    assert trade.pnl == pytest.approx(-2.0)
    assert ledger.stats.loss_count == 1
    assert ledger.stats.losing_pnl == pytest.approx(2.0)


def test_flip_books_closed_part_and_opens_excess():
    ledger = TradeLedger("TEST")
    ledger.record_fill(fill(100.0, 5.0, SignalSide.LONG), 0.0, 5.0)
    trade = ledger.record_fill(fill(102.0, 7.0, SignalSide.SHORT, 5), 5.0, -2.0, "reversal")
    assert trade.pnl == pytest.approx(10.0)
    assert trade.quantity == pytest.approx(5.0)
    assert ledger.side == SignalSide.SHORT
    assert ledger.entry_price == pytest.approx(102.0)
    assert ledger.open_volume == pytest.approx(2.0)

    trade = ledger.record_fill(fill(101.0, 2.0, SignalSide.LONG, 10), -2.0, 0.0)
    assert trade.pnl == pytest.approx(2.0)
    assert ledger.stats.total_trades == 2


def test_partial_exits_accumulate_into_one_trade():
    ledger = TradeLedger("TEST")
    ledger.record_fill(fill(100.0, 1.0, SignalSide.LONG), 0.0, 1.0)
    assert ledger.record_fill(fill(104.0, 0.3, SignalSide.SHORT, 5), 1.0, 0.7, "take-profit 1") is None
    assert ledger.open_volume == pytest.approx(0.7)
    assert ledger.stats.total_trades == 0

    trade = ledger.record_fill(fill(99.0, 0.7, SignalSide.SHORT, 10), 0.7, 0.0, "stop-loss")
    assert trade.pnl == pytest.approx(1.2 - 0.7)
    assert trade.quantity == pytest.approx(1.0)
    assert trade.exit_price == pytest.approx(100.5)
    assert ledger.stats.win_count == 1
    assert ledger.stats.loss_count == 0


def test_scale_in_averages_entry():
    ledger = TradeLedger("TEST")
    ledger.record_fill(fill(100.0, 1.0, SignalSide.LONG), 0.0, 1.0)
    ledger.record_fill(fill(102.0, 1.0, SignalSide.LONG, 1), 1.0, 2.0)
    assert ledger.entry_price == pytest.approx(101.0)
    assert ledger.open_volume == pytest.approx(2.0)


def test_stats():
    stats = TradeStats()
    for pnl in (10.0, 0.0, -5.0, 20.0):
        stats.record(pnl)
    assert stats.win_count == 2
    assert stats.loss_count == 2
    assert stats.total_pnl == pytest.approx(25.0)
    assert stats.win_rate == pytest.approx(0.5)
    assert stats.profit_factor == pytest.approx(6.0)
    assert stats.average_win == pytest.approx(15.0)
    assert stats.average_loss == pytest.approx(2.5)
    assert stats.reward_risk == pytest.approx(6.0)


def test_profit_factor_without_losses():
    stats = TradeStats()
    stats.record(5.0)
    assert stats.profit_factor == 0.0


def test_summary_and_reset():
    ledger = TradeLedger("TEST")
    ledger.record_fill(fill(100.0, 1.0, SignalSide.LONG), 0.0, 1.0)
    ledger.record_fill(fill(95.0, 1.0, SignalSide.SHORT, 5), 1.0, 0.0)
    s = ledger.summary()
    assert s["total_trades"] == 1
    assert s["losses"] == 1
    assert s["max_drawdown"] == pytest.approx(5.0)
    assert s["expectancy"] == pytest.approx(-5.0)

    ledger.reset()
    assert ledger.stats.total_trades == 0
    assert ledger.trades == []
