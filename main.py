#!/usr/bin/env python3
"""
Multi-timeframe strategy CLI: replay
Usage:
  python main.py replay --bars bars.csv [--config config.yaml]

The CSV holds fast-timeframe candles (time, open, high, low, close, volume).
Slow-timeframe candles are resampled from it.
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from multi_strategy.core.config import load_config
from multi_strategy.core.errors import ConfigurationError
from multi_strategy.core.logger import setup_logging
from multi_strategy.execution.base import StaticAccount
from multi_strategy.execution.paper import PaperGateway
from multi_strategy.runner.dispatcher import Dispatcher
from multi_strategy.strategies.multi_timeframe import MultiTimeframeStrategy
from multi_strategy.utils.bars import frame_to_bars, load_bars_csv, resample_bars
from multi_strategy.utils.telegram import format_summary, send_telegram


def run_replay(bars_path: Path, config_path: Path | None) -> int:
    """Replay a CSV of fast candles through the strategy with paper fills."""
    try:
        config = load_config(config_path, ROOT)
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    setup_logging(config.log_level, config.log_dir, config.log_file)
    logger = logging.getLogger("multi_strategy")

    df = load_bars_csv(bars_path)
    fast = frame_to_bars(df, config.fast_timeframe)
    slow = frame_to_bars(resample_bars(df, config.slow_timeframe), config.slow_timeframe)
    logger.info("Loaded %d %s bars, %d %s bars from %s", len(fast), config.fast_timeframe,
                len(slow), config.slow_timeframe, bars_path)

    dispatcher = Dispatcher()
    gateway = PaperGateway(dispatcher)
    account = StaticAccount(config.account_equity, config.account_currency)
    strategy = MultiTimeframeStrategy(config, gateway, account=account)
    dispatcher.bind(strategy)

    try:
        strategy.start()
    except ConfigurationError as e:
        logger.error("Strategy not started: %s", e)
        return 2
    send_telegram(
        f"Replay starting | {config.symbol} | {config.fast_timeframe}/{config.slow_timeframe}",
        config.telegram_bot_token,
        config.telegram_chat_id,
    )
    dispatcher.extend(fast=fast, slow=slow)
    try:
        dispatcher.run()
    except KeyboardInterrupt:
        logger.info("Shutdown by user")
    finally:
        strategy.stop()

    summary = strategy.ledger.summary()
    print("\n--- Replay Results ---")
    print(f"Total trades: {summary['total_trades']} (wins: {summary['wins']}, losses: {summary['losses']})")
    print(f"Total PnL: {summary['total_pnl']:.4f}")
    print(f"Win rate: {summary['win_rate']*100:.1f}%")
    print(f"Profit factor: {summary['profit_factor']:.2f}")
    print(f"Average win / loss: {summary['average_win']:.4f} / {summary['average_loss']:.4f}")
    print(f"Expectancy: {summary['expectancy']:.4f} per trade")
    print(f"Max drawdown: {summary['max_drawdown']:.4f}")
    send_telegram(format_summary(config.symbol, summary), config.telegram_bot_token, config.telegram_chat_id)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Multi-timeframe strategy CLI")
    parser.add_argument("mode", choices=["replay"], help="Replay historical candles with paper fills")
    parser.add_argument("--bars", type=Path, required=True, help="CSV of fast-timeframe candles")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    args = parser.parse_args()
    return run_replay(args.bars, args.config)


if __name__ == "__main__":
    sys.exit(main())
