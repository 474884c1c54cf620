"""Telegram notifications for strategy start/stop. Never log token or chat_id."""

from __future__ import annotations
import logging
from typing import Mapping

import requests

logger = logging.getLogger("multi_strategy.utils.telegram")


def send_telegram(text: str, bot_token: str = "", chat_id: str = "") -> bool:
    """Send message to Telegram. Returns True on success, False if not configured or on error."""
    if not bot_token or not chat_id:
        logger.debug("Telegram not configured, skipping message (len=%d)", len(text))
        return False
    try:
        url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        r = requests.post(url, json={"chat_id": chat_id, "text": text}, timeout=10)
    except requests.RequestException as e:
        logger.warning("Telegram error: %s", e)
        return False
    if r.status_code != 200:
        logger.warning("Telegram send failed: %s %s", r.status_code, r.text[:200])
        return False
    return True


def format_summary(symbol: str, summary: Mapping[str, float]) -> str:
    """One message with the ledger summary, e.g. for the shutdown notification."""
    lines = [f"{symbol} | session summary"]
    lines.append(f"Trades: {int(summary.get('total_trades', 0))} "
                 f"(wins {int(summary.get('wins', 0))} / losses {int(summary.get('losses', 0))})")
    lines.append(f"Total PnL: {summary.get('total_pnl', 0.0):.2f}")
    lines.append(f"Win rate: {summary.get('win_rate', 0.0) * 100:.1f}%")
    lines.append(f"Profit factor: {summary.get('profit_factor', 0.0):.2f}")
    return "\n".join(lines)
