"""
Load configuration from config.yaml and .env. Env vars override the file.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from multi_strategy.core.errors import ConfigurationError
from multi_strategy.core.types import RiskConfig
from multi_strategy.utils.instrument import Instrument
from multi_strategy.utils.timeframes import timeframe_minutes


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns a validated Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    def env(key: str, default: Any = "") -> str:
        return os.getenv(key, str(default) if default is not None else "").strip()

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_opt_int(key: str, default: Optional[int]) -> Optional[int]:
        raw = os.getenv(key)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError:
            return default

    strategy = data.get("strategy", {})
    risk = data.get("risk", {})
    position = data.get("position", {})
    instrument = data.get("instrument", {})
    account = data.get("account", {})
    telegram = data.get("telegram", {})
    logging_cfg = data.get("logging", {})

    equity_raw = env("ACCOUNT_EQUITY", account.get("equity"))
    account_equity = None
    if equity_raw:
        try:
            account_equity = float(equity_raw)
        except ValueError as e:
            raise ConfigurationError(f"account equity must be a number, got {equity_raw!r}") from e

    config = Config(
        symbol=env("SYMBOL", strategy.get("symbol", "BTCUSDT")).upper(),
        fast_timeframe=env("FAST_TIMEFRAME", strategy.get("fast_timeframe", "5m")),
        slow_timeframe=env("SLOW_TIMEFRAME", strategy.get("slow_timeframe", "1h")),
        # Indicators
        fast_ema_len=env_int("FAST_EMA_LEN", strategy.get("fast_ema_len", 8)),
        slow_ema_len=env_int("SLOW_EMA_LEN", strategy.get("slow_ema_len", 21)),
        long_ema_len=env_int("LONG_EMA_LEN", strategy.get("long_ema_len", 55)),
        rsi_len=env_int("RSI_LEN", strategy.get("rsi_len", 14)),
        bb_len=env_int("BB_LEN", strategy.get("bb_len", 20)),
        bb_width=env_float("BB_WIDTH", strategy.get("bb_width", 2.0)),
        atr_len=env_int("ATR_LEN", strategy.get("atr_len", 14)),
        session_start_hour=env_opt_int("SESSION_START_HOUR", strategy.get("session_start_hour")),
        session_end_hour=env_opt_int("SESSION_END_HOUR", strategy.get("session_end_hour")),
        # Risk
        trade_notional=env_float("TRADE_NOTIONAL", risk.get("trade_notional", 1.0)),
        stop_loss_mult=env_float("STOP_LOSS_MULT", risk.get("stop_loss_mult", 1.5)),
        take_profit_mult_1=env_float("TAKE_PROFIT_MULT_1", risk.get("take_profit_mult_1", 2.0)),
        take_profit_mult_2=env_float("TAKE_PROFIT_MULT_2", risk.get("take_profit_mult_2", 3.0)),
        take_profit_mult_3=env_float("TAKE_PROFIT_MULT_3", risk.get("take_profit_mult_3", 5.0)),
        trailing_stop_mult=env_float("TRAILING_STOP_MULT", risk.get("trailing_stop_mult", 2.0)),
        trailing_stop_step=env_float("TRAILING_STOP_STEP", risk.get("trailing_stop_step", 0.5)),
        risk_per_trade=env_float("RISK_PER_TRADE", risk.get("risk_per_trade", 0.01)),
        min_volatility_mult=env_float("MIN_VOLATILITY_MULT", risk.get("min_volatility_mult", 10.0)),
        # Position
        max_holding_minutes=env_float("MAX_HOLDING_MINUTES", position.get("max_holding_minutes", 60.0)),
        partial_exit_minutes=env_float("PARTIAL_EXIT_MINUTES", position.get("partial_exit_minutes", 30.0)),
        # Instrument
        price_step=env_float("PRICE_STEP", instrument.get("price_step", 0.0001)),
        volume_step=env_float("VOLUME_STEP", instrument.get("volume_step", 0.01)),
        # Paper account
        account_equity=account_equity,
        account_currency=env("ACCOUNT_CURRENCY", account.get("currency", "USDT")),
        # Telegram
        telegram_bot_token=env("TELEGRAM_BOT_TOKEN", telegram.get("bot_token", "")),
        telegram_chat_id=env("TELEGRAM_CHAT_ID", telegram.get("chat_id", "")),
        # Logging
        log_level=logging_cfg.get("level", "INFO"),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "multi_strategy.log"),
    )
    config.validate()
    return config


class Config:
    """Unified configuration. Immutable after load."""

    __slots__ = (
        "symbol", "fast_timeframe", "slow_timeframe",
        "fast_ema_len", "slow_ema_len", "long_ema_len", "rsi_len", "bb_len", "bb_width", "atr_len",
        "session_start_hour", "session_end_hour",
        "trade_notional", "stop_loss_mult", "take_profit_mult_1", "take_profit_mult_2", "take_profit_mult_3",
        "trailing_stop_mult", "trailing_stop_step", "risk_per_trade", "min_volatility_mult",
        "max_holding_minutes", "partial_exit_minutes",
        "price_step", "volume_step",
        "account_equity", "account_currency",
        "telegram_bot_token", "telegram_chat_id",
        "log_level", "log_dir", "log_file",
    )

    def __init__(
        self,
        symbol: str = "BTCUSDT",
        fast_timeframe: str = "5m",
        slow_timeframe: str = "1h",
        fast_ema_len: int = 8,
        slow_ema_len: int = 21,
        long_ema_len: int = 55,
        rsi_len: int = 14,
        bb_len: int = 20,
        bb_width: float = 2.0,
        atr_len: int = 14,
        session_start_hour: Optional[int] = None,
        session_end_hour: Optional[int] = None,
        trade_notional: float = 1.0,
        stop_loss_mult: float = 1.5,
        take_profit_mult_1: float = 2.0,
        take_profit_mult_2: float = 3.0,
        take_profit_mult_3: float = 5.0,
        trailing_stop_mult: float = 2.0,
        trailing_stop_step: float = 0.5,
        risk_per_trade: float = 0.01,
        min_volatility_mult: float = 10.0,
        max_holding_minutes: float = 60.0,
        partial_exit_minutes: float = 30.0,
        price_step: float = 0.0001,
        volume_step: float = 0.01,
        account_equity: Optional[float] = None,
        account_currency: str = "USDT",
        telegram_bot_token: str = "",
        telegram_chat_id: str = "",
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "multi_strategy.log",
    ):
        self.symbol = symbol
        self.fast_timeframe = fast_timeframe
        self.slow_timeframe = slow_timeframe
        self.fast_ema_len = fast_ema_len
        self.slow_ema_len = slow_ema_len
        self.long_ema_len = long_ema_len
        self.rsi_len = rsi_len
        self.bb_len = bb_len
        self.bb_width = bb_width
        self.atr_len = atr_len
        self.session_start_hour = session_start_hour
        self.session_end_hour = session_end_hour
        self.trade_notional = trade_notional
        self.stop_loss_mult = stop_loss_mult
        self.take_profit_mult_1 = take_profit_mult_1
        self.take_profit_mult_2 = take_profit_mult_2
        self.take_profit_mult_3 = take_profit_mult_3
        self.trailing_stop_mult = trailing_stop_mult
        self.trailing_stop_step = trailing_stop_step
        self.risk_per_trade = risk_per_trade
        self.min_volatility_mult = min_volatility_mult
        self.max_holding_minutes = max_holding_minutes
        self.partial_exit_minutes = partial_exit_minutes
        self.price_step = price_step
        self.volume_step = volume_step
        self.account_equity = account_equity
        self.account_currency = account_currency
        self.telegram_bot_token = telegram_bot_token
        self.telegram_chat_id = telegram_chat_id
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file

    def validate(self) -> None:
        """Raise ConfigurationError on values the strategy cannot run with."""
        for name in ("fast_ema_len", "slow_ema_len", "long_ema_len", "rsi_len", "bb_len", "atr_len"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("fast_timeframe", "slow_timeframe"):
            try:
                timeframe_minutes(getattr(self, name))
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        if self.trade_notional <= 0:
            raise ConfigurationError(f"trade_notional must be positive, got {self.trade_notional}")
        for name in ("stop_loss_mult", "take_profit_mult_1", "take_profit_mult_2", "take_profit_mult_3", "trailing_stop_mult"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("trailing_stop_step", "min_volatility_mult"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative, got {getattr(self, name)}")
        if not 0 <= self.risk_per_trade <= 1:
            raise ConfigurationError(f"risk_per_trade must be within [0, 1], got {self.risk_per_trade}")
        for hour in (self.session_start_hour, self.session_end_hour):
            if hour is not None and not 0 <= hour <= 23:
                raise ConfigurationError(f"session hour out of range: {hour}")
        try:
            self.instrument().validate()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def risk_config(self) -> RiskConfig:
        return RiskConfig(
            stop_loss_mult=self.stop_loss_mult,
            take_profit_mults=(self.take_profit_mult_1, self.take_profit_mult_2, self.take_profit_mult_3),
            trailing_stop_mult=self.trailing_stop_mult,
            trailing_stop_step=self.trailing_stop_step,
            risk_per_trade=self.risk_per_trade,
            min_volatility_mult=self.min_volatility_mult,
            trade_notional=self.trade_notional,
        )

    def instrument(self) -> Instrument:
        return Instrument(symbol=self.symbol, price_step=self.price_step, volume_step=self.volume_step)
