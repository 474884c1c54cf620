"""
OHLCV DataFrame <-> Bar conversion and higher-timeframe resampling.
Frames use columns: time (bar open, UTC), open, high, low, close, volume.
"""

from __future__ import annotations
from pathlib import Path
from typing import List

import pandas as pd

from multi_strategy.core.types import Bar
from multi_strategy.utils.timeframes import pandas_rule, timeframe_delta

OHLCV_COLUMNS = ["time", "open", "high", "low", "close", "volume"]


def load_bars_csv(path: Path) -> pd.DataFrame:
    """Read an OHLCV CSV; 'time' may be epoch ms or an ISO string."""
    df = pd.read_csv(path)
    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {missing}")
    if pd.api.types.is_numeric_dtype(df["time"]):
        df["time"] = pd.to_datetime(df["time"], unit="ms", utc=True)
    else:
        df["time"] = pd.to_datetime(df["time"], utc=True)
    df[["open", "high", "low", "close", "volume"]] = df[["open", "high", "low", "close", "volume"]].astype(float)
    return df[OHLCV_COLUMNS].sort_values("time").reset_index(drop=True)


def frame_to_bars(df: pd.DataFrame, timeframe: str) -> List[Bar]:
    """Turn every row into a finished Bar; close_time = open time + timeframe."""
    delta = timeframe_delta(timeframe)
    bars = []
    for row in df.itertuples(index=False):
        open_time = pd.Timestamp(row.time).to_pydatetime()
        bars.append(Bar(
            open_time=open_time,
            close_time=open_time + delta,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        ))
    return bars


def resample_bars(df: pd.DataFrame, timeframe: str) -> pd.DataFrame:
    """
    Aggregate a lower-timeframe frame into `timeframe` candles.
    The trailing bucket is dropped when incomplete so only finished candles remain.
    """
    if df.empty:
        return df[OHLCV_COLUMNS].copy()
    rule = pandas_rule(timeframe)
    indexed = df.set_index("time")
    out = indexed.resample(rule, label="left", closed="left").agg({
        "open": "first",
        "high": "max",
        "low": "min",
        "close": "last",
        "volume": "sum",
    }).dropna(subset=["open"])
    out = out.reset_index()
    last_source_time = df["time"].iloc[-1]
    if len(df) > 1:
        source_delta = df["time"].iloc[-1] - df["time"].iloc[-2]
        bucket_end = out["time"].iloc[-1] + timeframe_delta(timeframe)
        if last_source_time + source_delta < bucket_end:
            out = out.iloc[:-1]
    return out[OHLCV_COLUMNS].reset_index(drop=True)
