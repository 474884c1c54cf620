"""Timeframe string to minutes conversion."""

from datetime import timedelta


def timeframe_minutes(tf: str) -> int:
    """Convert exchange-style timeframe (e.g. '5m', '1h', '1d') to minutes."""
    tf = tf.strip().lower()
    if tf.endswith("m"):
        return int(tf[:-1])
    if tf.endswith("h"):
        return int(tf[:-1]) * 60
    if tf.endswith("d"):
        return int(tf[:-1]) * 60 * 24
    raise ValueError(f"Unsupported timeframe: {tf}")


def timeframe_delta(tf: str) -> timedelta:
    return timedelta(minutes=timeframe_minutes(tf))


def pandas_rule(tf: str) -> str:
    """Resample rule for pandas, e.g. '1h' -> '60min'."""
    return f"{timeframe_minutes(tf)}min"
