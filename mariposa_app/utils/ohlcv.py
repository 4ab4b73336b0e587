"""Helpers for turning backend kline payloads into numeric series.

Chart endpoints return candles as lists ``[open_time, open, high, low, close,
volume, ...]`` whose numeric fields may arrive as strings. Everything here
tolerates malformed rows: they are dropped rather than raising, because the
intelligence widgets recompute on every refresh and must not crash a page.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from .formatting import coerce_float

__all__ = [
    "KLINE_COLUMNS",
    "klines_to_frame",
    "close_prices",
    "simple_returns",
    "align_returns",
    "average_true_range",
]

KLINE_COLUMNS: tuple[str, ...] = ("open_time", "open", "high", "low", "close", "volume")


def _rows(klines: Any) -> list[Sequence[Any]]:
    if not isinstance(klines, (list, tuple)):
        return []
    rows = []
    for row in klines:
        if isinstance(row, Mapping):
            row = [row.get(column) for column in KLINE_COLUMNS]
        if isinstance(row, (list, tuple)) and len(row) >= 5:
            rows.append(row)
    return rows


def klines_to_frame(klines: Any) -> pd.DataFrame:
    """Return a frame with ``KLINE_COLUMNS``, numeric, oldest first.

    ``open_time`` becomes a UTC ``datetime64`` (milliseconds or seconds are
    accepted). Rows whose close cannot be parsed are dropped.
    """

    rows = _rows(klines)
    if not rows:
        return pd.DataFrame(columns=list(KLINE_COLUMNS))

    padded = [list(row[:6]) + [None] * (6 - len(row[:6])) for row in rows]
    frame = pd.DataFrame(padded, columns=list(KLINE_COLUMNS))
    for column in KLINE_COLUMNS[1:]:
        frame[column] = pd.to_numeric(frame[column], errors="coerce")

    stamps = pd.to_numeric(frame["open_time"], errors="coerce")
    unit = "ms" if stamps.abs().max() >= 1e11 else "s"
    frame["open_time"] = pd.to_datetime(stamps, unit=unit, utc=True, errors="coerce")

    frame = frame.dropna(subset=["close"])
    if frame["open_time"].notna().all():
        frame = frame.sort_values("open_time", kind="stable")
    return frame.reset_index(drop=True)


def close_prices(klines: Any) -> list[float]:
    frame = klines_to_frame(klines)
    if frame.empty:
        return []
    return [float(value) for value in frame["close"].to_numpy()]


def simple_returns(prices: Iterable[Any]) -> list[float]:
    """Period-over-period returns ``(p[i] - p[i-1]) / p[i-1]``.

    Pairs with a zero or missing previous price are skipped.
    """

    values = [value for value in (coerce_float(p) for p in prices) if value is not None]
    returns: list[float] = []
    for previous, current in zip(values, values[1:]):
        if previous == 0:
            continue
        returns.append((current - previous) / previous)
    return returns


def align_returns(series_by_symbol: Mapping[str, Sequence[float]]) -> dict[str, list[float]]:
    """Truncate every series to the shortest one (keeping the oldest entries)."""

    if not series_by_symbol:
        return {}
    length = min(len(series) for series in series_by_symbol.values())
    return {symbol: list(series[:length]) for symbol, series in series_by_symbol.items()}


def average_true_range(klines: Any, period: int = 14) -> float | None:
    """Mean true range over the last ``period`` candles.

    Returns ``None`` when fewer than ``period + 1`` candles are available,
    since the first true range needs a previous close.
    """

    frame = klines_to_frame(klines)
    if period <= 0 or len(frame) <= period:
        return None
    high = frame["high"].to_numpy(dtype=float)
    low = frame["low"].to_numpy(dtype=float)
    close = frame["close"].to_numpy(dtype=float)
    prev_close = np.roll(close, 1)
    true_range = np.maximum.reduce(
        [high[1:] - low[1:], np.abs(high[1:] - prev_close[1:]), np.abs(low[1:] - prev_close[1:])]
    )
    tail = true_range[-period:]
    tail = tail[np.isfinite(tail)]
    if tail.size == 0:
        return None
    return float(tail.mean())
