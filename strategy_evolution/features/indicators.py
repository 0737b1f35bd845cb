"""
Feature engineering: technical indicators.

Moving average and RSI over a daily bar sequence. Both functions return a
plain list the same length as the input so that indicator values can be
addressed by bar index inside the simulator loop.
"""

from __future__ import annotations

from typing import List, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger

from strategy_evolution.core.models import MarketBar

NEUTRAL_RSI = 50.0

PriceInput = Union[Sequence[MarketBar], pd.Series, np.ndarray]


def closes(bars: PriceInput) -> np.ndarray:
    """
    Extract closing prices as floats; invalid closes (non-positive or non-finite) become NaN.

    Parameters
    ----------
    bars : sequence of MarketBar, pd.Series or np.ndarray
        Bars in chronological order, or their closing prices.

    Returns
    -------
    np.ndarray
        One float per bar.
    """
    if isinstance(bars, pd.Series):
        raw = pd.to_numeric(bars, errors="coerce").to_numpy(dtype=float)
    elif isinstance(bars, np.ndarray):
        raw = bars.astype(float)
    else:
        raw = np.array(
            [
                float(b.close) if isinstance(b, MarketBar) else np.nan
                for b in bars
            ],
            dtype=float,
        )
    return np.where(np.isfinite(raw) & (raw > 0), raw, np.nan)


def moving_average(bars: PriceInput, period: int) -> List[float]:
    """
    Simple moving average of valid closes.

    Early bars (fewer than ``period`` available) average whatever valid closes
    exist from the start. Within a window invalid closes are skipped and the sum
    is divided by the number of valid closes found. A window without any valid
    close yields 0.
    """
    period = max(1, int(period))
    px = pd.Series(closes(bars))
    if px.empty:
        return []
    ma = px.rolling(window=period, min_periods=1).mean()
    return ma.fillna(0.0).astype(float).tolist()


def rsi(bars: PriceInput, period: int = 14) -> List[float]:
    """
    Compute Relative Strength Index (RSI) with simple trailing averages.

    The first bar is neutral (50). Until ``period`` price changes are
    available the value stays neutral; after that
    ``RSI = 100 - 100 / (1 + avg_gain / avg_loss)`` over the trailing
    ``period`` changes, and 100 when the average loss is exactly zero.

    Returns
    -------
    list of float
        RSI values scaled 0–100, always the same length as ``bars``.
    """
    period = max(1, int(period))
    px = closes(bars)
    n = len(px)
    if n == 0:
        return []

    delta = np.diff(px)
    delta = np.where(np.isfinite(delta), delta, 0.0)
    gains = np.clip(delta, 0.0, None)
    losses = np.clip(-delta, 0.0, None)

    values: List[float] = [NEUTRAL_RSI]
    warmup = min(period - 1, len(delta))
    values.extend([NEUTRAL_RSI] * warmup)
    if len(delta) >= period:
        # windows are summed independently so an all-zero loss window is exactly 0
        gain_windows = np.lib.stride_tricks.sliding_window_view(gains, period)
        loss_windows = np.lib.stride_tricks.sliding_window_view(losses, period)
        avg_gain = gain_windows.sum(axis=1) / period
        avg_loss = loss_windows.sum(axis=1) / period
        for gain, loss in zip(avg_gain, avg_loss):
            if loss == 0:
                values.append(100.0)
            else:
                values.append(float(100.0 - 100.0 / (1.0 + gain / loss)))

    if len(values) != n:
        logger.warning(
            "[indicators] RSI length mismatch: {} vs {}, adjusting", len(values), n
        )
        values = (values + [NEUTRAL_RSI] * n)[:n]

    logger.debug("[indicators] RSI computed for {} bars (period={})", n, period)
    return values


__all__ = ["NEUTRAL_RSI", "closes", "moving_average", "rsi"]
