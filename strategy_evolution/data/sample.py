from __future__ import annotations

import datetime as dt
from typing import List, Optional

import numpy as np
from loguru import logger

from strategy_evolution.core.models import MarketBar

TRADING_DAYS = 252
PRICE_FLOOR = 10.0
MIN_PRICE = 0.01


def generate_sample_data(
    days: int = TRADING_DAYS,
    *,
    rng: Optional[np.random.Generator] = None,
    end: Optional[dt.date] = None,
) -> List[MarketBar]:
    """
    Synthesize a trending random-walk series of daily bars.

    Trend regimes flip every 30 to 50 bars so the MA crossover has something to
    react to. Dates are consecutive calendar days; the last bar falls on the
    day before `end` (today by default).

    Args:
        days (int): Number of bars to produce.
        rng (np.random.Generator | None): Random source; unseeded by default.
        end (date | None): Exclusive end date.

    Returns:
        List[MarketBar]: Bars in chronological order.
    """
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")
    rng = rng if rng is not None else np.random.default_rng()
    end = end or dt.date.today()
    start = end - dt.timedelta(days=days)

    price = 80.0 + rng.random() * 40.0
    trend = (rng.random() - 0.5) * 0.3
    trend_age = 0
    trend_length = 30.0 + rng.random() * 20.0

    bars: List[MarketBar] = []
    prev_close: Optional[float] = None
    for i in range(days):
        if trend_age >= trend_length:
            trend = (rng.random() - 0.5) * 0.4
            trend_age = 0
            trend_length = 30.0 + rng.random() * 20.0
        trend_age += 1

        volatility = 1.5 + rng.random() * 1.5
        change = (rng.random() - 0.5) * volatility + trend * volatility * 2.0
        price = max(price + change, PRICE_FLOOR)

        open_ = price if prev_close is None else prev_close
        close = price
        intraday_range = abs(change) * 0.5 + rng.random()
        high = max(open_, close) + rng.random() * intraday_range
        low = min(open_, close) - rng.random() * intraday_range
        volume = int(1_000_000 + rng.random() * 5_000_000)

        bars.append(
            MarketBar(
                date=start + dt.timedelta(days=i),
                open=max(MIN_PRICE, open_),
                high=max(open_, close, high),
                low=max(MIN_PRICE, min(open_, close, low)),
                close=max(MIN_PRICE, close),
                volume=volume,
            )
        )
        prev_close = close

    logger.debug("[sample] generated {} bars ending {}", len(bars), end)
    return bars


__all__ = ["generate_sample_data"]
