from __future__ import annotations

import os
from typing import Callable, List, Sequence

import numpy as np
import pandas as pd
import pytest

from strategy_evolution.core.models import MarketBar, Strategy, StrategyParameters
from strategy_evolution.logging_utils import setup_test_logging

os.environ.setdefault("ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def configure_logging(tmp_path_factory):
    setup_test_logging(tmp_path_factory.mktemp("logs"))
    yield


def bars_from_closes(closes: Sequence[float], start: str = "2024-01-01") -> List[MarketBar]:
    dates = pd.date_range(start, periods=len(closes), freq="D")
    return [
        MarketBar(
            date=ts,
            open=float(c),
            high=float(c),
            low=float(c),
            close=float(c),
            volume=1_000_000,
        )
        for ts, c in zip(dates, closes)
    ]


@pytest.fixture
def make_bars() -> Callable[..., List[MarketBar]]:
    return bars_from_closes


@pytest.fixture
def base_strategy() -> Strategy:
    return Strategy(
        id="base",
        name="Base",
        parameters=StrategyParameters(
            ma_short=20, ma_long=50, rsi_threshold=30, position_size=0.15
        ),
    )


@pytest.fixture
def random_walk_bars() -> List[MarketBar]:
    rng = np.random.default_rng(1337)
    closes = 100.0 + np.cumsum(rng.normal(0.05, 1.5, size=252))
    return bars_from_closes(np.maximum(closes, 10.0))
