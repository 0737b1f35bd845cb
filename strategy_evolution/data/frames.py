"""Conversions between bar lists and pandas OHLCV frames."""

from __future__ import annotations

from typing import List, Sequence

import pandas as pd

from strategy_evolution.core.models import MarketBar

COLUMNS = ["open", "high", "low", "close", "volume"]


def bars_to_frame(bars: Sequence[MarketBar]) -> pd.DataFrame:
    """DatetimeIndex-ed OHLCV frame, one row per bar."""
    if not bars:
        return pd.DataFrame(columns=COLUMNS, index=pd.DatetimeIndex([], name="date"))
    df = pd.DataFrame(
        [b.model_dump(include=set(COLUMNS) | {"date"}) for b in bars]
    )
    df["date"] = pd.to_datetime(df["date"])
    return df.set_index("date")[COLUMNS]


def bars_from_frame(df: pd.DataFrame) -> List[MarketBar]:
    """
    Build bars from a frame with OHLCV columns (long or short names).

    The date comes from a ``date``/``timestamp`` column when present, else from
    the index.
    """
    frame = df.rename(columns=str.lower)
    if not {"date", "timestamp", "t"} & set(frame.columns):
        frame = frame.rename_axis("date").reset_index()
    return [MarketBar.model_validate(row) for row in frame.to_dict(orient="records")]


__all__ = ["bars_from_frame", "bars_to_frame"]
