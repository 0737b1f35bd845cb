from __future__ import annotations

import datetime as dt
import math
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.fields import AliasChoices


class StrategyType(str, Enum):
    BASE = "base"
    OPTIMIZED = "optimized"
    HYBRID = "hybrid"


class StrategyParameters(BaseModel):
    """
    Tunable inputs of the moving-average / RSI strategy.

    Attributes:
        ma_short (int): Short moving-average period in bars.
        ma_long (int): Long moving-average period in bars.
        rsi_threshold (float): Overbought/oversold pivot on the 0-100 RSI scale.
        position_size (float): Fraction of cash committed per entry.
        stop_loss (Optional[float]): Reserved; not used by the simulator.
        take_profit (Optional[float]): Reserved; not used by the simulator.
    """

    ma_short: int = Field(..., ge=1)
    ma_long: int = Field(..., ge=1)
    rsi_threshold: float = Field(..., ge=0.0, le=100.0)
    position_size: float = Field(..., ge=0.0, le=1.0)
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    model_config = {"frozen": True, "extra": "ignore"}


class StrategyMetrics(BaseModel):
    """
    Performance statistics of one backtest run.

    Attributes:
        sharpe_ratio (float): Annualized Sharpe ratio.
        total_return (float): Total return in percent.
        max_drawdown (float): Largest peak-to-trough decline in percent (<= 0).
        win_rate (float): Winning completed trades in percent.
        avg_trade_duration (float): Mean holding period in days.
        num_trades (int): Completed BUY -> SELL pairs.
    """

    sharpe_ratio: float
    total_return: float
    max_drawdown: float = Field(..., le=0.0)
    win_rate: float = Field(..., ge=0.0, le=100.0)
    avg_trade_duration: float = Field(..., ge=0.0)
    num_trades: int = Field(..., ge=0)

    model_config = {"frozen": True}


class Strategy(BaseModel):
    """
    A named parameter set with optional lineage and attached metrics.

    Strategies are immutable; use `with_metrics` to attach a backtest result.
    """

    id: str
    user_id: Optional[str] = None
    name: str
    type: StrategyType = StrategyType.BASE
    parameters: StrategyParameters
    metrics: Optional[StrategyMetrics] = None
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    parent_id: Optional[str] = None

    model_config = {"frozen": True}

    def with_metrics(self, metrics: StrategyMetrics) -> "Strategy":
        return self.model_copy(update={"metrics": metrics})

    def __repr__(self) -> str:
        return f"Strategy(id={self.id}, type={self.type.value}, parent={self.parent_id})"


class MarketBar(BaseModel):
    """
    A single daily OHLCV bar.

    Attributes:
        date (Optional[date]): Trading day; bars without a date are ignored by the simulator.
        open (float): The open price.
        high (float): The high price.
        low (float): The low price.
        close (float): The close price.
        volume (int): The traded volume.
    """

    date: Optional[dt.date] = Field(None, validation_alias=AliasChoices("date", "t", "timestamp"))
    open: float = Field(0.0, validation_alias=AliasChoices("open", "o"))
    high: float = Field(0.0, validation_alias=AliasChoices("high", "h"))
    low: float = Field(0.0, validation_alias=AliasChoices("low", "l", "lo"))
    close: float = Field(0.0, validation_alias=AliasChoices("close", "c"))
    volume: int = Field(0, ge=0, validation_alias=AliasChoices("volume", "v"))

    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value):
        if isinstance(value, dt.datetime):
            return value.date()
        return value

    @property
    def is_valid(self) -> bool:
        """True when the bar has a date and a positive, finite close."""
        return (
            self.date is not None
            and isinstance(self.close, (int, float))
            and math.isfinite(self.close)
            and self.close > 0
        )

    def __repr__(self) -> str:
        return (
            f"MarketBar({self.date}, o={self.open:.2f}, h={self.high:.2f}, "
            f"low={self.low:.2f}, c={self.close:.2f}, v={self.volume})"
        )


class Trade(BaseModel):
    """
    A simulated fill. Within one run the sides strictly alternate BUY, SELL, ...

    The side also validates from, and is readable as, `type`.
    """

    side: Literal["BUY", "SELL"] = Field(..., validation_alias=AliasChoices("side", "type"))
    date: dt.date
    price: float
    quantity: float
    bar_index: int

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def type(self) -> str:
        return self.side


def alternates(trades: List[Trade]) -> bool:
    """Return True when no two consecutive trades share a side."""
    return all(a.side != b.side for a, b in zip(trades, trades[1:]))


__all__ = [
    "StrategyType",
    "StrategyParameters",
    "StrategyMetrics",
    "Strategy",
    "MarketBar",
    "Trade",
    "alternates",
]
