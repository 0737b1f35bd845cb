"""Domain models and the exception taxonomy shared by every engine component."""

from .exceptions import (
    ConfigError,
    EmptyMarketData,
    InsufficientData,
    MarketDataError,
    StrategyEngineError,
)
from .models import (
    MarketBar,
    Strategy,
    StrategyMetrics,
    StrategyParameters,
    StrategyType,
    Trade,
)

__all__ = [
    "ConfigError",
    "EmptyMarketData",
    "InsufficientData",
    "MarketDataError",
    "StrategyEngineError",
    "MarketBar",
    "Strategy",
    "StrategyMetrics",
    "StrategyParameters",
    "StrategyType",
    "Trade",
]
