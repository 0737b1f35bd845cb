class StrategyEngineError(Exception):
    """Base class for all strategy engine exceptions."""


class ConfigError(StrategyEngineError):
    """Raised for missing/malformed configuration."""


class MarketDataError(StrategyEngineError):
    """Raised when the supplied bar sequence cannot be backtested."""


class EmptyMarketData(MarketDataError):
    """Raised when no bars were supplied to a backtest."""


class InsufficientData(MarketDataError):
    """Raised when there are fewer valid bars than the long moving average needs."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient market data: need at least {required} days, got {available}"
        )


__all__ = [
    "StrategyEngineError",
    "ConfigError",
    "MarketDataError",
    "EmptyMarketData",
    "InsufficientData",
]
