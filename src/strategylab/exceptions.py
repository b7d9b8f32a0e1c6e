"""Custom exceptions for strategylab.

All engine, optimizer and scoring exceptions live here to avoid circular
imports between modules.
"""


class StrategyLabError(Exception):
    """Base exception for all strategylab errors."""


class BacktestError(StrategyLabError):
    """Base exception for failures of a single backtest run."""


class StrategyNotFound(BacktestError):
    """Raised when a config references a strategy id that is not registered."""

    def __init__(self, strategy_id: str) -> None:
        super().__init__(f"Strategy not found: {strategy_id}")
        self.strategy_id = strategy_id


class InsufficientData(BacktestError):
    """Raised when fewer usable candles remain than the engine requires."""

    def __init__(self, message: str, available: int = 0, required: int = 0) -> None:
        super().__init__(message)
        self.available = available
        self.required = required


class InvalidParamRange(StrategyLabError, ValueError):
    """Raised when an optimizer parameter range cannot be enumerated."""


class InvalidWeights(StrategyLabError, ValueError):
    """Raised when a weight profile does not sum to 1.0."""
