"""Backtest engine package.

Provides the strategy contract and registry, the sequential binary-option
backtest engine, and train/validation splitting with overfit scoring.
"""

from strategylab.backtest.models import (
    BacktestConfig,
    BacktestResult,
    BacktestTrade,
    DataQuality,
    EquityPoint,
)
from strategylab.backtest.strategy import (
    ParamSpec,
    Strategy,
    StrategyRegistry,
    StrategySignal,
)
from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.validation import (
    PerformanceSummary,
    TrainValSplit,
    calculate_overfit_score,
    extract_performance_summary,
    split_train_val,
)

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestResult",
    "BacktestTrade",
    "DataQuality",
    "EquityPoint",
    "ParamSpec",
    "PerformanceSummary",
    "Strategy",
    "StrategyRegistry",
    "StrategySignal",
    "TrainValSplit",
    "calculate_overfit_score",
    "extract_performance_summary",
    "split_train_val",
]
