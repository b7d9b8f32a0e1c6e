"""Single-trial evaluation shared by every search method.

A trial is one backtest with a parameter set overlaid on the base config.
It ends either in an OptimizationEntry or in a SkippedTrial that records
why; a failing trial never aborts the search that ran it.
"""

import math
import random
from collections.abc import Sequence

from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.models import BacktestConfig, BacktestResult
from strategylab.candles.models import Candle
from strategylab.logging import get_logger
from strategylab.optimizer.models import (
    Objective,
    OptimizationEntry,
    ParamRanges,
    SkippedTrial,
)

logger = get_logger(__name__)

# Stand-in score for an infinite profit factor, so it still sorts first
INFINITE_PROFIT_FACTOR_SCORE = 1000.0


def objective_score(result: BacktestResult, objective: Objective) -> float:
    """Extract the metric a search maximises."""
    if objective == "winRate":
        return result.win_rate
    if objective == "profitFactor":
        if math.isinf(result.profit_factor):
            return INFINITE_PROFIT_FACTOR_SCORE
        return result.profit_factor
    if objective == "expectancy":
        return result.expectancy
    return result.net_profit


def random_params(ranges: ParamRanges, rng: random.Random) -> dict[str, float]:
    """Draw one on-grid value per parameter, uniformly."""
    return {key: r.random_value(rng) for key, r in ranges.items()}


def normalize_params(params: dict[str, float], ranges: ParamRanges) -> list[float]:
    """Map params onto the unit hypercube, in ranges' key order."""
    return [ranges[key].normalize(params[key]) for key in ranges]


def format_params(params: dict[str, float]) -> str:
    if not params:
        return "defaults"
    return ", ".join(f"{k}={v:g}" for k, v in params.items())


def evaluate_trial(
    engine: BacktestEngine,
    base_config: BacktestConfig,
    candles: Sequence[Candle],
    params: dict[str, float],
    objective: Objective,
    min_trades: int,
    iteration: int | None = None,
    generation: int | None = None,
) -> OptimizationEntry | SkippedTrial:
    """Run one backtest with params overlaid on base_config's strategy params.

    Returns:
        OptimizationEntry on success, SkippedTrial if the backtest raised or
        produced fewer than min_trades trades.
    """
    config = base_config.with_overrides(
        strategy_params={**base_config.strategy_params, **params}
    )
    try:
        result = engine.run(config, candles)
    except Exception as e:
        logger.debug(
            "trial_failed",
            strategy_id=base_config.strategy_id,
            params=params,
            error=str(e),
        )
        return SkippedTrial(
            params=params,
            reason=f"{type(e).__name__}: {e}",
            iteration=iteration,
            generation=generation,
        )

    if result.total_trades < min_trades:
        return SkippedTrial(
            params=params,
            reason=f"too few trades: {result.total_trades} < {min_trades}",
            iteration=iteration,
            generation=generation,
        )

    return OptimizationEntry(
        params=params,
        result=result,
        score=objective_score(result, objective),
        iteration=iteration,
        generation=generation,
    )


def sort_entries(entries: list[OptimizationEntry]) -> list[OptimizationEntry]:
    """Sort by score descending; equal scores keep evaluation order."""
    return sorted(entries, key=lambda e: e.score, reverse=True)
