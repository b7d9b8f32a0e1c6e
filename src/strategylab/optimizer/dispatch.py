"""Single entry point routing a search to grid, genetic or bayesian search by options type."""

from collections.abc import Sequence

from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.models import BacktestConfig
from strategylab.candles.models import Candle
from strategylab.logging import run_context
from strategylab.optimizer.bayesian import bayesian_optimize
from strategylab.optimizer.genetic import genetic_optimize
from strategylab.optimizer.models import (
    BayesianOptions,
    GeneticOptions,
    GridOptions,
    OptimizationReport,
    ParamRanges,
)
from strategylab.optimizer.sweep import grid_optimize
from strategylab.progress import ProgressCallback, RunStatus


def optimize(
    engine: BacktestEngine,
    base_config: BacktestConfig,
    candles: Sequence[Candle],
    param_ranges: ParamRanges,
    options: GridOptions | GeneticOptions | BayesianOptions | None = None,
    progress_callback: ProgressCallback | None = None,
    status: RunStatus | None = None,
) -> OptimizationReport:
    """Run the search selected by the options type; grid search when options is None.

    Every event logged during the search carries search and strategy_id.
    """
    method = options.method if options is not None else GridOptions.method
    with run_context(search=method, strategy_id=base_config.strategy_id):
        if isinstance(options, BayesianOptions):
            return bayesian_optimize(
                engine, base_config, candles, param_ranges, options, progress_callback, status
            )
        if isinstance(options, GeneticOptions):
            return genetic_optimize(
                engine, base_config, candles, param_ranges, options, progress_callback, status
            )
        return grid_optimize(
            engine, base_config, candles, param_ranges, options, progress_callback, status
        )
