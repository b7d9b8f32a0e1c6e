"""Parameter search over backtests.

Grid (exhaustive), genetic and bayesian-style search share one trial
evaluator and one report type. Failing trials are recorded as skips with a
reason instead of aborting the search.
"""

from strategylab.optimizer.bayesian import GaussianProcess, bayesian_optimize
from strategylab.optimizer.dispatch import optimize
from strategylab.optimizer.genetic import genetic_optimize
from strategylab.optimizer.models import (
    BayesianOptions,
    GeneticOptions,
    GridOptions,
    Objective,
    OptimizationEntry,
    OptimizationReport,
    ParamRange,
    ParamRanges,
    SkippedTrial,
)
from strategylab.optimizer.sweep import (
    format_optimization_summary,
    generate_param_combinations,
    grid_optimize,
)
from strategylab.optimizer.trials import objective_score

__all__ = [
    "BayesianOptions",
    "GaussianProcess",
    "GeneticOptions",
    "GridOptions",
    "Objective",
    "OptimizationEntry",
    "OptimizationReport",
    "ParamRange",
    "ParamRanges",
    "SkippedTrial",
    "bayesian_optimize",
    "format_optimization_summary",
    "generate_param_combinations",
    "genetic_optimize",
    "grid_optimize",
    "objective_score",
    "optimize",
]
