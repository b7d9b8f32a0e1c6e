"""Bayesian-style sequential search with a Gaussian-process surrogate.

After initial_samples uniform random draws, each iteration fits a GP
(RBF kernel, fixed hyperparameters) to the scores observed so far, scores
a pool of random on-grid candidates by upper confidence bound

    ucb(x) = mean(x) + exploration_weight * std(x)

and evaluates the best one. Scores are standardized before fitting, so
exploration_weight is measured in units of observed score spread: 0 is
pure exploitation, larger values favour unexplored regions.

Parameters are normalized to [0, 1] before entering the kernel.
"""

import math
from collections.abc import Sequence

import numpy as np

from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.models import BacktestConfig
from strategylab.candles.models import Candle
from strategylab.logging import get_logger
from strategylab.optimizer.models import (
    BayesianOptions,
    OptimizationEntry,
    OptimizationReport,
    ParamRanges,
    SkippedTrial,
)
from strategylab.optimizer.trials import (
    evaluate_trial,
    format_params,
    normalize_params,
    random_params,
    sort_entries,
)
from strategylab.progress import ProgressCallback, ProgressReporter, RunStatus

logger = get_logger(__name__)

MIN_VARIANCE = 1e-4


class GaussianProcess:
    """Zero-mean GP regressor over standardized targets.

    Args:
        length_scale: RBF kernel length scale in normalized parameter units.
        noise_variance: Observation noise added to the kernel diagonal.
    """

    def __init__(self, length_scale: float = 0.5, noise_variance: float = 0.01) -> None:
        self.length_scale = length_scale
        self.noise_variance = noise_variance
        self._x: list[list[float]] = []
        self._y: list[float] = []
        self._fitted = False
        self._train_x = np.empty((0, 0))
        self._alpha = np.empty(0)
        self._k_inv = np.empty((0, 0))

    def __len__(self) -> int:
        return len(self._y)

    def add_point(self, x: Sequence[float], y: float) -> None:
        self._x.append(list(x))
        self._y.append(float(y))
        self._fitted = False

    def _kernel(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        sq_dist = ((a[:, None, :] - b[None, :, :]) ** 2).sum(axis=2)
        return np.exp(-sq_dist / (2 * self.length_scale**2))

    def _fit(self) -> None:
        x = np.asarray(self._x, dtype=float)
        y = np.asarray(self._y, dtype=float)
        std = y.std()
        y_std = (y - y.mean()) / std if std > 0 else y - y.mean()

        k = self._kernel(x, x) + self.noise_variance * np.eye(len(y))
        self._k_inv = np.linalg.inv(k)
        self._alpha = self._k_inv @ y_std
        self._train_x = x
        self._fitted = True

    def predict(self, candidates: Sequence[Sequence[float]]) -> tuple[np.ndarray, np.ndarray]:
        """Posterior mean and variance at each candidate, on the standardized scale.

        With no observations the prior is returned: mean 0, variance 1.
        """
        xs = np.asarray(candidates, dtype=float)
        if not self._y:
            return np.zeros(len(xs)), np.ones(len(xs))
        if not self._fitted:
            self._fit()

        k_star = self._kernel(xs, self._train_x)
        mean = k_star @ self._alpha
        prior = 1.0 + self.noise_variance
        variance = prior - np.einsum("ij,jk,ik->i", k_star, self._k_inv, k_star)
        return mean, np.maximum(variance, MIN_VARIANCE)


def upper_confidence_bound(
    gp: GaussianProcess,
    candidates: Sequence[Sequence[float]],
    exploration_weight: float,
) -> np.ndarray:
    mean, variance = gp.predict(candidates)
    return mean + exploration_weight * np.sqrt(variance)


def select_candidate(
    gp: GaussianProcess,
    candidates: Sequence[Sequence[float]],
    exploration_weight: float,
) -> int:
    """Index of the candidate with the highest UCB; the first wins ties."""
    return int(np.argmax(upper_confidence_bound(gp, candidates, exploration_weight)))


def bayesian_optimize(
    engine: BacktestEngine,
    base_config: BacktestConfig,
    candles: Sequence[Candle],
    param_ranges: ParamRanges,
    options: BayesianOptions | None = None,
    progress_callback: ProgressCallback | None = None,
    status: RunStatus | None = None,
) -> OptimizationReport:
    """Budget-bounded sequential search guided by a GP surrogate.

    Args:
        engine: Engine used for every trial.
        base_config: Config whose strategy params each trial overlays.
        candles: Raw candles shared by all trials. Never mutated.
        param_ranges: Parameter name -> ParamRange.
        options: Budget, exploration weight and candidate pool size.
        progress_callback: Optional callback receiving a ProgressEvent per trial.
        status: Optional caller-owned RunStatus for polling and cancellation.

    Returns:
        OptimizationReport with entries sorted by score descending; every
        entry carries the iteration index at which it was evaluated.
    """
    opts = options or BayesianOptions()
    rng = opts.make_rng()
    initial = max(opts.initial_samples, 0)
    total = max(opts.max_iterations, initial)

    gp = GaussianProcess()
    reporter = ProgressReporter(total, status=status, callback=progress_callback)
    entries: list[OptimizationEntry] = []
    skipped: list[SkippedTrial] = []
    best_score = -math.inf

    logger.info(
        "bayesian_search_starting",
        strategy_id=base_config.strategy_id,
        max_iterations=opts.max_iterations,
        initial_samples=initial,
        exploration_weight=opts.exploration_weight,
    )

    for iteration in range(total):
        if reporter.cancelled:
            break

        if iteration < initial or not param_ranges:
            params = random_params(param_ranges, rng)
        else:
            pool = [random_params(param_ranges, rng) for _ in range(max(opts.candidate_pool_size, 1))]
            normalized = [normalize_params(p, param_ranges) for p in pool]
            params = pool[select_candidate(gp, normalized, opts.exploration_weight)]

        label = f"iter {iteration}: {format_params(params)}"
        reporter.started(label)
        outcome = evaluate_trial(
            engine,
            base_config,
            candles,
            params,
            opts.objective,
            opts.min_trades,
            iteration=iteration,
        )
        reporter.advance(label)

        if isinstance(outcome, SkippedTrial):
            skipped.append(outcome)
            continue

        entries.append(outcome)
        gp.add_point(normalize_params(params, param_ranges), outcome.score)
        if outcome.score > best_score:
            best_score = outcome.score
            logger.debug("bayesian_new_best", iteration=iteration, score=best_score)

    reporter.finish()
    report = OptimizationReport(
        method="bayesian",
        entries=sort_entries(entries),
        skipped=skipped,
        evaluated=len(entries) + len(skipped),
        cancelled=reporter.cancelled,
    )

    logger.info(
        "bayesian_search_complete",
        strategy_id=base_config.strategy_id,
        evaluated=report.evaluated,
        succeeded=report.succeeded,
        skipped=len(report.skipped),
        cancelled=report.cancelled,
        best_score=report.best.score if report.best else None,
    )
    return report
