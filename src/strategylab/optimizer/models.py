"""Data models for parameter search: ranges, options, trial outcomes, reports."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Literal

from strategylab.backtest.models import BacktestResult
from strategylab.exceptions import InvalidParamRange

if TYPE_CHECKING:
    from strategylab.config import OptimizerSettings

Objective = Literal["netProfit", "winRate", "profitFactor", "expectancy"]
SearchMethod = Literal["grid", "genetic", "bayesian"]

# Tolerance for float step counts, so that (35 - 25) / 5 is 2 and not 1.999...
_STEP_EPSILON = 1e-9
_VALUE_DIGITS = 10


@dataclass(frozen=True)
class ParamRange:
    """Inclusive arithmetic range of values for one strategy parameter.

    Raises:
        InvalidParamRange: If step <= 0, max < min, or a bound is not finite.
    """

    min: float
    max: float
    step: float

    def __post_init__(self) -> None:
        if not all(math.isfinite(v) for v in (self.min, self.max, self.step)):
            raise InvalidParamRange(f"Range bounds must be finite: {self}")
        if self.step <= 0:
            raise InvalidParamRange(f"Range step must be positive, got {self.step}")
        if self.max < self.min:
            raise InvalidParamRange(f"Range max {self.max} is below min {self.min}")

    @property
    def steps(self) -> int:
        """Number of whole steps between min and max."""
        return int(math.floor((self.max - self.min) / self.step + _STEP_EPSILON))

    def value_at(self, index: int) -> float:
        return round(self.min + index * self.step, _VALUE_DIGITS)

    def values(self) -> list[float]:
        """Every value from min to max (inclusive when max lies on the grid)."""
        return [self.value_at(k) for k in range(self.steps + 1)]

    def random_value(self, rng: random.Random) -> float:
        return self.value_at(rng.randint(0, self.steps))

    def normalize(self, value: float) -> float:
        """Map value onto [0, 1]; a degenerate range maps everything to 0."""
        if self.max == self.min:
            return 0.0
        return (value - self.min) / (self.max - self.min)


ParamRanges = dict[str, ParamRange]


@dataclass
class SearchOptions:
    """Options shared by every search method.

    Attributes:
        objective: Metric maximised by the search.
        min_trades: Trials with fewer trades are skipped.
        seed: Seed for the search's private random.Random; None = nondeterministic.
    """

    method: ClassVar[SearchMethod]

    objective: Objective = "netProfit"
    min_trades: int = 5
    seed: int | None = None

    def make_rng(self) -> random.Random:
        return random.Random(self.seed)


@dataclass
class GridOptions(SearchOptions):
    """Exhaustive search. max_combinations truncates the enumeration."""

    method: ClassVar[SearchMethod] = "grid"

    max_combinations: int | None = None

    @classmethod
    def from_settings(cls, settings: OptimizerSettings, **overrides: object) -> GridOptions:
        values: dict[str, object] = {
            "objective": settings.objective,
            "min_trades": settings.min_trades,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class GeneticOptions(SearchOptions):
    method: ClassVar[SearchMethod] = "genetic"

    population_size: int = 50
    generations: int = 20
    mutation_rate: float = 0.1
    tournament_size: int = 3
    elitism_count: int = 2

    @classmethod
    def from_settings(cls, settings: OptimizerSettings, **overrides: object) -> GeneticOptions:
        values: dict[str, object] = {
            "objective": settings.objective,
            "min_trades": settings.min_trades,
            "population_size": settings.population_size,
            "generations": settings.generations,
            "mutation_rate": settings.mutation_rate,
            "tournament_size": settings.tournament_size,
            "elitism_count": settings.elitism_count,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class BayesianOptions(SearchOptions):
    """Sequential model-based search.

    Attributes:
        max_iterations: Total evaluation budget, initial samples included.
        initial_samples: Uniform random draws before the surrogate is used.
        exploration_weight: Weight of predictive std-dev in the acquisition;
            higher values sample more broadly.
        candidate_pool_size: Random candidates scored per iteration.
    """

    method: ClassVar[SearchMethod] = "bayesian"

    max_iterations: int = 50
    initial_samples: int = 10
    exploration_weight: float = 0.1
    candidate_pool_size: int = 100

    @classmethod
    def from_settings(cls, settings: OptimizerSettings, **overrides: object) -> BayesianOptions:
        values: dict[str, object] = {
            "objective": settings.objective,
            "min_trades": settings.min_trades,
            "max_iterations": settings.max_iterations,
            "initial_samples": settings.initial_samples,
            "exploration_weight": settings.exploration_weight,
            "candidate_pool_size": settings.candidate_pool_size,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class OptimizationEntry:
    """One successful trial.

    iteration is set by grid and bayesian search, generation by genetic
    search (0 for the initial population).
    """

    params: dict[str, float]
    result: BacktestResult
    score: float
    iteration: int | None = None
    generation: int | None = None


@dataclass
class SkippedTrial:
    """A trial that produced no entry, with the reason it was dropped."""

    params: dict[str, float]
    reason: str
    iteration: int | None = None
    generation: int | None = None


@dataclass
class OptimizationReport:
    """Outcome of one search.

    Attributes:
        method: Search method used.
        entries: Successful trials, sorted by score descending.
        skipped: Trials dropped for an exception or too few trades.
        evaluated: Number of backtests attempted.
        cancelled: True if the search stopped early on request.
    """

    method: SearchMethod
    entries: list[OptimizationEntry] = field(default_factory=list)
    skipped: list[SkippedTrial] = field(default_factory=list)
    evaluated: int = 0
    cancelled: bool = False

    @property
    def best(self) -> OptimizationEntry | None:
        return self.entries[0] if self.entries else None

    @property
    def succeeded(self) -> int:
        return len(self.entries)
