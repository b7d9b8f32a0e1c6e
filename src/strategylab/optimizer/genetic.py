"""Genetic search: tournament selection, single-point crossover, per-gene mutation.

Generation 0 is a uniformly random population. Each later generation keeps
the top elitism_count scored individuals unchanged (they are not
re-evaluated or re-emitted) and fills the rest with mutated offspring.
Every evaluated individual becomes one entry or skip record tagged with
its generation, so the report spans the whole run and not only the final
population.
"""

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.models import BacktestConfig
from strategylab.candles.models import Candle
from strategylab.logging import get_logger
from strategylab.optimizer.models import (
    GeneticOptions,
    OptimizationEntry,
    OptimizationReport,
    ParamRanges,
    SkippedTrial,
)
from strategylab.optimizer.trials import (
    evaluate_trial,
    format_params,
    random_params,
    sort_entries,
)
from strategylab.progress import ProgressCallback, ProgressReporter, RunStatus

logger = get_logger(__name__)


@dataclass
class Individual:
    params: dict[str, float]
    score: float  # -inf for a failed evaluation


def tournament_select(
    population: Sequence[Individual], tournament_size: int, rng: random.Random
) -> Individual:
    """Sample tournament_size individuals with replacement and return the fittest."""
    best: Individual | None = None
    for _ in range(max(tournament_size, 1)):
        candidate = population[rng.randrange(len(population))]
        if best is None or candidate.score > best.score:
            best = candidate
    return best


def crossover(
    parent1: dict[str, float],
    parent2: dict[str, float],
    keys: Sequence[str],
    rng: random.Random,
) -> dict[str, float]:
    """Single-point crossover: genes before the cut come from parent1, the rest from parent2."""
    if not keys:
        return {}
    cut = rng.randrange(len(keys))
    return {key: parent1[key] if i < cut else parent2[key] for i, key in enumerate(keys)}


def mutate(
    params: dict[str, float],
    ranges: ParamRanges,
    mutation_rate: float,
    rng: random.Random,
) -> dict[str, float]:
    """Redraw each gene uniformly from its range with probability mutation_rate."""
    mutated = dict(params)
    for key, r in ranges.items():
        if rng.random() < mutation_rate:
            mutated[key] = r.random_value(rng)
    return mutated


def genetic_optimize(
    engine: BacktestEngine,
    base_config: BacktestConfig,
    candles: Sequence[Candle],
    param_ranges: ParamRanges,
    options: GeneticOptions | None = None,
    progress_callback: ProgressCallback | None = None,
    status: RunStatus | None = None,
) -> OptimizationReport:
    """Evolve a population of parameter sets against the objective.

    Args:
        engine: Engine used for every trial.
        base_config: Config whose strategy params each individual overlays.
        candles: Raw candles shared by all trials. Never mutated.
        param_ranges: Parameter name -> ParamRange.
        options: Population, generation and operator settings.
        progress_callback: Optional callback receiving a ProgressEvent per trial.
        status: Optional caller-owned RunStatus for polling and cancellation.

    Returns:
        OptimizationReport with entries from all generations, sorted by
        score descending.
    """
    opts = options or GeneticOptions()
    rng = opts.make_rng()
    keys = list(param_ranges.keys())
    population_size = max(opts.population_size, 0)
    elite_count = min(max(opts.elitism_count, 0), population_size)

    # Estimate: surviving elites are not re-evaluated, failed ones are
    total = population_size + opts.generations * (population_size - elite_count)
    reporter = ProgressReporter(total, status=status, callback=progress_callback)
    entries: list[OptimizationEntry] = []
    skipped: list[SkippedTrial] = []

    logger.info(
        "genetic_search_starting",
        strategy_id=base_config.strategy_id,
        population_size=population_size,
        generations=opts.generations,
    )

    def evaluate(params: dict[str, float], generation: int) -> Individual:
        label = f"gen {generation}: {format_params(params)}"
        reporter.started(label)
        outcome = evaluate_trial(
            engine,
            base_config,
            candles,
            params,
            opts.objective,
            opts.min_trades,
            generation=generation,
        )
        reporter.advance(label)
        if isinstance(outcome, SkippedTrial):
            skipped.append(outcome)
            return Individual(params=params, score=-math.inf)
        entries.append(outcome)
        return Individual(params=params, score=outcome.score)

    population: list[Individual] = []
    for _ in range(population_size):
        if reporter.cancelled:
            break
        population.append(evaluate(random_params(param_ranges, rng), 0))
    population.sort(key=lambda ind: ind.score, reverse=True)

    for generation in range(1, opts.generations + 1):
        if reporter.cancelled or not population:
            break

        next_population = [ind for ind in population[:elite_count] if ind.score > -math.inf]
        while len(next_population) < population_size and not reporter.cancelled:
            parent1 = tournament_select(population, opts.tournament_size, rng)
            parent2 = tournament_select(population, opts.tournament_size, rng)
            child = crossover(parent1.params, parent2.params, keys, rng)
            child = mutate(child, param_ranges, opts.mutation_rate, rng)
            next_population.append(evaluate(child, generation))

        population = sorted(next_population, key=lambda ind: ind.score, reverse=True)
        logger.debug(
            "genetic_generation_complete",
            generation=generation,
            best_score=population[0].score if population else None,
        )

    reporter.finish()
    report = OptimizationReport(
        method="genetic",
        entries=sort_entries(entries),
        skipped=skipped,
        evaluated=len(entries) + len(skipped),
        cancelled=reporter.cancelled,
    )

    logger.info(
        "genetic_search_complete",
        strategy_id=base_config.strategy_id,
        evaluated=report.evaluated,
        succeeded=report.succeeded,
        skipped=len(report.skipped),
        cancelled=report.cancelled,
        best_score=report.best.score if report.best else None,
    )
    return report
