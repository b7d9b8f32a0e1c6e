"""Grid search over strategy parameter ranges.

Generates all combinations of parameter values via itertools.product,
runs a backtest for each and returns an OptimizationReport sorted by the
chosen objective. Deterministic: the same inputs always evaluate the same
combinations in the same order.
"""

from collections.abc import Iterator, Sequence
from itertools import islice, product

from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.models import BacktestConfig
from strategylab.candles.models import Candle
from strategylab.logging import get_logger
from strategylab.optimizer.models import (
    GridOptions,
    OptimizationEntry,
    OptimizationReport,
    ParamRanges,
    SkippedTrial,
)
from strategylab.optimizer.trials import evaluate_trial, format_params, sort_entries
from strategylab.progress import ProgressCallback, ProgressReporter, RunStatus

logger = get_logger(__name__)


def _iter_combinations(ranges: ParamRanges) -> Iterator[dict[str, float]]:
    keys = list(ranges.keys())
    for combo in product(*(ranges[k].values() for k in keys)):
        yield dict(zip(keys, combo))


def generate_param_combinations(ranges: ParamRanges) -> list[dict[str, float]]:
    """Cartesian product of every range's values.

    The first key varies slowest. Empty ranges yield a single empty
    combination, i.e. one trial at strategy defaults.
    """
    return list(_iter_combinations(ranges))


def grid_optimize(
    engine: BacktestEngine,
    base_config: BacktestConfig,
    candles: Sequence[Candle],
    param_ranges: ParamRanges,
    options: GridOptions | None = None,
    progress_callback: ProgressCallback | None = None,
    status: RunStatus | None = None,
) -> OptimizationReport:
    """Run one backtest per parameter combination.

    Args:
        engine: Engine used for every trial.
        base_config: Config whose strategy params each combination overlays.
        candles: Raw candles shared by all trials. Never mutated.
        param_ranges: Parameter name -> ParamRange.
        options: Objective, min trades and optional max_combinations.
        progress_callback: Optional callback receiving a ProgressEvent per trial.
        status: Optional caller-owned RunStatus for polling and cancellation.

    Returns:
        OptimizationReport with entries sorted by score descending.
    """
    opts = options or GridOptions()
    keys = list(param_ranges.keys())
    combinations = _iter_combinations(param_ranges)
    if opts.max_combinations is not None:
        combinations = islice(combinations, max(opts.max_combinations, 0))
    combos = list(combinations)
    total = len(combos)

    logger.info(
        "grid_search_starting",
        strategy_id=base_config.strategy_id,
        parameters=keys,
        total_combinations=total,
    )

    reporter = ProgressReporter(total, status=status, callback=progress_callback)
    entries: list[OptimizationEntry] = []
    skipped: list[SkippedTrial] = []

    for idx, params in enumerate(combos):
        if reporter.cancelled:
            break
        label = format_params(params)
        reporter.started(label)

        outcome = evaluate_trial(
            engine,
            base_config,
            candles,
            params,
            opts.objective,
            opts.min_trades,
            iteration=idx,
        )
        if isinstance(outcome, SkippedTrial):
            skipped.append(outcome)
        else:
            entries.append(outcome)
        reporter.advance(label)

    reporter.finish()
    report = OptimizationReport(
        method="grid",
        entries=sort_entries(entries),
        skipped=skipped,
        evaluated=len(entries) + len(skipped),
        cancelled=reporter.cancelled,
    )

    logger.info(
        "grid_search_complete",
        strategy_id=base_config.strategy_id,
        evaluated=report.evaluated,
        succeeded=report.succeeded,
        skipped=len(report.skipped),
        cancelled=report.cancelled,
        best_score=report.best.score if report.best else None,
    )
    return report


def format_optimization_summary(report: OptimizationReport, top_n: int = 10) -> str:
    """Format a text summary table of an optimization report.

    Shows the top_n entries with their parameters and key metrics; the best
    one is highlighted.

    Args:
        report: A completed (or cancelled) optimization report.
        top_n: Maximum number of rows in the table.

    Returns:
        Formatted string suitable for console output.
    """
    if not report.entries:
        return (
            f"No optimization results to display "
            f"({report.evaluated} evaluated, {len(report.skipped)} skipped)."
        )

    shown = report.entries[:top_n]
    param_names: list[str] = []
    for entry in shown:
        for name in entry.params:
            if name not in param_names:
                param_names.append(name)

    lines: list[str] = []
    lines.append("=" * 80)
    lines.append(f"OPTIMIZATION RESULTS ({report.method.upper()})")
    lines.append("=" * 80)
    lines.append(
        f"Evaluated: {report.evaluated} | Succeeded: {report.succeeded} | "
        f"Skipped: {len(report.skipped)}"
        + (" | CANCELLED" if report.cancelled else "")
    )
    lines.append("")

    header_parts = [f"{name:>12s}" for name in param_names]
    header_parts.append(f"{'Score':>10s}")
    header_parts.append(f"{'Net Profit':>12s}")
    header_parts.append(f"{'Win Rate':>10s}")
    header_parts.append(f"{'PF':>7s}")
    header_parts.append(f"{'Trades':>8s}")
    header = " | ".join(header_parts)
    lines.append(header)
    lines.append("-" * len(header))

    for rank, entry in enumerate(shown):
        r = entry.result
        row_parts = [f"{entry.params.get(name, ''):>12}" for name in param_names]
        row_parts.append(f"{entry.score:>10.2f}")
        row_parts.append(f"${r.net_profit:>10.2f}")
        row_parts.append(f"{r.win_rate:>9.1f}%")
        row_parts.append(f"{r.profit_factor:>7.2f}")
        row_parts.append(f"{r.total_trades:>8d}")
        row = " | ".join(row_parts)
        if rank == 0:
            row = row + "  <-- BEST"
        lines.append(row)

    lines.append("")
    lines.append("=" * 80)

    best = report.entries[0]
    lines.append("BEST PARAMETERS:")
    for name in param_names:
        lines.append(f"  {name}: {best.params.get(name, 'N/A')}")
    lines.append(f"  Score: {best.score:.2f}")
    lines.append(f"  Net Profit: ${best.result.net_profit:.2f}")
    lines.append(f"  Win Rate: {best.result.win_rate:.1f}%")
    lines.append(f"  Total Trades: {best.result.total_trades}")
    lines.append("=" * 80)

    return "\n".join(lines)
