"""Leaderboard batch runner: backtest every registered strategy and rank them.

Each strategy runs once at its declared default parameters on the same
candles and trading settings. Survivors of the trade-count and win-rate
filters get an entry with derived sizing and volume metrics plus an
absolute grade, then all entries are cross-normalized into a relative
composite score and dense-ranked.
"""

import math
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from strategylab.analytics.metrics import (
    calculate_trade_statistics,
    trading_days,
    weekly_win_rate_std_dev,
)
from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.models import BacktestResult
from strategylab.backtest.strategy import Strategy, StrategyRegistry
from strategylab.candles.models import Candle
from strategylab.leaderboard.models import (
    LeaderboardConfig,
    LeaderboardEntry,
    LeaderboardResult,
    LeaderboardWeights,
    SkippedStrategy,
)
from strategylab.logging import get_logger, run_context
from strategylab.progress import ProgressCallback, ProgressReporter, RunStatus
from strategylab.scoring import ScoreInput, break_even_win_rate, calculate_score

logger = get_logger(__name__)

PROFIT_FACTOR_CAP = 10.0
RECOVERY_FACTOR_CAP = 50.0
# Minimum balance heuristic: survive three times the worst observed drawdown
MIN_BALANCE_DRAWDOWN_MULTIPLE = 3


def _clamp_profit_factor(pf: float) -> float:
    if not math.isfinite(pf):
        return PROFIT_FACTOR_CAP
    return min(pf, PROFIT_FACTOR_CAP)


def _clamp_recovery_factor(rf: float) -> float:
    if not math.isfinite(rf):
        return RECOVERY_FACTOR_CAP
    return min(rf, RECOVERY_FACTOR_CAP)


def _normalize(value: float, low: float, high: float) -> float:
    """Min-max scale onto [0, 100]; a zero-width range scores the midpoint."""
    if high == low:
        return 50.0
    return (value - low) / (high - low) * 100


def build_leaderboard_entry(
    result: BacktestResult, strategy: Strategy, config: LeaderboardConfig
) -> LeaderboardEntry:
    """Turn one strategy's backtest into a leaderboard row (unranked).

    Args:
        result: The strategy's backtest at default params.
        strategy: The strategy that produced it.
        config: Batch config (bet sizing, payout, volume target).

    Returns:
        LeaderboardEntry with composite_score 0 and rank 0.
    """
    stats = calculate_trade_statistics(result.trades, config.initial_balance)

    days = trading_days(result.trades)
    trades_per_day = result.total_trades / days
    if config.bet_type == "percentage":
        bet_amount = config.initial_balance * (config.bet_amount / 100)
    else:
        bet_amount = config.bet_amount
    total_volume = result.total_trades * bet_amount
    daily_volume = total_volume / days

    volume_target = config.initial_balance * config.volume_multiplier
    days_to_volume_target = math.ceil(volume_target / daily_volume) if daily_volume > 0 else None

    win_rate_std_dev = weekly_win_rate_std_dev(result.trades)

    # Kelly criterion f* = (p*b - q) / b, as a percent of balance
    p = stats.win_rate / 100
    q = 1 - p
    b = config.payout / 100
    kelly_raw = (p * b - q) / b if p > 0 and b > 0 else 0.0
    kelly_fraction = max(0.0, kelly_raw * 100)

    scored = calculate_score(
        ScoreInput(
            wins=result.wins,
            losses=result.losses,
            ties=result.ties,
            payout_percent=config.payout,
            total_trades=result.total_trades,
            max_drawdown_percent=stats.max_drawdown_percent,
            max_losing_streak=stats.max_consecutive_losses,
            profit_factor=stats.profit_factor,
            win_rate_std_dev=win_rate_std_dev,
        ),
        config.score_weights,
    )

    return LeaderboardEntry(
        strategy_id=strategy.id,
        strategy_name=strategy.name,
        params=dict(result.config.strategy_params),
        total_trades=result.total_trades,
        wins=result.wins,
        losses=result.losses,
        ties=result.ties,
        win_rate=stats.win_rate,
        net_profit=stats.net_profit,
        net_profit_percent=stats.net_profit_percent,
        profit_factor=stats.profit_factor,
        expectancy=stats.expectancy,
        max_drawdown=stats.max_drawdown,
        max_drawdown_percent=stats.max_drawdown_percent,
        max_consecutive_losses=stats.max_consecutive_losses,
        max_consecutive_wins=stats.max_consecutive_wins,
        recovery_factor=stats.recovery_factor,
        sharpe_ratio=stats.sharpe_ratio,
        sortino_ratio=stats.sortino_ratio,
        trading_days=days,
        trades_per_day=trades_per_day,
        daily_volume=daily_volume,
        total_volume=total_volume,
        days_to_volume_target=days_to_volume_target,
        win_rate_std_dev=win_rate_std_dev,
        kelly_fraction=kelly_fraction,
        min_required_balance=stats.max_drawdown * MIN_BALANCE_DRAWDOWN_MULTIPLE,
        absolute_score=scored.score,
        grade=scored.grade,
        data_range=(result.start_ms, result.end_ms),
        candle_count=result.data_quality.total_candles,
        bet_amount=bet_amount,
        payout=config.payout,
        expiry_seconds=config.expiry_seconds,
    )


def score_and_rank_entries(
    entries: list[LeaderboardEntry],
    weights: LeaderboardWeights | None = None,
) -> list[LeaderboardEntry]:
    """Compute composite scores, sort descending and assign dense ranks.

    Each metric is min-max normalized to [0, 100] across entries. Drawdown
    percent and max consecutive losses are inverted (100 - x) so that lower
    is better. Profit factor is capped at 10 and recovery factor at 50.
    Entries with equal composite scores share a rank; the next distinct
    score gets the next integer.

    The list is sorted in place and also returned.
    """
    if not entries:
        return entries
    weights = weights or LeaderboardWeights()

    metrics: dict[str, Callable[[LeaderboardEntry], float]] = {
        "win_rate": lambda e: e.win_rate,
        "profit_factor": lambda e: _clamp_profit_factor(e.profit_factor),
        "max_drawdown": lambda e: e.max_drawdown_percent,
        "max_consecutive_losses": lambda e: e.max_consecutive_losses,
        "trades_per_day": lambda e: e.trades_per_day,
        "recovery_factor": lambda e: _clamp_recovery_factor(e.recovery_factor),
    }
    inverse = {"max_drawdown", "max_consecutive_losses"}

    ranges = {
        name: (min(getter(e) for e in entries), max(getter(e) for e in entries))
        for name, getter in metrics.items()
    }

    for entry in entries:
        composite = 0.0
        for name, getter in metrics.items():
            score = _normalize(getter(entry), *ranges[name])
            if name in inverse:
                score = 100 - score
            composite += score * getattr(weights, name)
        entry.composite_score = composite

    entries.sort(key=lambda e: e.composite_score, reverse=True)

    rank = 0
    previous: float | None = None
    for entry in entries:
        if previous is None or not math.isclose(entry.composite_score, previous, abs_tol=1e-9):
            rank += 1
            previous = entry.composite_score
        entry.rank = rank

    return entries


def run_leaderboard(
    candles: Sequence[Candle],
    config: LeaderboardConfig,
    registry: StrategyRegistry,
    engine: BacktestEngine | None = None,
    on_progress: ProgressCallback | None = None,
    status: RunStatus | None = None,
) -> LeaderboardResult:
    """Backtest every registered strategy at its defaults and rank the survivors.

    A strategy is excluded (and counted in filtered_out) if its run raises,
    trades fewer than config.min_trades times, or has a win rate below
    config.min_win_rate. An exclusion never aborts the batch.

    Args:
        candles: Candles shared by every strategy. Never mutated.
        config: Batch trading settings, filters and weights.
        registry: Strategies to run, in registration order.
        engine: Engine to run with; one over registry is built when None.
        on_progress: Optional callback receiving a ProgressEvent per strategy.
        status: Optional caller-owned RunStatus for polling and cancellation.

    Returns:
        LeaderboardResult with ranked entries.
    """
    started = time.monotonic()
    engine = engine or BacktestEngine(registry)
    strategies = registry.get_strategies()

    reporter = ProgressReporter(len(strategies), status=status, callback=on_progress)
    entries: list[LeaderboardEntry] = []
    skipped: list[SkippedStrategy] = []

    logger.info(
        "leaderboard_starting",
        strategies=len(strategies),
        symbol=config.symbol,
        min_trades=config.min_trades,
    )

    for strategy in strategies:
        if reporter.cancelled:
            break
        reporter.started(strategy.name)

        reason: str | None = None
        try:
            with run_context(batch="leaderboard"):
                result = engine.run(
                    config.backtest_config(strategy.id, strategy.default_params()), candles
                )
        except Exception as e:
            logger.debug("leaderboard_strategy_failed", strategy_id=strategy.id, error=str(e))
            reason = f"{type(e).__name__}: {e}"
        else:
            if result.total_trades < config.min_trades:
                reason = f"too few trades: {result.total_trades} < {config.min_trades}"
            elif config.min_win_rate and result.win_rate < config.min_win_rate:
                reason = f"win rate {result.win_rate:.1f}% below {config.min_win_rate:.1f}%"
            else:
                entries.append(build_leaderboard_entry(result, strategy, config))

        if reason is not None:
            skipped.append(SkippedStrategy(strategy.id, strategy.name, reason))
        reporter.advance(strategy.name)

    score_and_rank_entries(entries, config.weights)
    reporter.finish()

    leaderboard = LeaderboardResult(
        entries=entries,
        config=config,
        executed_at_ms=int(time.time() * 1000),
        total_strategies=len(strategies),
        filtered_out=len(skipped),
        execution_time_ms=int((time.monotonic() - started) * 1000),
        skipped=skipped,
        cancelled=reporter.cancelled,
    )

    logger.info(
        "leaderboard_complete",
        total_strategies=leaderboard.total_strategies,
        ranked=len(entries),
        filtered_out=leaderboard.filtered_out,
        cancelled=leaderboard.cancelled,
        execution_time_ms=leaderboard.execution_time_ms,
    )
    return leaderboard


def _format_date(timestamp_ms: int | None) -> str:
    if timestamp_ms is None:
        return "N/A"
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def format_leaderboard_report(result: LeaderboardResult) -> str:
    """Format a ranked leaderboard as a console report.

    Entries above the payout's break-even win rate are marked [+], the
    rest [-].
    """
    config = result.config
    start_ms, end_ms = config.start_ms, config.end_ms
    if result.entries and start_ms is None:
        start_ms = result.entries[0].data_range[0]
    if result.entries and end_ms is None:
        end_ms = result.entries[0].data_range[1]

    lines: list[str] = [
        "=" * 64,
        "BACKTEST LEADERBOARD",
        "=" * 64,
        f"  Strategies: {result.total_strategies} total, {len(result.entries)} ranked, "
        f"{result.filtered_out} filtered" + (" (cancelled)" if result.cancelled else ""),
        f"  Data: {_format_date(start_ms)} ~ {_format_date(end_ms)}",
        f"  Payout: {config.payout:g}% | Bet: ${config.bet_amount:g} | Expiry: {config.expiry_seconds}s",
        f"  Volume Target: {config.volume_multiplier:g}x deposit",
        f"  Execution: {result.execution_time_ms}ms",
        "=" * 64,
        "",
    ]

    break_even = break_even_win_rate(config.payout)
    for entry in result.entries:
        marker = "+" if entry.win_rate >= break_even else "-"
        volume_days = (
            f"{entry.days_to_volume_target}d" if entry.days_to_volume_target is not None else "N/A"
        )
        lines.extend(
            [
                f"#{entry.rank} [{marker}] {entry.strategy_name} [{entry.grade}]",
                f"   Score: {entry.composite_score:.1f} (abs: {entry.absolute_score:.1f}) | "
                f"WR: {entry.win_rate:.1f}% | PF: {entry.profit_factor:.2f} | "
                f"Net: ${entry.net_profit:.2f}",
                f"   MDD: {entry.max_drawdown_percent:.1f}% | "
                f"MaxLoss: {entry.max_consecutive_losses}x | "
                f"Trades/Day: {entry.trades_per_day:.1f}",
                f"   Daily Vol: ${entry.daily_volume:.0f} | Vol Target: {volume_days} | "
                f"Kelly: {entry.kelly_fraction:.1f}%",
                f"   Min Balance: ${entry.min_required_balance:.0f} | "
                f"Stability: +/-{entry.win_rate_std_dev:.1f}%",
                "-" * 64,
            ]
        )

    if result.skipped:
        lines.append("Filtered:")
        for skip in result.skipped:
            lines.append(f"  {skip.strategy_name}: {skip.reason}")

    return "\n".join(lines)
