"""Trade-level performance statistics.

Pure float analytics over a list of BacktestTrade: profit breakdown,
streaks, drawdown, risk-adjusted ratios and time-bucketed stability
measures. Used by the leaderboard to enrich each entry and by the
train/validation split to summarise a run.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from strategylab.backtest.models import BacktestTrade

# Per-trade returns are annualized as if trading 24 sessions on 250 days.
PERIODS_PER_YEAR = 250 * 24
DEFAULT_RISK_FREE_RATE = 0.02


@dataclass
class TradeStatistics:
    """Aggregate statistics computed from a list of BacktestTrade.

    Rates are percentages. Every field is 0 for an empty trade list.
    profit_factor and recovery_factor are float("inf") when there is
    profit and nothing to divide it by.
    """

    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    win_rate: float = 0.0
    loss_rate: float = 0.0

    gross_profit: float = 0.0
    gross_loss: float = 0.0
    net_profit: float = 0.0
    net_profit_percent: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0

    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    recovery_factor: float = 0.0

    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0

    call_trades: int = 0
    put_trades: int = 0
    call_win_rate: float = 0.0
    put_win_rate: float = 0.0
    call_profit: float = 0.0
    put_profit: float = 0.0


def _population_std_dev(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def _downside_std_dev(values: list[float]) -> float:
    negatives = [v for v in values if v < 0]
    if len(negatives) < 2:
        return 0.0
    return _population_std_dev(negatives)


def _utc(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def consecutive_streaks(trades: list[BacktestTrade]) -> tuple[int, int]:
    """Return (max consecutive wins, max consecutive losses).

    Ties neither extend nor break a streak.
    """
    max_wins = max_losses = 0
    current_kind: str | None = None
    current_len = 0

    for trade in trades:
        if trade.result == "TIE":
            continue
        if trade.result == current_kind:
            current_len += 1
        else:
            current_kind = trade.result
            current_len = 1
        if current_kind == "WIN":
            max_wins = max(max_wins, current_len)
        else:
            max_losses = max(max_losses, current_len)

    return max_wins, max_losses


def max_consecutive_losses(trades: list[BacktestTrade]) -> int:
    """Longest run of LOSS results, skipping over ties."""
    return consecutive_streaks(trades)[1]


def drawdown(trades: list[BacktestTrade], initial_balance: float) -> tuple[float, float]:
    """Compute max peak-to-trough drawdown of the running balance.

    Args:
        trades: Trades in execution order.
        initial_balance: Balance before the first trade.

    Returns:
        (max drawdown amount, that drawdown as a percent of its peak).
    """
    balance = initial_balance
    peak = initial_balance
    max_dd = 0.0
    max_dd_percent = 0.0

    for trade in trades:
        balance += trade.profit
        if balance > peak:
            peak = balance
        dd = peak - balance
        if dd > max_dd:
            max_dd = dd
            max_dd_percent = dd / peak * 100 if peak > 0 else 0.0

    return max_dd, max_dd_percent


def trading_days(trades: list[BacktestTrade]) -> int:
    """Number of distinct UTC calendar dates with at least one entry; minimum 1."""
    dates = {_utc(t.entry_time_ms).date() for t in trades}
    return max(len(dates), 1)


def weekly_win_rate_std_dev(
    trades: list[BacktestTrade], min_trades_per_week: int = 5
) -> float:
    """Population std-dev of weekly win rates, a consistency measure.

    Trades are bucketed by ISO week of their UTC entry time. Only weeks with
    at least min_trades_per_week trades count.

    Args:
        trades: Trades of one run.
        min_trades_per_week: Minimum trades for a week to be included.

    Returns:
        Std-dev in percentage points, or 0.0 if fewer than two weeks qualify.
    """
    weeks: dict[tuple[int, int], list[int]] = defaultdict(lambda: [0, 0])
    for trade in trades:
        iso = _utc(trade.entry_time_ms).isocalendar()
        bucket = weeks[(iso[0], iso[1])]
        bucket[1] += 1
        if trade.result == "WIN":
            bucket[0] += 1

    rates = [
        wins / total * 100
        for wins, total in weeks.values()
        if total >= min_trades_per_week
    ]
    if len(rates) < 2:
        return 0.0
    return _population_std_dev(rates)


def calculate_trade_statistics(
    trades: list[BacktestTrade],
    initial_balance: float,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> TradeStatistics:
    """Compute comprehensive statistics for one run's trades.

    Sharpe and Sortino use per-trade returns (profit / initial_balance),
    annualized by sqrt(250 * 24), with risk_free_rate spread evenly over
    the same number of periods.

    Args:
        trades: Trades in execution order.
        initial_balance: Starting balance of the run.
        risk_free_rate: Annual risk-free rate (default 2%).

    Returns:
        TradeStatistics; all zeros for an empty list.
    """
    if not trades:
        return TradeStatistics()

    wins = [t for t in trades if t.result == "WIN"]
    losses = [t for t in trades if t.result == "LOSS"]
    total = len(trades)

    gross_profit = sum(t.profit for t in wins)
    gross_loss = abs(sum(t.profit for t in losses))
    net_profit = gross_profit - gross_loss

    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    else:
        profit_factor = math.inf if gross_profit > 0 else 0.0

    max_dd, max_dd_percent = drawdown(trades, initial_balance)
    if max_dd > 0:
        recovery_factor = net_profit / max_dd
    else:
        recovery_factor = math.inf if net_profit > 0 else 0.0

    max_wins, max_losses = consecutive_streaks(trades)

    net_profit_percent = net_profit / initial_balance * 100 if initial_balance else 0.0
    returns = [t.profit / initial_balance for t in trades] if initial_balance else [0.0] * total
    avg_return = sum(returns) / total
    excess = avg_return - risk_free_rate / PERIODS_PER_YEAR
    annualization = math.sqrt(PERIODS_PER_YEAR)
    std_dev = _population_std_dev(returns)
    downside = _downside_std_dev(returns)

    calls = [t for t in trades if t.direction == "CALL"]
    puts = [t for t in trades if t.direction == "PUT"]
    call_wins = sum(1 for t in calls if t.result == "WIN")
    put_wins = sum(1 for t in puts if t.result == "WIN")

    return TradeStatistics(
        total_trades=total,
        wins=len(wins),
        losses=len(losses),
        ties=total - len(wins) - len(losses),
        win_rate=len(wins) / total * 100,
        loss_rate=len(losses) / total * 100,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        net_profit=net_profit,
        net_profit_percent=net_profit_percent,
        profit_factor=profit_factor,
        expectancy=net_profit / total,
        average_win=gross_profit / len(wins) if wins else 0.0,
        average_loss=gross_loss / len(losses) if losses else 0.0,
        largest_win=max((t.profit for t in wins), default=0.0),
        largest_loss=max((abs(t.profit) for t in losses), default=0.0),
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd_percent,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        recovery_factor=recovery_factor,
        sharpe_ratio=excess / std_dev * annualization if std_dev else 0.0,
        sortino_ratio=excess / downside * annualization if downside else 0.0,
        calmar_ratio=net_profit_percent / max_dd_percent if max_dd_percent else 0.0,
        call_trades=len(calls),
        put_trades=len(puts),
        call_win_rate=call_wins / len(calls) * 100 if calls else 0.0,
        put_win_rate=put_wins / len(puts) * 100 if puts else 0.0,
        call_profit=sum(t.profit for t in calls),
        put_profit=sum(t.profit for t in puts),
    )
