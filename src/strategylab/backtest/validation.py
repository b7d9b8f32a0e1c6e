"""Chronological train/validation split and overfitting checks.

Parameters tuned on the train slice are re-run on the later validation
slice; a large gap between the two summaries suggests the tuning fitted
noise. Candles are never shuffled, so the validation slice is always
strictly later than the train slice.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from strategylab.analytics.metrics import calculate_trade_statistics
from strategylab.backtest.engine import LOOKBACK
from strategylab.backtest.models import BacktestResult, BacktestTrade
from strategylab.candles.models import Candle
from strategylab.exceptions import InsufficientData
from strategylab.scoring import Grade, ScoreInput, calculate_score

# Profit factors above this are treated as equal when comparing slices
PROFIT_FACTOR_CAP = 10.0


@dataclass
class TrainValSplit:
    train: list[Candle]
    validation: list[Candle]
    train_ratio: float
    split_timestamp_ms: int

    @property
    def train_period(self) -> tuple[int, int]:
        return self.train[0].timestamp_ms, self.train[-1].timestamp_ms

    @property
    def validation_period(self) -> tuple[int, int]:
        return self.validation[0].timestamp_ms, self.validation[-1].timestamp_ms


@dataclass
class PerformanceSummary:
    """Headline metrics of one run, with its absolute score and grade."""

    total_trades: int
    wins: int
    losses: int
    ties: int
    win_rate: float
    net_profit: float
    net_profit_percent: float
    profit_factor: float
    expectancy: float
    max_drawdown: float
    max_drawdown_percent: float
    max_consecutive_losses: int
    sharpe_ratio: float
    score: float
    grade: Grade


def split_train_val(candles: Sequence[Candle], train_ratio: float = 0.7) -> TrainValSplit:
    """Split candles chronologically into train and validation slices.

    Each slice keeps at least 50 candles; the split index is clamped to
    honour that when train_ratio would leave one side too short.

    Args:
        candles: Candles in any order.
        train_ratio: Fraction of candles for training, strictly in (0, 1).

    Returns:
        TrainValSplit.

    Raises:
        ValueError: If train_ratio is outside (0, 1).
        InsufficientData: If there are fewer than 100 candles.
    """
    if not 0 < train_ratio < 1:
        raise ValueError(f"train_ratio must be between 0 and 1 (exclusive), got {train_ratio}")

    required = LOOKBACK * 2
    if len(candles) < required:
        raise InsufficientData(
            f"Not enough candles: {len(candles)} (need at least {required} for train/val split)",
            available=len(candles),
            required=required,
        )

    ordered = sorted(candles, key=lambda c: c.timestamp_ms)
    split_index = int(math.floor(len(ordered) * train_ratio))
    split_index = max(LOOKBACK, min(split_index, len(ordered) - LOOKBACK))

    train = ordered[:split_index]
    return TrainValSplit(
        train=train,
        validation=ordered[split_index:],
        train_ratio=train_ratio,
        split_timestamp_ms=train[-1].timestamp_ms,
    )


def _losing_streak(trades: list[BacktestTrade]) -> int:
    """Longest run of LOSS results; a TIE ends the run like a WIN."""
    longest = current = 0
    for trade in trades:
        if trade.result == "LOSS":
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def extract_performance_summary(result: BacktestResult, payout: float) -> PerformanceSummary:
    """Summarise a run and grade it with the default scoring profile.

    Unlike the leaderboard statistics, the losing streak here is broken by
    ties.
    """
    stats = calculate_trade_statistics(result.trades, result.initial_balance)
    losing_streak = _losing_streak(result.trades)
    scored = calculate_score(
        ScoreInput(
            wins=result.wins,
            losses=result.losses,
            ties=result.ties,
            payout_percent=payout,
            total_trades=result.total_trades,
            max_drawdown_percent=result.max_drawdown_percent,
            max_losing_streak=losing_streak,
            profit_factor=result.profit_factor,
        )
    )
    return PerformanceSummary(
        total_trades=result.total_trades,
        wins=result.wins,
        losses=result.losses,
        ties=result.ties,
        win_rate=result.win_rate,
        net_profit=result.net_profit,
        net_profit_percent=result.net_profit_percent,
        profit_factor=result.profit_factor,
        expectancy=result.expectancy,
        max_drawdown=result.max_drawdown,
        max_drawdown_percent=result.max_drawdown_percent,
        max_consecutive_losses=losing_streak,
        sharpe_ratio=stats.sharpe_ratio,
        score=scored.score,
        grade=scored.grade,
    )


def calculate_overfit_score(train: PerformanceSummary, validation: PerformanceSummary) -> float:
    """Score how much validation degrades from train, 0 (none) to 1 (severe).

    Components:
      - win-rate gap, 10 points = 1.0 (weight 0.4)
      - relative profit-factor decay (weight 0.3)
      - drawdown growth, 30 points = 1.0 (weight 0.3); a validation
        drawdown where train had none counts 0.5
    """
    win_rate_gap = abs(train.win_rate - validation.win_rate) / 10

    train_pf = min(train.profit_factor, PROFIT_FACTOR_CAP)
    val_pf = min(validation.profit_factor, PROFIT_FACTOR_CAP)
    pf_decay = max(0.0, (train_pf - val_pf) / train_pf) if train_pf > 0 else 0.0

    if train.max_drawdown_percent > 0:
        mdd_growth = max(0.0, (validation.max_drawdown_percent - train.max_drawdown_percent) / 30)
    elif validation.max_drawdown_percent > 0:
        mdd_growth = 0.5
    else:
        mdd_growth = 0.0

    return min(1.0, win_rate_gap * 0.4 + pf_decay * 0.3 + mdd_growth * 0.3)
