"""Data models for the strategy leaderboard."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING

from strategylab.backtest.models import BacktestConfig, BetType
from strategylab.candles.models import GapStrategy
from strategylab.exceptions import InvalidWeights
from strategylab.progress import ProgressEvent
from strategylab.scoring import Grade, ScoreWeights

if TYPE_CHECKING:
    from strategylab.config import BacktestSettings, LeaderboardSettings

# Leaderboard progress is reported with the shared progress event type
LeaderboardProgress = ProgressEvent


@dataclass(frozen=True)
class LeaderboardWeights:
    """Weights of the six cross-normalized metrics. Must sum to 1.0.

    These drive the relative composite score. The absolute 0-100 grade uses
    scoring.ScoreWeights instead.
    """

    win_rate: float = 0.30
    profit_factor: float = 0.20
    max_drawdown: float = 0.15
    max_consecutive_losses: float = 0.10
    trades_per_day: float = 0.10
    recovery_factor: float = 0.15

    def __post_init__(self) -> None:
        total = sum(getattr(self, f.name) for f in fields(self))
        if abs(total - 1.0) > 1e-6:
            raise InvalidWeights(f"Leaderboard weights must sum to 1.0, got {total:.6f}")


@dataclass(frozen=True)
class LeaderboardConfig:
    """Shared backtest settings and filters for one leaderboard batch."""

    symbol: str = ""
    start_ms: int | None = None
    end_ms: int | None = None
    initial_balance: float = 10000.0
    bet_amount: float = 100.0
    bet_type: BetType = "fixed"
    payout: float = 92.0
    expiry_seconds: int = 60
    gap_strategy: GapStrategy = "skip"
    max_gap_candles: int = 10

    volume_multiplier: float = 100.0  # volume target = initial_balance * multiplier
    weights: LeaderboardWeights = field(default_factory=LeaderboardWeights)
    score_weights: ScoreWeights | None = None  # absolute grade; default profile when None

    min_trades: int = 30
    min_win_rate: float = 0.0

    @classmethod
    def from_settings(
        cls,
        backtest: BacktestSettings,
        leaderboard: LeaderboardSettings,
        **overrides: object,
    ) -> LeaderboardConfig:
        values: dict[str, object] = {
            "initial_balance": backtest.initial_balance,
            "bet_amount": backtest.bet_amount,
            "bet_type": backtest.bet_type,
            "payout": backtest.payout,
            "expiry_seconds": backtest.expiry_seconds,
            "gap_strategy": backtest.gap_strategy,
            "max_gap_candles": backtest.max_gap_candles,
            "volume_multiplier": leaderboard.volume_multiplier,
            "min_trades": leaderboard.min_trades,
            "min_win_rate": leaderboard.min_win_rate,
        }
        values.update(overrides)
        return cls(**values)

    def backtest_config(self, strategy_id: str, params: dict[str, float]) -> BacktestConfig:
        """Per-strategy run config sharing this batch's trading settings."""
        return BacktestConfig(
            strategy_id=strategy_id,
            symbol=self.symbol,
            start_ms=self.start_ms,
            end_ms=self.end_ms,
            initial_balance=self.initial_balance,
            bet_amount=self.bet_amount,
            bet_type=self.bet_type,
            payout=self.payout,
            expiry_seconds=self.expiry_seconds,
            strategy_params=dict(params),
            gap_strategy=self.gap_strategy,
            max_gap_candles=self.max_gap_candles,
        )


@dataclass
class LeaderboardEntry:
    """One strategy's leaderboard row.

    composite_score and rank are relative and only meaningful after
    score_and_rank_entries has run over the whole batch. absolute_score and
    grade are independent of other entries.
    """

    strategy_id: str
    strategy_name: str
    params: dict[str, float]

    # Basic statistics
    total_trades: int
    wins: int
    losses: int
    ties: int
    win_rate: float
    net_profit: float
    net_profit_percent: float
    profit_factor: float
    expectancy: float

    # Risk
    max_drawdown: float
    max_drawdown_percent: float
    max_consecutive_losses: int
    max_consecutive_wins: int
    recovery_factor: float
    sharpe_ratio: float
    sortino_ratio: float

    # Volume
    trading_days: int
    trades_per_day: float
    daily_volume: float
    total_volume: float
    days_to_volume_target: int | None

    # Stability and sizing
    win_rate_std_dev: float
    kelly_fraction: float  # percent of balance
    min_required_balance: float

    absolute_score: float
    grade: Grade

    # Run metadata
    data_range: tuple[int, int]
    candle_count: int
    bet_amount: float
    payout: float
    expiry_seconds: int

    composite_score: float = 0.0
    rank: int = 0


@dataclass
class SkippedStrategy:
    """A strategy that did not make the leaderboard, and why."""

    strategy_id: str
    strategy_name: str
    reason: str


@dataclass
class LeaderboardResult:
    """Outcome of one leaderboard batch.

    filtered_out counts every strategy excluded by a filter or a failed run;
    skipped holds the per-strategy reasons.
    """

    entries: list[LeaderboardEntry]
    config: LeaderboardConfig
    executed_at_ms: int
    total_strategies: int
    filtered_out: int
    execution_time_ms: int
    skipped: list[SkippedStrategy] = field(default_factory=list)
    cancelled: bool = False
