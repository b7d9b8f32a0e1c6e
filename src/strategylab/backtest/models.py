"""Data models for the backtest engine.

Defines the run configuration, per-trade detail (BacktestTrade), the
equity curve, the data-quality block copied from preprocessing and the
aggregate BacktestResult.

Prices and balances are floats. Profit factor may be float("inf") when a
run has gross profit and no losing trade.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Literal

from strategylab.backtest.strategy import Direction
from strategylab.candles.models import GapStrategy

if TYPE_CHECKING:
    from strategylab.config import BacktestSettings

TradeResult = Literal["WIN", "LOSS", "TIE"]
BetType = Literal["fixed", "percentage"]


@dataclass(frozen=True)
class BacktestConfig:
    """Configuration for a single backtest run.

    One instance per run; the engine never mutates it. start_ms / end_ms of
    None leave that side of the time window unbounded.
    """

    # Required fields
    strategy_id: str
    symbol: str = ""
    start_ms: int | None = None
    end_ms: int | None = None

    # Trading params
    initial_balance: float = 10000.0
    bet_amount: float = 100.0  # literal amount, or percent of balance
    bet_type: BetType = "fixed"
    payout: float = 92.0  # percent of bet returned on a win
    expiry_seconds: int = 60

    # Strategy params, overlaid on the strategy's declared defaults
    strategy_params: dict[str, float] = field(default_factory=dict)

    # Data handling
    gap_strategy: GapStrategy = "skip"
    max_gap_candles: int = 10
    expected_interval_ms: int = 0  # 0 = auto-detect

    # Execution realism
    slippage: float = 0.0  # absolute price offset against the trader
    latency_ms: int = 0

    @classmethod
    def from_settings(
        cls,
        strategy_id: str,
        settings: BacktestSettings | None = None,
        **overrides: object,
    ) -> BacktestConfig:
        """Build a config from BacktestSettings defaults.

        Args:
            strategy_id: Registered strategy to run.
            settings: Settings to read defaults from; loaded from the
                environment when None.
            **overrides: Fields that take precedence over the settings.

        Returns:
            New BacktestConfig.
        """
        if settings is None:
            from strategylab.config import BacktestSettings

            settings = BacktestSettings()

        base = cls(
            strategy_id=strategy_id,
            initial_balance=settings.initial_balance,
            bet_amount=settings.bet_amount,
            bet_type=settings.bet_type,
            payout=settings.payout,
            expiry_seconds=settings.expiry_seconds,
            gap_strategy=settings.gap_strategy,
            max_gap_candles=settings.max_gap_candles,
            slippage=settings.slippage,
            latency_ms=settings.latency_ms,
        )
        return base.with_overrides(**overrides) if overrides else base

    def with_overrides(self, **kwargs: object) -> BacktestConfig:
        """Return a new BacktestConfig with specified fields overridden.

        Args:
            **kwargs: Fields to override.

        Returns:
            New BacktestConfig with overridden values.
        """
        return replace(self, **kwargs)

    def bet_size(self, balance: float) -> float:
        """Stake for the next trade given the current balance."""
        if self.bet_type == "percentage":
            return balance * (self.bet_amount / 100)
        return self.bet_amount

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output.

        Returns:
            Dict with all fields; strategy_params copied.
        """
        return {
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "initial_balance": self.initial_balance,
            "bet_amount": self.bet_amount,
            "bet_type": self.bet_type,
            "payout": self.payout,
            "expiry_seconds": self.expiry_seconds,
            "strategy_params": dict(self.strategy_params),
            "gap_strategy": self.gap_strategy,
            "max_gap_candles": self.max_gap_candles,
            "expected_interval_ms": self.expected_interval_ms,
            "slippage": self.slippage,
            "latency_ms": self.latency_ms,
        }


@dataclass
class EquityPoint:
    """A single point on the equity curve during a backtest.

    Attributes:
        timestamp_ms: Timestamp in milliseconds.
        balance: Account balance after the trade settled at this time.
    """

    timestamp_ms: int
    balance: float


@dataclass(frozen=True)
class BacktestTrade:
    """One simulated binary-option position.

    Attributes:
        entry_time_ms: Signal time plus latency.
        entry_price: Entry candle close adjusted by slippage.
        exit_time_ms: Timestamp of the exit candle.
        exit_price: Exit candle close.
        direction: "CALL" or "PUT".
        result: "WIN", "LOSS" or "TIE".
        payout: Payout percent used for this trade.
        bet_amount: Stake.
        profit: bet * payout / 100 on a win, -bet on a loss, 0 on a tie.
        indicators: Strategy indicator snapshot at entry.
    """

    entry_time_ms: int
    entry_price: float
    exit_time_ms: int
    exit_price: float
    direction: Direction
    result: TradeResult
    payout: float
    bet_amount: float
    profit: float
    indicators: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "entry_time_ms": self.entry_time_ms,
            "entry_price": self.entry_price,
            "exit_time_ms": self.exit_time_ms,
            "exit_price": self.exit_price,
            "direction": self.direction,
            "result": self.result,
            "payout": self.payout,
            "bet_amount": self.bet_amount,
            "profit": self.profit,
            "indicators": dict(self.indicators),
        }


@dataclass
class DataQuality:
    """Preprocessing report attached to every BacktestResult."""

    total_candles: int
    detected_interval_ms: int
    gap_count: int
    total_missing_candles: int
    coverage_percent: float
    duplicates_removed: int
    invalid_removed: int
    gap_strategy: GapStrategy
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_candles": self.total_candles,
            "detected_interval_ms": self.detected_interval_ms,
            "gap_count": self.gap_count,
            "total_missing_candles": self.total_missing_candles,
            "coverage_percent": self.coverage_percent,
            "duplicates_removed": self.duplicates_removed,
            "invalid_removed": self.invalid_removed,
            "gap_strategy": self.gap_strategy,
            "warnings": list(self.warnings),
        }


@dataclass
class BacktestResult:
    """Complete result of a single backtest run.

    win_rate counts ties in the denominator (wins / total_trades * 100).
    Scoring recomputes its own win rate with ties excluded.
    """

    config: BacktestConfig
    total_trades: int
    wins: int
    losses: int
    ties: int
    win_rate: float
    initial_balance: float
    final_balance: float
    net_profit: float
    net_profit_percent: float
    max_drawdown: float
    max_drawdown_percent: float
    profit_factor: float
    expectancy: float
    start_ms: int
    end_ms: int
    duration_ms: int
    data_quality: DataQuality
    trades: list[BacktestTrade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output.

        Returns:
            Dict with config, aggregate metrics, data_quality, trades,
            and equity_curve.
        """
        return {
            "config": self.config.to_dict(),
            "total_trades": self.total_trades,
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "win_rate": self.win_rate,
            "initial_balance": self.initial_balance,
            "final_balance": self.final_balance,
            "net_profit": self.net_profit,
            "net_profit_percent": self.net_profit_percent,
            "max_drawdown": self.max_drawdown,
            "max_drawdown_percent": self.max_drawdown_percent,
            "profit_factor": self.profit_factor,
            "expectancy": self.expectancy,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "duration_ms": self.duration_ms,
            "data_quality": self.data_quality.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "equity_curve": [
                {"timestamp_ms": ep.timestamp_ms, "balance": ep.balance}
                for ep in self.equity_curve
            ],
        }
