"""Core backtest engine: sequential binary-option trade simulation.

Walks a cleaned candle series once, asking the strategy for a signal on every
candle prefix that is not covered by an open position. Each signal becomes at
most one trade settled at a fixed expiry; the walk then resumes after the
exit candle, so positions never overlap.

No look-ahead: the strategy only sees candles[0..i] when deciding at i.
Each run owns its working copy of the candles; nothing is shared between
runs except the read-only StrategyRegistry.
"""

import time
from bisect import bisect_left
from collections.abc import Sequence

from strategylab.backtest.models import (
    BacktestConfig,
    BacktestResult,
    BacktestTrade,
    DataQuality,
    EquityPoint,
    TradeResult,
)
from strategylab.backtest.strategy import Direction, StrategyRegistry
from strategylab.candles.models import Candle, PreprocessOptions
from strategylab.candles.preprocess import preprocess_candles
from strategylab.exceptions import InsufficientData
from strategylab.logging import get_logger

logger = get_logger(__name__)

# Candles a strategy needs before the first signal, and the minimum usable
# series length at every stage of a run.
LOOKBACK = 50


def determine_result(direction: Direction, entry_price: float, exit_price: float) -> TradeResult:
    """Settle a binary option: TIE on an unchanged price, else WIN if price moved our way."""
    if entry_price == exit_price:
        return "TIE"
    if direction == "CALL":
        return "WIN" if exit_price > entry_price else "LOSS"
    return "WIN" if exit_price < entry_price else "LOSS"


def calculate_profit(result: TradeResult, bet_amount: float, payout: float) -> float:
    """Profit of one settled trade; payout is a percent (92 = 92%)."""
    if result == "WIN":
        return bet_amount * (payout / 100)
    if result == "LOSS":
        return -bet_amount
    return 0.0


class BacktestEngine:
    """Runs single backtests against strategies resolved from a registry.

    Args:
        registry: Strategies available to configs by id. Read-only during runs.
    """

    def __init__(self, registry: StrategyRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    def run(self, config: BacktestConfig, candles: Sequence[Candle]) -> BacktestResult:
        """Simulate config's strategy over candles.

        Args:
            config: Run parameters, including strategy id and params.
            candles: Raw candles in any order. Never mutated.

        Returns:
            BacktestResult with trades, equity curve, aggregates and the
            preprocessing data-quality report.

        Raises:
            StrategyNotFound: If config.strategy_id is not registered.
            InsufficientData: If fewer than 50 candles are available in the
                raw input, after preprocessing, or after time filtering.
        """
        started = time.monotonic()
        strategy = self._registry.get(config.strategy_id)

        if len(candles) < LOOKBACK:
            raise InsufficientData(
                f"Not enough candles for backtest (got {len(candles)}, minimum {LOOKBACK})",
                available=len(candles),
                required=LOOKBACK,
            )

        preprocessed = preprocess_candles(
            candles,
            PreprocessOptions(
                gap_strategy=config.gap_strategy,
                expected_interval_ms=config.expected_interval_ms,
                max_gap_candles=config.max_gap_candles,
            ),
        )
        for warning in preprocessed.warnings:
            logger.warning(
                "preprocess_warning",
                strategy_id=config.strategy_id,
                symbol=config.symbol,
                warning=warning,
            )

        cleaned = preprocessed.candles
        analysis = preprocessed.analysis
        if len(cleaned) < LOOKBACK:
            raise InsufficientData(
                f"Not enough valid candles for backtest after preprocessing "
                f"(got {len(cleaned)}, minimum {LOOKBACK}). Original: {len(candles)}, "
                f"Gaps: {analysis.gap_count}, Coverage: {analysis.coverage_percent:.1f}%",
                available=len(cleaned),
                required=LOOKBACK,
            )

        window = [
            c
            for c in cleaned
            if (config.start_ms is None or c.timestamp_ms >= config.start_ms)
            and (config.end_ms is None or c.timestamp_ms <= config.end_ms)
        ]
        if len(window) < LOOKBACK:
            raise InsufficientData(
                f"Not enough candles in the requested time window "
                f"(got {len(window)}, minimum {LOOKBACK})",
                available=len(window),
                required=LOOKBACK,
            )

        params = {**strategy.default_params(), **config.strategy_params}
        start_ms = config.start_ms if config.start_ms is not None else window[0].timestamp_ms
        end_ms = config.end_ms if config.end_ms is not None else window[-1].timestamp_ms

        logger.debug(
            "backtest_starting",
            strategy_id=config.strategy_id,
            symbol=config.symbol,
            candles=len(window),
            params=params,
        )

        timestamps = [c.timestamp_ms for c in window]
        expiry_ms = config.expiry_seconds * 1000

        balance = config.initial_balance
        max_balance = balance
        max_drawdown = 0.0
        trades: list[BacktestTrade] = []
        equity_curve = [EquityPoint(timestamp_ms=start_ms, balance=balance)]

        i = LOOKBACK
        while i < len(window):
            current = window[i]
            signal = strategy.generate_signal(window[: i + 1], params)

            if signal is None or signal.direction is None:
                i += 1
                continue

            bet = config.bet_size(balance)
            if bet > balance:
                i += 1
                continue

            # Latency: entry happens on the first candle at or after the
            # delayed entry time; past the end of data, keep the signal candle.
            entry_time = current.timestamp_ms + config.latency_ms
            entry_candle = current
            if config.latency_ms > 0:
                entry_index = bisect_left(timestamps, entry_time, lo=i)
                if entry_index < len(window):
                    entry_candle = window[entry_index]

            expiry_time = entry_time + expiry_ms
            exit_index = bisect_left(timestamps, expiry_time)
            if exit_index >= len(window):
                i += 1
                continue

            exit_candle = window[exit_index]
            # Exit far past expiry means a data gap; drop rather than misprice
            if exit_candle.timestamp_ms - expiry_time > 2 * expiry_ms:
                i += 1
                continue

            direction = signal.direction
            offset = config.slippage if direction == "CALL" else -config.slippage
            entry_price = entry_candle.close + offset

            result = determine_result(direction, entry_price, exit_candle.close)
            profit = calculate_profit(result, bet, config.payout)
            balance += profit

            trades.append(
                BacktestTrade(
                    entry_time_ms=entry_time,
                    entry_price=entry_price,
                    exit_time_ms=exit_candle.timestamp_ms,
                    exit_price=exit_candle.close,
                    direction=direction,
                    result=result,
                    payout=config.payout,
                    bet_amount=bet,
                    profit=profit,
                    indicators=dict(signal.indicators),
                )
            )
            equity_curve.append(EquityPoint(timestamp_ms=exit_candle.timestamp_ms, balance=balance))

            max_balance = max(max_balance, balance)
            max_drawdown = max(max_drawdown, max_balance - balance)

            # Resume after the exit candle: positions never overlap
            i = max(exit_index, i) + 1

        result = self._build_result(
            config=config,
            trades=trades,
            equity_curve=equity_curve,
            balance=balance,
            max_balance=max_balance,
            max_drawdown=max_drawdown,
            start_ms=start_ms,
            end_ms=end_ms,
            duration_ms=int((time.monotonic() - started) * 1000),
            data_quality=DataQuality(
                total_candles=analysis.total_candles,
                detected_interval_ms=analysis.detected_interval_ms,
                gap_count=analysis.gap_count,
                total_missing_candles=analysis.total_missing_candles,
                coverage_percent=analysis.coverage_percent,
                duplicates_removed=analysis.duplicates_removed,
                invalid_removed=analysis.invalid_removed,
                gap_strategy=config.gap_strategy,
                warnings=list(preprocessed.warnings),
            ),
        )

        logger.info(
            "backtest_complete",
            strategy_id=config.strategy_id,
            symbol=config.symbol,
            total_trades=result.total_trades,
            win_rate=round(result.win_rate, 2),
            net_profit=round(result.net_profit, 2),
        )
        return result

    @staticmethod
    def _build_result(
        config: BacktestConfig,
        trades: list[BacktestTrade],
        equity_curve: list[EquityPoint],
        balance: float,
        max_balance: float,
        max_drawdown: float,
        start_ms: int,
        end_ms: int,
        duration_ms: int,
        data_quality: DataQuality,
    ) -> BacktestResult:
        """Aggregate trades into a BacktestResult.

        Division-by-zero cases resolve to 0, except profit factor which is
        float("inf") when there is gross profit and no gross loss.
        """
        wins = sum(1 for t in trades if t.result == "WIN")
        losses = sum(1 for t in trades if t.result == "LOSS")
        ties = sum(1 for t in trades if t.result == "TIE")
        total = len(trades)

        gross_profit = sum(t.profit for t in trades if t.profit > 0)
        gross_loss = abs(sum(t.profit for t in trades if t.profit < 0))

        if gross_loss > 0:
            profit_factor = gross_profit / gross_loss
        elif gross_profit > 0:
            profit_factor = float("inf")
        else:
            profit_factor = 0.0

        net_profit = balance - config.initial_balance

        return BacktestResult(
            config=config,
            total_trades=total,
            wins=wins,
            losses=losses,
            ties=ties,
            win_rate=wins / total * 100 if total > 0 else 0.0,
            initial_balance=config.initial_balance,
            final_balance=balance,
            net_profit=net_profit,
            net_profit_percent=(
                net_profit / config.initial_balance * 100 if config.initial_balance else 0.0
            ),
            max_drawdown=max_drawdown,
            max_drawdown_percent=max_drawdown / max_balance * 100 if max_balance > 0 else 0.0,
            profit_factor=profit_factor,
            expectancy=net_profit / total if total > 0 else 0.0,
            start_ms=start_ms,
            end_ms=end_ms,
            duration_ms=duration_ms,
            data_quality=data_quality,
            trades=trades,
            equity_curve=equity_curve,
        )
