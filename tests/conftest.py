"""Shared test fixtures for strategylab: synthetic candles and stub strategies."""

from collections.abc import Callable, Sequence

import pytest

from strategylab.backtest.engine import BacktestEngine
from strategylab.backtest.strategy import ParamSpec, Strategy, StrategyRegistry, StrategySignal
from strategylab.candles.models import Candle

# 2023-11-14 22:13:20 UTC (a Tuesday); 100 one-minute candles stay on one date
BASE_TS = 1_700_000_000_000
MINUTE_MS = 60_000


def build_candles(
    closes: Sequence[float],
    start_ms: int = BASE_TS,
    interval_ms: int = MINUTE_MS,
) -> list[Candle]:
    """Build valid candles whose open is the previous close."""
    candles: list[Candle] = []
    prev = closes[0]
    for i, close in enumerate(closes):
        open_ = prev
        candles.append(
            Candle(
                timestamp_ms=start_ms + i * interval_ms,
                open=open_,
                high=max(open_, close) + 0.5,
                low=min(open_, close) - 0.5,
                close=close,
                volume=10.0,
            )
        )
        prev = close
    return candles


def rising_closes(n: int, start: float = 100.0, step: float = 0.1) -> list[float]:
    return [start + i * step for i in range(n)]


# ---------------------------------------------------------------------------
# Stub strategies
# ---------------------------------------------------------------------------


class AlwaysCallStrategy(Strategy):
    id = "always_call"
    name = "Always Call"
    description = "CALL on every candle"

    def generate_signal(self, candles, params):
        return StrategySignal(direction="CALL", confidence=1.0, indicators={"close": candles[-1].close})


class AlwaysPutStrategy(Strategy):
    id = "always_put"
    name = "Always Put"
    description = "PUT on every candle"

    def generate_signal(self, candles, params):
        return StrategySignal(direction="PUT", confidence=1.0)


class EveryNthStrategy(Strategy):
    """CALL whenever the prefix length is a multiple of `period`."""

    id = "every_nth"
    name = "Every Nth"
    description = "CALL every period candles"
    params = {
        "period": ParamSpec(default=2, min=1, max=4, step=1),
        "confidence": ParamSpec(default=0.5, min=0.1, max=0.9, step=0.1),
    }

    def generate_signal(self, candles, params):
        if len(candles) % int(params["period"]) == 0:
            return StrategySignal(direction="CALL", confidence=params["confidence"])
        return StrategySignal(direction=None)


class NeverTradeStrategy(Strategy):
    id = "never_trade"
    name = "Never Trade"
    description = "Evaluates but never signals"

    def generate_signal(self, candles, params):
        return StrategySignal(direction=None)


class FailingStrategy(Strategy):
    id = "failing"
    name = "Failing"
    description = "Raises on every evaluation"

    def generate_signal(self, candles, params):
        raise RuntimeError("indicator blew up")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def candle_factory() -> Callable[..., list[Candle]]:
    """Return build_candles(closes, start_ms=BASE_TS, interval_ms=MINUTE_MS)."""
    return build_candles


@pytest.fixture
def rising_candles() -> list[Candle]:
    """100 one-minute candles with strictly rising closes (CALL always wins)."""
    return build_candles(rising_closes(100))


@pytest.fixture
def flat_candles() -> list[Candle]:
    """100 one-minute candles with a constant close (every trade ties)."""
    return build_candles([100.0] * 100)


@pytest.fixture
def registry() -> StrategyRegistry:
    """Registry with all stub strategies, in a fixed order."""
    return StrategyRegistry(
        [
            AlwaysCallStrategy(),
            AlwaysPutStrategy(),
            EveryNthStrategy(),
            NeverTradeStrategy(),
            FailingStrategy(),
        ]
    )


@pytest.fixture
def engine(registry: StrategyRegistry) -> BacktestEngine:
    return BacktestEngine(registry)
