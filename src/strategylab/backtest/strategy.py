"""Strategy contract and registry.

A strategy is a pure signal function over a candle prefix. The engine never
looks inside one: it resolves the strategy by id through a StrategyRegistry
that the caller constructs and passes around explicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar, Literal

from strategylab.candles.models import Candle
from strategylab.exceptions import StrategyNotFound
from strategylab.logging import get_logger

logger = get_logger(__name__)

Direction = Literal["CALL", "PUT"]


@dataclass(frozen=True)
class StrategySignal:
    """Output of one strategy evaluation.

    Attributes:
        direction: "CALL", "PUT", or None for "evaluated, no trade".
        confidence: Signal confidence in [0, 1].
        indicators: Indicator snapshot, copied onto the trade at entry.
        reason: Optional human-readable explanation.
    """

    direction: Direction | None
    confidence: float = 0.0
    indicators: dict[str, float] = field(default_factory=dict)
    reason: str | None = None


@dataclass(frozen=True)
class ParamSpec:
    """Declared tunable parameter of a strategy: default value and search bounds."""

    default: float
    min: float
    max: float
    step: float


class Strategy(ABC):
    """Abstract signal generator evaluated by the backtest engine.

    Subclasses set id, name, description and params as class attributes and
    implement generate_signal. generate_signal returns None when the candle
    prefix is too short to evaluate, which is different from a signal whose
    direction is None.
    """

    id: str = ""
    name: str = ""
    description: str = ""
    params: ClassVar[Mapping[str, ParamSpec]] = MappingProxyType({})

    @abstractmethod
    def generate_signal(
        self, candles: Sequence[Candle], params: dict[str, float]
    ) -> StrategySignal | None:
        """Evaluate the strategy on a candle prefix.

        Args:
            candles: Historical candles, oldest first; the last one is the
                candle the signal is generated on.
            params: Effective parameter values.

        Returns:
            StrategySignal, or None if there is not enough data.
        """
        ...

    def default_params(self) -> dict[str, float]:
        """Return each declared parameter at its default value."""
        return {key: spec.default for key, spec in self.params.items()}


class StrategyRegistry:
    """Explicit id -> Strategy map, iterated in registration order.

    Registering a second strategy under an existing id replaces the first
    but keeps its original position.
    """

    def __init__(self, strategies: Sequence[Strategy] = ()) -> None:
        self._strategies: dict[str, Strategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: Strategy) -> None:
        if not strategy.id:
            raise ValueError("Strategy must declare a non-empty id")
        self._strategies[strategy.id] = strategy
        logger.debug("strategy_registered", strategy_id=strategy.id, name=strategy.name)

    def get(self, strategy_id: str) -> Strategy:
        """Resolve a strategy by id.

        Raises:
            StrategyNotFound: If no strategy is registered under strategy_id.
        """
        try:
            return self._strategies[strategy_id]
        except KeyError:
            raise StrategyNotFound(strategy_id) from None

    def get_strategies(self) -> list[Strategy]:
        return list(self._strategies.values())

    def __contains__(self, strategy_id: object) -> bool:
        return strategy_id in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    def __iter__(self) -> Iterator[Strategy]:
        return iter(list(self._strategies.values()))
