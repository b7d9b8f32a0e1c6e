"""Tests for the Strategy contract and StrategyRegistry."""

import pytest

from strategylab.backtest.strategy import ParamSpec, Strategy, StrategyRegistry, StrategySignal
from strategylab.exceptions import StrategyNotFound


class _NamedStrategy(Strategy):
    def __init__(self, strategy_id: str, name: str = "") -> None:
        self.id = strategy_id
        self.name = name or strategy_id

    def generate_signal(self, candles, params):
        return None


class _ParamStrategy(Strategy):
    id = "with_params"
    name = "With Params"
    params = {
        "rsi_period": ParamSpec(default=14, min=5, max=30, step=1),
        "threshold": ParamSpec(default=70.0, min=60.0, max=90.0, step=5.0),
    }

    def generate_signal(self, candles, params):
        return StrategySignal(direction="PUT", confidence=0.8, reason="overbought")


class TestStrategy:
    """Tests for the abstract Strategy base."""

    def test_default_params(self) -> None:
        assert _ParamStrategy().default_params() == {"rsi_period": 14, "threshold": 70.0}

    def test_no_params(self) -> None:
        assert _NamedStrategy("x").default_params() == {}

    def test_inherited_params_are_read_only(self) -> None:
        """A subclass without its own params cannot add to a shared default."""
        strategy = _NamedStrategy("x")

        with pytest.raises(TypeError):
            strategy.params["leaked"] = ParamSpec(default=1, min=0, max=2, step=1)  # type: ignore[index]

        assert _NamedStrategy("y").default_params() == {}
        assert Strategy.params == {}

    def test_cannot_instantiate_abstract(self) -> None:
        with pytest.raises(TypeError):
            Strategy()  # type: ignore[abstract]

    def test_signal_defaults(self) -> None:
        signal = StrategySignal(direction=None)
        assert signal.confidence == 0.0
        assert signal.indicators == {}
        assert signal.reason is None


class TestStrategyRegistry:
    """Tests for registration and lookup."""

    def test_register_and_get(self) -> None:
        registry = StrategyRegistry()
        strategy = _NamedStrategy("rsi")
        registry.register(strategy)

        assert registry.get("rsi") is strategy
        assert "rsi" in registry
        assert len(registry) == 1

    def test_registration_order(self) -> None:
        registry = StrategyRegistry([_NamedStrategy("b"), _NamedStrategy("a"), _NamedStrategy("c")])

        assert [s.id for s in registry.get_strategies()] == ["b", "a", "c"]
        assert [s.id for s in registry] == ["b", "a", "c"]

    def test_reregister_replaces_in_place(self) -> None:
        registry = StrategyRegistry([_NamedStrategy("a"), _NamedStrategy("b")])
        replacement = _NamedStrategy("a", name="A v2")
        registry.register(replacement)

        assert len(registry) == 2
        assert registry.get_strategies()[0] is replacement

    def test_unknown_id_raises(self) -> None:
        registry = StrategyRegistry()
        with pytest.raises(StrategyNotFound, match="Strategy not found: macd"):
            registry.get("macd")

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            StrategyRegistry().register(_NamedStrategy(""))

    def test_registries_are_independent(self) -> None:
        first = StrategyRegistry([_NamedStrategy("a")])
        second = StrategyRegistry()
        assert "a" in first
        assert "a" not in second
