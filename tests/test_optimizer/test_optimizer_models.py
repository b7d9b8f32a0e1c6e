"""Tests for ParamRange, search options and report helpers."""

import random

import pytest

from strategylab.config import OptimizerSettings
from strategylab.exceptions import InvalidParamRange
from strategylab.optimizer.models import (
    BayesianOptions,
    GeneticOptions,
    GridOptions,
    OptimizationReport,
    ParamRange,
)
from strategylab.optimizer.sweep import generate_param_combinations
from strategylab.optimizer.trials import format_params, normalize_params, random_params


class TestParamRange:
    """Tests for range validation and enumeration."""

    def test_values_inclusive(self) -> None:
        assert ParamRange(25, 35, 5).values() == [25, 30, 35]

    def test_float_steps_hit_max(self) -> None:
        assert ParamRange(0.1, 0.3, 0.1).values() == [0.1, 0.2, 0.3]

    def test_max_off_grid(self) -> None:
        assert ParamRange(1, 10, 4).values() == [1, 5, 9]

    def test_single_value(self) -> None:
        r = ParamRange(7, 7, 1)
        assert r.values() == [7]
        assert r.normalize(7) == 0.0

    def test_normalize(self) -> None:
        r = ParamRange(10, 30, 5)
        assert r.normalize(10) == 0.0
        assert r.normalize(20) == pytest.approx(0.5)
        assert r.normalize(30) == pytest.approx(1.0)

    @pytest.mark.parametrize(
        ("lo", "hi", "step"),
        [(1, 10, 0), (1, 10, -1), (10, 1, 1), (float("nan"), 10, 1), (1, float("inf"), 1)],
    )
    def test_invalid_ranges(self, lo: float, hi: float, step: float) -> None:
        with pytest.raises(InvalidParamRange):
            ParamRange(lo, hi, step)

    def test_invalid_range_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            ParamRange(5, 1, 1)

    def test_random_value_on_grid(self) -> None:
        r = ParamRange(0.1, 0.9, 0.2)
        rng = random.Random(3)
        grid = r.values()
        assert all(r.random_value(rng) in grid for _ in range(50))


class TestCombinations:
    """Tests for generate_param_combinations."""

    def test_three_by_three(self) -> None:
        combos = generate_param_combinations(
            {"period": ParamRange(1, 3, 1), "threshold": ParamRange(60, 80, 10)}
        )

        assert len(combos) == 9
        assert combos[0] == {"period": 1, "threshold": 60}
        assert combos[1] == {"period": 1, "threshold": 70}
        assert combos[-1] == {"period": 3, "threshold": 80}

    def test_empty_ranges_single_default_trial(self) -> None:
        assert generate_param_combinations({}) == [{}]


class TestTrialHelpers:
    """Tests for random_params, normalize_params and format_params."""

    def test_random_params_seeded(self) -> None:
        ranges = {"a": ParamRange(1, 100, 1), "b": ParamRange(0, 1, 0.1)}
        first = [random_params(ranges, random.Random(11)) for _ in range(3)]
        second = [random_params(ranges, random.Random(11)) for _ in range(3)]
        assert first == second

    def test_normalize_params_key_order(self) -> None:
        ranges = {"b": ParamRange(0, 10, 1), "a": ParamRange(0, 4, 1)}
        assert normalize_params({"a": 2, "b": 5}, ranges) == [0.5, 0.5]
        assert normalize_params({"a": 4, "b": 0}, ranges) == [0.0, 1.0]

    def test_format_params(self) -> None:
        assert format_params({}) == "defaults"
        assert format_params({"period": 14.0, "k": 0.5}) == "period=14, k=0.5"


class TestOptions:
    """Tests for option records."""

    def test_seeded_rng_is_reproducible(self) -> None:
        opts = GeneticOptions(seed=5)
        assert opts.make_rng().random() == opts.make_rng().random()

    def test_method_tags(self) -> None:
        assert GridOptions.method == "grid"
        assert GeneticOptions.method == "genetic"
        assert BayesianOptions.method == "bayesian"

    def test_from_settings(self) -> None:
        settings = OptimizerSettings(objective="winRate", min_trades=12, population_size=8)

        grid = GridOptions.from_settings(settings, max_combinations=10)
        genetic = GeneticOptions.from_settings(settings, generations=3)
        bayes = BayesianOptions.from_settings(settings, seed=1)

        assert grid.objective == "winRate"
        assert grid.max_combinations == 10
        assert genetic.population_size == 8
        assert genetic.generations == 3
        assert bayes.min_trades == 12
        assert bayes.max_iterations == 50
        assert bayes.seed == 1

    def test_from_settings_overrides_shared_fields(self) -> None:
        """Overrides replace objective and min_trades taken from settings."""
        settings = OptimizerSettings(objective="netProfit", min_trades=5)

        grid = GridOptions.from_settings(settings, objective="winRate", min_trades=1)
        genetic = GeneticOptions.from_settings(settings, objective="expectancy")
        bayes = BayesianOptions.from_settings(settings, min_trades=9)

        assert grid.objective == "winRate"
        assert grid.min_trades == 1
        assert genetic.objective == "expectancy"
        assert bayes.min_trades == 9

    def test_empty_report(self) -> None:
        report = OptimizationReport(method="grid")
        assert report.best is None
        assert report.succeeded == 0
