"""Configuration system using pydantic-settings with environment variable loading.

Settings classes hold the defaults that run-level records (BacktestConfig,
LeaderboardConfig, optimizer options) fall back on. Run-level records stay
plain dataclasses so a single run never depends on process environment
after it has been built.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class BacktestSettings(BaseSettings):
    """Default trading parameters for backtest runs."""

    model_config = SettingsConfigDict(env_prefix="BACKTEST_")

    initial_balance: float = 10000.0
    bet_amount: float = 100.0
    bet_type: Literal["fixed", "percentage"] = "fixed"
    payout: float = 92.0  # percent returned on a win
    expiry_seconds: int = 60
    gap_strategy: Literal["skip", "fill", "split"] = "skip"
    max_gap_candles: int = 10
    slippage: float = 0.0  # absolute price offset applied at entry
    latency_ms: int = 0


class PreprocessSettings(BaseSettings):
    """Candle cleaning parameters."""

    model_config = SettingsConfigDict(env_prefix="PREPROCESS_")

    gap_tolerance_factor: float = 1.5  # gap when delta > interval * factor
    synthetic_spread: float = 0.0001  # 0.01% wick on interpolated candles
    remove_invalid: bool = True
    remove_duplicates: bool = True


class OptimizerSettings(BaseSettings):
    """Parameter search defaults shared by grid, genetic and bayesian search."""

    model_config = SettingsConfigDict(env_prefix="OPTIMIZER_")

    objective: Literal["netProfit", "winRate", "profitFactor", "expectancy"] = "netProfit"
    min_trades: int = 5

    # Bayesian search
    max_iterations: int = 50
    initial_samples: int = 10
    exploration_weight: float = 0.1
    candidate_pool_size: int = 100

    # Genetic search
    population_size: int = 50
    generations: int = 20
    mutation_rate: float = 0.1
    tournament_size: int = 3
    elitism_count: int = 2


class LeaderboardSettings(BaseSettings):
    """Leaderboard filters and volume target."""

    model_config = SettingsConfigDict(env_prefix="LEADERBOARD_")

    min_trades: int = 30
    min_win_rate: float = 0.0
    volume_multiplier: float = 100.0  # volume target = balance * multiplier


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"  # read from LOG_FORMAT
    backtest: BacktestSettings = BacktestSettings()
    preprocess: PreprocessSettings = PreprocessSettings()
    optimizer: OptimizerSettings = OptimizerSettings()
    leaderboard: LeaderboardSettings = LeaderboardSettings()
