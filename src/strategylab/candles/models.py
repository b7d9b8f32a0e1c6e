"""Data models for OHLCV candles and candle-quality analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from strategylab.config import PreprocessSettings

GapStrategy = Literal["skip", "fill", "split"]


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.

    Attributes:
        timestamp_ms: Bar open time in milliseconds since epoch.
        open: Opening price.
        high: Highest traded price.
        low: Lowest traded price.
        close: Closing price.
        volume: Traded volume. 0 marks a synthetic (interpolated) candle.
    """

    timestamp_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None


@dataclass(frozen=True)
class CandleGap:
    """A hole between two adjacent candles of a sorted series."""

    before_index: int
    after_index: int
    before_timestamp_ms: int
    after_timestamp_ms: int
    missing_count: int
    gap_duration_ms: int


@dataclass
class CandleAnalysis:
    """Quality report for one candle series.

    Attributes:
        total_candles: Candles left after validation and deduplication.
        detected_interval_ms: Modal spacing between consecutive candles.
        gap_count: Number of detected gaps.
        total_missing_candles: Sum of missing_count over all gaps.
        gaps: Detailed gap records.
        duplicates_removed: Candles dropped for repeating a timestamp.
        invalid_removed: Candles dropped for bad OHLC data.
        coverage_percent: Observed / expected candles, capped at 100.
        time_span_ms: Last minus first timestamp.
    """

    total_candles: int
    detected_interval_ms: int
    gap_count: int
    total_missing_candles: int
    gaps: list[CandleGap]
    duplicates_removed: int
    invalid_removed: int
    coverage_percent: float
    time_span_ms: int


@dataclass(frozen=True)
class PreprocessOptions:
    """Options for preprocess_candles.

    expected_interval_ms of 0 means auto-detect. max_gap_candles only
    applies to the "split" strategy.
    """

    gap_strategy: GapStrategy = "skip"
    expected_interval_ms: int = 0
    max_gap_candles: int = 10
    remove_invalid: bool = True
    remove_duplicates: bool = True
    tolerance_factor: float = 1.5
    synthetic_spread: float = 0.0001

    @classmethod
    def from_settings(cls, settings: PreprocessSettings, **overrides: object) -> PreprocessOptions:
        values: dict[str, object] = {
            "remove_invalid": settings.remove_invalid,
            "remove_duplicates": settings.remove_duplicates,
            "tolerance_factor": settings.gap_tolerance_factor,
            "synthetic_spread": settings.synthetic_spread,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class PreprocessResult:
    """Output of one preprocessing pass.

    candles is the working set: the whole cleaned series for "skip" and
    "fill", the largest segment for "split".
    """

    candles: list[Candle]
    segments: list[list[Candle]]
    analysis: CandleAnalysis
    warnings: list[str] = field(default_factory=list)
