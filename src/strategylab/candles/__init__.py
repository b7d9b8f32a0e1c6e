"""Candle data models and preprocessing.

Validation, deduplication, gap detection and gap handling (skip, fill,
split) that turn raw OHLCV input into a clean ascending series.
"""

from strategylab.candles.models import (
    Candle,
    CandleAnalysis,
    CandleGap,
    PreprocessOptions,
    PreprocessResult,
)
from strategylab.candles.preprocess import (
    analyze_candles,
    deduplicate_candles,
    detect_gaps,
    detect_interval,
    fill_gaps,
    is_valid_candle,
    preprocess_candles,
    split_at_gaps,
)

__all__ = [
    "Candle",
    "CandleAnalysis",
    "CandleGap",
    "PreprocessOptions",
    "PreprocessResult",
    "analyze_candles",
    "deduplicate_candles",
    "detect_gaps",
    "detect_interval",
    "fill_gaps",
    "is_valid_candle",
    "preprocess_candles",
    "split_at_gaps",
]
