"""Tests for candle preprocessing: validation, dedup, gap detection and handling.

Candles are one-minute bars built by the candle_factory fixture; gaps are
made by deleting a run of indices from an otherwise contiguous series.
"""

import math

import pytest

from strategylab.candles.models import Candle, PreprocessOptions
from strategylab.candles.preprocess import (
    DEFAULT_INTERVAL_MS,
    analyze_candles,
    deduplicate_candles,
    detect_gaps,
    detect_interval,
    fill_gaps,
    is_valid_candle,
    preprocess_candles,
    split_at_gaps,
)

BASE_TS = 1_700_000_000_000
MINUTE_MS = 60_000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_candle(
    index: int = 0,
    open_: float = 100.0,
    high: float = 101.0,
    low: float = 99.0,
    close: float = 100.5,
    timestamp_ms: int | None = None,
) -> Candle:
    """Build a single candle at BASE_TS + index minutes."""
    return Candle(
        timestamp_ms=timestamp_ms if timestamp_ms is not None else BASE_TS + index * MINUTE_MS,
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=5.0,
    )


def _with_gap(candles: list[Candle], start: int, end: int) -> list[Candle]:
    """Drop candles[start..end] inclusive."""
    return candles[:start] + candles[end + 1 :]


# =============================================================================
# Interval detection
# =============================================================================


class TestDetectInterval:
    """Tests for modal interval detection."""

    def test_one_minute_series(self, rising_candles: list[Candle]) -> None:
        assert detect_interval(rising_candles) == MINUTE_MS

    def test_five_minute_series(self, candle_factory) -> None:
        candles = candle_factory([100.0 + i for i in range(10)], interval_ms=5 * MINUTE_MS)
        assert detect_interval(candles) == 300_000

    def test_empty_and_single_default_to_one_minute(self) -> None:
        """Fewer than two candles falls back to 60000 ms."""
        assert detect_interval([]) == DEFAULT_INTERVAL_MS == 60_000
        assert detect_interval([_make_candle()]) == 60_000

    def test_same_timestamp_defaults_to_one_minute(self) -> None:
        """No positive spacing at all falls back to 60000 ms."""
        candles = [_make_candle(0), _make_candle(0, close=100.7)]
        assert detect_interval(candles) == 60_000

    def test_tie_goes_to_first_seen_spacing(self) -> None:
        candles = [
            _make_candle(timestamp_ms=BASE_TS),
            _make_candle(timestamp_ms=BASE_TS + 60_000),
            _make_candle(timestamp_ms=BASE_TS + 180_000),
        ]
        assert detect_interval(candles) == 60_000

    def test_modal_spacing_wins_over_outliers(self, candle_factory) -> None:
        candles = _with_gap(candle_factory([100.0] * 30), 10, 12)
        assert detect_interval(candles) == MINUTE_MS


# =============================================================================
# Validation
# =============================================================================


class TestIsValidCandle:
    """Tests for OHLC integrity checks."""

    def test_normal_candle_is_valid(self) -> None:
        assert is_valid_candle(_make_candle()) is True

    def test_doji_is_valid(self) -> None:
        """All four prices equal is a legitimate bar."""
        assert is_valid_candle(_make_candle(open_=100.0, high=100.0, low=100.0, close=100.0))

    def test_non_positive_price_is_invalid(self) -> None:
        assert is_valid_candle(_make_candle(low=0.0)) is False
        assert is_valid_candle(_make_candle(open_=-1.0, low=-2.0)) is False

    def test_non_finite_price_is_invalid(self) -> None:
        assert is_valid_candle(_make_candle(close=math.nan)) is False
        assert is_valid_candle(_make_candle(high=math.inf)) is False

    def test_high_below_body_is_invalid(self) -> None:
        assert is_valid_candle(_make_candle(high=100.2, close=100.5)) is False

    def test_low_above_body_is_invalid(self) -> None:
        assert is_valid_candle(_make_candle(low=100.2, open_=100.0)) is False

    def test_non_positive_timestamp_is_invalid(self) -> None:
        assert is_valid_candle(_make_candle(timestamp_ms=0)) is False

    def test_non_numeric_price_is_invalid(self) -> None:
        assert is_valid_candle(_make_candle(close="100")) is False  # type: ignore[arg-type]


# =============================================================================
# Deduplication
# =============================================================================


class TestDeduplicateCandles:
    """Tests for duplicate timestamp removal."""

    def test_keeps_last_occurrence(self) -> None:
        first = _make_candle(0, close=100.1)
        second = _make_candle(0, close=100.9)
        result = deduplicate_candles([first, second, _make_candle(1)])

        assert len(result) == 2
        assert result[0].close == 100.9

    def test_no_duplicates_unchanged(self, rising_candles: list[Candle]) -> None:
        assert deduplicate_candles(rising_candles) == rising_candles

    def test_empty(self) -> None:
        assert deduplicate_candles([]) == []


# =============================================================================
# Gap detection and analysis
# =============================================================================


class TestDetectGaps:
    """Tests for gap detection."""

    def test_five_missing_candles(self, rising_candles: list[Candle]) -> None:
        """Removing indices 20-24 leaves one gap of 5 missing candles."""
        candles = _with_gap(rising_candles, 20, 24)
        gaps = detect_gaps(candles)

        assert len(gaps) == 1
        gap = gaps[0]
        assert gap.missing_count == 5
        assert gap.before_index == 19
        assert gap.after_index == 20
        assert gap.before_timestamp_ms == BASE_TS + 19 * MINUTE_MS
        assert gap.after_timestamp_ms == BASE_TS + 25 * MINUTE_MS
        assert gap.gap_duration_ms == 6 * MINUTE_MS

    def test_contiguous_series_has_no_gaps(self, rising_candles: list[Candle]) -> None:
        assert detect_gaps(rising_candles) == []

    def test_spacing_within_tolerance_is_not_a_gap(self) -> None:
        """80s spacing on a 60s interval is under the 1.5x threshold."""
        candles = [
            _make_candle(timestamp_ms=BASE_TS),
            _make_candle(timestamp_ms=BASE_TS + 80_000),
        ]
        assert detect_gaps(candles, expected_interval_ms=MINUTE_MS) == []

    def test_explicit_interval_overrides_detection(self, rising_candles: list[Candle]) -> None:
        """Treating 1m data as 30s data turns every spacing into a one-candle gap."""
        gaps = detect_gaps(rising_candles[:5], expected_interval_ms=30_000)
        assert len(gaps) == 4
        assert all(g.missing_count == 1 for g in gaps)

    def test_fewer_than_two_candles(self) -> None:
        assert detect_gaps([]) == []
        assert detect_gaps([_make_candle()]) == []


class TestAnalyzeCandles:
    """Tests for the quality report."""

    def test_coverage_with_gap(self, rising_candles: list[Candle]) -> None:
        """95 of 100 expected candles -> 95% coverage."""
        analysis = analyze_candles(_with_gap(rising_candles, 20, 24))

        assert analysis.total_candles == 95
        assert analysis.detected_interval_ms == MINUTE_MS
        assert analysis.gap_count == 1
        assert analysis.total_missing_candles == 5
        assert analysis.coverage_percent == pytest.approx(95.0)
        assert analysis.time_span_ms == 99 * MINUTE_MS

    def test_full_coverage(self, rising_candles: list[Candle]) -> None:
        analysis = analyze_candles(rising_candles)
        assert analysis.coverage_percent == pytest.approx(100.0)
        assert analysis.gap_count == 0

    def test_counts_invalid_and_duplicates(self, rising_candles: list[Candle]) -> None:
        dirty = list(rising_candles[:10])
        dirty.append(_make_candle(50, close=math.nan))
        dirty.append(rising_candles[3])

        analysis = analyze_candles(dirty)

        assert analysis.invalid_removed == 1
        assert analysis.duplicates_removed == 1
        assert analysis.total_candles == 10

    def test_coverage_is_bounded(self, candle_factory) -> None:
        """Off-grid extra candles never push coverage above 100%."""
        candles = candle_factory([100.0] * 20)
        candles.append(_make_candle(timestamp_ms=BASE_TS + 30_000))
        analysis = analyze_candles(candles)
        assert 0.0 <= analysis.coverage_percent <= 100.0

    def test_empty(self) -> None:
        analysis = analyze_candles([])
        assert analysis.total_candles == 0
        assert analysis.gap_count == 0
        assert 0.0 <= analysis.coverage_percent <= 100.0


# =============================================================================
# Gap handling
# =============================================================================


class TestFillGaps:
    """Tests for linear interpolation of missing candles."""

    def test_restores_full_series(self, rising_candles: list[Candle]) -> None:
        candles = _with_gap(rising_candles, 20, 24)
        filled = fill_gaps(candles)

        assert len(filled) == 100
        assert [c.timestamp_ms for c in filled] == [c.timestamp_ms for c in rising_candles]

    def test_synthetic_candles_are_marked_and_valid(self, rising_candles: list[Candle]) -> None:
        filled = fill_gaps(_with_gap(rising_candles, 20, 24))

        for candle in filled[20:25]:
            assert candle.volume == 0.0
            assert is_valid_candle(candle)
        assert filled[19].volume == 10.0
        assert filled[25].volume == 10.0

    def test_interpolates_close_to_open(self, rising_candles: list[Candle]) -> None:
        """Synthetic bodies walk from the pre-gap close to the post-gap open."""
        filled = fill_gaps(_with_gap(rising_candles, 20, 24))
        before_close = rising_candles[19].close
        after_open = rising_candles[25].open
        step = (after_open - before_close) / 6

        assert filled[20].open == pytest.approx(before_close)
        assert filled[20].close == pytest.approx(before_close + step)
        assert filled[24].close == pytest.approx(before_close + 5 * step)

    def test_wicks_use_spread(self) -> None:
        candles = [
            _make_candle(0, open_=100.0, high=100.0, low=100.0, close=100.0),
            _make_candle(2, open_=100.0, high=100.0, low=100.0, close=100.0),
        ]
        filled = fill_gaps(candles, expected_interval_ms=MINUTE_MS, spread=0.01)

        assert len(filled) == 3
        assert filled[1].high == pytest.approx(101.0)
        assert filled[1].low == pytest.approx(99.0)

    def test_no_gaps_returns_copy(self, rising_candles: list[Candle]) -> None:
        filled = fill_gaps(rising_candles)
        assert filled == rising_candles
        assert filled is not rising_candles


class TestSplitAtGaps:
    """Tests for splitting at large gaps."""

    def test_splits_on_large_gap_largest_first(self, candle_factory) -> None:
        first = candle_factory([100.0] * 20)
        second = candle_factory([100.0] * 60, start_ms=BASE_TS + 40 * MINUTE_MS)

        segments = split_at_gaps(first + second, MINUTE_MS, max_gap_candles=10)

        assert [len(s) for s in segments] == [60, 20]
        assert segments[0][0].timestamp_ms == BASE_TS + 40 * MINUTE_MS

    def test_small_gap_does_not_split(self, rising_candles: list[Candle]) -> None:
        segments = split_at_gaps(_with_gap(rising_candles, 20, 24), MINUTE_MS, max_gap_candles=10)
        assert len(segments) == 1
        assert len(segments[0]) == 95

    def test_equal_length_segments_keep_order(self, candle_factory) -> None:
        first = candle_factory([100.0] * 10)
        second = candle_factory([100.0] * 10, start_ms=BASE_TS + 50 * MINUTE_MS)

        segments = split_at_gaps(first + second, MINUTE_MS, max_gap_candles=5)

        assert segments[0][0].timestamp_ms == BASE_TS
        assert segments[1][0].timestamp_ms == BASE_TS + 50 * MINUTE_MS

    def test_empty(self) -> None:
        assert split_at_gaps([], MINUTE_MS) == []


# =============================================================================
# Full pipeline
# =============================================================================


class TestPreprocessCandles:
    """Tests for the preprocessing pipeline."""

    def test_sorts_unordered_input_without_mutating_it(self, rising_candles: list[Candle]) -> None:
        shuffled = list(reversed(rising_candles))
        snapshot = list(shuffled)

        result = preprocess_candles(shuffled)

        assert result.candles == rising_candles
        assert shuffled == snapshot
        assert result.warnings == []

    def test_skip_keeps_gap(self, rising_candles: list[Candle]) -> None:
        result = preprocess_candles(_with_gap(rising_candles, 20, 24))

        assert len(result.candles) == 95
        assert result.segments == [result.candles]
        assert result.warnings == [
            "Detected 1 gap(s) with 5 missing candle(s). Coverage: 95.0%",
        ]

    def test_fill_warnings(self, rising_candles: list[Candle]) -> None:
        result = preprocess_candles(
            _with_gap(rising_candles, 20, 24), PreprocessOptions(gap_strategy="fill")
        )

        assert len(result.candles) == 100
        assert result.warnings == [
            "Detected 1 gap(s) with 5 missing candle(s). Coverage: 95.0%",
            "Filled 5 candle(s) with linear interpolation",
        ]

    def test_fill_is_idempotent(self, rising_candles: list[Candle]) -> None:
        """A second pass over filled data finds no gaps and no duplicates."""
        options = PreprocessOptions(gap_strategy="fill")
        first = preprocess_candles(_with_gap(rising_candles, 20, 24), options)
        second = preprocess_candles(first.candles, options)

        assert second.candles == first.candles
        assert second.analysis.gap_count == 0
        assert second.analysis.duplicates_removed == 0
        assert second.warnings == []

    def test_split_returns_largest_segment(self, candle_factory) -> None:
        first = candle_factory([100.0] * 60)
        second = candle_factory([100.0] * 20, start_ms=BASE_TS + 80 * MINUTE_MS)

        result = preprocess_candles(first + second, PreprocessOptions(gap_strategy="split"))

        assert len(result.candles) == 60
        assert len(result.segments) == 2
        assert (
            "Split data into 2 contiguous segments. Largest segment: 60 candles" in result.warnings
        )

    def test_removes_invalid_and_duplicates(self, rising_candles: list[Candle]) -> None:
        dirty = list(rising_candles)
        dirty.append(_make_candle(200, close=-5.0, low=-6.0))
        dirty.append(_make_candle(201, high=50.0))
        dirty.append(rising_candles[10])

        result = preprocess_candles(dirty)

        assert len(result.candles) == 100
        assert result.analysis.invalid_removed == 2
        assert result.analysis.duplicates_removed == 1
        assert result.warnings[:2] == [
            "Removed 2 invalid candle(s) with bad OHLC data",
            "Removed 1 duplicate timestamp(s)",
        ]

    def test_validation_can_be_disabled(self) -> None:
        bad = _make_candle(0, high=50.0)
        result = preprocess_candles([bad], PreprocessOptions(remove_invalid=False))
        assert result.candles == [bad]
        assert result.analysis.invalid_removed == 0

    def test_analysis_describes_kept_candles_when_cleaning_disabled(
        self, rising_candles: list[Candle]
    ) -> None:
        """Disabled validation and dedup leave both the bad bar and the repeat in the count."""
        dirty = list(rising_candles)
        dirty.append(_make_candle(100, high=50.0))
        dirty.append(rising_candles[10])

        result = preprocess_candles(
            dirty, PreprocessOptions(remove_invalid=False, remove_duplicates=False)
        )

        assert len(result.candles) == 102
        assert result.analysis.total_candles == len(result.candles)
        assert result.analysis.invalid_removed == 0
        assert result.analysis.duplicates_removed == 0
        assert result.analysis.gap_count == 0

    def test_empty_input(self) -> None:
        for strategy in ("skip", "fill", "split"):
            result = preprocess_candles([], PreprocessOptions(gap_strategy=strategy))
            assert result.candles == []
            assert result.analysis.gap_count == 0
            assert result.warnings == []
