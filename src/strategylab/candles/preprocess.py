"""Candle preprocessing: validation, deduplication, gap detection and handling.

Real candle feeds arrive unsorted, with repeated bars, broken OHLC values
and holes where the collector was offline. Everything here is a pure
function over lists of Candle: inputs are never mutated and nothing raises
on bad data; the worst case is an empty result with zero gaps.

Pipeline (preprocess_candles):
  1. sort by timestamp (stable)
  2. drop invalid candles
  3. drop repeated timestamps, keeping the LAST occurrence
  4. analyze: modal interval, gaps, coverage
  5. apply the gap strategy: skip | fill | split
"""

import math
from collections import Counter
from collections.abc import Sequence

from strategylab.candles.models import (
    Candle,
    CandleAnalysis,
    CandleGap,
    PreprocessOptions,
    PreprocessResult,
)

DEFAULT_INTERVAL_MS = 60_000
DEFAULT_TOLERANCE_FACTOR = 1.5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def detect_interval(candles: Sequence[Candle]) -> int:
    """Return the most frequent positive spacing between consecutive candles.

    Ties between equally frequent spacings go to the one seen first. Falls
    back to one minute when there is no positive spacing at all (fewer than
    two candles, or every candle sharing one timestamp).
    """
    if len(candles) < 2:
        return DEFAULT_INTERVAL_MS

    counts: Counter[int] = Counter()
    for prev, cur in zip(candles, candles[1:]):
        diff = cur.timestamp_ms - prev.timestamp_ms
        if diff > 0:
            counts[diff] += 1

    if not counts:
        return DEFAULT_INTERVAL_MS

    # Counter.most_common keeps insertion order among equal counts
    return counts.most_common(1)[0][0]


def is_valid_candle(candle: Candle) -> bool:
    """Check a candle's price and timestamp integrity.

    A candle is valid when all OHLC values are finite and positive,
    low <= min(open, close), high >= max(open, close) and the timestamp is
    a positive finite number. A doji with all four prices equal is valid.
    """
    prices = (candle.open, candle.high, candle.low, candle.close)
    try:
        if not all(math.isfinite(p) for p in prices):
            return False
        if not math.isfinite(candle.timestamp_ms):
            return False
    except TypeError:
        return False

    if any(p <= 0 for p in prices):
        return False
    if candle.low > min(candle.open, candle.close):
        return False
    if candle.high < max(candle.open, candle.close):
        return False
    if candle.low > candle.high:
        return False
    return candle.timestamp_ms > 0


def deduplicate_candles(sorted_candles: Sequence[Candle]) -> list[Candle]:
    """Collapse runs of equal timestamps, keeping the last candle of each run.

    Input must already be sorted by timestamp.
    """
    result: list[Candle] = []
    for candle in sorted_candles:
        if result and result[-1].timestamp_ms == candle.timestamp_ms:
            result[-1] = candle
        else:
            result.append(candle)
    return result


def detect_gaps(
    sorted_candles: Sequence[Candle],
    expected_interval_ms: int = 0,
    tolerance_factor: float = DEFAULT_TOLERANCE_FACTOR,
) -> list[CandleGap]:
    """Find spacings larger than the expected interval times tolerance_factor.

    Args:
        sorted_candles: Candles sorted by timestamp, oldest first.
        expected_interval_ms: Expected spacing; auto-detected when 0.
        tolerance_factor: Gap threshold multiplier (1.5 = 50% over expected).

    Returns:
        One CandleGap per hole, in series order.
    """
    if len(sorted_candles) < 2:
        return []

    interval = expected_interval_ms if expected_interval_ms > 0 else detect_interval(sorted_candles)
    threshold = interval * tolerance_factor

    gaps: list[CandleGap] = []
    for i in range(1, len(sorted_candles)):
        before = sorted_candles[i - 1]
        after = sorted_candles[i]
        diff = after.timestamp_ms - before.timestamp_ms
        if diff > threshold:
            gaps.append(
                CandleGap(
                    before_index=i - 1,
                    after_index=i,
                    before_timestamp_ms=before.timestamp_ms,
                    after_timestamp_ms=after.timestamp_ms,
                    missing_count=_round_half_up(diff / interval) - 1,
                    gap_duration_ms=diff,
                )
            )
    return gaps


def _coverage(candles: Sequence[Candle], interval_ms: int) -> tuple[float, int]:
    """Return (coverage percent, time span ms) for a sorted, clean series."""
    time_span_ms = candles[-1].timestamp_ms - candles[0].timestamp_ms if len(candles) >= 2 else 0
    if time_span_ms > 0:
        expected = _round_half_up(time_span_ms / interval_ms) + 1
    else:
        expected = len(candles)
    coverage = len(candles) / expected * 100 if expected > 0 else 100.0
    return min(100.0, coverage), time_span_ms


def analyze_candles(
    candles: Sequence[Candle],
    expected_interval_ms: int = 0,
    tolerance_factor: float = DEFAULT_TOLERANCE_FACTOR,
) -> CandleAnalysis:
    """Sort, validate and deduplicate a copy of candles and report its quality."""
    ordered = sorted(candles, key=lambda c: c.timestamp_ms)
    valid = [c for c in ordered if is_valid_candle(c)]
    deduped = deduplicate_candles(valid)
    return _describe(
        deduped,
        expected_interval_ms,
        tolerance_factor,
        invalid_removed=len(ordered) - len(valid),
        duplicates_removed=len(valid) - len(deduped),
    )


def _describe(
    prepared: Sequence[Candle],
    expected_interval_ms: int,
    tolerance_factor: float,
    invalid_removed: int,
    duplicates_removed: int,
) -> CandleAnalysis:
    """Quality report of an already sorted series, taken as is."""
    interval = expected_interval_ms if expected_interval_ms > 0 else detect_interval(prepared)
    gaps = detect_gaps(prepared, interval, tolerance_factor)
    coverage, time_span_ms = _coverage(prepared, interval)

    return CandleAnalysis(
        total_candles=len(prepared),
        detected_interval_ms=interval,
        gap_count=len(gaps),
        total_missing_candles=sum(g.missing_count for g in gaps),
        gaps=gaps,
        duplicates_removed=duplicates_removed,
        invalid_removed=invalid_removed,
        coverage_percent=coverage,
        time_span_ms=time_span_ms,
    )


def fill_gaps(
    sorted_candles: Sequence[Candle],
    expected_interval_ms: int = 0,
    spread: float = 0.0001,
    tolerance_factor: float = DEFAULT_TOLERANCE_FACTOR,
) -> list[Candle]:
    """Insert linearly interpolated candles into every detected gap.

    Synthetic bodies move from the pre-gap close toward the post-gap open.
    Wicks extend the body by ``spread`` on each side and volume is 0 so
    consumers can tell synthetic bars from real ones.
    """
    if len(sorted_candles) < 2:
        return list(sorted_candles)

    interval = expected_interval_ms if expected_interval_ms > 0 else detect_interval(sorted_candles)
    gaps = detect_gaps(sorted_candles, interval, tolerance_factor)
    if not gaps:
        return list(sorted_candles)

    result: list[Candle] = []
    next_index = 0
    for gap in gaps:
        result.extend(sorted_candles[next_index : gap.before_index + 1])

        before = sorted_candles[gap.before_index]
        after = sorted_candles[gap.after_index]
        steps = gap.missing_count + 1
        move = after.open - before.close

        for j in range(1, gap.missing_count + 1):
            open_ = before.close + move * ((j - 1) / steps)
            close = before.close + move * (j / steps)
            result.append(
                Candle(
                    timestamp_ms=before.timestamp_ms + j * interval,
                    open=open_,
                    high=max(open_, close) * (1 + spread),
                    low=min(open_, close) * (1 - spread),
                    close=close,
                    volume=0.0,
                )
            )
        next_index = gap.before_index + 1

    result.extend(sorted_candles[next_index:])
    return result


def split_at_gaps(
    sorted_candles: Sequence[Candle],
    interval_ms: int,
    max_gap_candles: int = 10,
) -> list[list[Candle]]:
    """Cut the series wherever more than max_gap_candles are missing.

    Returns:
        Contiguous segments, largest first. Equal-length segments keep
        chronological order.
    """
    if not sorted_candles:
        return []

    segments: list[list[Candle]] = []
    current: list[Candle] = [sorted_candles[0]]
    for prev, cur in zip(sorted_candles, sorted_candles[1:]):
        missing = _round_half_up((cur.timestamp_ms - prev.timestamp_ms) / interval_ms) - 1
        if missing > max_gap_candles:
            segments.append(current)
            current = [cur]
        else:
            current.append(cur)
    segments.append(current)

    segments.sort(key=len, reverse=True)
    return segments


def preprocess_candles(
    raw_candles: Sequence[Candle],
    options: PreprocessOptions | None = None,
) -> PreprocessResult:
    """Clean a raw candle series for backtesting.

    Args:
        raw_candles: Candles in any order, possibly dirty. Never mutated.
        options: Preprocessing options; defaults to skip-gaps with
            validation and deduplication enabled.

    Returns:
        PreprocessResult with the working candle set, all segments, a
        quality analysis of the cleaned data and human-readable warnings.
    """
    opts = options or PreprocessOptions()
    warnings: list[str] = []

    candles = sorted(raw_candles, key=lambda c: c.timestamp_ms)

    invalid_removed = 0
    if opts.remove_invalid:
        before_count = len(candles)
        candles = [c for c in candles if is_valid_candle(c)]
        invalid_removed = before_count - len(candles)
        if invalid_removed > 0:
            warnings.append(f"Removed {invalid_removed} invalid candle(s) with bad OHLC data")

    duplicates_removed = 0
    if opts.remove_duplicates:
        before_count = len(candles)
        candles = deduplicate_candles(candles)
        duplicates_removed = before_count - len(candles)
        if duplicates_removed > 0:
            warnings.append(f"Removed {duplicates_removed} duplicate timestamp(s)")

    # Describe the list actually kept; disabled cleaning steps are not re-applied here
    analysis = _describe(
        candles,
        opts.expected_interval_ms,
        opts.tolerance_factor,
        invalid_removed=invalid_removed,
        duplicates_removed=duplicates_removed,
    )
    interval = analysis.detected_interval_ms

    if analysis.gap_count > 0:
        warnings.append(
            f"Detected {analysis.gap_count} gap(s) with {analysis.total_missing_candles} "
            f"missing candle(s). Coverage: {analysis.coverage_percent:.1f}%"
        )

    if opts.gap_strategy == "fill":
        working = fill_gaps(candles, interval, opts.synthetic_spread, opts.tolerance_factor)
        segments = [working]
        if analysis.total_missing_candles > 0:
            warnings.append(
                f"Filled {analysis.total_missing_candles} candle(s) with linear interpolation"
            )
    elif opts.gap_strategy == "split":
        segments = split_at_gaps(candles, interval, opts.max_gap_candles)
        if len(segments) > 1:
            warnings.append(
                f"Split data into {len(segments)} contiguous segments. "
                f"Largest segment: {len(segments[0])} candles"
            )
        working = list(segments[0]) if segments else []
    else:
        working = candles
        segments = [candles]

    return PreprocessResult(
        candles=working,
        segments=segments,
        analysis=analysis,
        warnings=warnings,
    )
