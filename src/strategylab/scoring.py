"""Absolute strategy scoring: a weighted 0-100 score and letter grade.

Seven sub-scores, each mapped piecewise-linearly onto [0, 100], are combined
with a named weight profile. The win-rate sub-score is anchored at the
payout's break-even win rate, so the same 55% win rate scores differently
at 80% and 92% payouts.

Scores here are absolute: they do not depend on other strategies. The
leaderboard's composite score is a separate, relative measure.
"""

import math
from dataclasses import asdict, dataclass, fields
from typing import Literal

from strategylab.exceptions import InvalidWeights

Grade = Literal["A", "B", "C", "D", "F"]
ScoringProfile = Literal["default", "stability", "growth"]

# Sub-score anchors
MIN_TRADES_FOR_SIGNIFICANCE = 30
EXCELLENT_TRADE_COUNT = 200
MAX_ACCEPTABLE_DRAWDOWN = 30.0
MAX_ACCEPTABLE_LOSING_STREAK = 10
EXCELLENT_PROFIT_FACTOR = 3.0
MAX_ACCEPTABLE_WIN_RATE_STD_DEV = 15.0

_WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class ScoreWeights:
    """Weights of the seven sub-scores. Must sum to 1.0."""

    win_rate: float
    expected_value: float
    max_drawdown: float
    max_losing_streak: float
    profit_factor: float
    trade_count: float
    consistency: float

    def __post_init__(self) -> None:
        total = sum(getattr(self, f.name) for f in fields(self))
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            raise InvalidWeights(f"Score weights must sum to 1.0, got {total:.6f}")
        if any(getattr(self, f.name) < 0 for f in fields(self)):
            raise InvalidWeights("Score weights must be non-negative")


DEFAULT_SCORE_WEIGHTS = ScoreWeights(
    win_rate=0.30,
    expected_value=0.20,
    max_drawdown=0.15,
    max_losing_streak=0.10,
    profit_factor=0.10,
    trade_count=0.10,
    consistency=0.05,
)

# Drawdown, losing streak and consistency weighted up: small or risk-averse accounts
STABILITY_WEIGHTS = ScoreWeights(
    win_rate=0.20,
    expected_value=0.15,
    max_drawdown=0.25,
    max_losing_streak=0.15,
    profit_factor=0.10,
    trade_count=0.05,
    consistency=0.10,
)

# EV, profit factor and trade count weighted up: volume-target chasing
GROWTH_WEIGHTS = ScoreWeights(
    win_rate=0.25,
    expected_value=0.25,
    max_drawdown=0.10,
    max_losing_streak=0.05,
    profit_factor=0.15,
    trade_count=0.15,
    consistency=0.05,
)


def get_weights_by_profile(profile: ScoringProfile) -> ScoreWeights:
    """Resolve a profile name; unknown names fall back to the default profile."""
    if profile == "stability":
        return STABILITY_WEIGHTS
    if profile == "growth":
        return GROWTH_WEIGHTS
    return DEFAULT_SCORE_WEIGHTS


@dataclass
class ScoreInput:
    """Run statistics needed for scoring.

    Attributes:
        wins: Winning trades.
        losses: Losing trades.
        ties: Tied trades (excluded from win rate).
        payout_percent: Payout, e.g. 92.
        total_trades: All trades including ties.
        max_drawdown_percent: Max drawdown as a percent of peak balance.
        max_losing_streak: Longest run of losses.
        profit_factor: Gross profit / gross loss; may be inf.
        win_rate_std_dev: Weekly win-rate std-dev in percentage points.
    """

    wins: int
    losses: int
    ties: int
    payout_percent: float
    total_trades: int
    max_drawdown_percent: float
    max_losing_streak: int
    profit_factor: float
    win_rate_std_dev: float = 0.0


@dataclass
class ScoreBreakdown:
    """Per-metric sub-scores, each in [0, 100]."""

    win_rate: float
    expected_value: float
    max_drawdown: float
    max_losing_streak: float
    profit_factor: float
    trade_count: float
    consistency: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass
class ScoreResult:
    score: float
    breakdown: ScoreBreakdown
    expected_value: float
    grade: Grade
    summary: str


def break_even_win_rate(payout_percent: float) -> float:
    """Win rate (percent) at which expected value is exactly zero.

    92% payout -> 52.08%.
    """
    return 100 / (100 + payout_percent) * 100


def _linear_map(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    if in_max == in_min:
        return out_min
    return out_min + (value - in_min) / (in_max - in_min) * (out_max - out_min)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def score_win_rate(win_rate: float, payout_percent: float) -> float:
    """0 at break-even - 5 or below, 50 at break-even, +5 per point above, capped at 100."""
    break_even = break_even_win_rate(payout_percent)
    if win_rate <= break_even - 5:
        return 0.0
    if win_rate <= break_even:
        return (win_rate - (break_even - 5)) / 5 * 50
    return min(50 + (win_rate - break_even) * 5, 100.0)


def score_expected_value(ev: float) -> float:
    if ev <= -0.05:
        return 0.0
    if ev <= 0:
        return _linear_map(ev, -0.05, 0, 0, 20)
    if ev <= 0.02:
        return _linear_map(ev, 0, 0.02, 20, 50)
    if ev <= 0.10:
        return _linear_map(ev, 0.02, 0.10, 50, 100)
    return 100.0


def score_max_drawdown(mdd_percent: float) -> float:
    if mdd_percent <= 0:
        return 100.0
    if mdd_percent >= MAX_ACCEPTABLE_DRAWDOWN:
        return 0.0
    return _linear_map(mdd_percent, 0, MAX_ACCEPTABLE_DRAWDOWN, 100, 0)


def score_max_losing_streak(streak: float) -> float:
    if streak <= 0:
        return 100.0
    if streak >= MAX_ACCEPTABLE_LOSING_STREAK:
        return 0.0
    return _linear_map(streak, 0, MAX_ACCEPTABLE_LOSING_STREAK, 100, 0)


def score_profit_factor(pf: float) -> float:
    """Non-finite profit factors score as the 3.0 anchor."""
    if not math.isfinite(pf):
        pf = EXCELLENT_PROFIT_FACTOR
    if pf <= 0:
        return 0.0
    if pf < 1.0:
        return _linear_map(pf, 0, 1.0, 0, 30)
    if pf < 1.5:
        return _linear_map(pf, 1.0, 1.5, 30, 60)
    if pf < EXCELLENT_PROFIT_FACTOR:
        return _linear_map(pf, 1.5, EXCELLENT_PROFIT_FACTOR, 60, 100)
    return 100.0


def score_trade_count(count: float) -> float:
    if count <= 0:
        return 0.0
    if count < MIN_TRADES_FOR_SIGNIFICANCE:
        return _linear_map(count, 0, MIN_TRADES_FOR_SIGNIFICANCE, 0, 30)
    if count < EXCELLENT_TRADE_COUNT:
        return _linear_map(count, MIN_TRADES_FOR_SIGNIFICANCE, EXCELLENT_TRADE_COUNT, 30, 100)
    return 100.0


def score_consistency(win_rate_std_dev: float) -> float:
    if win_rate_std_dev <= 0:
        return 100.0
    if win_rate_std_dev >= MAX_ACCEPTABLE_WIN_RATE_STD_DEV:
        return 0.0
    return _linear_map(win_rate_std_dev, 0, MAX_ACCEPTABLE_WIN_RATE_STD_DEV, 100, 0)


def to_grade(score: float) -> Grade:
    if score >= 80:
        return "A"
    if score >= 60:
        return "B"
    if score >= 40:
        return "C"
    if score >= 20:
        return "D"
    return "F"


def calculate_score(
    score_input: ScoreInput, weights: ScoreWeights | None = None
) -> ScoreResult:
    """Compute the weighted 0-100 score of one run.

    Win rate excludes ties: wins / (wins + losses). Expected value per unit
    staked is p * b - q, defined as exactly 0 when no trade was decided.

    Args:
        score_input: Run statistics.
        weights: Weight profile; DEFAULT_SCORE_WEIGHTS when None.

    Returns:
        ScoreResult with score, breakdown, expected value, grade and a
        one-line summary.
    """
    weights = weights or DEFAULT_SCORE_WEIGHTS

    decided = score_input.wins + score_input.losses
    win_rate = score_input.wins / decided * 100 if decided > 0 else 0.0

    p = win_rate / 100
    q = 1 - p
    b = score_input.payout_percent / 100
    expected_value = p * b - q if decided > 0 else 0.0

    breakdown = ScoreBreakdown(
        win_rate=_clamp(score_win_rate(win_rate, score_input.payout_percent)),
        expected_value=_clamp(score_expected_value(expected_value)),
        max_drawdown=_clamp(score_max_drawdown(score_input.max_drawdown_percent)),
        max_losing_streak=_clamp(score_max_losing_streak(score_input.max_losing_streak)),
        profit_factor=_clamp(score_profit_factor(score_input.profit_factor)),
        trade_count=_clamp(score_trade_count(score_input.total_trades)),
        consistency=_clamp(score_consistency(score_input.win_rate_std_dev)),
    )

    score = _clamp(
        breakdown.win_rate * weights.win_rate
        + breakdown.expected_value * weights.expected_value
        + breakdown.max_drawdown * weights.max_drawdown
        + breakdown.max_losing_streak * weights.max_losing_streak
        + breakdown.profit_factor * weights.profit_factor
        + breakdown.trade_count * weights.trade_count
        + breakdown.consistency * weights.consistency
    )
    grade = to_grade(score)

    summary = " | ".join(
        [
            f"Grade {grade} ({score:.1f}/100)",
            f"WR: {win_rate:.1f}%",
            f"EV: {expected_value * 100:.2f}%/trade",
            f"PF: {score_input.profit_factor:.2f}",
            f"MDD: {score_input.max_drawdown_percent:.1f}%",
            f"MaxLoss: {score_input.max_losing_streak}x",
            f"Trades: {score_input.total_trades}",
        ]
    )

    return ScoreResult(
        score=score,
        breakdown=breakdown,
        expected_value=expected_value,
        grade=grade,
        summary=summary,
    )
