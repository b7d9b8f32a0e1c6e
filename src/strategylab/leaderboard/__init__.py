"""Strategy leaderboard: run every registered strategy and rank the results."""

from strategylab.leaderboard.models import (
    LeaderboardConfig,
    LeaderboardEntry,
    LeaderboardProgress,
    LeaderboardResult,
    LeaderboardWeights,
    SkippedStrategy,
)
from strategylab.leaderboard.runner import (
    build_leaderboard_entry,
    format_leaderboard_report,
    run_leaderboard,
    score_and_rank_entries,
)

__all__ = [
    "LeaderboardConfig",
    "LeaderboardEntry",
    "LeaderboardProgress",
    "LeaderboardResult",
    "LeaderboardWeights",
    "SkippedStrategy",
    "build_leaderboard_entry",
    "format_leaderboard_report",
    "run_leaderboard",
    "score_and_rank_entries",
]
