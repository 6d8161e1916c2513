"""
Leaderboard Module - Global ranking rebuilt from ledger history.

The leaderboard is never stored authoritatively. It is recomputed from
ScoreSubmitted events; the cache only saves rescans.
"""

from .aggregator import LeaderboardAggregator, ScanReport, reduce_scores
from .cache import (
    CacheRecord,
    LeaderboardCache,
    LeaderboardEntry,
    FileLeaderboardCache,
    MemoryLeaderboardCache,
)
from .ranges import ScanThrottle, block_ranges

__all__ = [
    "LeaderboardAggregator",
    "ScanReport",
    "reduce_scores",
    "CacheRecord",
    "LeaderboardCache",
    "LeaderboardEntry",
    "FileLeaderboardCache",
    "MemoryLeaderboardCache",
    "ScanThrottle",
    "block_ranges",
]
