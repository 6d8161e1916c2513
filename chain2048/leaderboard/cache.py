"""
Leaderboard Cache - Snapshot of the last computed leaderboard.

The cache:
- Holds a single record (one global leaderboard, no key)
- Stores the computation time alongside the entries
- Is purely an optimization: the leaderboard can always be rebuilt

Freshness is decided by the reader (the aggregator), not by the store.
Stores raise CacheIOError for unreadable or malformed data; absence is None.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
import json
import os
import tempfile

from ..errors import CacheIOError


@dataclass(frozen=True)
class LeaderboardEntry:
    """Best final score observed for one player."""
    player: str
    score: int

    def to_dict(self) -> dict:
        return {"player": self.player, "score": self.score}


@dataclass(frozen=True)
class CacheRecord:
    """A leaderboard snapshot and when it was computed (epoch seconds)."""
    timestamp: float
    entries: tuple[LeaderboardEntry, ...] = field(default_factory=tuple)

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.age(now) < ttl


class LeaderboardCache(ABC):
    """Single-slot store for CacheRecord."""

    @abstractmethod
    def get(self) -> CacheRecord | None:
        ...

    @abstractmethod
    def put(self, record: CacheRecord):
        ...

    def invalidate(self):
        """Drop the stored record, if any."""


class MemoryLeaderboardCache(LeaderboardCache):
    """Process-local cache."""

    def __init__(self, record: CacheRecord | None = None):
        self._record = record

    def get(self) -> CacheRecord | None:
        return self._record

    def put(self, record: CacheRecord):
        self._record = record

    def invalidate(self):
        self._record = None


def default_cache_path() -> Path:
    return Path(tempfile.gettempdir()) / "leaderboard.json"


class FileLeaderboardCache(LeaderboardCache):
    """
    JSON file cache.

    File format:
        {"timestamp": 1700000000.0, "data": [{"player": "0x..", "score": 123}]}

    Usage:
        cache = FileLeaderboardCache("/tmp/leaderboard.json")
        record = cache.get()
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else default_cache_path()

    def get(self) -> CacheRecord | None:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return CacheRecord(
                timestamp=float(payload["timestamp"]),
                entries=tuple(
                    LeaderboardEntry(player=str(item["player"]), score=int(item["score"]))
                    for item in payload["data"]
                ),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CacheIOError(f"Unreadable leaderboard cache {self.path}: {e}") from e

    def put(self, record: CacheRecord):
        payload = {
            "timestamp": record.timestamp,
            "data": [entry.to_dict() for entry in record.entries],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheIOError(f"Failed to write leaderboard cache {self.path}: {e}") from e

    def invalidate(self):
        self.path.unlink(missing_ok=True)
