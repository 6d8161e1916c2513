"""
Leaderboard Aggregator - Best score per player, rebuilt from ledger events.

Read path:
1. Fresh cache record (younger than the TTL) -> returned as is, no ledger access
2. Otherwise scan ScoreSubmitted events from the deployment block to the
   chain head in fixed windows, one request at a time, throttled
3. Reduce to the maximum score per (lowercased) player, rank descending
4. Store the result as a new cache record

A window that fails is logged and skipped; the aggregation goes on with what
was retrieved. Cache failures are logged and treated as a miss. Nothing in
this path raises to the caller of get_leaderboard().

Concurrent readers on a miss may each scan; there is no single-flight lock.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable
import logging
import time

from .cache import CacheRecord, LeaderboardCache, LeaderboardEntry, MemoryLeaderboardCache
from .ranges import DEFAULT_BLOCK_STEP, ScanThrottle, block_ranges
from ..errors import CacheIOError, PartialScanError
from ..ledger.base import LedgerReader, ScoreSubmitted, normalize_identity

logger = logging.getLogger(__name__)

DEFAULT_DEPLOY_BLOCK = 37_603_623
DEFAULT_CACHE_TTL = 300.0


def reduce_scores(events: Iterable[ScoreSubmitted]) -> list[LeaderboardEntry]:
    """
    Keep the best score per player, ranked by score descending.

    Equal scores keep first-seen order.
    """
    best: dict[str, int] = {}
    for event in events:
        player = normalize_identity(event.player)
        score = int(event.final_score)
        if player not in best or score > best[player]:
            best[player] = score

    entries = [LeaderboardEntry(player=player, score=score) for player, score in best.items()]
    entries.sort(key=lambda entry: entry.score, reverse=True)
    return entries


@dataclass
class ScanReport:
    """Outcome of one full scan."""
    entries: list[LeaderboardEntry]
    from_block: int
    to_block: int
    ranges_scanned: int = 0
    events_seen: int = 0
    failures: list[PartialScanError] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


class LeaderboardAggregator:
    """
    Usage:
        aggregator = LeaderboardAggregator(reader, FileLeaderboardCache())
        for entry in aggregator.get_leaderboard():
            print(entry.player, entry.score)
    """

    def __init__(
        self,
        reader: LedgerReader,
        cache: LeaderboardCache | None = None,
        deploy_block: int = DEFAULT_DEPLOY_BLOCK,
        block_step: int = DEFAULT_BLOCK_STEP,
        ttl: float = DEFAULT_CACHE_TTL,
        throttle: ScanThrottle | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.reader = reader
        self.cache = cache if cache is not None else MemoryLeaderboardCache()
        self.deploy_block = deploy_block
        self.block_step = block_step
        self.ttl = ttl
        self.throttle = throttle if throttle is not None else ScanThrottle()
        self.clock = clock

    def get_leaderboard(self) -> list[LeaderboardEntry]:
        """Ranked entries; served from cache while fresh."""
        cached = self._read_cache()
        if cached is not None and cached.is_fresh(self.clock(), self.ttl):
            return list(cached.entries)
        return self._rebuild(fallback=cached)

    def refresh(self) -> list[LeaderboardEntry]:
        """Ignore the cache and rebuild from the ledger."""
        return self._rebuild(fallback=self._read_cache())

    def scan(self) -> ScanReport:
        """
        Walk [deploy_block, head] and reduce the score events.

        Raises whatever the head lookup raises; failures of individual
        windows are collected in the report instead.
        """
        head = self.reader.block_number()
        events: list[ScoreSubmitted] = []
        report = ScanReport(entries=[], from_block=self.deploy_block, to_block=head)

        for index, (lo, hi) in enumerate(block_ranges(self.deploy_block, head, self.block_step)):
            if index:
                self.throttle.wait()
            report.ranges_scanned += 1
            try:
                chunk = self.reader.get_score_events(lo, hi)
            except Exception as e:
                failure = PartialScanError(lo, hi, cause=e)
                logger.warning("Skipping blocks %s-%s: %s", lo, hi, e)
                report.failures.append(failure)
                continue
            events.extend(chunk)

        report.events_seen = len(events)
        report.entries = reduce_scores(events)

        if report.failures:
            logger.warning(
                "Leaderboard scan of %s-%s incomplete: %s of %s ranges failed",
                report.from_block, report.to_block, len(report.failures), report.ranges_scanned,
            )
        else:
            logger.info(
                "Leaderboard scan of %s-%s: %s events, %s players",
                report.from_block, report.to_block, report.events_seen, len(report.entries),
            )
        return report

    # =========================================================================
    # Helpers
    # =========================================================================

    def _rebuild(self, fallback: CacheRecord | None) -> list[LeaderboardEntry]:
        try:
            report = self.scan()
        except Exception:
            logger.exception("Leaderboard scan failed before any range was read")
            if fallback is not None:
                return list(fallback.entries)
            return []

        self._write_cache(CacheRecord(timestamp=self.clock(), entries=tuple(report.entries)))
        return report.entries

    def _read_cache(self) -> CacheRecord | None:
        try:
            return self.cache.get()
        except CacheIOError as e:
            logger.warning("Ignoring leaderboard cache: %s", e)
            return None

    def _write_cache(self, record: CacheRecord):
        try:
            self.cache.put(record)
        except CacheIOError as e:
            logger.warning("Leaderboard cache not updated: %s", e)
