"""
Error taxonomy.

Session-lifecycle errors propagate to the caller; leaderboard errors
(PartialScanError, CacheIOError) are recovered inside the aggregator and
never reach a reader of the leaderboard.
"""

from __future__ import annotations


class Chain2048Error(Exception):
    """Base class for all package errors."""


class LedgerSubmissionError(Chain2048Error):
    """A write request could not be finalized. Never retried automatically."""

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class FinalizationTimeoutError(LedgerSubmissionError):
    """
    The request was submitted but finalization was not observed in time.

    The outcome is unknown, not failed: reconcile by reading the receipt of
    `tx_hash` instead of resubmitting.
    """


class EventNotFoundError(Chain2048Error):
    """Finalization succeeded but the expected event is missing from the receipt."""

    def __init__(self, event_name: str, tx_hash: str | None = None):
        super().__init__(f"{event_name} event not found in receipt {tx_hash or '<unknown>'}")
        self.event_name = event_name
        self.tx_hash = tx_hash


class IdentityMismatchError(Chain2048Error):
    """A session was closed by an identity other than the one that opened it."""

    def __init__(self, session_id: int | None, expected: str, actual: str):
        super().__init__(
            f"Session {session_id} was opened by {expected}; refusing close from {actual}"
        )
        self.session_id = session_id
        self.expected = expected
        self.actual = actual


class SessionStateError(Chain2048Error):
    """A lifecycle transition was attempted from a state that does not allow it."""


class PartialScanError(Chain2048Error):
    """One block sub-range of a leaderboard scan could not be retrieved."""

    def __init__(self, from_block: int, to_block: int, cause: Exception | None = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to fetch blocks {from_block}-{to_block}{detail}")
        self.from_block = from_block
        self.to_block = to_block
        self.cause = cause


class CacheIOError(Chain2048Error):
    """Leaderboard cache could not be read or written."""
