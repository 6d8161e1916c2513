"""
Block ranges - Chunked iteration over a block span, with a request throttle.

Providers cap the span of a single log query, so a scan walks the chain in
fixed-size windows. The walk is sequential; the throttle sleeps between
consecutive requests to keep under the provider's rate limit.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterator
import time

DEFAULT_BLOCK_STEP = 20_000
DEFAULT_SCAN_DELAY = 0.15


def block_ranges(start: int, end: int, step: int = DEFAULT_BLOCK_STEP) -> Iterator[tuple[int, int]]:
    """
    Yield inclusive (from, to) windows covering [start, end].

    >>> list(block_ranges(0, 25, 10))
    [(0, 9), (10, 19), (20, 25)]
    """
    if step <= 0:
        raise ValueError("step must be positive")
    for lo in range(start, end + 1, step):
        yield lo, min(lo + step - 1, end)


@dataclass
class ScanThrottle:
    """Fixed delay between consecutive range requests."""
    delay: float = DEFAULT_SCAN_DELAY
    sleep: Callable[[float], None] = field(default=time.sleep)

    def wait(self):
        if self.delay > 0:
            self.sleep(self.delay)
