"""Poll a predicate until it holds or a timeout expires."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class PollResult:
    ready: bool
    attempts: int
    elapsed: float

    @property
    def timed_out(self) -> bool:
        return not self.ready


def poll_until(
    predicate: Callable[[], bool],
    *,
    interval: float,
    timeout: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Call *predicate* every *interval* seconds until it returns truthy.

    The predicate is always evaluated at least once.  Exceptions it raises
    propagate to the caller.  *clock* and *sleep* can be replaced to run on
    virtual time.
    """
    start = clock()
    attempts = 0
    while True:
        attempts += 1
        if predicate():
            return PollResult(ready=True, attempts=attempts, elapsed=clock() - start)
        elapsed = clock() - start
        if elapsed >= timeout:
            return PollResult(ready=False, attempts=attempts, elapsed=elapsed)
        sleep(min(interval, max(timeout - elapsed, 0.0)))
