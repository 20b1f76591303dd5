# src/bearer_refresh/retry_queue.py

"""
FIFO of requests parked while a credential refresh is in flight.

Each parked request owns an asyncio.Future. The refresh driver settles every
future exactly once, in insertion order, with either the new credential or
the refresh error.
"""

import asyncio
import logging
from typing import List

lib_logger = logging.getLogger("bearer_refresh")


class RetryQueue:
    def __init__(self):
        self._waiters: List[asyncio.Future] = []

    def __len__(self) -> int:
        return len(self._waiters)

    def enqueue(self) -> asyncio.Future:
        """Park a new waiter and return the future the caller should await."""
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        lib_logger.debug(f"[RetryQueue] Request parked; {len(self._waiters)} waiting")
        return waiter

    def _take(self) -> List[asyncio.Future]:
        # Swap the container out first so the queue is empty once draining starts
        waiters, self._waiters = self._waiters, []
        return waiters

    def resolve_all(self, credential: str) -> int:
        """Release every waiter with the new credential. Returns how many were released."""
        released = 0
        for waiter in self._take():
            # A waiter cancelled by its own caller is already done
            if not waiter.done():
                waiter.set_result(credential)
                released += 1
        return released

    def reject_all(self, error: BaseException) -> int:
        """Fail every waiter with the refresh error. Returns how many were failed."""
        rejected = 0
        for waiter in self._take():
            if not waiter.done():
                waiter.set_exception(error)
                rejected += 1
        return rejected

    def clear(self, error: BaseException) -> None:
        """Fail any leftover waiters so none is left hanging."""
        if self._waiters:
            lib_logger.warning(
                f"[RetryQueue] Releasing {len(self._waiters)} leftover waiter(s) with {type(error).__name__}"
            )
            self.reject_all(error)
