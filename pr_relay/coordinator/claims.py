"""Per-PR creation claims."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from pr_relay.core.exceptions import CreationTimeoutError
from pr_relay.core.logging import get_logger

logger = get_logger("coordinator.claims")


class CreationClaims:
    """Mutual exclusion for first-time creation, keyed by PR number.

    A second claimant for the same PR waits for the first to finish instead
    of racing it, so it can re-check the store and reuse what was created.
    Locks only live while someone holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._claimants: dict[int, int] = {}

    def is_claimed(self, pr_number: int) -> bool:
        lock = self._locks.get(pr_number)
        return lock is not None and lock.locked()

    @property
    def active(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def claim(self, pr_number: int, timeout: float) -> AsyncIterator[None]:
        """Hold the creation claim for a PR, waiting at most `timeout` seconds."""
        lock = self._locks.setdefault(pr_number, asyncio.Lock())
        self._claimants[pr_number] = self._claimants.get(pr_number, 0) + 1

        try:
            if lock.locked():
                logger.debug(f"PR #{pr_number} is already being created, waiting")
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except asyncio.TimeoutError:
                logger.error(f"Timed out after {timeout}s waiting for PR #{pr_number} creation")
                raise CreationTimeoutError(pr_number, timeout) from None

            try:
                yield
            finally:
                lock.release()
        finally:
            self._claimants[pr_number] -= 1
            if self._claimants[pr_number] == 0:
                del self._claimants[pr_number]
                self._locks.pop(pr_number, None)
