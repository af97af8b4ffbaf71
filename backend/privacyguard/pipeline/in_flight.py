"""Tracks which domains are currently being processed."""

import logging

logger = logging.getLogger(__name__)


class InFlightRegistry:
    """
    Set of domain keys with a processing run in progress.

    try_acquire checks and inserts in one synchronous step, so no other task can
    interleave between the test and the mark on a single event loop. Callers must
    release in a finally block.
    """

    def __init__(self) -> None:
        self._domains: set[str] = set()

    def try_acquire(self, domain: str) -> bool:
        if domain in self._domains:
            logger.info("%s is already being processed", domain)
            return False
        self._domains.add(domain)
        return True

    def release(self, domain: str) -> None:
        self._domains.discard(domain)

    def __contains__(self, domain: object) -> bool:
        return domain in self._domains

    def __len__(self) -> int:
        return len(self._domains)

    def snapshot(self) -> list[str]:
        return sorted(self._domains)
