"""Sharing of in-flight feed requests between concurrent callers."""

import asyncio
import logging
from typing import Hashable

logger = logging.getLogger(__name__)


class RequestCoalescer:
    """At most one outstanding request per key.

    The first caller for a key becomes the leader and must call
    resolve() exactly once when its request settles. Later callers join
    the same future. A leader that fails resolves with an empty list
    and raises on its own path, so followers see an empty success rather
    than the error.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Future[list[str]]] = {}

    def acquire_or_join(self, key: Hashable) -> tuple[bool, "asyncio.Future[list[str]]"]:
        """Become leader for a key or join the request already in flight.

        Returns:
            Tuple of (is_leader, future resolving to the feed's lines).
        """
        future = self._locks.get(key)
        if future is not None:
            logger.debug(f"Joining in-flight request for {key!r}")
            return False, future

        future = asyncio.get_running_loop().create_future()
        self._locks[key] = future
        return True, future

    def resolve(self, key: Hashable, lines: list[str]) -> None:
        """Release the lock for a key and hand its lines to followers."""
        future = self._locks.pop(key, None)
        if future is not None and not future.done():
            future.set_result(lines)

    def in_flight(self, key: Hashable) -> bool:
        return key in self._locks
