"""In-memory cache of feed lines keyed by source and requester."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Hashable

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """Lines known for a feed as of its last_modified anchor."""

    last_modified: datetime
    expires: datetime | None = None
    lines: list[str] = field(default_factory=list)  # Newest delta first

    def is_expired(self, now: datetime) -> bool:
        return self.expires is not None and now > self.expires


class FeedCache:
    """Keyed store of CacheEntry objects with time-based expiry.

    There is no size bound; entries live until they expire or are
    cleared by a full response.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        """Initialize the cache.

        Args:
            clock: Returns the current time; override in tests.
        """
        self._entries: dict[Hashable, CacheEntry] = {}
        self._clock = clock

    def lookup(self, key: Hashable) -> CacheEntry | None:
        """Get the live entry for a key, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            logger.debug(f"Cache entry expired for {key!r}")
            del self._entries[key]
            return None

        return entry

    def store(self, key: Hashable, entry: CacheEntry) -> None:
        """Store an entry, replacing any previous one."""
        self._entries[key] = entry
        logger.debug(
            f"Cached {len(entry.lines)} lines for {key!r} "
            f"(last_modified={entry.last_modified.isoformat()})"
        )

    def clear(self, key: Hashable) -> None:
        """Remove the entry for a key if present."""
        self._entries.pop(key, None)

    def now(self) -> datetime:
        return self._clock()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
