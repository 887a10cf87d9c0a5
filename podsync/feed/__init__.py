"""Delta-synchronized line feeds from remote pods.

Provides conditional, incremental fetching of newline-delimited feeds
with an in-memory cache, request coalescing and multi-pod fan-in.
"""

from .cache import CacheEntry, FeedCache
from .client import LinesFeed, Session, StreamError, StreamValue, pod_origin
from .coalescer import RequestCoalescer
from .lines import iter_lines

__all__ = [
    "CacheEntry",
    "FeedCache",
    "LinesFeed",
    "RequestCoalescer",
    "Session",
    "StreamError",
    "StreamValue",
    "iter_lines",
    "pod_origin",
]
