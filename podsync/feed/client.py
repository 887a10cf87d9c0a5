"""Delta feed client for newline-delimited pod feeds.

Fetches feeds with conditional GET and "prepend" instance manipulation:
once a feed has been read, later requests ask only for lines added since
the cached Last-Modified anchor, and the server answers 226 with the new
lines to put in front of the cached ones.
"""

import asyncio
import inspect
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Callable, Generic, TypeVar

import httpx

from ..config import FeedConfig, HTTPConfig
from ..errors import ProtocolError, TransportError, UpstreamError
from .cache import CacheEntry, FeedCache
from .coalescer import RequestCoalescer
from .lines import iter_lines
from .responses import (
    format_timestamp,
    has_token,
    parse_error_response,
    parse_http_date,
    parse_max_age,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Session:
    """Who is asking, and through which client.

    Without a client the feed's own default client is used.
    """

    client: httpx.AsyncClient | None = None
    web_id: str | None = None
    pods: list[str] = field(default_factory=list)


@dataclass
class StreamValue(Generic[T]):
    """A successfully parsed line from one pod."""

    value: T
    error: bool = field(default=False, init=False)


@dataclass
class StreamError:
    """A failure tied to one pod: bad URL, failed fetch or unparseable line."""

    message: str
    pod: str
    error: bool = field(default=True, init=False)


StreamResult = StreamValue[T] | StreamError

_DONE = object()


def pod_origin(pod: str) -> str:
    """Get the scheme://host[:port] origin of a pod URL.

    Raises:
        ValueError: If the pod is not an absolute URL.
    """
    try:
        url = httpx.URL(pod)
    except (httpx.InvalidURL, TypeError) as e:
        raise ValueError(f"Invalid URL: {pod}") from e

    if not url.scheme or not url.host:
        raise ValueError(f"Invalid URL: {pod}")

    # httpx strips the brackets from IPv6 literals
    host = f"[{url.host}]" if ":" in url.host else url.host
    port = f":{url.port}" if url.port else ""
    return f"{url.scheme}://{host}{port}"


class LinesFeed:
    """Client for delta-synchronized line feeds across many pods.

    Keeps an in-memory cache of each feed's lines per (url, web_id) and
    coalesces concurrent requests for the same feed into one fetch.
    """

    def __init__(
        self,
        config: FeedConfig | None = None,
        http_config: HTTPConfig | None = None,
        cache: FeedCache | None = None,
    ):
        """Initialize the feed client.

        Args:
            config: Feed behaviour settings.
            http_config: Settings for the default HTTP client.
            cache: Cache to use; a fresh in-memory one if None.
        """
        self.config = config or FeedConfig()
        self.http_config = http_config or HTTPConfig()
        self.cache = cache if cache is not None else FeedCache()
        self._coalescer = RequestCoalescer()
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.http_config.timeout,
                follow_redirects=self.http_config.follow_redirects,
                headers={"User-Agent": self.http_config.user_agent},
            )
        return self._client

    async def aclose(self) -> None:
        """Close the default HTTP client if one was opened."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LinesFeed":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _parse_response(self, response: httpx.Response) -> AsyncIterator[str]:
        """Check a response against the delta protocol and yield its lines."""
        status = response.status_code

        if status in (204, 304):
            return

        if not response.is_success:
            raise UpstreamError(await parse_error_response(response), status)

        if status not in (200, 226):
            raise ProtocolError(f"Unexpected status code: {status}")

        if status == 226:
            if not has_token(response.headers.get("IM"), "prepend"):
                raise ProtocolError(
                    "Unrecognized instance manipulation for delta updates"
                )
            if not has_token(response.headers.get("Cache-Control"), "im"):
                raise ProtocolError(
                    "Missing Cache-Control 'im' header for delta updates"
                )

        async for line in iter_lines(response.aiter_bytes()):
            yield line

    async def _fetch(
        self,
        url: str,
        key: tuple[str, str | None],
        session: Session,
        if_modified_since: datetime | None,
    ) -> list[str]:
        """Fetch one feed, merge it with the cache and return all its lines."""
        last_modified: datetime | None = None
        cached_lines: list[str] = []

        if if_modified_since is not None:
            last_modified = if_modified_since
        elif self.config.cache_enabled:
            cached = self.cache.lookup(key)
            if cached is not None:
                last_modified = cached.last_modified
                cached_lines = cached.lines

        headers: dict[str, str] = {}
        if last_modified is not None:
            headers["A-IM"] = "prepend"
            headers["If-Modified-Since"] = format_timestamp(last_modified)
            logger.debug(
                f"GET {url} (delta since {headers['If-Modified-Since']})",
                extra={"url": url},
            )
        else:
            logger.debug(f"GET {url} (full)", extra={"url": url})

        client = session.client or self._get_client()
        try:
            async with client.stream("GET", url, headers=headers) as response:
                if response.status_code in (200, 204):
                    self.cache.clear(key)
                    cached_lines = []

                new_lines = [line async for line in self._parse_response(response)]
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        lines = new_lines + cached_lines

        anchor = parse_http_date(response.headers.get("Last-Modified"))

        expires: datetime | None = None
        max_age = parse_max_age(response.headers.get("Cache-Control"))
        if max_age is not None:
            expires = self.cache.now() + timedelta(seconds=max_age)

        if anchor is not None and self.config.cache_enabled:
            self.cache.store(
                key, CacheEntry(last_modified=anchor, expires=expires, lines=lines)
            )

        logger.debug(
            f"{url}: status={response.status_code}, "
            f"new={len(new_lines)}, total={len(lines)}",
            extra={"url": url, "status": response.status_code},
        )
        return lines

    async def stream(
        self,
        url: str,
        session: Session | None = None,
        if_modified_since: datetime | None = None,
    ) -> AsyncIterator[str]:
        """Stream every line of a feed, newest delta first.

        Concurrent calls for the same url and web_id share one request.
        If the request fails, the caller that issued it gets the error
        and callers that joined it get no lines.

        Args:
            url: Feed URL.
            session: Client and identity to request with.
            if_modified_since: Ask only for lines newer than this,
                bypassing the cache.

        Yields:
            Lines of the feed.

        Raises:
            TransportError: The request or body read failed.
            ProtocolError: The response broke the delta protocol.
            UpstreamError: The server returned a non-success status.
        """
        session = session or Session()
        key = (url, session.web_id)

        is_leader, lock = self._coalescer.acquire_or_join(key)
        if not is_leader:
            for line in await asyncio.shield(lock):
                yield line
            return

        lines: list[str] = []
        try:
            lines = await self._fetch(url, key, session, if_modified_since)
        finally:
            self._coalescer.resolve(key, lines)

        for line in lines:
            yield line

    async def stream_multiple(
        self,
        url_path: str,
        parser: Callable[[str, str], Any],
        session: Session,
        if_modified_since: datetime | None = None,
    ) -> AsyncIterator[StreamResult]:
        """Stream parsed lines from the same path on every pod in the session.

        Pods are fetched concurrently and their results interleave in no
        particular order. A failing pod yields one StreamError and stops;
        a line the parser rejects yields a StreamError and the pod
        carries on with its next line.

        Args:
            url_path: Path requested relative to each pod's origin.
            parser: Called as parser(line, pod); may be sync or async.
            session: Client, identity and pods to request.
            if_modified_since: Passed through to stream().

        Yields:
            StreamValue or StreamError results.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)
        tasks = [
            asyncio.create_task(
                self._stream_pod(
                    pod, url_path, parser, session, if_modified_since, queue
                )
            )
            for pod in session.pods
        ]

        remaining = len(tasks)
        try:
            while remaining:
                item = await queue.get()
                if item is _DONE:
                    remaining -= 1
                    continue
                yield item
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _stream_pod(
        self,
        pod: str,
        url_path: str,
        parser: Callable[[str, str], Any],
        session: Session,
        if_modified_since: datetime | None,
        queue: "asyncio.Queue[Any]",
    ) -> None:
        """Feed one pod's results into the shared queue."""
        try:
            origin = pod_origin(pod)
        except ValueError as e:
            await queue.put(StreamError(message=str(e), pod=pod))
            await queue.put(_DONE)
            return

        url = f"{origin}/{url_path}"
        try:
            async with aclosing(self.stream(url, session, if_modified_since)) as lines:
                async for line in lines:
                    try:
                        value = parser(line, pod)
                        if inspect.isawaitable(value):
                            value = await value
                    except Exception as e:
                        logger.debug(
                            f"Unparseable line from {pod}: {e}",
                            extra={"pod": pod, "url": url},
                        )
                        await queue.put(StreamError(message=str(e), pod=pod))
                        continue

                    await queue.put(StreamValue(value))
        except Exception as e:
            logger.warning(
                f"Feed from {pod} failed: {e}", extra={"pod": pod, "url": url}
            )
            await queue.put(StreamError(message=str(e), pod=pod))

        await queue.put(_DONE)
