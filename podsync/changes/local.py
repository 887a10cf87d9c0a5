"""Optimistic local changes and live discovery over them.

Callers record puts, patches and deletes against objects they already
fetched. Each mutation is broadcast as a ChangeEvent, and discovery
streams re-check every event against their channels and schema so a
view can stay current without re-polling the pods.
"""

import asyncio
import dataclasses
import logging
import weakref
from datetime import datetime, timezone
from typing import Any, Callable

import jsonpatch
from jsonschema import Draft7Validator, FormatChecker
from jsonschema.validators import validator_for

from ..config import DiscoveryConfig
from ..objects import ChangeEvent, LocalObject, PatchRequest, RemoteObject
from .bus import ChangeBus

logger = logging.getLogger(__name__)

PATCHABLE_PROPERTIES = ("value", "channels", "acl")

_STOP = object()


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _weak_listener(
    method: Callable[[ChangeEvent], None],
) -> Callable[[ChangeEvent], None]:
    ref = weakref.WeakMethod(method)

    def listener(event: ChangeEvent) -> None:
        bound = ref()
        if bound is not None:
            bound(event)

    return listener


def match_object(
    obj: RemoteObject,
    channels: list[str],
    if_modified_since: datetime | None = None,
) -> bool:
    """Check whether an object belongs in a channel query.

    Args:
        obj: Object to test.
        channels: Channels queried; any overlap matches.
        if_modified_since: If set, the object must be modified at or after it.

    Returns:
        True if the object matches.
    """
    if if_modified_since is not None and _as_utc(obj.last_modified) < _as_utc(
        if_modified_since
    ):
        return False
    return any(channel in channels for channel in obj.channels)


class DiscoveryStream:
    """Live, cancellable stream of objects matching a discovery query.

    Subscribes to the change bus when created. For each event it emits
    the new object if that matches and validates, otherwise the old one
    if that does, so a consumer sees the stale version of an object
    that stopped matching. Closing the stream unsubscribes immediately
    and drops anything not yet consumed. The bus only holds the stream
    weakly, so a stream abandoned without closing unsubscribes when it
    is garbage-collected.
    """

    def __init__(
        self,
        bus: ChangeBus,
        channels: list[str],
        validator: Any,
        if_modified_since: datetime | None = None,
    ):
        self._channels = list(channels)
        self._validator = validator
        self._if_modified_since = if_modified_since
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._handle = bus.subscribe(_weak_listener(self._on_change))
        self._unsubscribe = weakref.finalize(self, bus.unsubscribe, self._handle)

    def _accepts(self, obj: RemoteObject | None) -> bool:
        return (
            obj is not None
            and match_object(obj, self._channels, self._if_modified_since)
            and self._validator.is_valid(obj.to_dict())
        )

    def _on_change(self, event: ChangeEvent) -> None:
        if self._accepts(event.new_object):
            self._queue.put_nowait(event.new_object)
        elif self._accepts(event.old_object):
            self._queue.put_nowait(event.old_object)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Unsubscribe and end the stream."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._queue.put_nowait(_STOP)
        logger.debug(
            f"Discovery on {self._channels} closed",
            extra={"channels": self._channels},
        )

    async def aclose(self) -> None:
        self.close()

    def __aiter__(self) -> "DiscoveryStream":
        return self

    async def __anext__(self) -> RemoteObject:
        if self._closed:
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _STOP or self._closed:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "DiscoveryStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


class LocalChanges:
    """Records optimistic mutations and serves live discovery over them."""

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        bus: ChangeBus | None = None,
    ):
        """Initialize local changes.

        Args:
            config: Discovery settings.
            bus: Change bus to publish on; a new one if None.
        """
        self.config = config or DiscoveryConfig()
        self.changes = bus if bus is not None else ChangeBus()

    def match_object(
        self,
        obj: RemoteObject,
        channels: list[str],
        if_modified_since: datetime | None = None,
    ) -> bool:
        return match_object(obj, channels, if_modified_since)

    def _dispatch(
        self, old_object: RemoteObject, new_object: RemoteObject | None = None
    ) -> None:
        self.changes.dispatch(ChangeEvent(old_object=old_object, new_object=new_object))

    def put(self, local_object: LocalObject, old_object: RemoteObject) -> None:
        """Replace an object's value, channels and acl."""
        new_object = dataclasses.replace(
            old_object,
            value=local_object.value,
            channels=list(local_object.channels),
            acl=local_object.acl,
            tombstone=False,
        )
        self._dispatch(old_object, new_object)

    def patch(self, patch: PatchRequest, old_object: RemoteObject) -> None:
        """Apply JSON-Patch operations to an object's properties.

        Raises:
            jsonpatch.JsonPatchException: If an operation cannot be applied.
            jsonpointer.JsonPointerException: If a path does not resolve.
        """
        new_object = dataclasses.replace(old_object, tombstone=False)
        for prop in PATCHABLE_PROPERTIES:
            ops = getattr(patch, prop)
            if not ops:
                continue
            setattr(
                new_object,
                prop,
                jsonpatch.apply_patch(getattr(new_object, prop), ops, in_place=False),
            )
        self._dispatch(old_object, new_object)

    def delete(self, old_object: RemoteObject) -> None:
        """Record that an object was deleted."""
        self._dispatch(old_object)

    def discover(
        self,
        channels: list[str],
        schema: dict[str, Any],
        if_modified_since: datetime | None = None,
    ) -> DiscoveryStream:
        """Open a live stream of changed objects in the given channels.

        Args:
            channels: Channels to watch.
            schema: JSON Schema each emitted object must satisfy.
            if_modified_since: Ignore objects modified before this.

        Returns:
            A DiscoveryStream; close it to stop listening.

        Raises:
            jsonschema.SchemaError: If the schema itself is invalid.
        """
        cls = validator_for(schema, default=Draft7Validator)
        cls.check_schema(schema)
        format_checker = FormatChecker() if self.config.format_checking else None
        validator = cls(schema, format_checker=format_checker)

        return DiscoveryStream(self.changes, channels, validator, if_modified_since)
