"""Synchronous observer registry for local change events."""

import itertools
import logging
from typing import Callable

from ..objects import ChangeEvent

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], None]


class ChangeBus:
    """Broadcasts ChangeEvents to subscribed callbacks.

    Callbacks run synchronously in subscription order. One that raises
    is logged and the rest still run.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, ChangeCallback] = {}
        self._handles = itertools.count(1)

    def subscribe(self, callback: ChangeCallback) -> int:
        """Register a callback.

        Returns:
            Handle to pass to unsubscribe().
        """
        handle = next(self._handles)
        self._listeners[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> None:
        """Remove a callback; unknown handles are ignored."""
        self._listeners.pop(handle, None)

    def dispatch(self, event: ChangeEvent) -> None:
        """Deliver an event to every current subscriber."""
        for handle, callback in list(self._listeners.items()):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Change listener {handle} failed: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._listeners)
