"""podsync - delta-synchronized pod feeds with a live local overlay."""

from .changes import ChangeBus, DiscoveryStream, LocalChanges
from .config import Config, load_config
from .errors import PodsyncError, ProtocolError, TransportError, UpstreamError
from .feed import LinesFeed, Session, StreamError, StreamValue
from .objects import ChangeEvent, LocalObject, PatchRequest, RemoteObject

__version__ = "0.1.0"

__all__ = [
    "ChangeBus",
    "ChangeEvent",
    "Config",
    "DiscoveryStream",
    "LinesFeed",
    "LocalChanges",
    "LocalObject",
    "PatchRequest",
    "PodsyncError",
    "ProtocolError",
    "RemoteObject",
    "Session",
    "StreamError",
    "StreamValue",
    "TransportError",
    "UpstreamError",
    "load_config",
]
