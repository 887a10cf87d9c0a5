"""Local optimistic changes and live discovery."""

from .bus import ChangeBus
from .local import DiscoveryStream, LocalChanges, match_object

__all__ = ["ChangeBus", "DiscoveryStream", "LocalChanges", "match_object"]
