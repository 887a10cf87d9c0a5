"""Objects synchronized between pods and the local overlay."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class RemoteObject:
    """A unit of synchronized state as last seen on a pod."""

    url: str
    actor: str
    value: Any
    channels: list[str]
    last_modified: datetime
    acl: list[str] | None = None  # None means public
    tombstone: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict for schema validation."""
        return {
            "url": self.url,
            "actor": self.actor,
            "value": self.value,
            "channels": list(self.channels),
            "acl": list(self.acl) if self.acl is not None else None,
            "last_modified": self.last_modified.isoformat(),
            "tombstone": self.tombstone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteObject":
        """Create from dictionary."""
        return cls(
            url=data["url"],
            actor=data["actor"],
            value=data["value"],
            channels=list(data["channels"]),
            last_modified=datetime.fromisoformat(data["last_modified"]),
            acl=data.get("acl"),
            tombstone=data.get("tombstone", False),
        )


@dataclass
class LocalObject:
    """Caller-supplied draft overlaid onto a RemoteObject by a put."""

    value: Any
    channels: list[str]
    acl: list[str] | None = None


@dataclass
class PatchRequest:
    """JSON-Patch operations per patchable property.

    An empty list leaves that property untouched.
    """

    value: list[dict[str, Any]] = field(default_factory=list)
    channels: list[dict[str, Any]] = field(default_factory=list)
    acl: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ChangeEvent:
    """A local mutation; new_object is None for deletions."""

    old_object: RemoteObject
    new_object: RemoteObject | None = None
