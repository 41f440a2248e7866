"""
Message feed reducer
Turns a full store snapshot into the list the chat screen displays
"""

from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

from firechat.models import Message


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time copy of a store collection, children in store order"""
    path: str
    children: Sequence[Tuple[str, Any]] = field(default_factory=tuple)

    @classmethod
    def from_value(cls, path: str, value: Any) -> "Snapshot":
        """Build a snapshot from a collection value, ordering children by key.

        Push keys are timestamp-prefixed, so key order is insertion order.
        """
        if not isinstance(value, dict):
            return cls(path=path)
        return cls(path=path, children=tuple(sorted(value.items(), key=lambda item: item[0])))


def apply_snapshot(old: Sequence[Message], snapshot: Snapshot) -> List[Message]:
    """Return the new message list for ``snapshot``.

    The previous list is discarded entirely; the result holds only the
    snapshot's children, in the order the snapshot provides them.
    """
    messages = []
    for key, value in snapshot.children:
        message = Message.from_store(key, value)
        if message is not None:
            messages.append(message)
    return messages
