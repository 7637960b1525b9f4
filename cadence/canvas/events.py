"""
Typed publish/subscribe bus for inline node edits.

Inline editors publish ``NodeUpdated`` payloads; a canvas session subscribes
and turns each one into an ``UpdateNodeData`` operation.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeUpdated:
    node_id: str
    updates: dict = field(default_factory=dict)


class NodeUpdateBus:
    """In-process bus; handlers run synchronously in subscription order."""

    def __init__(self):
        self._handlers: list[Callable[[NodeUpdated], None]] = []

    def subscribe(self, handler: Callable[[NodeUpdated], None]) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, event: NodeUpdated) -> int:
        """Deliver ``event`` to every subscriber. Returns the number notified."""
        if not isinstance(event, NodeUpdated):
            raise TypeError(f"Expected NodeUpdated, got {type(event).__name__}")
        handlers = list(self._handlers)
        for handler in handlers:
            handler(event)
        logger.debug("NodeUpdated %s delivered to %d handler(s)", event.node_id, len(handlers))
        return len(handlers)

    def __len__(self):
        return len(self._handlers)
