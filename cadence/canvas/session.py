"""
Client-side canvas session — one room, one replicated document.

    join()    connect the provider (or stay offline), then seed an empty
              document with the default layout or mirror a non-empty one
    apply()   fold typed operations into the local state and republish every
              changed array (whole-array, clear-then-reinsert)
    poll()    pump incoming provider messages; remote array changes replace
              the local arrays and are NOT republished
    close()   flush the pending snapshot, tear down observers and provider

Room lifecycle:

    EMPTY ──join(empty doc)──▶ SEEDED ──first change──▶ SYNCING
    EMPTY ──join(non-empty)──────────────────────────▶ SYNCING
    any ──close()──▶ CLOSED

The session, its document and its provider are single-threaded; only the
snapshot writer's timer runs elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from cadence.canvas.document import CanvasDocument
from cadence.canvas.events import NodeUpdateBus, NodeUpdated
from cadence.canvas.layout import DEFAULT_OBJECTIVE_COUNT, default_layout
from cadence.canvas.operations import (
    CanvasOperationError,
    CanvasState,
    ReplaceAll,
    UpdateNodeData,
    apply_operations,
)
from cadence.canvas.placement import de_overlap

logger = logging.getLogger(__name__)

ROOM_PREFIX = "strategy-canvas-"


def room_name(cycle_id: str) -> str:
    return f"{ROOM_PREFIX}{cycle_id}"


class RoomState(str, Enum):
    EMPTY = "empty"
    SEEDED = "seeded"
    SYNCING = "syncing"
    CLOSED = "closed"


class SessionClosedError(RuntimeError):
    pass


@dataclass
class SessionStats:
    node_publishes: int = 0
    edge_publishes: int = 0
    remote_node_updates: int = 0
    remote_edge_updates: int = 0


class CanvasSession:
    """Join / mirror / republish contract for one canvas room.

    Args:
        room: Room name (``strategy-canvas-<cycleId>``).
        provider_factory: ``provider_factory(room, document)`` returning a
            connected, synced provider (``poll()``, ``close()``). ``None``
            runs the session offline.
        writer: Optional ``DebouncedSnapshotWriter`` scheduled on every
            local change.
        bus: Optional ``NodeUpdateBus`` whose ``NodeUpdated`` events become
            ``UpdateNodeData`` operations.
        objective_count: Objectives in the default seed layout.
        deoverlap_on_join: Re-place overlapping objectives of a mirrored
            document once, publishing only if anything moved.
    """

    def __init__(
        self,
        room: str,
        *,
        provider_factory: Callable | None = None,
        writer=None,
        bus: NodeUpdateBus | None = None,
        objective_count: int = DEFAULT_OBJECTIVE_COUNT,
        deoverlap_on_join: bool = True,
    ):
        self.room = room
        self.document = CanvasDocument()
        self.provider = None
        self.writer = writer
        self.stats = SessionStats()
        self.room_state = RoomState.EMPTY
        self.offline = provider_factory is None

        self._provider_factory = provider_factory
        self._bus = bus
        self._objective_count = objective_count
        self._deoverlap_on_join = deoverlap_on_join
        self._state = CanvasState()
        self._publishing = False
        self._updating_from_remote_nodes = False
        self._updating_from_remote_edges = False
        self._subscriptions = []
        self._unsubscribe_bus = None

    # ── Local view ────────────────────────────────────────────────────────

    @property
    def state(self) -> CanvasState:
        return self._state

    @property
    def nodes(self) -> list[dict]:
        return self._state.nodes_list()

    @property
    def edges(self) -> list[dict]:
        return self._state.edges_list()

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def join(self) -> RoomState:
        if self.room_state is not RoomState.EMPTY:
            raise SessionClosedError(f"Session for {self.room} already joined")

        if self._provider_factory is not None:
            try:
                self.provider = self._provider_factory(self.room, self.document)
            except Exception as exc:
                logger.warning("Collaboration server unreachable for %s, working offline: %s", self.room, exc)
                self.provider = None
                self.offline = True

        self._subscriptions = [
            ("nodes", self.document.observe_nodes(self._on_remote_nodes)),
            ("edges", self.document.observe_edges(self._on_remote_edges)),
        ]
        if self._bus is not None:
            self._unsubscribe_bus = self._bus.subscribe(self._on_node_updated)

        if self.document.is_empty():
            nodes, edges = default_layout(self._objective_count)
            self._state = CanvasState.from_lists(nodes, edges)
            self._publish_nodes()
            self._publish_edges()
            self._schedule_save()
            self.room_state = RoomState.SEEDED
            logger.info("Seeded canvas room %s with %d nodes", self.room, len(nodes))
        else:
            self._state = CanvasState.from_lists(self.document.read_nodes(), self.document.read_edges())
            self.room_state = RoomState.SYNCING
            logger.info("Joined canvas room %s (%d nodes)", self.room, len(self._state.nodes))
            if self._deoverlap_on_join:
                laid_out, changed = de_overlap(self._state.nodes_list())
                if changed:
                    self.apply(ReplaceAll(tuple(laid_out), self._state.edges))
        return self.room_state

    def close(self) -> None:
        if self.room_state is RoomState.CLOSED:
            return
        if self.writer is not None:
            self.writer.flush()
        for key, sub in self._subscriptions:
            if key == "nodes":
                self.document.unobserve_nodes(sub)
            else:
                self.document.unobserve_edges(sub)
        self._subscriptions = []
        if self._unsubscribe_bus is not None:
            self._unsubscribe_bus()
            self._unsubscribe_bus = None
        if self.provider is not None:
            self.provider.close()
            self.provider = None
        self.room_state = RoomState.CLOSED
        logger.info("Closed canvas room %s", self.room)

    def __enter__(self):
        self.join()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def poll(self, timeout: float = 0) -> int:
        """Process pending provider messages. Returns the number handled."""
        if self.provider is None:
            return 0
        return self.provider.poll(timeout)

    # ── Local mutation ────────────────────────────────────────────────────

    def apply(self, *operations) -> CanvasState:
        if self.room_state in (RoomState.EMPTY, RoomState.CLOSED):
            raise SessionClosedError(f"Session for {self.room} is not joined")
        before = self._state
        after = apply_operations(before, operations)
        self._state = after
        self._on_local_change(after.nodes != before.nodes, after.edges != before.edges)
        return after

    def _on_local_change(self, nodes_changed: bool, edges_changed: bool) -> None:
        if not (nodes_changed or edges_changed):
            return
        if nodes_changed:
            if self._updating_from_remote_nodes:
                self._updating_from_remote_nodes = False
            else:
                self._publish_nodes()
        if edges_changed:
            if self._updating_from_remote_edges:
                self._updating_from_remote_edges = False
            else:
                self._publish_edges()
        if self.room_state is RoomState.SEEDED:
            self.room_state = RoomState.SYNCING
        self._schedule_save()

    def _publish_nodes(self) -> None:
        self._publishing = True
        try:
            self.document.replace_nodes(self._state.nodes)
        finally:
            self._publishing = False
        self.stats.node_publishes += 1

    def _publish_edges(self) -> None:
        self._publishing = True
        try:
            self.document.replace_edges(self._state.edges)
        finally:
            self._publishing = False
        self.stats.edge_publishes += 1

    def _schedule_save(self) -> None:
        if self.writer is not None:
            self.writer.schedule(self._state.nodes, self._state.edges)

    # ── Remote mutation ───────────────────────────────────────────────────

    def _on_remote_nodes(self, event) -> None:
        if self._publishing or self.room_state is RoomState.CLOSED:
            return
        self.stats.remote_node_updates += 1
        self._updating_from_remote_nodes = True
        before = self._state
        self._state = CanvasState(tuple(self.document.read_nodes()), before.edges)
        if self._state.nodes != before.nodes:
            self._on_local_change(True, False)
        else:
            self._updating_from_remote_nodes = False

    def _on_remote_edges(self, event) -> None:
        if self._publishing or self.room_state is RoomState.CLOSED:
            return
        self.stats.remote_edge_updates += 1
        self._updating_from_remote_edges = True
        before = self._state
        self._state = CanvasState(before.nodes, tuple(self.document.read_edges()))
        if self._state.edges != before.edges:
            self._on_local_change(False, True)
        else:
            self._updating_from_remote_edges = False

    def _on_node_updated(self, event: NodeUpdated) -> None:
        try:
            self.apply(UpdateNodeData(event.node_id, dict(event.updates)))
        except CanvasOperationError as exc:
            logger.warning("Ignoring node update for %s in %s: %s", event.node_id, self.room, exc)
