"""
Strategy canvas sync core.

    nodes        node kinds, default sizes, geometry
    placement    non-overlapping placement + de-overlap pass
    layout       default seed layout and strategy (import) layout
    operations   typed operations, reducer, toolbar commands
    document     pycrdt document with ``nodes`` / ``edges`` arrays
    session      join / mirror / republish client session
    persistence  snapshot store + debounced writer
    events       typed node-update bus
"""

from cadence.canvas.events import NodeUpdateBus, NodeUpdated
from cadence.canvas.nodes import NodeKind, ROOT_ID
from cadence.canvas.session import CanvasSession, RoomState, room_name

__all__ = [
    "CanvasSession",
    "NodeKind",
    "NodeUpdateBus",
    "NodeUpdated",
    "ROOT_ID",
    "RoomState",
    "room_name",
]
