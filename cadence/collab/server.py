"""
Collaboration room server — y-websocket protocol over ``websockets``.

One asyncio loop hosts every room. A room is created on first connection to
``/<room>``: its document is cold-started from the latest canvas snapshot (or,
when that is missing, empty or an untouched seed, from the cycle's strategy
tables) and lives for the life of the process. Sync and update messages are applied to
the room document and fanned out to the other connections; awareness
messages are relayed untouched. Room state is persisted through the same
debounced snapshot writer the client session uses (``updated_by`` = None).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from pycrdt import (
    YMessageType,
    create_sync_message,
    create_update_message,
    handle_sync_message,
)
from websockets.asyncio.server import broadcast, serve
from websockets.exceptions import ConnectionClosed

from cadence.canvas.document import CanvasDocument
from cadence.canvas.layout import is_usable_snapshot
from cadence.canvas.persistence import DEFAULT_DEBOUNCE_SECONDS, DebouncedSnapshotWriter

logger = logging.getLogger(__name__)


@dataclass
class Room:
    name: str
    document: CanvasDocument
    writer: DebouncedSnapshotWriter | None = None
    clients: set = field(default_factory=set)
    sender: object = None


class CollabServer:
    """Room registry plus the websocket connection handler.

    Args:
        store: ``SnapshotStore`` (or anything with ``load(room)`` and
            ``save(room, nodes, edges, updated_by)``); None disables
            cold start and persistence.
        layout_loader: ``layout_loader(room)`` returning ``(nodes, edges)``
            or None; seeds a room whose snapshot is missing, empty or an
            untouched seed layout.
        debounce: Snapshot quiet period in seconds.
    """

    def __init__(
        self,
        store=None,
        *,
        layout_loader=None,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory=None,
    ):
        self.store = store
        self.layout_loader = layout_loader
        self.debounce = debounce
        self._timer_factory = timer_factory
        self.rooms: dict[str, Room] = {}
        self._room_locks: dict[str, asyncio.Lock] = {}

    async def get_room(self, name: str) -> Room:
        lock = self._room_locks.setdefault(name, asyncio.Lock())
        async with lock:
            room = self.rooms.get(name)
            if room is not None:
                return room

            document = CanvasDocument()
            writer = None
            snapshot = None
            if self.store is not None:
                snapshot = await asyncio.to_thread(self.store.load, name)
            if is_usable_snapshot(snapshot):
                document.replace_nodes(snapshot["nodes"])
                document.replace_edges(snapshot["edges"])
                logger.info("Room %s cold-started from snapshot (%d nodes)", name, len(snapshot["nodes"]))
            elif self.layout_loader is not None:
                built = await asyncio.to_thread(self.layout_loader, name)
                if built is not None:
                    nodes, edges = built
                    document.replace_nodes(nodes)
                    document.replace_edges(edges)
                    logger.info("Room %s cold-started from strategy tables (%d nodes)", name, len(nodes))
            if self.store is not None:
                writer = DebouncedSnapshotWriter(
                    name, self.store.save, delay=self.debounce, timer_factory=self._timer_factory,
                )

            room = Room(name=name, document=document, writer=writer)
            loop = asyncio.get_running_loop()
            document.observe_updates(lambda update: self._on_room_update(room, update, loop))
            self.rooms[name] = room
            return room

    def _on_room_update(self, room: Room, update: bytes, loop) -> None:
        others = [ws for ws in room.clients if ws is not room.sender]
        if others:
            broadcast(others, create_update_message(update))
        if room.writer is not None:
            # read the arrays once the transaction has been released
            loop.call_soon(self._persist, room)

    def _persist(self, room: Room) -> None:
        room.writer.schedule(room.document.read_nodes(), room.document.read_edges())

    async def handler(self, websocket) -> None:
        name = websocket.request.path.strip("/")
        if not name:
            await websocket.close(code=1008, reason="room name required")
            return

        room = await self.get_room(name)
        room.clients.add(websocket)
        logger.info("Client joined room %s (%d connected)", name, len(room.clients))
        try:
            await websocket.send(create_sync_message(room.document.doc))
            async for message in websocket:
                await self._handle_message(room, websocket, message)
        except ConnectionClosed:
            pass
        finally:
            room.clients.discard(websocket)
            logger.info("Client left room %s (%d connected)", name, len(room.clients))
            if not room.clients and room.writer is not None:
                await asyncio.to_thread(room.writer.flush)

    async def _handle_message(self, room: Room, websocket, message) -> None:
        if isinstance(message, str) or not message:
            return
        if message[0] == YMessageType.SYNC:
            room.sender = websocket
            try:
                reply = handle_sync_message(message[1:], room.document.doc)
            finally:
                room.sender = None
            if reply is not None:
                await websocket.send(reply)
        elif message[0] == YMessageType.AWARENESS:
            others = [ws for ws in room.clients if ws is not websocket]
            if others:
                broadcast(others, message)


async def run(host: str, port: int, server: CollabServer) -> None:
    async with serve(server.handler, host, port) as ws_server:
        logger.info("Collaboration server listening on ws://%s:%s", host, port)
        await ws_server.serve_forever()
