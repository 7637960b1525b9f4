"""
Canvas session, replicated document, snapshot persistence and collaboration
transport tests.

Tests cover:
  - join: seeding an empty room, mirroring a non-empty one, de-overlap on join
  - echo suppression: remote array changes are mirrored, never republished
  - node-update bus → UpdateNodeData
  - DebouncedSnapshotWriter coalescing with a controllable timer
  - SnapshotStore upsert / load
  - CollabProvider handshake, forwarding and polling over a fake socket
  - CollabServer cold start and sync replies
"""

import asyncio

import pytest
from pycrdt import Doc, YMessageType, create_sync_message, create_update_message, handle_sync_message

from cadence.canvas.document import CanvasDocument
from cadence.canvas.events import NodeUpdateBus, NodeUpdated
from cadence.canvas.layout import build_strategy_layout, default_layout
from cadence.canvas.operations import MoveNode, UpdateNodeData
from cadence.canvas.persistence import DebouncedSnapshotWriter, SnapshotStore
from cadence.canvas.session import CanvasSession, RoomState, SessionClosedError, room_name
from cadence.collab.provider import CollabProvider, CollabSyncError
from cadence.collab.server import CollabServer
from cadence.models import db
from cadence.models.canvas import CanvasSnapshot


ROOM = room_name("cycle-1")


class FakeTimer:
    """Stands in for threading.Timer; fires only when the test says so."""

    created = []

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fn()


@pytest.fixture(autouse=True)
def _reset_timers():
    FakeTimer.created = []
    yield


class RecordingSave:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def __call__(self, room, nodes, edges, updated_by=None):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.calls.append((room, nodes, edges, updated_by))


def _position(session, node_id):
    return next(n for n in session.nodes if n["id"] == node_id)["position"]


def _mirror(source: CanvasSession, target: CanvasSession):
    target.document.apply_update(source.document.get_update())


# ═══════════════════════════════════════════════════════════════
# Join
# ═══════════════════════════════════════════════════════════════

class TestJoin:
    def test_empty_room_is_seeded_and_published(self):
        session = CanvasSession(ROOM)
        assert session.join() is RoomState.SEEDED
        assert session.offline is True
        assert [n["id"] for n in session.document.read_nodes()] == ["rally-1", "do-1", "do-2", "do-3", "do-4"]
        assert len(session.document.read_edges()) == 4
        assert session.stats.node_publishes == 1
        assert session.stats.edge_publishes == 1

    def test_non_empty_room_is_mirrored_without_publishing(self):
        first = CanvasSession(ROOM)
        first.join()
        second = CanvasSession(ROOM)
        _mirror(first, second)
        assert second.join() is RoomState.SYNCING
        assert second.nodes == first.nodes
        assert second.stats.node_publishes == 0

    def test_overlapping_objectives_are_spread_once_on_join(self):
        nodes, edges = default_layout()
        for node in nodes[1:]:
            node["position"] = {"x": 0, "y": 300}
        source = CanvasDocument()
        source.replace_nodes(nodes)
        source.replace_edges(edges)

        session = CanvasSession(ROOM)
        session.document.apply_update(source.get_update())
        session.join()
        positions = {(p["x"], p["y"]) for p in (_position(session, f"do-{i}") for i in range(1, 5))}
        assert len(positions) == 4
        assert session.stats.node_publishes == 1

    def test_join_twice_rejected(self):
        session = CanvasSession(ROOM)
        session.join()
        with pytest.raises(SessionClosedError):
            session.join()

    def test_apply_before_join_rejected(self):
        with pytest.raises(SessionClosedError):
            CanvasSession(ROOM).apply(MoveNode("do-1", 0, 0))

    def test_first_local_change_moves_seeded_room_to_syncing(self):
        session = CanvasSession(ROOM)
        session.join()
        session.apply(MoveNode("do-1", 10, 10))
        assert session.room_state is RoomState.SYNCING


# ═══════════════════════════════════════════════════════════════
# Echo suppression
# ═══════════════════════════════════════════════════════════════

class TestEchoSuppression:
    def test_local_change_republishes_only_changed_array(self):
        session = CanvasSession(ROOM)
        session.join()
        session.apply(MoveNode("do-1", 900, 900))
        assert session.stats.node_publishes == 2
        assert session.stats.edge_publishes == 1
        assert session.stats.remote_node_updates == 0

    def test_remote_change_is_mirrored_not_republished(self):
        alice = CanvasSession(ROOM)
        alice.join()
        bob = CanvasSession(ROOM)
        _mirror(alice, bob)
        bob.join()

        alice.apply(MoveNode("do-1", 900, 900))
        _mirror(alice, bob)

        assert _position(bob, "do-1") == {"x": 900, "y": 900}
        assert bob.stats.remote_node_updates == 1
        assert bob.stats.node_publishes == 0
        assert bob.stats.edge_publishes == 0

    def test_remote_change_still_schedules_snapshot(self):
        alice = CanvasSession(ROOM)
        alice.join()
        save = RecordingSave()
        writer = DebouncedSnapshotWriter(ROOM, save, timer_factory=FakeTimer)
        bob = CanvasSession(ROOM, writer=writer)
        _mirror(alice, bob)
        bob.join()

        alice.apply(UpdateNodeData("do-2", {"title": "Grow revenue"}))
        _mirror(alice, bob)
        assert writer.pending is True
        FakeTimer.created[-1].fire()
        assert save.calls[-1][1][2]["data"]["title"] == "Grow revenue"

    def test_closed_session_ignores_remote_changes(self):
        alice = CanvasSession(ROOM)
        alice.join()
        bob = CanvasSession(ROOM)
        _mirror(alice, bob)
        bob.join()
        bob.close()

        alice.apply(MoveNode("do-1", 1, 1))
        _mirror(alice, bob)
        assert bob.stats.remote_node_updates == 0
        assert bob.room_state is RoomState.CLOSED


class TestNodeUpdateBusIntegration:
    def test_bus_events_become_node_updates(self):
        bus = NodeUpdateBus()
        session = CanvasSession(ROOM, bus=bus)
        session.join()
        bus.publish(NodeUpdated("do-3", {"title": "Retain customers"}))
        assert session.state.node("do-3")["data"]["title"] == "Retain customers"
        assert session.stats.node_publishes == 2

    def test_unknown_node_is_ignored(self):
        bus = NodeUpdateBus()
        session = CanvasSession(ROOM, bus=bus)
        session.join()
        bus.publish(NodeUpdated("do-99", {"title": "ghost"}))
        assert session.state.node("do-99") is None

    def test_close_unsubscribes(self):
        bus = NodeUpdateBus()
        session = CanvasSession(ROOM, bus=bus)
        session.join()
        session.close()
        assert len(bus) == 0


# ═══════════════════════════════════════════════════════════════
# Snapshot persistence
# ═══════════════════════════════════════════════════════════════

class TestDebouncedSnapshotWriter:
    def test_burst_coalesces_into_one_write_of_latest_state(self):
        save = RecordingSave()
        writer = DebouncedSnapshotWriter(ROOM, save, timer_factory=FakeTimer, updated_by="u-1")
        for x in range(3):
            writer.schedule([{"id": "do-1", "position": {"x": x, "y": 0}}], [])

        assert len(FakeTimer.created) == 3
        assert [t.cancelled for t in FakeTimer.created] == [True, True, False]
        assert FakeTimer.created[-1].delay == 0.8

        FakeTimer.created[-1].fire()
        assert len(save.calls) == 1
        room, nodes, edges, updated_by = save.calls[0]
        assert room == ROOM
        assert nodes[0]["position"]["x"] == 2
        assert updated_by == "u-1"
        assert writer.pending is False

    def test_stale_timer_does_not_write(self):
        save = RecordingSave()
        writer = DebouncedSnapshotWriter(ROOM, save, timer_factory=FakeTimer)
        writer.schedule([{"id": "a"}], [])
        writer.schedule([{"id": "b"}], [])
        FakeTimer.created[0].fire()
        assert save.calls == []

    def test_scheduled_arrays_are_copied(self):
        save = RecordingSave()
        writer = DebouncedSnapshotWriter(ROOM, save, timer_factory=FakeTimer)
        nodes = [{"id": "do-1", "data": {"title": "before"}}]
        writer.schedule(nodes, [])
        nodes[0]["data"]["title"] = "after"
        writer.flush()
        assert save.calls[0][1][0]["data"]["title"] == "before"

    def test_flush_and_cancel(self):
        save = RecordingSave()
        writer = DebouncedSnapshotWriter(ROOM, save, timer_factory=FakeTimer)
        assert writer.flush() is False
        writer.schedule([], [])
        writer.cancel()
        assert writer.flush() is False
        assert save.calls == []

    def test_save_failure_is_logged_not_raised(self):
        writer = DebouncedSnapshotWriter(ROOM, RecordingSave(fail=True), timer_factory=FakeTimer)
        writer.schedule([{"id": "do-1"}], [])
        FakeTimer.created[-1].fire()
        assert writer.failures == 1
        assert writer.writes == 0

    def test_session_close_flushes_pending_snapshot(self):
        save = RecordingSave()
        writer = DebouncedSnapshotWriter(ROOM, save, timer_factory=FakeTimer)
        with CanvasSession(ROOM, writer=writer) as session:
            session.apply(MoveNode("do-1", 1, 2))
        assert len(save.calls) == 1
        assert save.calls[0][1][1]["position"] == {"x": 1, "y": 2}


class TestSnapshotStore:
    def test_load_missing_room(self):
        assert SnapshotStore().load(ROOM) is None

    def test_save_then_upsert(self, admin_user):
        store = SnapshotStore()
        nodes, edges = default_layout()
        store.save(ROOM, nodes, edges, updated_by=admin_user.id)
        store.save(ROOM, nodes[:2], edges[:1], updated_by=None)

        assert CanvasSnapshot.query.count() == 1
        snapshot = store.load(ROOM)
        assert [n["id"] for n in snapshot["nodes"]] == ["rally-1", "do-1"]
        assert len(snapshot["edges"]) == 1
        assert snapshot["updated_by"] is None
        assert snapshot["updated_at"] is not None

    def test_store_with_app_opens_its_own_context(self, app):
        store = SnapshotStore(app)
        store.save(ROOM, [{"id": "rally-1"}], [])
        db.session.expire_all()
        assert store.load(ROOM)["nodes"] == [{"id": "rally-1"}]


# ═══════════════════════════════════════════════════════════════
# Collaboration transport
# ═══════════════════════════════════════════════════════════════

class FakeSocket:
    """Server side of one y-websocket connection, backed by a pycrdt Doc."""

    def __init__(self, server_doc, reply=True):
        self.server_doc = server_doc
        self.reply = reply
        self.inbox = []
        self.sent = []
        self.closed = False
        self.entered = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def send(self, message):
        self.sent.append(message)
        if self.reply and message[0] == YMessageType.SYNC:
            answer = handle_sync_message(message[1:], self.server_doc)
            if answer is not None:
                self.inbox.append(answer)

    def recv(self, timeout=None):
        if not self.inbox:
            raise TimeoutError
        return self.inbox.pop(0)

    def close(self):
        self.closed = True


def _seeded_server_doc():
    server = CanvasDocument()
    nodes, edges = default_layout()
    server.replace_nodes(nodes)
    server.replace_edges(edges)
    return server


def _factory_for(socket):
    def _factory(room, document):
        return CollabProvider(
            "ws://collab.test", room, document, timeout=0.1,
            connect=lambda url, open_timeout: socket,
        ).connect()
    return _factory


class TestCollabProvider:
    def test_handshake_pulls_server_state(self):
        server = _seeded_server_doc()
        socket = FakeSocket(server.doc)
        session = CanvasSession(ROOM, provider_factory=_factory_for(socket))

        assert session.join() is RoomState.SYNCING
        assert session.offline is False
        assert session.provider.synced is True
        assert session.provider.url == f"ws://collab.test/{ROOM}"
        assert session.nodes == server.read_nodes()

    def test_local_changes_reach_the_server(self):
        server = _seeded_server_doc()
        socket = FakeSocket(server.doc)
        session = CanvasSession(ROOM, provider_factory=_factory_for(socket))
        session.join()

        session.apply(MoveNode("do-2", 700, 700))
        moved = next(n for n in server.read_nodes() if n["id"] == "do-2")
        assert moved["position"] == {"x": 700, "y": 700}

    def test_polled_remote_update_is_mirrored_not_echoed(self):
        server = _seeded_server_doc()
        socket = FakeSocket(server.doc)
        session = CanvasSession(ROOM, provider_factory=_factory_for(socket))
        session.join()
        sent_before = len(socket.sent)
        publishes_before = session.stats.node_publishes

        client_state = session.document.doc.get_state()
        nodes = server.read_nodes()
        nodes[1]["data"]["title"] = "Grow revenue"
        server.replace_nodes(nodes)
        socket.inbox.append(create_update_message(server.doc.get_update(client_state)))

        assert session.poll() == 1
        assert session.state.node("do-1")["data"]["title"] == "Grow revenue"
        assert session.stats.node_publishes == publishes_before
        assert len(socket.sent) == sent_before

    def test_silent_server_times_out(self):
        socket = FakeSocket(Doc(), reply=False)
        provider = CollabProvider(
            "ws://collab.test", ROOM, CanvasDocument(), timeout=0.01,
            connect=lambda url, open_timeout: socket,
        )
        with pytest.raises(CollabSyncError):
            provider.connect()
        assert socket.closed is True
        assert provider.connected is False

    def test_unreachable_server_falls_back_to_offline(self):
        def _refuse(room, document):
            raise ConnectionRefusedError("no server")

        session = CanvasSession(ROOM, provider_factory=_refuse)
        assert session.join() is RoomState.SEEDED
        assert session.offline is True
        assert session.poll() == 0

    def test_close_closes_provider(self):
        socket = FakeSocket(_seeded_server_doc().doc)
        session = CanvasSession(ROOM, provider_factory=_factory_for(socket))
        session.join()
        assert socket.entered is True
        assert socket.closed is False
        session.close()
        assert socket.closed is True
        assert session.provider is None


class FakeStore:
    def __init__(self, snapshots=None):
        self.snapshots = dict(snapshots or {})
        self.saved = []

    def load(self, room):
        return self.snapshots.get(room)

    def save(self, room, nodes, edges, updated_by=None):
        self.saved.append((room, nodes, edges, updated_by))


class FakeServerSocket:
    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)


def _strategy_snapshot():
    return build_strategy_layout("Win the mid-market", [
        {"title": "Grow revenue", "initiatives": [{"title": "Partner program"}]},
        {"title": "Retain customers", "initiatives": []},
    ])


class TestCollabServer:
    def test_room_cold_starts_from_snapshot_once(self):
        nodes, edges = _strategy_snapshot()
        server = CollabServer(FakeStore({ROOM: {"nodes": nodes, "edges": edges}}), timer_factory=FakeTimer)

        async def scenario():
            return await server.get_room(ROOM), await server.get_room(ROOM)

        room, again = asyncio.run(scenario())
        assert room is again
        assert [n["id"] for n in room.document.read_nodes()] == [n["id"] for n in nodes]
        assert len(room.document.read_edges()) == 3

    def test_sync_reply_and_persisted_update(self):
        nodes, edges = _strategy_snapshot()
        store = FakeStore({ROOM: {"nodes": nodes, "edges": edges}})
        server = CollabServer(store, timer_factory=FakeTimer)
        client = CanvasDocument()
        ws = FakeServerSocket()

        async def scenario():
            room = await server.get_room(ROOM)
            await server._handle_message(room, ws, create_sync_message(client.doc))
            handle_sync_message(ws.sent[0][1:], client.doc)

            before = client.doc.get_state()
            moved = client.read_nodes()
            moved[1]["position"] = {"x": 5, "y": 5}
            client.replace_nodes(moved)
            await server._handle_message(room, ws, create_update_message(client.doc.get_update(before)))
            await asyncio.sleep(0)
            return room

        room = asyncio.run(scenario())
        assert [n["id"] for n in client.read_nodes()] == [n["id"] for n in nodes]
        assert room.document.read_nodes()[1]["position"] == {"x": 5, "y": 5}

        FakeTimer.created[-1].fire()
        saved_room, saved_nodes, _, updated_by = store.saved[-1]
        assert saved_room == ROOM
        assert saved_nodes[1]["position"] == {"x": 5, "y": 5}
        assert updated_by is None

    def test_text_frames_are_ignored(self):
        server = CollabServer(None)
        ws = FakeServerSocket()

        async def scenario():
            room = await server.get_room(ROOM)
            await server._handle_message(room, ws, "hello")
            return room

        room = asyncio.run(scenario())
        assert ws.sent == []
        assert room.writer is None

    def test_seed_snapshot_is_not_restored(self):
        nodes, edges = default_layout()
        server = CollabServer(FakeStore({ROOM: {"nodes": nodes, "edges": edges}}), timer_factory=FakeTimer)

        room = asyncio.run(server.get_room(ROOM))
        assert room.document.is_empty()

    @pytest.mark.parametrize("stored", ["seed", "empty", "missing"])
    def test_strategy_tables_fill_rooms_without_usable_snapshot(self, stored):
        snapshots = {
            "seed": {ROOM: dict(zip(("nodes", "edges"), default_layout()))},
            "empty": {ROOM: {"nodes": [], "edges": []}},
            "missing": {},
        }[stored]
        built = _strategy_snapshot()
        asked = []
        server = CollabServer(
            FakeStore(snapshots),
            layout_loader=lambda room: asked.append(room) or built,
            timer_factory=FakeTimer,
        )

        room = asyncio.run(server.get_room(ROOM))
        assert asked == [ROOM]
        assert [n["id"] for n in room.document.read_nodes()] == [n["id"] for n in built[0]]

    def test_usable_snapshot_wins_over_strategy_tables(self):
        nodes, edges = _strategy_snapshot()
        server = CollabServer(
            FakeStore({ROOM: {"nodes": nodes, "edges": edges}}),
            layout_loader=lambda room: pytest.fail("snapshot should have been used"),
            timer_factory=FakeTimer,
        )

        room = asyncio.run(server.get_room(ROOM))
        assert len(room.document.read_nodes()) == len(nodes)
