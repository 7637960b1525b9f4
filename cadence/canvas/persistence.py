"""
Canvas snapshot persistence.

SnapshotStore        — load / upsert ``canvas_snapshots`` rows keyed by room.
DebouncedSnapshotWriter — coalesces bursts of changes into one upsert after a
                       quiet period (default 0.8 s); failures are logged and
                       swallowed.

The writer's timer runs on its own thread. It only ever hands plain Python
lists to the save callable; ``SnapshotStore`` opens an app context of its own
when constructed with an app.
"""

from __future__ import annotations

import copy
import functools
import logging
import threading
from contextlib import contextmanager
from typing import Callable

from cadence.models import _utcnow, db
from cadence.models.canvas import CanvasSnapshot

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.8


class SnapshotStore:
    """Reads and upserts canvas snapshots."""

    def __init__(self, app=None):
        self._app = app

    @contextmanager
    def _context(self):
        if self._app is None:
            yield
        else:
            with self._app.app_context():
                yield

    def load(self, room: str) -> dict | None:
        with self._context():
            snap = db.session.get(CanvasSnapshot, room)
            return snap.to_dict() if snap else None

    def save(self, room: str, nodes, edges, updated_by: str | None = None) -> dict:
        with self._context():
            snap = db.session.get(CanvasSnapshot, room)
            if snap is None:
                snap = CanvasSnapshot(room=room)
                db.session.add(snap)
            snap.nodes = copy.deepcopy(list(nodes))
            snap.edges = copy.deepcopy(list(edges))
            snap.updated_by = updated_by
            snap.updated_at = _utcnow()
            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            logger.debug("Canvas snapshot saved room=%s nodes=%d edges=%d", room, len(snap.nodes), len(snap.edges))
            return snap.to_dict()


class DebouncedSnapshotWriter:
    """Cancelable trailing-edge debounce around a snapshot save.

    Args:
        room: Room the snapshots belong to.
        save: ``save(room, nodes, edges, updated_by)``; usually
            ``SnapshotStore.save``.
        delay: Quiet period in seconds.
        timer_factory: ``timer_factory(delay, fn)`` returning an object with
            ``start()`` and ``cancel()``. Defaults to ``threading.Timer``.
        updated_by: Acting user id recorded on each snapshot (None for the
            collaboration server).
    """

    def __init__(
        self,
        room: str,
        save: Callable,
        *,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: Callable | None = None,
        updated_by: str | None = None,
    ):
        self.room = room
        self.delay = delay
        self.updated_by = updated_by
        self._save = save
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.Lock()
        self._timer = None
        self._pending: tuple[list, list] | None = None
        self._generation = 0
        self.writes = 0
        self.failures = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, nodes, edges) -> None:
        """(Re)start the quiet-period timer with the latest arrays."""
        with self._lock:
            self._cancel_timer()
            self._pending = (copy.deepcopy(list(nodes)), copy.deepcopy(list(edges)))
            self._generation += 1
            timer = self._timer_factory(self.delay, functools.partial(self._fire, self._generation))
            if isinstance(timer, threading.Thread):
                timer.daemon = True
            self._timer = timer
        timer.start()

    def flush(self) -> bool:
        """Write the pending snapshot now. Returns False when nothing was pending."""
        with self._lock:
            self._cancel_timer()
            pending, self._pending = self._pending, None
        if pending is None:
            return False
        self._write(pending)
        return True

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._pending = None

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._pending is None:
                return
            pending, self._pending = self._pending, None
            self._timer = None
        self._write(pending)

    def _write(self, pending) -> None:
        nodes, edges = pending
        try:
            self._save(self.room, nodes, edges, self.updated_by)
            self.writes += 1
        except Exception:
            self.failures += 1
            logger.exception("Canvas snapshot save failed for room %s", self.room)
