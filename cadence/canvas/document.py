"""
Replicated canvas document — a pycrdt ``Doc`` with two top-level arrays.

    doc["nodes"]: Array of node dicts
    doc["edges"]: Array of edge dicts

Publishing is whole-array: clear then re-insert every element in a single
transaction. Reads flatten one level so documents written by clients that
insert the full list as one element read the same as element-wise writes.
"""

import copy

from pycrdt import Array, Doc

NODES_KEY = "nodes"
EDGES_KEY = "edges"


def _flatten(items) -> list:
    out = []
    for item in items:
        if isinstance(item, list):
            out.extend(item)
        else:
            out.append(item)
    return out


class CanvasDocument:
    """Thin wrapper over the pycrdt document of one room.

    pycrdt documents are bound to the thread that created them; a
    ``CanvasDocument`` must only be used from its session thread.
    """

    def __init__(self, doc: Doc | None = None):
        self.doc = doc if doc is not None else Doc()
        self.nodes = self.doc.get(NODES_KEY, type=Array)
        self.edges = self.doc.get(EDGES_KEY, type=Array)

    # ── Reads ─────────────────────────────────────────────────────────────

    def read_nodes(self) -> list[dict]:
        return _flatten(self.nodes.to_py() or [])

    def read_edges(self) -> list[dict]:
        return _flatten(self.edges.to_py() or [])

    def is_empty(self) -> bool:
        return len(self.nodes) == 0 and len(self.edges) == 0

    # ── Writes ────────────────────────────────────────────────────────────

    def replace_nodes(self, nodes) -> None:
        self._replace(self.nodes, nodes)

    def replace_edges(self, edges) -> None:
        self._replace(self.edges, edges)

    def _replace(self, array: Array, items) -> None:
        with self.doc.transaction():
            array.clear()
            array.extend(copy.deepcopy(list(items)))

    # ── Observation ───────────────────────────────────────────────────────

    def observe_nodes(self, callback):
        return self.nodes.observe(callback)

    def observe_edges(self, callback):
        return self.edges.observe(callback)

    def unobserve_nodes(self, subscription) -> None:
        self.nodes.unobserve(subscription)

    def unobserve_edges(self, subscription) -> None:
        self.edges.unobserve(subscription)

    def observe_updates(self, callback):
        """``callback(update: bytes)`` after every committed transaction."""
        return self.doc.observe(lambda event: callback(event.update))

    def unobserve_updates(self, subscription) -> None:
        self.doc.unobserve(subscription)

    # ── Binary state exchange ─────────────────────────────────────────────

    def get_update(self, state: bytes | None = None) -> bytes:
        return self.doc.get_update(state)

    def apply_update(self, update: bytes) -> None:
        self.doc.apply_update(update)
