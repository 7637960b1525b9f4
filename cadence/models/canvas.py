"""
Canvas Models — persisted snapshots of collaborative strategy canvas rooms.

A snapshot holds the full node and edge arrays of one room. It is written on
a coalescing delay after local changes and read to cold-start a room that has
no live collaboration state.
"""

from cadence.models import _iso, _utcnow, db


class CanvasSnapshot(db.Model):
    __tablename__ = "canvas_snapshots"

    room = db.Column(db.String(200), primary_key=True)
    nodes = db.Column(db.JSON, nullable=False, default=list)
    edges = db.Column(db.JSON, nullable=False, default=list)
    updated_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "room": self.room,
            "nodes": self.nodes or [],
            "edges": self.edges or [],
            "updated_by": self.updated_by,
            "updated_at": _iso(self.updated_at),
        }
