"""
Team Models — teams, memberships and email invitations.
"""

from cadence.models import _iso, _utcnow, _uuid, db


__all__ = ["Team", "TeamMember", "TeamInvitation", "TEAM_ROLES", "INVITATION_STATUSES"]

TEAM_ROLES = {"admin", "member"}
INVITATION_STATUSES = {"pending", "accepted", "revoked"}


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    abbreviated_name = db.Column(db.String(20))
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    members = db.relationship(
        "TeamMember", back_populates="team", lazy="dynamic", cascade="all, delete-orphan",
    )
    invitations = db.relationship(
        "TeamInvitation", back_populates="team", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self, include_members=False):
        d = {
            "id": self.id,
            "name": self.name,
            "abbreviated_name": self.abbreviated_name,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_members:
            d["members"] = [m.to_dict() for m in self.members.all()]
        return d


class TeamMember(db.Model):
    __tablename__ = "team_members"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False, default="member")
    joined_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("team_id", "user_id", name="uq_team_member"),
    )

    team = db.relationship("Team", back_populates="members")
    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": _iso(self.joined_at),
            "user": self.user.to_dict() if self.user else None,
        }


class TeamInvitation(db.Model):
    __tablename__ = "team_invitations"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    email = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="member")
    token = db.Column(db.String(128), nullable=False, unique=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    invited_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    accepted_at = db.Column(db.DateTime(timezone=True))

    team = db.relationship("Team", back_populates="invitations")

    def to_dict(self, include_token=False):
        d = {
            "id": self.id,
            "team_id": self.team_id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "invited_by": self.invited_by,
            "expires_at": _iso(self.expires_at),
            "created_at": _iso(self.created_at),
            "accepted_at": _iso(self.accepted_at),
        }
        if include_token:
            d["token"] = self.token
        return d
