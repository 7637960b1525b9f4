"""Team service — teams, memberships and email invitations.

Rules:
  - The creator of a team becomes its first admin.
  - Only team admins (or application admins) mutate a team.
  - A team always keeps at least one admin.
  - db.session.commit() happens in this file, not in the blueprint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import select

from cadence.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from cadence.models import db
from cadence.models.auth import User
from cadence.models.team import TEAM_ROLES, Team, TeamInvitation, TeamMember
from cadence.services.jwt_service import generate_invite_token
from cadence.services.user_service import UserServiceError, normalize_email

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ── Access checks ─────────────────────────────────────────────────────────────


def get_team(team_id: str) -> Team:
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError(resource="Team", resource_id=team_id)
    return team


def get_membership(team_id: str, user_id: str) -> TeamMember | None:
    return db.session.execute(
        select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
    ).scalar_one_or_none()


def _is_app_admin(user_id: str) -> bool:
    user = db.session.get(User, user_id)
    return bool(user and user.is_app_admin)


def require_member(team_id: str, user_id: str) -> Team:
    team = get_team(team_id)
    if get_membership(team_id, user_id) is None and not _is_app_admin(user_id):
        raise PermissionDeniedError("You are not a member of this team")
    return team


def require_admin(team_id: str, user_id: str) -> Team:
    team = get_team(team_id)
    member = get_membership(team_id, user_id)
    if (member is None or member.role != "admin") and not _is_app_admin(user_id):
        raise PermissionDeniedError("Team admin role required")
    return team


# ── Teams ─────────────────────────────────────────────────────────────────────


def create_team(data: dict, user_id: str) -> dict:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    team = Team(
        name=name,
        abbreviated_name=(data.get("abbreviated_name") or "").strip() or None,
        created_by=user_id,
    )
    db.session.add(team)
    db.session.flush()
    db.session.add(TeamMember(team_id=team.id, user_id=user_id, role="admin"))
    db.session.commit()
    logger.info("Team %s created by %s", team.id, user_id)
    return team.to_dict(include_members=True)


def list_teams_for_user(user_id: str) -> list[dict]:
    teams = db.session.execute(
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id)
        .order_by(Team.name)
    ).scalars().all()
    return [t.to_dict() for t in teams]


def update_team(team_id: str, data: dict, user_id: str) -> dict:
    team = require_admin(team_id, user_id)
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        team.name = name
    if "abbreviated_name" in data:
        team.abbreviated_name = (data.get("abbreviated_name") or "").strip() or None
    db.session.commit()
    return team.to_dict()


def delete_team(team_id: str, user_id: str) -> None:
    team = require_admin(team_id, user_id)
    db.session.delete(team)
    db.session.commit()
    logger.info("Team %s deleted by %s", team_id, user_id)


# ── Members ───────────────────────────────────────────────────────────────────


def list_members(team_id: str, user_id: str) -> list[dict]:
    team = require_member(team_id, user_id)
    return [m.to_dict() for m in team.members.order_by(TeamMember.joined_at).all()]


def _admin_count(team_id: str) -> int:
    return TeamMember.query.filter_by(team_id=team_id, role="admin").count()


def change_member_role(team_id: str, member_id: str, role: str, user_id: str) -> dict:
    require_admin(team_id, user_id)
    if role not in TEAM_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(TEAM_ROLES))}")
    member = db.session.get(TeamMember, member_id)
    if member is None or member.team_id != team_id:
        raise NotFoundError(resource="TeamMember", resource_id=member_id)
    if member.role == "admin" and role != "admin" and _admin_count(team_id) <= 1:
        raise ValidationError("A team must keep at least one admin")
    member.role = role
    db.session.commit()
    return member.to_dict()


def remove_member(team_id: str, member_id: str, user_id: str) -> None:
    member = db.session.get(TeamMember, member_id)
    if member is None or member.team_id != team_id:
        raise NotFoundError(resource="TeamMember", resource_id=member_id)
    # members may leave on their own
    if member.user_id != user_id:
        require_admin(team_id, user_id)
    if member.role == "admin" and _admin_count(team_id) <= 1:
        raise ValidationError("A team must keep at least one admin")
    db.session.delete(member)
    db.session.commit()


# ── Invitations ───────────────────────────────────────────────────────────────


def create_invitation(team_id: str, data: dict, user_id: str) -> dict:
    require_admin(team_id, user_id)
    try:
        email = normalize_email(data.get("email"))
    except UserServiceError as e:
        raise ValidationError(e.message)
    role = data.get("role") or "member"
    if role not in TEAM_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(TEAM_ROLES))}")

    existing_user = User.query.filter_by(email=email).first()
    if existing_user and get_membership(team_id, existing_user.id):
        raise ConflictError(resource="TeamMember", field="email", value=email)

    pending = TeamInvitation.query.filter_by(team_id=team_id, email=email, status="pending").first()
    if pending:
        raise ConflictError(resource="TeamInvitation", field="email", value=email)

    days = current_app.config.get("INVITATION_EXPIRES_DAYS", 7)
    invitation = TeamInvitation(
        team_id=team_id,
        email=email,
        role=role,
        token=generate_invite_token(),
        invited_by=user_id,
        expires_at=_utcnow() + timedelta(days=days),
    )
    db.session.add(invitation)
    db.session.commit()
    logger.info("Invitation %s for team %s created", invitation.id, team_id)
    return invitation.to_dict(include_token=True)


def list_invitations(team_id: str, user_id: str, status: str | None = None) -> list[dict]:
    require_admin(team_id, user_id)
    q = TeamInvitation.query.filter_by(team_id=team_id)
    if status:
        q = q.filter_by(status=status)
    return [i.to_dict() for i in q.order_by(TeamInvitation.created_at.desc()).all()]


def revoke_invitation(team_id: str, invitation_id: str, user_id: str) -> dict:
    require_admin(team_id, user_id)
    invitation = db.session.get(TeamInvitation, invitation_id)
    if invitation is None or invitation.team_id != team_id:
        raise NotFoundError(resource="TeamInvitation", resource_id=invitation_id)
    if invitation.status != "pending":
        raise ValidationError(f"Invitation is already {invitation.status}")
    invitation.status = "revoked"
    db.session.commit()
    return invitation.to_dict()


def accept_invitation(token: str, user_id: str) -> dict:
    """Join the invitation's team as the authenticated user.

    The invitation must be pending, unexpired and addressed to the user's email.
    """
    invitation = TeamInvitation.query.filter_by(token=token).first()
    if invitation is None:
        raise NotFoundError(resource="TeamInvitation")
    if invitation.status != "pending":
        raise ValidationError(f"Invitation is already {invitation.status}")
    if _utcnow() > _aware(invitation.expires_at):
        raise ValidationError("Invitation has expired")

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    if user.email.lower() != invitation.email.lower():
        raise PermissionDeniedError("Invitation was issued to a different email address")

    member = get_membership(invitation.team_id, user_id)
    if member is None:
        member = TeamMember(team_id=invitation.team_id, user_id=user_id, role=invitation.role)
        db.session.add(member)
    invitation.status = "accepted"
    invitation.accepted_at = _utcnow()
    db.session.commit()
    logger.info("User %s joined team %s via invitation", user_id, invitation.team_id)
    return member.to_dict()
