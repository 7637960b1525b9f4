"""
Team Blueprint — teams, members and invitations.

  POST   /api/v1/teams                                   — create (caller becomes admin)
  GET    /api/v1/teams                                   — my teams
  GET    /api/v1/teams/<tid>                             — team + members
  PUT    /api/v1/teams/<tid>                             — rename (admin)
  DELETE /api/v1/teams/<tid>                             — delete (admin)
  GET    /api/v1/teams/<tid>/members                     — members
  PUT    /api/v1/teams/<tid>/members/<mid>               — change role (admin)
  DELETE /api/v1/teams/<tid>/members/<mid>               — remove (admin, or self)
  POST   /api/v1/teams/<tid>/invitations                 — invite by email (admin)
  GET    /api/v1/teams/<tid>/invitations                 — list (admin, ?status=)
  DELETE /api/v1/teams/<tid>/invitations/<iid>           — revoke (admin)
  POST   /api/v1/invitations/<token>/accept              — join as the caller
"""

from flask import Blueprint, jsonify, request

import cadence.services.team_service as team_service
from cadence.auth import current_user_id, require_auth
from cadence.utils.errors import E, api_error, register_error_handlers

team_bp = Blueprint("teams", __name__, url_prefix="/api/v1")
register_error_handlers(team_bp)


@team_bp.route("/teams", methods=["POST"])
@require_auth
def create_team():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(team_service.create_team(data, current_user_id())), 201


@team_bp.route("/teams", methods=["GET"])
@require_auth
def list_teams():
    return jsonify(team_service.list_teams_for_user(current_user_id())), 200


@team_bp.route("/teams/<team_id>", methods=["GET"])
@require_auth
def get_team(team_id):
    team = team_service.require_member(team_id, current_user_id())
    return jsonify(team.to_dict(include_members=True)), 200


@team_bp.route("/teams/<team_id>", methods=["PUT"])
@require_auth
def update_team(team_id):
    data = request.get_json(silent=True) or {}
    return jsonify(team_service.update_team(team_id, data, current_user_id())), 200


@team_bp.route("/teams/<team_id>", methods=["DELETE"])
@require_auth
def delete_team(team_id):
    team_service.delete_team(team_id, current_user_id())
    return jsonify({"message": "Team deleted"}), 200


# ── Members ──────────────────────────────────────────────────────────────────

@team_bp.route("/teams/<team_id>/members", methods=["GET"])
@require_auth
def list_members(team_id):
    return jsonify(team_service.list_members(team_id, current_user_id())), 200


@team_bp.route("/teams/<team_id>/members/<member_id>", methods=["PUT"])
@require_auth
def change_member_role(team_id, member_id):
    data = request.get_json(silent=True) or {}
    if not data.get("role"):
        return api_error(E.VALIDATION_REQUIRED, "role is required")
    return jsonify(team_service.change_member_role(team_id, member_id, data["role"], current_user_id())), 200


@team_bp.route("/teams/<team_id>/members/<member_id>", methods=["DELETE"])
@require_auth
def remove_member(team_id, member_id):
    team_service.remove_member(team_id, member_id, current_user_id())
    return jsonify({"message": "Member removed"}), 200


# ── Invitations ──────────────────────────────────────────────────────────────

@team_bp.route("/teams/<team_id>/invitations", methods=["POST"])
@require_auth
def create_invitation(team_id):
    data = request.get_json(silent=True) or {}
    if not data.get("email"):
        return api_error(E.VALIDATION_REQUIRED, "email is required")
    return jsonify(team_service.create_invitation(team_id, data, current_user_id())), 201


@team_bp.route("/teams/<team_id>/invitations", methods=["GET"])
@require_auth
def list_invitations(team_id):
    items = team_service.list_invitations(team_id, current_user_id(), status=request.args.get("status"))
    return jsonify(items), 200


@team_bp.route("/teams/<team_id>/invitations/<invitation_id>", methods=["DELETE"])
@require_auth
def revoke_invitation(team_id, invitation_id):
    return jsonify(team_service.revoke_invitation(team_id, invitation_id, current_user_id())), 200


@team_bp.route("/invitations/<token>/accept", methods=["POST"])
@require_auth
def accept_invitation(token):
    return jsonify(team_service.accept_invitation(token, current_user_id())), 200
