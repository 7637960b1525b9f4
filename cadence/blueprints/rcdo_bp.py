"""
RCDO Blueprint — strategy cycles, rallying cries, defining objectives, metrics,
strategic initiatives, tasks, links, check-ins, scoring and navigation.

Cycles
  POST/GET  /api/v1/teams/<tid>/cycles            GET /api/v1/teams/<tid>/cycles/active
  GET/PUT   /api/v1/cycles/<cid>                  PUT status=active → activation checks
  GET       /api/v1/cycles/<cid>/activation-check
  GET       /api/v1/cycles/<cid>/score
  GET       /api/v1/cycles/<cid>/navigation       cached tree
Rallying cry
  GET/PUT   /api/v1/cycles/<cid>/rallying-cry     (?include=children)
  GET       /api/v1/rallying-cries/<rid>/commit-check
  POST      /api/v1/rallying-cries/<rid>/lock     DELETE …/lock → unlock
Defining objectives
  POST      /api/v1/rallying-cries/<rid>/objectives
  GET/PUT/DELETE /api/v1/objectives/<oid>
  GET       /api/v1/objectives/<oid>/commit-check
  POST/DELETE /api/v1/objectives/<oid>/lock
  POST      /api/v1/objectives/<oid>/health
Metrics
  POST      /api/v1/objectives/<oid>/metrics      PUT/DELETE /api/v1/metrics/<mid>
  GET       /api/v1/metrics/<mid>/status
Initiatives & tasks
  POST      /api/v1/objectives/<oid>/initiatives  GET/PUT/DELETE /api/v1/initiatives/<sid>
  POST/DELETE /api/v1/initiatives/<sid>/lock
  POST      /api/v1/initiatives/<sid>/tasks       PUT/DELETE /api/v1/tasks/<tid>
  GET       /api/v1/me/tasks                      (?include_completed=1)
Links & check-ins
  POST      /api/v1/links        GET /api/v1/links?parent_type=&parent_id=   DELETE /api/v1/links/<lid>
  POST      /api/v1/checkins     GET /api/v1/checkins?parent_type=&parent_id=
  GET       /api/v1/me/checkins
"""

from flask import Blueprint, jsonify, request

import cadence.services.rcdo_service as rcdo
from cadence.auth import current_user_id, require_auth
from cadence.services.navigation_service import get_navigation_tree
from cadence.utils.errors import E, api_error, register_error_handlers

rcdo_bp = Blueprint("rcdo", __name__, url_prefix="/api/v1")
register_error_handlers(rcdo_bp)


def _body():
    return request.get_json(silent=True) or {}


def _flag(name):
    return request.args.get(name, "").lower() in ("1", "true", "yes", "children")


# ═════════════════════════════════════════════════════════════════════════════
# Cycles
# ═════════════════════════════════════════════════════════════════════════════

@rcdo_bp.route("/teams/<team_id>/cycles", methods=["POST"])
@require_auth
def create_cycle(team_id):
    data = _body()
    if not data.get("start_date") or not data.get("end_date"):
        return api_error(E.VALIDATION_REQUIRED, "start_date and end_date are required")
    return jsonify(rcdo.create_cycle(team_id, data, current_user_id())), 201


@rcdo_bp.route("/teams/<team_id>/cycles", methods=["GET"])
@require_auth
def list_cycles(team_id):
    return jsonify(rcdo.list_cycles(team_id, current_user_id())), 200


@rcdo_bp.route("/teams/<team_id>/cycles/active", methods=["GET"])
@require_auth
def active_cycle(team_id):
    cycle = rcdo.get_active_cycle(team_id, current_user_id())
    if cycle is None:
        return api_error(E.NOT_FOUND, "No active cycle")
    return jsonify(cycle), 200


@rcdo_bp.route("/cycles/<cycle_id>", methods=["GET"])
@require_auth
def get_cycle(cycle_id):
    return jsonify(rcdo.get_cycle(cycle_id, current_user_id()).to_dict()), 200


@rcdo_bp.route("/cycles/<cycle_id>", methods=["PUT"])
@require_auth
def update_cycle(cycle_id):
    return jsonify(rcdo.update_cycle(cycle_id, _body(), current_user_id())), 200


@rcdo_bp.route("/cycles/<cycle_id>/activation-check", methods=["GET"])
@require_auth
def activation_check(cycle_id):
    cycle = rcdo.get_cycle(cycle_id, current_user_id())
    return jsonify(rcdo.check_cycle_activation(cycle).to_dict()), 200


@rcdo_bp.route("/cycles/<cycle_id>/score", methods=["GET"])
@require_auth
def cycle_score(cycle_id):
    return jsonify(rcdo.cycle_score(cycle_id, current_user_id())), 200


@rcdo_bp.route("/cycles/<cycle_id>/navigation", methods=["GET"])
@require_auth
def navigation(cycle_id):
    rcdo.get_cycle(cycle_id, current_user_id())
    return jsonify(get_navigation_tree(cycle_id)), 200


# ═════════════════════════════════════════════════════════════════════════════
# Rallying cry
# ═════════════════════════════════════════════════════════════════════════════

@rcdo_bp.route("/cycles/<cycle_id>/rallying-cry", methods=["GET"])
@require_auth
def get_rallying_cry(cycle_id):
    rc = rcdo.get_cycle_rallying_cry(cycle_id, current_user_id(), include_children=_flag("include"))
    if rc is None:
        return api_error(E.NOT_FOUND, "Rallying cry not found")
    return jsonify(rc), 200


@rcdo_bp.route("/cycles/<cycle_id>/rallying-cry", methods=["PUT"])
@require_auth
def upsert_rallying_cry(cycle_id):
    return jsonify(rcdo.upsert_rallying_cry(cycle_id, _body(), current_user_id())), 200


@rcdo_bp.route("/rallying-cries/<rc_id>/commit-check", methods=["GET"])
@require_auth
def rallying_cry_commit_check(rc_id):
    return jsonify(rcdo.rallying_cry_commit_check(rc_id, current_user_id())), 200


@rcdo_bp.route("/rallying-cries/<rc_id>/lock", methods=["POST"])
@require_auth
def lock_rallying_cry(rc_id):
    return jsonify(rcdo.lock_rallying_cry(rc_id, current_user_id())), 200


@rcdo_bp.route("/rallying-cries/<rc_id>/lock", methods=["DELETE"])
@require_auth
def unlock_rallying_cry(rc_id):
    return jsonify(rcdo.unlock_rallying_cry(rc_id, current_user_id())), 200


# ═════════════════════════════════════════════════════════════════════════════
# Defining objectives & metrics
# ═════════════════════════════════════════════════════════════════════════════

@rcdo_bp.route("/rallying-cries/<rc_id>/objectives", methods=["POST"])
@require_auth
def create_objective(rc_id):
    data = _body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    return jsonify(rcdo.create_objective(rc_id, data, current_user_id())), 201


@rcdo_bp.route("/objectives/<do_id>", methods=["GET"])
@require_auth
def get_objective(do_id):
    return jsonify(rcdo.get_objective(do_id, current_user_id()).to_dict(include_children=True)), 200


@rcdo_bp.route("/objectives/<do_id>", methods=["PUT"])
@require_auth
def update_objective(do_id):
    return jsonify(rcdo.update_objective(do_id, _body(), current_user_id())), 200


@rcdo_bp.route("/objectives/<do_id>", methods=["DELETE"])
@require_auth
def delete_objective(do_id):
    rcdo.delete_objective(do_id, current_user_id())
    return jsonify({"message": "Defining objective deleted"}), 200


@rcdo_bp.route("/objectives/<do_id>/commit-check", methods=["GET"])
@require_auth
def objective_commit_check(do_id):
    return jsonify(rcdo.objective_commit_check(do_id, current_user_id())), 200


@rcdo_bp.route("/objectives/<do_id>/lock", methods=["POST"])
@require_auth
def lock_objective(do_id):
    return jsonify(rcdo.set_objective_lock(do_id, current_user_id(), locked=True)), 200


@rcdo_bp.route("/objectives/<do_id>/lock", methods=["DELETE"])
@require_auth
def unlock_objective(do_id):
    return jsonify(rcdo.set_objective_lock(do_id, current_user_id(), locked=False)), 200


@rcdo_bp.route("/objectives/<do_id>/health", methods=["POST"])
@require_auth
def recalculate_health(do_id):
    return jsonify(rcdo.recalculate_health(do_id, current_user_id())), 200


@rcdo_bp.route("/objectives/<do_id>/metrics", methods=["POST"])
@require_auth
def create_metric(do_id):
    data = _body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(rcdo.create_metric(do_id, data, current_user_id())), 201


@rcdo_bp.route("/metrics/<metric_id>", methods=["PUT"])
@require_auth
def update_metric(metric_id):
    return jsonify(rcdo.update_metric(metric_id, _body(), current_user_id())), 200


@rcdo_bp.route("/metrics/<metric_id>", methods=["DELETE"])
@require_auth
def delete_metric(metric_id):
    rcdo.delete_metric(metric_id, current_user_id())
    return jsonify({"message": "Metric deleted"}), 200


@rcdo_bp.route("/metrics/<metric_id>/status", methods=["GET"])
@require_auth
def metric_status(metric_id):
    return jsonify(rcdo.metric_status(metric_id, current_user_id())), 200


# ═════════════════════════════════════════════════════════════════════════════
# Initiatives & tasks
# ═════════════════════════════════════════════════════════════════════════════

@rcdo_bp.route("/objectives/<do_id>/initiatives", methods=["POST"])
@require_auth
def create_initiative(do_id):
    data = _body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    return jsonify(rcdo.create_initiative(do_id, data, current_user_id())), 201


@rcdo_bp.route("/initiatives/<si_id>", methods=["GET"])
@require_auth
def get_initiative(si_id):
    si = rcdo.get_initiative(si_id, current_user_id())
    body = si.to_dict()
    body["tasks"] = [t.to_dict() for t in si.tasks]
    return jsonify(body), 200


@rcdo_bp.route("/initiatives/<si_id>", methods=["PUT"])
@require_auth
def update_initiative(si_id):
    return jsonify(rcdo.update_initiative(si_id, _body(), current_user_id())), 200


@rcdo_bp.route("/initiatives/<si_id>", methods=["DELETE"])
@require_auth
def delete_initiative(si_id):
    rcdo.delete_initiative(si_id, current_user_id())
    return jsonify({"message": "Strategic initiative deleted"}), 200


@rcdo_bp.route("/initiatives/<si_id>/lock", methods=["POST"])
@require_auth
def lock_initiative(si_id):
    return jsonify(rcdo.set_initiative_lock(si_id, current_user_id(), locked=True)), 200


@rcdo_bp.route("/initiatives/<si_id>/lock", methods=["DELETE"])
@require_auth
def unlock_initiative(si_id):
    return jsonify(rcdo.set_initiative_lock(si_id, current_user_id(), locked=False)), 200


@rcdo_bp.route("/initiatives/<si_id>/tasks", methods=["POST"])
@require_auth
def create_task(si_id):
    data = _body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    return jsonify(rcdo.create_task(si_id, data, current_user_id())), 201


@rcdo_bp.route("/tasks/<task_id>", methods=["PUT"])
@require_auth
def update_task(task_id):
    return jsonify(rcdo.update_task(task_id, _body(), current_user_id())), 200


@rcdo_bp.route("/tasks/<task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id):
    rcdo.delete_task(task_id, current_user_id())
    return jsonify({"message": "Task deleted"}), 200


@rcdo_bp.route("/me/tasks", methods=["GET"])
@require_auth
def my_tasks():
    return jsonify(rcdo.list_my_tasks(current_user_id(), include_completed=_flag("include_completed"))), 200


# ═════════════════════════════════════════════════════════════════════════════
# Links & check-ins
# ═════════════════════════════════════════════════════════════════════════════

def _parent_args():
    parent_type = request.args.get("parent_type")
    parent_id = request.args.get("parent_id")
    if not parent_type or not parent_id:
        return None
    return parent_type, parent_id


@rcdo_bp.route("/links", methods=["POST"])
@require_auth
def create_link():
    data = _body()
    if not data.get("parent_type") or not data.get("parent_id"):
        return api_error(E.VALIDATION_REQUIRED, "parent_type and parent_id are required")
    return jsonify(rcdo.create_link(data, current_user_id())), 201


@rcdo_bp.route("/links", methods=["GET"])
@require_auth
def list_links():
    parent = _parent_args()
    if parent is None:
        return api_error(E.VALIDATION_REQUIRED, "parent_type and parent_id are required")
    return jsonify(rcdo.list_links(*parent, current_user_id())), 200


@rcdo_bp.route("/links/<link_id>", methods=["DELETE"])
@require_auth
def delete_link(link_id):
    rcdo.delete_link(link_id, current_user_id())
    return jsonify({"message": "Link deleted"}), 200


@rcdo_bp.route("/checkins", methods=["POST"])
@require_auth
def create_checkin():
    data = _body()
    if not data.get("parent_type") or not data.get("parent_id"):
        return api_error(E.VALIDATION_REQUIRED, "parent_type and parent_id are required")
    return jsonify(rcdo.create_checkin(data, current_user_id())), 201


@rcdo_bp.route("/checkins", methods=["GET"])
@require_auth
def list_checkins():
    parent = _parent_args()
    if parent is None:
        return api_error(E.VALIDATION_REQUIRED, "parent_type and parent_id are required")
    return jsonify(rcdo.list_checkins(*parent, current_user_id())), 200


@rcdo_bp.route("/me/checkins", methods=["GET"])
@require_auth
def my_checkins():
    return jsonify(rcdo.list_user_checkins(current_user_id())), 200
