"""
Meeting Blueprint — series, instances, agenda, templates, topics, priorities, action items.

Series
  POST/GET   /api/v1/teams/<tid>/series
  PUT/DELETE /api/v1/series/<sid>
Instances
  POST/GET   /api/v1/series/<sid>/instances          (GET paginated: ?limit=&offset=)
  DELETE     /api/v1/instances/<iid>
Series agenda
  GET/POST   /api/v1/series/<sid>/agenda
  PUT        /api/v1/series/<sid>/agenda/reorder     { "ordered_ids": [...] }
  PUT/DELETE /api/v1/agenda/<aid>
  POST       /api/v1/series/<sid>/agenda/adopt       { "template_id" }
Templates
  GET/POST   /api/v1/agenda-templates
Topics / priorities (per instance)
  GET/POST   /api/v1/instances/<iid>/topics          PUT/DELETE /api/v1/topics/<id>
  GET/POST   /api/v1/instances/<iid>/priorities      PUT/DELETE /api/v1/priorities/<id>
Action items (per series)
  GET/POST   /api/v1/series/<sid>/action-items       PUT/DELETE /api/v1/action-items/<id>
"""

from flask import Blueprint, jsonify, request

import cadence.services.meeting_service as meetings
from cadence.auth import current_user_id, require_auth
from cadence.blueprints import paginate_query
from cadence.utils.errors import E, api_error, register_error_handlers

meeting_bp = Blueprint("meetings", __name__, url_prefix="/api/v1")
register_error_handlers(meeting_bp)


def _body():
    return request.get_json(silent=True) or {}


# ═════════════════════════════════════════════════════════════════════════════
# Series & instances
# ═════════════════════════════════════════════════════════════════════════════

@meeting_bp.route("/teams/<team_id>/series", methods=["POST"])
@require_auth
def create_series(team_id):
    data = _body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(meetings.create_series(team_id, data, current_user_id())), 201


@meeting_bp.route("/teams/<team_id>/series", methods=["GET"])
@require_auth
def list_series(team_id):
    return jsonify(meetings.list_series(team_id, current_user_id())), 200


@meeting_bp.route("/series/<series_id>", methods=["GET"])
@require_auth
def get_series(series_id):
    return jsonify(meetings.get_series(series_id, current_user_id()).to_dict()), 200


@meeting_bp.route("/series/<series_id>", methods=["PUT"])
@require_auth
def update_series(series_id):
    return jsonify(meetings.update_series(series_id, _body(), current_user_id())), 200


@meeting_bp.route("/series/<series_id>", methods=["DELETE"])
@require_auth
def delete_series(series_id):
    meetings.delete_series(series_id, current_user_id())
    return jsonify({"message": "Series deleted"}), 200


@meeting_bp.route("/series/<series_id>/instances", methods=["POST"])
@require_auth
def create_instance(series_id):
    data = _body()
    if not data.get("start_date"):
        return api_error(E.VALIDATION_REQUIRED, "start_date is required")
    return jsonify(meetings.create_instance(series_id, data, current_user_id())), 201


@meeting_bp.route("/series/<series_id>/instances", methods=["GET"])
@require_auth
def list_instances(series_id):
    items, total = paginate_query(meetings.instances_query(series_id, current_user_id()), default_limit=50)
    return jsonify({"items": [i.to_dict() for i in items], "total": total}), 200


@meeting_bp.route("/instances/<instance_id>", methods=["DELETE"])
@require_auth
def delete_instance(instance_id):
    meetings.delete_instance(instance_id, current_user_id())
    return jsonify({"message": "Instance deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════════
# Agenda & templates
# ═════════════════════════════════════════════════════════════════════════════

@meeting_bp.route("/series/<series_id>/agenda", methods=["GET"])
@require_auth
def list_agenda(series_id):
    return jsonify(meetings.list_agenda(series_id, current_user_id())), 200


@meeting_bp.route("/series/<series_id>/agenda", methods=["POST"])
@require_auth
def add_agenda_item(series_id):
    data = _body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    return jsonify(meetings.add_agenda_item(series_id, data, current_user_id())), 201


@meeting_bp.route("/series/<series_id>/agenda/reorder", methods=["PUT"])
@require_auth
def reorder_agenda(series_id):
    ordered_ids = _body().get("ordered_ids")
    if not isinstance(ordered_ids, list):
        return api_error(E.VALIDATION_INVALID, "ordered_ids must be a list")
    return jsonify(meetings.reorder_agenda(series_id, ordered_ids, current_user_id())), 200


@meeting_bp.route("/agenda/<item_id>", methods=["PUT"])
@require_auth
def update_agenda_item(item_id):
    return jsonify(meetings.update_agenda_item(item_id, _body(), current_user_id())), 200


@meeting_bp.route("/agenda/<item_id>", methods=["DELETE"])
@require_auth
def delete_agenda_item(item_id):
    meetings.delete_agenda_item(item_id, current_user_id())
    return jsonify({"message": "Agenda item deleted"}), 200


@meeting_bp.route("/series/<series_id>/agenda/adopt", methods=["POST"])
@require_auth
def adopt_template(series_id):
    template_id = _body().get("template_id")
    if not template_id:
        return api_error(E.VALIDATION_REQUIRED, "template_id is required")
    return jsonify(meetings.adopt_template(series_id, template_id, current_user_id())), 200


@meeting_bp.route("/agenda-templates", methods=["GET"])
@require_auth
def list_templates():
    return jsonify(meetings.list_templates(current_user_id())), 200


@meeting_bp.route("/agenda-templates", methods=["POST"])
@require_auth
def create_template():
    data = _body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(meetings.create_template(data, current_user_id())), 201


# ═════════════════════════════════════════════════════════════════════════════
# Topics, priorities, action items
# ═════════════════════════════════════════════════════════════════════════════

@meeting_bp.route("/instances/<instance_id>/topics", methods=["GET"])
@require_auth
def list_topics(instance_id):
    return jsonify(meetings.list_topics(instance_id, current_user_id())), 200


@meeting_bp.route("/instances/<instance_id>/topics", methods=["POST"])
@require_auth
def add_topic(instance_id):
    return jsonify(meetings.add_topic(instance_id, _body(), current_user_id())), 201


@meeting_bp.route("/topics/<topic_id>", methods=["PUT"])
@require_auth
def update_topic(topic_id):
    return jsonify(meetings.update_topic(topic_id, _body(), current_user_id())), 200


@meeting_bp.route("/topics/<topic_id>", methods=["DELETE"])
@require_auth
def delete_topic(topic_id):
    meetings.delete_topic(topic_id, current_user_id())
    return jsonify({"message": "Topic deleted"}), 200


@meeting_bp.route("/instances/<instance_id>/priorities", methods=["GET"])
@require_auth
def list_priorities(instance_id):
    return jsonify(meetings.list_priorities(instance_id, current_user_id())), 200


@meeting_bp.route("/instances/<instance_id>/priorities", methods=["POST"])
@require_auth
def add_priority(instance_id):
    return jsonify(meetings.add_priority(instance_id, _body(), current_user_id())), 201


@meeting_bp.route("/priorities/<priority_id>", methods=["PUT"])
@require_auth
def update_priority(priority_id):
    return jsonify(meetings.update_priority(priority_id, _body(), current_user_id())), 200


@meeting_bp.route("/priorities/<priority_id>", methods=["DELETE"])
@require_auth
def delete_priority(priority_id):
    meetings.delete_priority(priority_id, current_user_id())
    return jsonify({"message": "Priority deleted"}), 200


@meeting_bp.route("/series/<series_id>/action-items", methods=["GET"])
@require_auth
def list_action_items(series_id):
    return jsonify(meetings.list_action_items(series_id, current_user_id())), 200


@meeting_bp.route("/series/<series_id>/action-items", methods=["POST"])
@require_auth
def add_action_item(series_id):
    return jsonify(meetings.add_action_item(series_id, _body(), current_user_id())), 201


@meeting_bp.route("/action-items/<item_id>", methods=["PUT"])
@require_auth
def update_action_item(item_id):
    return jsonify(meetings.update_action_item(item_id, _body(), current_user_id())), 200


@meeting_bp.route("/action-items/<item_id>", methods=["DELETE"])
@require_auth
def delete_action_item(item_id):
    meetings.delete_action_item(item_id, current_user_id())
    return jsonify({"message": "Action item deleted"}), 200
