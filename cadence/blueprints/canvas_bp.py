"""
Canvas Blueprint — strategy canvas snapshot, collaboration session and markdown import.

  GET  /api/v1/cycles/<cid>/canvas                  — snapshot, else RCDO layout, else default
  PUT  /api/v1/cycles/<cid>/canvas                  — snapshot upsert { nodes, edges }
  GET  /api/v1/cycles/<cid>/canvas/session          — collaboration URL + room name
  POST /api/v1/cycles/<cid>/canvas/import/preview   — { markdown } → parse + validation report
  POST /api/v1/cycles/<cid>/canvas/import           — { markdown, confirm?, lock_all? }

Import responses:
  422 ERR_RULE_VIOLATION          validation failed (details.errors / details.warnings) or
                                  a step failed (details.steps), nothing written
  409 ERR_CONFIRMATION_REQUIRED   the canvas has content and confirm was not set
"""

from flask import Blueprint, jsonify, request

import cadence.services.canvas_service as canvas_service
from cadence.auth import current_user_id, require_auth
from cadence.utils.errors import E, api_error, register_error_handlers

canvas_bp = Blueprint("canvas", __name__, url_prefix="/api/v1")
register_error_handlers(canvas_bp)


def _markdown(data):
    markdown = data.get("markdown")
    if not isinstance(markdown, str) or not markdown.strip():
        return None
    return markdown


@canvas_bp.route("/cycles/<cycle_id>/canvas", methods=["GET"])
@require_auth
def get_canvas(cycle_id):
    return jsonify(canvas_service.load_canvas(cycle_id, current_user_id())), 200


@canvas_bp.route("/cycles/<cycle_id>/canvas", methods=["PUT"])
@require_auth
def save_canvas(cycle_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_REQUIRED, "JSON body with nodes and edges is required")
    return jsonify(canvas_service.save_canvas(cycle_id, data, current_user_id())), 200


@canvas_bp.route("/cycles/<cycle_id>/canvas/session", methods=["GET"])
@require_auth
def canvas_session(cycle_id):
    return jsonify(canvas_service.session_info(cycle_id, current_user_id())), 200


@canvas_bp.route("/cycles/<cycle_id>/canvas/import/preview", methods=["POST"])
@require_auth
def preview_import(cycle_id):
    markdown = _markdown(request.get_json(silent=True) or {})
    if markdown is None:
        return api_error(E.VALIDATION_REQUIRED, "markdown is required")
    return jsonify(canvas_service.preview_import(cycle_id, markdown, current_user_id())), 200


@canvas_bp.route("/cycles/<cycle_id>/canvas/import", methods=["POST"])
@require_auth
def import_markdown(cycle_id):
    data = request.get_json(silent=True) or {}
    markdown = _markdown(data)
    if markdown is None:
        return api_error(E.VALIDATION_REQUIRED, "markdown is required")
    result = canvas_service.import_markdown(
        cycle_id,
        markdown,
        current_user_id(),
        confirm=data.get("confirm") is True,
        lock_all=data.get("lock_all") is True,
    )
    return jsonify(result), 201
