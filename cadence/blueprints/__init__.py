"""
Cadence
Blueprint registry.
"""

from flask import request


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def all_blueprints():
    from cadence.blueprints.auth_bp import auth_bp
    from cadence.blueprints.canvas_bp import canvas_bp
    from cadence.blueprints.health_bp import health_bp
    from cadence.blueprints.meeting_bp import meeting_bp
    from cadence.blueprints.rcdo_bp import rcdo_bp
    from cadence.blueprints.team_bp import team_bp

    return [health_bp, auth_bp, team_bp, meeting_bp, rcdo_bp, canvas_bp]
