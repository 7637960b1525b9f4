"""
Auth Blueprint — JWT authentication and profile endpoints.

  POST /api/v1/auth/register    — Email + password → user + JWT pair
  POST /api/v1/auth/login       — Email + password → JWT pair (rate-limited)
  POST /api/v1/auth/refresh     — Refresh token → rotated JWT pair
  POST /api/v1/auth/logout      — Revoke refresh token (or every session)
  GET  /api/v1/auth/me          — Current user profile
  PUT  /api/v1/auth/me          — Update profile / change password
  GET  /api/v1/users            — Directory search (?q=)
"""

from flask import Blueprint, current_app, jsonify, request

from cadence import limiter
from cadence.auth import current_user_id, require_auth
from cadence.services.jwt_service import (
    create_session,
    decode_refresh_token,
    generate_token_pair,
    get_active_session_by_token,
    hash_token,
    revoke_all_user_sessions,
    revoke_session,
    revoke_session_by_token,
    rotate_session,
)
from cadence.services.user_service import (
    UserServiceError,
    authenticate_user,
    get_user_by_id,
    register_user,
    search_users,
    update_profile,
)
from cadence.utils.errors import E, api_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1")


def _login_limit():
    return current_app.config.get("LOGIN_RATE_LIMIT", "10/minute")


def _issue_tokens(user, status=200):
    tokens = generate_token_pair(user)
    create_session(
        user.id, tokens["token_hash"],
        request.remote_addr, request.headers.get("User-Agent", ""),
        tokens["expires_at"],
    )
    return jsonify({
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
        "user": user.to_dict(),
    }), status


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/register", methods=["POST"])
def register():
    """
    Body: { "email", "password", "first_name"?, "last_name"?, "full_name"? }
    """
    data = request.get_json(silent=True) or {}
    if not data.get("email") or not data.get("password"):
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    try:
        user = register_user(
            data["email"],
            data["password"],
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            full_name=data.get("full_name"),
        )
    except UserServiceError as e:
        return jsonify({"error": e.message}), e.status_code

    return _issue_tokens(user, 201)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/login", methods=["POST"])
@limiter.limit(_login_limit)
def login():
    """Body: { "email", "password" }"""
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    try:
        user = authenticate_user(email, password)
    except UserServiceError as e:
        return jsonify({"error": e.message}), e.status_code

    return _issue_tokens(user)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/refresh", methods=["POST"])
def refresh():
    """Exchange a refresh token for a new pair (rotation). Body: { "refresh_token" }"""
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refresh_token") or ""
    if not refresh_token:
        return api_error(E.VALIDATION_REQUIRED, "Refresh token is required")

    try:
        payload = decode_refresh_token(refresh_token)
    except Exception:
        return api_error(E.UNAUTHORIZED, "Invalid or expired refresh token")

    user_id = payload.get("sub")
    session = get_active_session_by_token(user_id, hash_token(refresh_token))
    if not session:
        return api_error(E.UNAUTHORIZED, "Session not found or revoked")
    if session.is_expired:
        revoke_session(session)
        return api_error(E.UNAUTHORIZED, "Session expired")

    user = get_user_by_id(user_id)
    if not user or user.status != "active":
        revoke_session(session)
        return api_error(E.UNAUTHORIZED, "User inactive or not found")

    tokens = generate_token_pair(user)
    rotate_session(
        session,
        user.id,
        tokens["token_hash"],
        tokens["expires_at"],
        request.remote_addr,
        request.headers.get("User-Agent", ""),
    )
    return jsonify({
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
    }), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/logout", methods=["POST"])
def logout():
    """Body: { "refresh_token" } revokes one session; without it, every session of the caller."""
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refresh_token") or ""

    if refresh_token:
        revoke_session_by_token(hash_token(refresh_token))
    elif current_user_id():
        revoke_all_user_sessions(current_user_id())

    return jsonify({"message": "Logged out successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/auth/me", methods=["GET"])
@require_auth
def me():
    user = get_user_by_id(current_user_id())
    if not user:
        return api_error(E.NOT_FOUND, "User not found")
    return jsonify(user.to_dict()), 200


@auth_bp.route("/auth/me", methods=["PUT"])
@require_auth
def update_me():
    """Body: any of first_name, last_name, full_name, avatar_url; password + current_password."""
    data = request.get_json(silent=True) or {}
    try:
        user = update_profile(current_user_id(), **data)
    except UserServiceError as e:
        return jsonify({"error": e.message}), e.status_code
    return jsonify(user.to_dict()), 200


@auth_bp.route("/users", methods=["GET"])
@require_auth
def list_users():
    users = search_users(request.args.get("q"), limit=min(request.args.get("limit", 50, type=int), 200))
    return jsonify([u.to_dict() for u in users]), 200
