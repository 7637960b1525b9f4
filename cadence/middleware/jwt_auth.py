"""
JWT Auth Middleware — parses ``Authorization: Bearer <token>`` into g.jwt_*.

The hook never rejects a request itself; endpoints that need a user are
wrapped with ``cadence.auth.require_auth``.
"""

import logging

import jwt as pyjwt
from flask import g, request

from cadence.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/refresh",
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_email = None
        g.jwt_is_admin = False

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        try:
            payload = decode_access_token(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError:
            g.jwt_error = "Invalid token"
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_email = payload.get("email")
        g.jwt_is_admin = bool(payload.get("admin"))
