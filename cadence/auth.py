"""
Authentication helpers for endpoints.

``require_auth`` rejects requests without a valid access token (the JWT
middleware has already decoded it into ``g.jwt_user_id``).
"""

import functools

from flask import g

from cadence.utils.errors import E, api_error


def current_user_id():
    return getattr(g, "jwt_user_id", None)


def require_auth(f):
    """Decorator: require a JWT-authenticated user."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not current_user_id():
            reason = getattr(g, "jwt_error", None) or "Authentication required"
            return api_error(E.UNAUTHORIZED, reason)
        return f(*args, **kwargs)

    return decorated
