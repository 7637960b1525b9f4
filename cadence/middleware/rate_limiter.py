"""
Rate limiting configuration.

The Limiter instance is created in ``cadence/__init__.py`` with no default
limits; this module applies limits per blueprint. Storage is REDIS_URL
(``memory://`` when unset).
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Mutation-heavy blueprints:  60/minute
        - Auth blueprint:             200/minute (login has its own LOGIN_RATE_LIMIT)
        - Health check:               exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("teams", "meetings", "rcdo", "canvas"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: write=%s auth=%s login=%s",
        WRITE_LIMIT, READ_LIMIT, app.config.get("LOGIN_RATE_LIMIT"),
    )
