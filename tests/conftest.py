"""
Shared pytest fixtures for the Cadence test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / headers_for: user rows and Bearer headers without bcrypt cost
    - admin_user / member_user / outsider: three users, the first two in ``team``
    - team / cycle: a team (admin_user is its admin) and a draft H1 cycle
"""

import pytest

from cadence import create_app
from cadence.models import db as _db
from cadence.models.auth import User
from cadence.models.team import TeamMember
from cadence.services import rcdo_service, team_service
from cadence.services.jwt_service import generate_access_token
from cadence.services.navigation_service import configure_cache


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # ids are reused across tests; start every test with an empty tree cache
        configure_cache(ttl=app.config["NAVIGATION_CACHE_TTL"])
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users & auth ─────────────────────────────────────────────────────────


def _make_user(email, first_name=None, last_name=None, is_app_admin=False):
    parts = [p for p in (first_name, last_name) if p]
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        full_name=" ".join(parts) or None,
        is_app_admin=is_app_admin,
        status="active",
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def _headers_for(user):
    token = generate_access_token(user.id, user.email, user.is_app_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user():
    return _make_user


@pytest.fixture()
def headers_for():
    return _headers_for


@pytest.fixture()
def admin_user():
    return _make_user("ada@example.com", "Ada", "Lovelace")


@pytest.fixture()
def member_user():
    return _make_user("grace@example.com", "Grace", "Hopper")


@pytest.fixture()
def outsider():
    return _make_user("mallory@example.com", "Mallory", "Outsider")


@pytest.fixture()
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture()
def member_headers(member_user):
    return _headers_for(member_user)


@pytest.fixture()
def outsider_headers(outsider):
    return _headers_for(outsider)


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def team(admin_user, member_user):
    """A team with admin_user as admin and member_user as plain member."""
    data = team_service.create_team({"name": "Leadership", "abbreviated_name": "LT"}, admin_user.id)
    _db.session.add(TeamMember(team_id=data["id"], user_id=member_user.id, role="member"))
    _db.session.commit()
    return data


@pytest.fixture()
def cycle(team, admin_user):
    """Draft first-half cycle for ``team``."""
    return rcdo_service.create_cycle(
        team["id"], {"start_date": "2026-01-01", "end_date": "2026-06-30"}, admin_user.id,
    )
