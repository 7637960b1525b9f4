"""
User Service — registration, login, profile updates, directory lookups.
"""

from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from cadence.models import db
from cadence.models.auth import User
from cadence.utils.crypto import hash_password, verify_password

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = {"first_name", "last_name", "full_name", "avatar_url"}


class UserServiceError(Exception):
    """User service failure carrying the HTTP status to answer with."""

    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def normalize_email(email: str) -> str:
    try:
        valid = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError as e:
        raise UserServiceError(f"Invalid email: {e}")
    return valid.normalized.lower()


def _full_name(first_name, last_name, full_name=None):
    if full_name:
        return full_name.strip()
    parts = [p.strip() for p in (first_name, last_name) if p and p.strip()]
    return " ".join(parts) or None


# ═══════════════════════════════════════════════════════════════
# Registration & login
# ═══════════════════════════════════════════════════════════════
def register_user(
    email: str,
    password: str,
    first_name: str = None,
    last_name: str = None,
    full_name: str = None,
) -> User:
    email = normalize_email(email)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise UserServiceError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.query.filter_by(email=email).first():
        raise UserServiceError(f"User with email {email} already exists", 409)

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        full_name=_full_name(first_name, last_name, full_name),
        status="active",
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate_user(email: str, password: str) -> User:
    """Email + password login. Returns the User on success."""
    user = User.query.filter_by(email=(email or "").strip().lower()).first()
    if not user:
        raise UserServiceError("Invalid email or password", 401)
    if user.status != "active":
        raise UserServiceError(f"Account is {user.status}", 403)
    if not verify_password(password or "", user.password_hash):
        raise UserServiceError("Invalid email or password", 401)

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════
def get_user_by_id(user_id: str) -> User | None:
    return db.session.get(User, user_id)


def update_profile(user_id: str, **fields) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserServiceError("User not found", 404)

    for key, val in fields.items():
        if key in PROFILE_FIELDS:
            setattr(user, key, val)
    if "full_name" not in fields and ({"first_name", "last_name"} & fields.keys()):
        user.full_name = _full_name(user.first_name, user.last_name)

    if fields.get("password"):
        if not verify_password(fields.get("current_password") or "", user.password_hash):
            raise UserServiceError("Current password is incorrect", 403)
        if len(fields["password"]) < MIN_PASSWORD_LENGTH:
            raise UserServiceError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        user.password_hash = hash_password(fields["password"])

    db.session.commit()
    return user


def search_users(query: str = None, limit: int = 50) -> list[User]:
    """Directory search by email or name (case-insensitive substring)."""
    q = User.query.filter_by(status="active")
    if query:
        like = f"%{query.strip()}%"
        q = q.filter(
            User.email.ilike(like) | User.full_name.ilike(like)
            | User.first_name.ilike(like) | User.last_name.ilike(like)
        )
    return q.order_by(User.email).limit(limit).all()
