# Overview: Password hashing and role checks used by the core.

"""
Narrow authentication helpers.

Account management (creation UI, login, password reset, lockout) lives in the
auth module; the core needs only to hash/verify passwords for approver
re-authentication and to compare role levels.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- bcrypt.checkpw() is timing-safe
"""

import bcrypt

from ..extensions import db
from ..models import User, ROLE_LEVELS


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def has_role(user: User | None, role: str) -> bool:
    """True when the user's role level is at least the given role's level."""
    if user is None:
        return False
    return ROLE_LEVELS.get(user.role, 0) >= ROLE_LEVELS[role]


def create_user(*, name: str, email: str, password: str, role: str = "operator", rounds: int = 12) -> User:
    """
    Create a user with a bcrypt-hashed password. Caller commits.

    Raises ValueError for an unknown role or duplicate email,
    PasswordValidationError for a weak password.
    """
    if role not in ROLE_LEVELS:
        raise ValueError(f"Unknown role: {role}")

    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ValueError("Email already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
    )
    db.session.add(user)
    db.session.flush()
    return user
