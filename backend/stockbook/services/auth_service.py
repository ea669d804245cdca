# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every stock movement and sale is attributable to a user. Passwords are
hashed with bcrypt; session tokens are managed in session_service.py.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char required
- One role per user: admin, manager or cashier
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..permissions import ROLES
from ..time_utils import utcnow


_PASSWORD_RULES = (
    (r"[A-Z]", "an uppercase letter"),
    (r"[a-z]", "a lowercase letter"),
    (r"\d", "a digit"),
    (r"[!@#$%^&*(),.'\":{}|<>]", "a special character"),
)
MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when a password is too weak for a till or back-office account."""


def validate_password_strength(password: str) -> None:
    """Raise PasswordValidationError naming the first rule the password breaks."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    for pattern, label in _PASSWORD_RULES:
        if not re.search(pattern, password):
            raise PasswordValidationError(f"Password must contain at least {label}")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(username: str, email: str, password: str, role: str = "cashier") -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: unknown role, or username/email already taken
        PasswordValidationError: weak password
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValueError("Username and email are required")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username (or email) and password.

    Returns the User and stamps last_login_at on success, None otherwise.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == (username or "").lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
