# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session tokens for the till and back office.

The client holds the plaintext token; only its SHA-256 digest is stored.
Sessions expire SESSION_TTL_HOURS after login and are revoked on logout or
as soon as their user is deactivated.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


@dataclass
class SessionContext:
    """Returned by validate_session: the user and the session record."""
    user: User
    session: SessionToken


def generate_token() -> str:
    """64 hex characters, 32 bytes of entropy."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _revoke(session: SessionToken, when) -> None:
    session.is_revoked = True
    session.revoked_at = when
    db.session.commit()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")

    token = generate_token()
    issued = utcnow()
    lifetime = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    record = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=issued,
        last_used_at=issued,
        expires_at=issued + lifetime,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()

    return record, token


def validate_session(token: str) -> SessionContext | None:
    """SessionContext for a live token, else None."""
    now = utcnow()
    record = _live_session(token)
    if record is None or record.expires_at < now:
        return None

    user = record.user
    if user is None or not user.is_active:
        _revoke(record, now)
        return None

    record.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=record)


def revoke_session(token: str) -> bool:
    """True if a live session was revoked."""
    record = _live_session(token)
    if record is None:
        return False
    _revoke(record, utcnow())
    return True
