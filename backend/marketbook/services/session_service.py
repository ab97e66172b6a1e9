# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Bearer tokens for ordinary sessions and short-lived elevated admin grants.
Tokens are cryptographically secure, hashed in database, and time-limited.

SCOPES:
- USER: issued at register/login, 7-day absolute timeout
- ADMIN: issued by admin login after presenting the one-time admin secret,
  24-hour absolute timeout, tied to the same user id as the bearer session

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Revocable on logout, admin logout and password change
- Tracks client IP and user agent for security monitoring
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User
from marketbook.time_utils import utcnow


SCOPE_USER = "USER"
SCOPE_ADMIN = "ADMIN"

SESSION_TIMEOUTS = {
    SCOPE_USER: timedelta(days=7),
    SCOPE_ADMIN: timedelta(hours=24),
}


@dataclass
class SessionContext:
    """Resolved identity behind a presented token."""
    user: User
    session: SessionToken
    scope: str


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    scope: str = SCOPE_USER,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError for unknown users or scopes.
    """
    if scope not in SESSION_TIMEOUTS:
        raise ValueError(f"Unknown session scope: {scope}")

    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        scope=scope,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_TIMEOUTS[scope],
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str, scope: str = SCOPE_USER) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is unknown, revoked, expired, or was issued
    for a different scope. A USER token never satisfies an ADMIN check and
    vice versa.

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session or session.scope != scope:
        return None

    # Check absolute timeout
    if session.expires_at < now:
        return None

    user = session.user
    if not user:
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, scope=session.scope)


def revoke_session(token: str, reason: str = "User logout", scope: str | None = None) -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    query = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    )
    if scope is not None:
        query = query.filter_by(scope=scope)
    session = query.first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason

    db.session.commit()
    return True


def revoke_all_user_sessions(
    user_id: int,
    reason: str = "Revoke all sessions",
    keep_session_id: int | None = None,
) -> int:
    """
    Revoke all active sessions for a user, optionally sparing the caller's own.

    Returns count of sessions revoked.
    """
    now = utcnow()

    query = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False)
    if keep_session_id is not None:
        query = query.filter(SessionToken.id != keep_session_id)

    count = 0
    for session in query.all():
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
        count += 1

    db.session.commit()
    return count


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """
    Delete expired and revoked sessions older than the retention window.

    Returns count of sessions deleted.
    """
    cutoff = utcnow() - timedelta(days=retention_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
