# Overview: Service-layer operations for per-account admin mode.

"""
Admin mode is "manage my own data with elevated privilege", never cross-tenant.

Lifecycle:
- register_admin: unregistered -> registered, exactly once. Returns the
  one-time admin secret; only its bcrypt hash is stored and it is never
  regenerated.
- admin_login: exchanges the secret for a short-lived ADMIN session grant.
- the grant expires (24h) or is revoked by admin logout.

Stats and activity views are scoped to the calling user's own rows.
"""

from __future__ import annotations

import secrets

from sqlalchemy import func

from ..errors import AlreadyRegisteredError, UnauthorizedError
from ..extensions import db
from ..models import Item, SessionToken, User
from ..money import amount_str, format_currency
from . import provenance_service, session_service
from marketbook.time_utils import utcnow
from .auth_service import hash_secret, verify_secret


def generate_admin_secret() -> str:
    return secrets.token_hex(16)  # 32 hex characters


def register_admin(user: User) -> str:
    """
    Register the user as admin and return the plaintext secret.

    Raises AlreadyRegisteredError on replay; the stored hash is untouched.
    """
    # Re-read under the current session so a concurrent registration is seen
    db.session.refresh(user)
    if user.is_admin_registered:
        raise AlreadyRegisteredError()

    secret = generate_admin_secret()
    updated = (
        db.session.query(User)
        .filter(User.id == user.id, User.is_admin_registered.is_(False))
        .update(
            {
                User.is_admin_registered: True,
                User.admin_secret_hash: hash_secret(secret),
                User.admin_registered_at: utcnow(),
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.session.rollback()
        raise AlreadyRegisteredError()

    db.session.commit()
    db.session.refresh(user)
    return secret


def admin_login(
    user: User,
    admin_pass: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Issue an elevated grant for the presented secret."""
    if not user.is_admin_registered or not verify_secret(admin_pass, user.admin_secret_hash):
        raise UnauthorizedError("Invalid admin pass")

    return session_service.create_session(
        user_id=user.id,
        scope=session_service.SCOPE_ADMIN,
        user_agent=user_agent,
        ip_address=ip_address,
    )


def get_stats(user_id: int, currency_symbol: str = "₦") -> dict:
    total_items, total_cents = (
        db.session.query(func.count(Item.id), func.coalesce(func.sum(Item.amount_cents), 0))
        .filter(Item.user_id == user_id)
        .one()
    )
    return {
        "total_items": total_items,
        # Admin scope is the caller's own account only
        "total_users": 1,
        "total_revenue": amount_str(total_cents),
        "total_revenue_cents": int(total_cents),
        "total_revenue_display": format_currency(int(total_cents), currency_symbol),
        "recent_activity": provenance_service.count_recent_activity(user_id, hours=24),
    }
