from __future__ import annotations

from ..extensions import db
from marketbook.time_utils import to_utc_z, utcnow


BILLING_FIELDS = ("street", "city", "state", "zip_code", "country")


class User(db.Model):
    """
    User accounts: credentials, profile, billing address, admin registration.

    Every item, audit entry and notification hangs off exactly one user.
    Users are never hard-deleted.

    ADMIN: is_admin_registered flips once (unregistered -> registered).
    Only a bcrypt hash of the one-time admin secret is kept; the plaintext
    is shown to the caller exactly once at registration.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    # Stored lower-cased; unique across the whole system
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    phone = db.Column(db.String(32), nullable=True)
    avatar = db.Column(db.String(512), nullable=True)

    # Billing address (all optional; invoices fall back to placeholders)
    billing_street = db.Column(db.String(255), nullable=True)
    billing_city = db.Column(db.String(120), nullable=True)
    billing_state = db.Column(db.String(120), nullable=True)
    billing_zip_code = db.Column(db.String(32), nullable=True)
    billing_country = db.Column(db.String(120), nullable=True)

    is_admin_registered = db.Column(db.Boolean, nullable=False, default=False)
    admin_secret_hash = db.Column(db.String(255), nullable=True)
    admin_registered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def billing_address(self) -> dict:
        return {field: getattr(self, f"billing_{field}") for field in BILLING_FIELDS}

    def owner_dict(self) -> dict:
        """The slice of the profile joined into items and invoices."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "billing_address": self.billing_address,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "avatar": self.avatar,
            "billing_address": self.billing_address,
            "is_admin_registered": self.is_admin_registered,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


class SessionToken(db.Model):
    """
    Bearer tokens and elevated admin grants.

    scope USER: ordinary session issued at register/login.
    scope ADMIN: short-lived elevated grant issued by admin login, only valid
    together with a USER session of the same user.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute timeout per scope (see session_service)
    - Revocable on logout or password change
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    scope = db.Column(db.String(16), nullable=False, default="USER")

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "scope": self.scope,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
