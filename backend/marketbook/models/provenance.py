from __future__ import annotations

from ..extensions import db
from marketbook.time_utils import to_utc_z, utcnow


NOTIFICATION_TYPES = ("info", "success", "warning", "error")


class AuditLog(db.Model):
    """
    Provenance entry: one row per state-changing action.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.

    related_item_id is a plain back-reference (no foreign key) so entries
    keep pointing at items that were deleted afterwards, e.g. ITEM_DELETED.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_user_created", "user_id", "created_at"),
        db.Index("ix_audit_logs_user_action", "user_id", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # ITEM_CREATED, EMAIL_SENT, etc.
    details = db.Column(db.Text, nullable=False)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    related_item_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "details": self.details,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "related_item_id": self.related_item_id,
            "created_at": to_utc_z(self.created_at),
        }


class Notification(db.Model):
    """User-facing inbox entry. Only the read flag is ever mutated."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="info")
    read = db.Column(db.Boolean, nullable=False, default=False)

    related_item_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "type": self.type,
            "read": self.read,
            "related_item_id": self.related_item_id,
            "created_at": to_utc_z(self.created_at),
        }
