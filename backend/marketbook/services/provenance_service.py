# Overview: Service-layer operations for the audit trail and notification fan-out.

"""
Provenance Log

Append-only audit entries plus user-facing notifications, both scoped to a
user and optionally linked to an item.

BEST EFFORT: recording provenance is observability, not a transactional
participant. ProvenanceRecorder.record() captures and logs its own failures
and never raises, so a primary operation that already succeeded is reported
as a success even if its audit or notification write fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import AuditLog, Item, Notification, NOTIFICATION_TYPES
from marketbook.time_utils import days_ago, utcnow


logger = logging.getLogger(__name__)


USER_REGISTERED = "USER_REGISTERED"
USER_LOGIN = "USER_LOGIN"
PROFILE_UPDATED = "PROFILE_UPDATED"
PASSWORD_CHANGED = "PASSWORD_CHANGED"
AVATAR_UPDATED = "AVATAR_UPDATED"
ADMIN_REGISTERED = "ADMIN_REGISTERED"
ADMIN_LOGIN = "ADMIN_LOGIN"
ITEM_CREATED = "ITEM_CREATED"
ITEM_UPDATED = "ITEM_UPDATED"
ITEM_DELETED = "ITEM_DELETED"
ADMIN_ITEM_DELETED = "ADMIN_ITEM_DELETED"
INVOICE_GENERATED = "INVOICE_GENERATED"
EMAIL_SENT = "EMAIL_SENT"


@dataclass(frozen=True)
class RequestContext:
    """
    Explicit caller context handed to every pipeline/service call.

    Built once per request by the auth decorator; nothing downstream reads
    request globals.
    """
    user_id: int
    ip_address: str | None = None
    user_agent: str | None = None


class ProvenanceRecorder:
    """Writes an audit entry and a notification, each in its own commit."""

    def __init__(self, session=None):
        self._session = session if session is not None else db.session

    def record(
        self,
        ctx: RequestContext,
        action: str,
        details: str,
        *,
        message: str | None = None,
        notification_type: str = "success",
        item_id: int | None = None,
    ) -> None:
        try:
            self._write_audit(ctx, action, details, item_id)
        except Exception:
            self._session.rollback()
            logger.exception("Error creating audit log (action=%s user_id=%s)", action, ctx.user_id)

        if message is None:
            return

        try:
            self._write_notification(ctx.user_id, message, notification_type, item_id)
        except Exception:
            self._session.rollback()
            logger.exception("Error creating notification (action=%s user_id=%s)", action, ctx.user_id)

    def _write_audit(self, ctx: RequestContext, action: str, details: str, item_id: int | None) -> AuditLog:
        entry = AuditLog(
            user_id=ctx.user_id,
            action=action,
            details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            related_item_id=item_id,
            created_at=utcnow(),
        )
        self._session.add(entry)
        self._session.commit()
        return entry

    def _write_notification(self, user_id: int, message: str, notification_type: str, item_id: int | None) -> Notification:
        if notification_type not in NOTIFICATION_TYPES:
            notification_type = "info"
        note = Notification(
            user_id=user_id,
            message=message,
            type=notification_type,
            related_item_id=item_id,
            created_at=utcnow(),
        )
        self._session.add(note)
        self._session.commit()
        return note


def list_audit_logs(user_id: int, limit: int = 100) -> list[dict]:
    """Newest first; each row carries the related item's title while it still exists."""
    rows = (
        db.session.query(AuditLog, Item.title)
        .outerjoin(Item, db.and_(Item.id == AuditLog.related_item_id, Item.user_id == AuditLog.user_id))
        .filter(AuditLog.user_id == user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
    result = []
    for entry, title in rows:
        data = entry.to_dict()
        data["related_item_title"] = title
        result.append(data)
    return result


def count_recent_activity(user_id: int, hours: int = 24) -> int:
    since = utcnow() - timedelta(hours=hours)
    return (
        db.session.query(func.count(AuditLog.id))
        .filter(AuditLog.user_id == user_id, AuditLog.created_at >= since)
        .scalar()
    ) or 0


def user_activity(user_id: int, days: int = 30) -> list[dict]:
    """Audit counts grouped by (day, action) over the last `days` days, oldest day first."""
    day = func.date(AuditLog.created_at)
    rows = (
        db.session.query(day.label("day"), AuditLog.action, func.count(AuditLog.id))
        .filter(AuditLog.user_id == user_id, AuditLog.created_at >= days_ago(days))
        .group_by(day, AuditLog.action)
        .order_by(day.asc(), AuditLog.action.asc())
        .all()
    )
    return [
        {"date": str(d), "action": action, "count": count}
        for d, action, count in rows
    ]
