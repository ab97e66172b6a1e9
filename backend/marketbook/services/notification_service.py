from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Item, Notification


def list_notifications(user_id: int, limit: int = 50) -> dict:
    rows = (
        db.session.query(Notification, Item.title)
        .outerjoin(Item, db.and_(Item.id == Notification.related_item_id, Item.user_id == Notification.user_id))
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )
    notifications = []
    for note, title in rows:
        data = note.to_dict()
        data["related_item_title"] = title
        notifications.append(data)

    unread_count = db.session.query(Notification).filter_by(user_id=user_id, read=False).count()
    return {"notifications": notifications, "unread_count": unread_count}


def _get_owned(user_id: int, notification_id: int) -> Notification:
    note = db.session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not note:
        raise NotFoundError("Notification")
    return note


def mark_read(user_id: int, notification_id: int) -> Notification:
    note = _get_owned(user_id, notification_id)
    note.read = True
    db.session.commit()
    return note


def mark_all_read(user_id: int) -> int:
    updated = (
        db.session.query(Notification)
        .filter_by(user_id=user_id, read=False)
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def delete_notification(user_id: int, notification_id: int) -> None:
    note = _get_owned(user_id, notification_id)
    db.session.delete(note)
    db.session.commit()
