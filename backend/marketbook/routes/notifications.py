# Overview: Flask API routes for the notification inbox.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import notification_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """50 newest notifications plus the unread count."""
    return jsonify(notification_service.list_notifications(g.current_user.id)), 200


@notifications_bp.put("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    note = notification_service.mark_read(g.current_user.id, notification_id)
    return jsonify({
        "message": "Notification marked as read",
        "notification": note.to_dict(),
    }), 200


@notifications_bp.put("/read-all")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.current_user.id)
    return jsonify({
        "message": "All notifications marked as read",
        "updated": updated,
    }), 200


@notifications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification_route(notification_id: int):
    notification_service.delete_notification(g.current_user.id, notification_id)
    return jsonify({"message": "Notification deleted"}), 200
