# Overview: Flask API routes for admin mode; the caller's own data behind an elevated grant.

"""
Admin API routes

Every route needs both the bearer session and the X-Admin-Token grant of the
same user. Admin mode never reaches other users' rows.
"""

from flask import Blueprint, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..services import admin_service
from ..services import item_service
from ..services import provenance_service
from .items import build_pipeline


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/stats")
@require_auth
@require_admin
def stats_route():
    stats = admin_service.get_stats(
        g.current_user.id,
        currency_symbol=current_app.config["INVOICE_CURRENCY_SYMBOL"],
    )
    return jsonify({"stats": stats}), 200


@admin_bp.get("/items")
@require_auth
@require_admin
def list_items_route():
    symbol = current_app.config["INVOICE_CURRENCY_SYMBOL"]
    items = item_service.list_items(g.current_user.id)
    return jsonify({"items": [i.to_dict(currency_symbol=symbol) for i in items]}), 200


@admin_bp.delete("/items/<int:item_id>")
@require_auth
@require_admin
def delete_item_route(item_id: int):
    snapshot = build_pipeline().delete(
        g.request_context,
        item_id,
        action=provenance_service.ADMIN_ITEM_DELETED,
    )
    return jsonify({
        "message": "Item deleted successfully",
        "item": snapshot,
    }), 200


@admin_bp.get("/audit-logs")
@require_auth
@require_admin
def audit_logs_route():
    logs = provenance_service.list_audit_logs(g.current_user.id, limit=100)
    return jsonify({"logs": logs}), 200


@admin_bp.get("/user-activity")
@require_auth
@require_admin
def user_activity_route():
    activity = provenance_service.user_activity(g.current_user.id, days=30)
    return jsonify({"activity": activity}), 200
