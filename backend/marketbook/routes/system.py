# backend/marketbook/routes/system.py
"""
System health endpoint.

Liveness plus a database round trip and a summary of which delivery and
rendering backends were configured at startup.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import SessionToken
from marketbook.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial query.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"active_sessions": active_sessions},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_integrations() -> dict:
    cfg = current_app.config
    return {
        "status": "healthy",
        "details": {
            "invoice_renderer": cfg["INVOICE_RENDER_BACKEND"],
            "mail_configured": bool(cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD")),
            "storage_configured": bool(
                cfg.get("CLOUDINARY_CLOUD_NAME")
                and cfg.get("CLOUDINARY_API_KEY")
                and cfg.get("CLOUDINARY_API_SECRET")
            ),
        },
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    response = {
        "status": "OK" if http_status == 200 else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "integrations": check_integrations(),
        },
    }

    return response, http_status
