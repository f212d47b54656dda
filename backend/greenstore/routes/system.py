# backend/greenstore/routes/system.py
"""
System health endpoint.

Reports database reachability and whether the policy settings have been
seeded, so a deployment can tell "up" from "up but never initialized".
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, Setting, User
from ..services.settings_service import POLICY_KEYS
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        user_count = db.session.query(User).count()
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"products": product_count, "users": user_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_settings_health() -> dict:
    """Missing policy keys mean `flask system init` was never run: degraded, not down."""
    start_time = time.time()
    try:
        present = {
            key for (key,) in db.session.query(Setting.key).filter(Setting.key.in_(POLICY_KEYS)).all()
        }
        missing = [key for key in POLICY_KEYS if key not in present]
        elapsed_ms = (time.time() - start_time) * 1000

        if missing:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"Missing settings: {', '.join(missing)}",
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Settings health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Settings error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    settings_health = check_settings_health()

    all_checks = [database_health, settings_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "settings": settings_health,
        },
    }, http_status
