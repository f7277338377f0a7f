# backend/app/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether the report cache observers are
attached to the ORM session.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..report_cache import get_report_cache
from app.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with a trivial query."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_report_cache_health() -> dict:
    cache = get_report_cache()
    enabled = current_app.config.get("REPORT_CACHE_ENABLED", True)
    if enabled and not cache.events.installed:
        return {"status": "unhealthy", "error": "Report cache observers not attached"}
    return {
        "status": "healthy",
        "details": {
            "enabled": enabled,
            "hpp_default_method": cache.cost_basis.default_method,
        },
    }


@system_bp.get("/health")
def health():
    checks = {
        "database": check_database_health(),
        "report_cache": check_report_cache_health(),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }
    return jsonify(body), 200 if healthy else 503
