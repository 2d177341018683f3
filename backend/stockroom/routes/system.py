"""
System health endpoint.
"""
import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Run a trivial query and time it."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {"status": "error", "latency_ms": round((time.time() - start_time) * 1000, 2)}
    return {"status": "ok", "latency_ms": round((time.time() - start_time) * 1000, 2)}


@system_bp.get("/health")
def health():
    """
    Liveness + database probe. No auth.

    Returns:
    - 200 {"status": "ok", "database": "ok"}
    - 503 when the database cannot be queried
    """
    database = check_database_health()
    healthy = database["status"] == "ok"
    response = {
        "status": "ok" if healthy else "error",
        "database": database["status"],
        "latency_ms": database["latency_ms"],
        "timestamp": to_utc_z(utcnow()),
    }
    return response, 200 if healthy else 503
