"""
Health check blueprint.

Endpoints:
    GET /api/v1/health  — liveness plus database round-trip
"""

import logging
import time

from flask import Blueprint, jsonify

from chantier.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1")


@health_bp.route("/health", methods=["GET"])
def health():
    checks = {}
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
        status, code = "ok", 200
    except Exception as exc:
        db.session.rollback()
        logger.error("Health check: database failed: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)}
        status, code = "degraded", 503
    return jsonify({"status": status, "checks": checks}), code
