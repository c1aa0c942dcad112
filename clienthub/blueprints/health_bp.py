"""
Health probes.

    GET /api/v1/health        database, template catalog, redis and integration status
    GET /api/v1/health/ready  database reachable → 200, else 503
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from clienthub.models import db
from clienthub.models.workspace import WorkspaceTemplate

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


def _ping_database() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check: database unreachable: %s", exc)
        return {"status": "error", "detail": exc.__class__.__name__}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _ping_redis(url: str) -> dict:
    """Rate-limit storage probe; Redis being down never fails the health check."""
    if not url.startswith(("redis://", "rediss://")):
        return {"status": "skipped"}
    try:
        import redis as redis_lib
    except ImportError:
        return {"status": "skipped", "detail": "redis package not installed"}
    started = time.perf_counter()
    try:
        redis_lib.from_url(url, socket_timeout=2).ping()
    except redis_lib.RedisError as exc:
        logger.warning("Health check: redis unreachable: %s", exc)
        return {"status": "error", "detail": exc.__class__.__name__}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


@health_bp.route("", methods=["GET"])
def live():
    database = _ping_database()
    checks = {"database": database}

    if database["status"] == "ok":
        active = WorkspaceTemplate.query.filter_by(is_active=True).count()
        # No active template means contract provisioning cannot succeed
        checks["templates"] = {"status": "ok" if active else "empty", "active": active}

    cfg = current_app.config
    checks["redis"] = _ping_redis(cfg.get("RATELIMIT_STORAGE_URI") or "")
    checks["integrations"] = {
        "pandadoc": bool(cfg.get("PANDADOC_API_KEY") and cfg.get("PANDADOC_WEBHOOK_SECRET")),
        "smtp": bool(cfg.get("MAIL_SERVER")),
    }

    healthy = database["status"] == "ok"
    return jsonify({"status": "ok" if healthy else "degraded", "checks": checks}), 200 if healthy else 503


@health_bp.route("/ready", methods=["GET"])
def ready():
    if _ping_database()["status"] != "ok":
        return jsonify({"status": "unavailable"}), 503
    return jsonify({"status": "ok"}), 200
