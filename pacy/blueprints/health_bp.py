"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — dependency status (database, model providers)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from pacy.ai import get_agent_registry, get_gateway
from pacy.models import db
from pacy.models.workflow import WorkflowStep

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe, always 200 if the app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    # ── Model providers ──────────────────────────────────────────────
    gateway = get_gateway()
    checks["llm"] = {
        "providers": gateway.available_providers,
        "local_stub_forced": gateway.use_local_stub,
        "agents_loaded": len(get_agent_registry().list_agents()),
    }

    if overall:
        # Steps left running by a failed or interrupted phase stay visible here
        checks["workflow"] = {
            "running_steps": WorkflowStep.query.filter_by(status="running").count(),
            "default_pipeline": current_app.config.get("DEFAULT_PIPELINE", "optimized"),
        }
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), 200 if overall else 503
