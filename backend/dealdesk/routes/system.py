# backend/dealdesk/routes/system.py
"""
System health endpoint.

Reports database reachability (checked through the retry helper) and which
object storage backend is configured.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..services.gateway import check_connection

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


@system_bp.get("/health")
def health_route():
    start_time = time.time()
    database_ok = check_connection()
    elapsed_ms = (time.time() - start_time) * 1000

    body = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": {
            "status": "healthy" if database_ok else "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
        },
        "storage": {"backend": current_app.config.get("STORAGE_BACKEND", "local")},
    }
    return jsonify(body), 200 if database_ok else 503
