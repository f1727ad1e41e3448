# backend/backoffice/routes/system.py
"""
System health and ledger audit endpoints.
"""

import time

from flask import Blueprint, current_app

from ..decorators import translate_errors
from ..extensions import db
from ..models import LedgerEvent, MenuItem, Shift, Supplier
from ..services import audit_service
from backoffice.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a count over each aggregate table.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "shifts": db.session.query(Shift).count(),
            "menu_items": db.session.query(MenuItem).count(),
            "suppliers": db.session.query(Supplier).count(),
            "ledger_events": db.session.query(LedgerEvent).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
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


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }
    return response, 200 if healthy else 503


@system_bp.get("/api/system/audit")
@translate_errors("verify ledgers")
def audit():
    """Re-derive every ledger invariant; 200 when clean, 409 with the violations otherwise."""
    report = audit_service.verify_ledgers()
    if not report["ok"]:
        current_app.logger.warning("Ledger audit found %d violation(s)", len(report["violations"]))
        return report, 409
    return report, 200
