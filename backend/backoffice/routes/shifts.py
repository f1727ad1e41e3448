# Overview: Flask API routes for cash drawer shifts; parses input and returns JSON responses.

# backend/backoffice/routes/shifts.py
"""
Shift API Routes

WHY: Cash accountability for the drawer: open with a float, accrue
sales/expenses, close with a counted amount and get the Z-report.

DESIGN:
- Shift lifecycle: open -> closed (immutable once closed)
- Postings are attributed to whichever shift is open when they commit
- Money is returned as 2-place strings
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import json_body, translate_errors
from ..services import shift_service

shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.get("/current")
@translate_errors("get current shift")
def current_shift_route():
    """{"shift": <summary>} or {"shift": null} when no shift is open."""
    return jsonify({"shift": shift_service.get_current_shift()}), 200


@shifts_bp.get("/history")
@translate_errors("get shift history")
def shift_history_route():
    shifts = shift_service.get_shift_history(request.args.get("limit"))
    return jsonify({"shifts": shifts, "count": len(shifts)}), 200


@shifts_bp.get("/<int:shift_id>")
@translate_errors("get shift")
def get_shift_route(shift_id: int):
    return jsonify({"shift": shift_service.get_shift(shift_id)}), 200


@shifts_bp.post("/open")
@translate_errors("open shift")
def open_shift_route():
    """
    Request body:
    {
        "admin_id": 1,
        "start_cash": "100.00"
    }
    """
    data = json_body()
    shift = shift_service.open_shift(data.get("admin_id"), data.get("start_cash"))
    current_app.logger.info(
        "Shift %s opened by %s with start_cash %s", shift.id, shift.opened_by, shift.start_cash
    )
    return jsonify({"shift": shift_service.shift_summary(shift)}), 201


@shifts_bp.post("/<int:shift_id>/close")
@translate_errors("close shift")
def close_shift_route(shift_id: int):
    """
    Request body:
    {
        "admin_id": 1,
        "end_cash_actual": "550.00",
        "notes": "optional"
    }
    """
    data = json_body()
    shift = shift_service.close_shift(
        shift_id,
        data.get("admin_id"),
        data.get("end_cash_actual"),
        data.get("notes"),
    )
    current_app.logger.info(
        "Shift %s closed by %s: expected %s actual %s difference %s (%s)",
        shift.id,
        shift.closed_by,
        shift.end_cash_expected,
        shift.end_cash_actual,
        shift.difference,
        shift.outcome,
    )
    return jsonify({"shift": shift_service.shift_summary(shift)}), 200


@shifts_bp.post("/postings")
@translate_errors("post shift activity")
def post_activity_route():
    """
    Request body:
    {
        "kind": "sale" | "expense",
        "amount": "12.50",
        "reference": "optional",
        "note": "optional"
    }
    """
    data = json_body()
    posting = shift_service.post_shift_activity(
        data.get("kind"),
        data.get("amount"),
        reference=data.get("reference"),
        note=data.get("note"),
    )
    current_app.logger.info(
        "Posted %s of %s to shift %s", posting.kind, posting.amount, posting.shift_id
    )
    return jsonify({"posting": posting.to_dict()}), 201
