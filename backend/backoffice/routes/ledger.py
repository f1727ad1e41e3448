# Overview: Flask API routes for reading the append-only ledger event log.

from flask import Blueprint, jsonify, request

from ..decorators import error_response, translate_errors
from ..services.ledger_service import list_ledger_events
from backoffice.time_utils import parse_iso_datetime, to_utc_z

"""
Cursor semantics:
- Events come newest first, ordered by (occurred_at, id).
- next_cursor is "<ISO-8601>|<id>" of the last row returned; passing it
  back continues strictly after that row.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@translate_errors("list ledger events")
def list_ledger_events_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))

    cursor_raw = request.args.get("cursor")
    cursor_dt = None
    cursor_id = None
    if cursor_raw:
        try:
            dt_part, id_part = cursor_raw.split("|")
            cursor_dt = parse_iso_datetime(dt_part)
            cursor_id = int(id_part)
        except ValueError:
            cursor_dt = None
        if cursor_dt is None:
            return error_response("cursor must be in format <ISO-8601>|<id>", "ValidationError", 400)

    rows = list_ledger_events(
        category=request.args.get("category") or None,
        event_type=request.args.get("event_type") or None,
        entity_type=request.args.get("entity_type") or None,
        entity_id=request.args.get("entity_id", type=int),
        cursor_dt=cursor_dt,
        cursor_id=cursor_id,
        limit=limit,
    )

    next_cursor = None
    if rows:
        last = rows[-1]
        next_cursor = f"{to_utc_z(last.occurred_at, precise=True)}|{last.id}"

    return jsonify({
        "items": [r.to_dict() for r in rows],
        "next_cursor": next_cursor,
        "limit": limit,
    }), 200
