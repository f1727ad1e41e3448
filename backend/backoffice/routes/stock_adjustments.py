# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

"""
Stock Adjustment API Routes

Request body for POST:
{
    "adjustment_date": "2026-01-31",
    "reason": "Month-end count",
    "notes": "optional",
    "items": [
        {"menu_item_id": 1, "mode": "set", "quantity": 12, "note": "optional"},
        {"menu_item_id": 2, "mode": "remove", "quantity": 3}
    ]
}
"""

from flask import Blueprint, current_app, jsonify

from ..decorators import json_body, translate_errors
from ..services import stock_adjustment_service

stock_adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")


@stock_adjustments_bp.post("")
@translate_errors("create stock adjustment")
def create_adjustment_route():
    data = json_body()
    adjustment = stock_adjustment_service.create_adjustment(
        adjustment_date=data.get("adjustment_date"),
        reason=data.get("reason"),
        notes=data.get("notes"),
        items=data.get("items"),
        actor_id=data.get("admin_id"),
    )
    current_app.logger.info(
        "Stock adjustment %s created with %d line(s): %s",
        adjustment.id,
        len(adjustment.items),
        adjustment.reason,
    )
    return jsonify({"id": adjustment.id}), 201


@stock_adjustments_bp.get("")
@translate_errors("list stock adjustments")
def list_adjustments_route():
    return jsonify({"adjustments": stock_adjustment_service.list_adjustments()}), 200


@stock_adjustments_bp.get("/<int:adjustment_id>")
@translate_errors("get stock adjustment")
def get_adjustment_route(adjustment_id: int):
    return jsonify(stock_adjustment_service.get_adjustment_details(adjustment_id)), 200
