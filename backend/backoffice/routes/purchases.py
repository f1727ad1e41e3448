# Overview: Flask API routes for supplier purchases.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import json_body, pop_actor, translate_errors
from ..services import purchase_service

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@translate_errors("record purchase")
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 1,
        "purchase_date": "2026-01-31",
        "reference": "INV-001",
        "items": [{"menu_item_id": 4, "item_name": "Flour", "quantity": 10, "unit_cost": "2.50"}],
        "payment_mode": "pay_now" | "pay_later" | "pay_partial",
        "payment_amount": "10.00",
        "payment_method": "cash",
        "update_stock": true
    }
    """
    data = json_body()
    actor_id = pop_actor(data)
    purchase = purchase_service.add_purchase(data, actor_id=actor_id)
    current_app.logger.info(
        "Purchase %s recorded for supplier %s: total %s",
        purchase.id,
        purchase.supplier_id,
        purchase.total_amount,
    )
    return jsonify({"id": purchase.id, "purchase": purchase.to_dict()}), 201


@purchases_bp.get("")
@translate_errors("list purchases")
def list_purchases_route():
    supplier_id = request.args.get("supplier_id", type=int)
    return jsonify({"purchases": purchase_service.list_purchases(supplier_id=supplier_id)}), 200


@purchases_bp.get("/<int:purchase_id>")
@translate_errors("get purchase")
def get_purchase_route(purchase_id: int):
    return jsonify(purchase_service.get_purchase_details(purchase_id)), 200


@purchases_bp.delete("/<int:purchase_id>")
@translate_errors("delete purchase")
def delete_purchase_route(purchase_id: int):
    """?rollback_stock=false keeps received quantities in stock."""
    rollback = (request.args.get("rollback_stock") or "true").strip().lower() not in ("0", "false", "no")
    purchase_service.delete_purchase(purchase_id, rollback_stock=rollback)
    current_app.logger.info("Purchase %s deleted (rollback_stock=%s)", purchase_id, rollback)
    return jsonify({"deleted": purchase_id}), 200
