# Overview: Flask API routes for suppliers, supplier payments and balances.

# backend/backoffice/routes/suppliers.py
"""
Supplier API Routes

DESIGN:
- Balances are recomputed from purchase/payment history on every request
- DELETE reports "deleted" or "deactivated"; both are 200 responses
- Payments return the supplier's fresh balance summary
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import json_body, pop_actor, translate_errors
from ..services import supplier_service

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


def _include_inactive() -> bool:
    return (request.args.get("include_inactive") or "").strip().lower() in ("1", "true", "yes")


@suppliers_bp.post("")
@translate_errors("create supplier")
def create_supplier_route():
    """
    Request body:
    {
        "name": "Fresh Farms",
        "phone": "optional",
        "email": "optional",
        "address": "optional",
        "notes": "optional"
    }
    """
    data = json_body()
    actor_id = pop_actor(data)
    supplier = supplier_service.create_supplier(data, actor_id=actor_id)
    current_app.logger.info("Supplier %s created (%s)", supplier.id, supplier.name)
    return jsonify({"supplier": supplier.to_dict()}), 201


@suppliers_bp.get("")
@translate_errors("list suppliers")
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers(include_inactive=_include_inactive())
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.get("/balances")
@translate_errors("get supplier balances")
def balances_route():
    summaries = supplier_service.get_balance_summaries(include_inactive=_include_inactive())
    return jsonify({"balances": summaries}), 200


@suppliers_bp.get("/<int:supplier_id>")
@translate_errors("get supplier")
def get_supplier_route(supplier_id: int):
    return jsonify({"supplier": supplier_service.get_supplier(supplier_id).to_dict()}), 200


@suppliers_bp.patch("/<int:supplier_id>")
@translate_errors("update supplier")
def update_supplier_route(supplier_id: int):
    data = json_body()
    actor_id = pop_actor(data)
    supplier = supplier_service.update_supplier(supplier_id, data, actor_id=actor_id)
    current_app.logger.info("Supplier %s updated", supplier.id)
    return jsonify({"supplier": supplier.to_dict()}), 200


@suppliers_bp.delete("/<int:supplier_id>")
@translate_errors("delete supplier")
def delete_supplier_route(supplier_id: int):
    result = supplier_service.delete_supplier(supplier_id)
    current_app.logger.info("Supplier %s %s", supplier_id, result.outcome)
    return jsonify(result.to_dict()), 200


@suppliers_bp.get("/<int:supplier_id>/balance")
@translate_errors("get supplier balance")
def supplier_balance_route(supplier_id: int):
    return jsonify({"balance": supplier_service.get_supplier_balance(supplier_id)}), 200


@suppliers_bp.get("/<int:supplier_id>/payments")
@translate_errors("list supplier payments")
def list_payments_route(supplier_id: int):
    payments = supplier_service.get_supplier_payments(supplier_id)
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@suppliers_bp.post("/<int:supplier_id>/payments")
@translate_errors("record supplier payment")
def record_payment_route(supplier_id: int):
    """
    Request body:
    {
        "amount": "100.00",
        "method": "cash" | "card" | "mobile" | "bank",
        "note": "optional",
        "purchase_id": 3  (optional)
    }
    """
    data = json_body()
    actor_id = pop_actor(data)
    summary = supplier_service.record_payment(
        supplier_id,
        data.get("amount"),
        data.get("method"),
        note=data.get("note"),
        purchase_id=data.get("purchase_id"),
        actor_id=actor_id,
    )
    current_app.logger.info(
        "Payment %s recorded for supplier %s; balance_due now %s",
        summary["payment_id"],
        supplier_id,
        summary["balance_due"],
    )
    return jsonify({"balance": summary}), 201
