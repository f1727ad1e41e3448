# Overview: Service-layer operations for supplier purchases; charges, optional payment and stock receipt.

"""
Purchase Service

WHY: A purchase is the charge side of a supplier account. Recording one
can also settle it (fully or partly) and receive the goods into stock,
and all of that must land together or not at all.

RULES:
- total_amount = sum(quantity * unit_cost), fixed at creation
- pay_now pays the total, pay_partial pays 0 < amount <= total,
  pay_later pays nothing; no payment row without a supplier
- update_stock adds received quantities to stock-tracked items only
- A purchase with linked payments cannot be deleted
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Purchase, PurchaseItem, Supplier, SupplierPayment
from ..models.suppliers import (
    PAYMENT_METHODS,
    PAYMENT_MODES,
    PAYMENT_MODE_PAY_LATER,
    PAYMENT_MODE_PAY_NOW,
    PAYMENT_MODE_PAY_PARTIAL,
)
from backoffice.validation import (
    MAX_MONEY,
    MONEY_QUANTUM,
    ConflictError,
    NotFoundError,
    ValidationError,
    clean_text,
    money_str,
    parse_date,
    parse_id,
    parse_money,
    parse_quantity,
    to_money,
)
from .concurrency import lock_for_update
from .inventory_service import apply_stock_delta, lock_menu_items, menu_item_key
from .ledger_service import append_ledger_event, run_in_aggregate
from .supplier_service import _append_payment, supplier_key


def _parse_lines(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    lines = []
    for idx, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {idx}: must be an object")
        try:
            menu_item_id = raw.get("menu_item_id")
            if menu_item_id is not None:
                menu_item_id = parse_id(menu_item_id, "menu_item_id")
            item_name = clean_text(raw.get("item_name"), "item_name", max_length=255)
            if item_name is None and menu_item_id is None:
                raise ValidationError("item_name is required")
            quantity = parse_quantity(raw.get("quantity"), "quantity", minimum=1)
            unit_cost = parse_money(raw.get("unit_cost"), "unit_cost", allow_zero=False)
        except ValidationError as e:
            raise ValidationError(f"Line {idx}: {e}")

        lines.append({
            "line_no": idx,
            "menu_item_id": menu_item_id,
            "item_name": item_name,
            "quantity": quantity,
            "unit_cost": unit_cost,
            "line_total": (unit_cost * quantity).quantize(MONEY_QUANTUM),
        })
    return lines


def add_purchase(payload: dict, *, actor_id: int | None = None) -> Purchase:
    """
    Record a purchase, its optional payment and its optional stock receipt.

    Raises:
        ValidationError: bad header, line or payment input
        NotFoundError: supplier or menu item does not exist
        ConflictError: supplier is inactive
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    supplier_id = payload.get("supplier_id")
    if supplier_id is not None:
        supplier_id = parse_id(supplier_id, "supplier_id")
    purchase_date = parse_date(payload.get("purchase_date"), "purchase_date")
    reference = clean_text(payload.get("reference"), "reference", max_length=64)
    notes = clean_text(payload.get("notes"), "notes")
    lines = _parse_lines(payload.get("items"))

    total = sum((line["line_total"] for line in lines), Decimal("0.00"))
    if total > MAX_MONEY:
        raise ValidationError(f"total_amount cannot exceed {MAX_MONEY}")

    mode = payload.get("payment_mode") or PAYMENT_MODE_PAY_LATER
    if mode not in PAYMENT_MODES:
        raise ValidationError(f"payment_mode must be one of: {', '.join(PAYMENT_MODES)}")

    payment_amount = None
    if mode == PAYMENT_MODE_PAY_NOW:
        payment_amount = total
    elif mode == PAYMENT_MODE_PAY_PARTIAL:
        payment_amount = parse_money(payload.get("payment_amount"), "payment_amount", allow_zero=False)
        if payment_amount > total:
            raise ValidationError("payment_amount cannot exceed the purchase total")

    method = payload.get("payment_method") or "cash"
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    payment_note = clean_text(payload.get("payment_note"), "payment_note", max_length=255)

    update_stock = payload.get("update_stock", False)
    if not isinstance(update_stock, bool):
        raise ValidationError("update_stock must be true or false")

    menu_ids = {line["menu_item_id"] for line in lines if line["menu_item_id"] is not None}
    keys = [menu_item_key(i) for i in menu_ids]
    if supplier_id is not None:
        keys.append(supplier_key(supplier_id))

    def _op():
        if supplier_id is not None:
            supplier = lock_for_update(
                db.session.query(Supplier).filter(Supplier.id == supplier_id)
            ).first()
            if supplier is None:
                raise NotFoundError(f"Supplier {supplier_id} not found")
            if not supplier.is_active:
                raise ConflictError(f"Supplier '{supplier.name}' is inactive")

        items = lock_menu_items(menu_ids)
        for line in lines:
            if line["menu_item_id"] is None:
                continue
            item = items.get(line["menu_item_id"])
            if item is None:
                raise NotFoundError(f"Line {line['line_no']}: menu item {line['menu_item_id']} not found")
            if line["item_name"] is None:
                line["item_name"] = item.name

        purchase = Purchase(
            supplier_id=supplier_id,
            purchase_date=purchase_date,
            reference=reference,
            notes=notes,
            total_amount=total,
            stock_applied=False,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            item = items.get(line["menu_item_id"])
            applied = bool(update_stock and item is not None and item.track_stock)
            if applied:
                apply_stock_delta(item, line["quantity"], context=f"Line {line['line_no']}")
                purchase.stock_applied = True
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                menu_item_id=line["menu_item_id"],
                item_name=line["item_name"],
                quantity=line["quantity"],
                unit_cost=line["unit_cost"],
                line_total=line["line_total"],
                stock_applied=applied,
            ))
        db.session.flush()

        append_ledger_event(
            event_type="purchase.recorded",
            event_category="purchase",
            entity_type="purchase",
            entity_id=purchase.id,
            actor_id=actor_id,
            note=reference,
            payload={
                "supplier_id": supplier_id,
                "purchase_date": purchase_date.isoformat(),
                "total_amount": total,
                "payment_mode": mode,
                "stock_applied": purchase.stock_applied,
            },
        )

        if supplier_id is not None and payment_amount is not None:
            _append_payment(
                supplier_id=supplier_id,
                amount=payment_amount,
                method=method,
                note=payment_note,
                purchase_id=purchase.id,
                actor_id=actor_id,
            )
        return purchase

    return run_in_aggregate(keys, _op)


def _paid_by_purchase():
    return (
        db.session.query(
            SupplierPayment.purchase_id.label("purchase_id"),
            func.sum(SupplierPayment.amount).label("amount_paid"),
        )
        .filter(SupplierPayment.purchase_id.isnot(None))
        .group_by(SupplierPayment.purchase_id)
        .subquery()
    )


def list_purchases(*, supplier_id: int | None = None) -> list[dict]:
    """Purchases newest first, with supplier name and the amount paid against each."""
    paid = _paid_by_purchase()
    q = (
        db.session.query(Purchase, paid.c.amount_paid)
        .outerjoin(paid, paid.c.purchase_id == Purchase.id)
    )
    if supplier_id is not None:
        q = q.filter(Purchase.supplier_id == supplier_id)
    rows = q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()

    out = []
    for purchase, amount_paid in rows:
        d = purchase.to_dict()
        d["amount_paid"] = money_str(to_money(amount_paid))
        out.append(d)
    return out


def get_purchase_details(purchase_id: int) -> dict:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")

    paid = db.session.query(func.sum(SupplierPayment.amount)).filter(
        SupplierPayment.purchase_id == purchase.id
    ).scalar()

    header = purchase.to_dict()
    header["amount_paid"] = money_str(to_money(paid))
    return {
        "purchase": header,
        "items": [line.to_dict() for line in purchase.items],
    }


def delete_purchase(purchase_id: int, *, rollback_stock: bool = True, actor_id: int | None = None) -> None:
    """
    Remove a purchase (and its charge on the supplier account).

    With rollback_stock, quantities that were received into stock are taken
    back out; UnderflowError if any item no longer has enough.

    Raises:
        NotFoundError: purchase does not exist
        ConflictError: payments reference the purchase
    """
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")

    # Lines never change after creation, so the key set read here is stable
    menu_ids = {line.menu_item_id for line in purchase.items if line.stock_applied and line.menu_item_id}
    keys = [menu_item_key(i) for i in menu_ids]
    if purchase.supplier_id is not None:
        keys.append(supplier_key(purchase.supplier_id))

    def _op():
        row = lock_for_update(
            db.session.query(Purchase).filter(Purchase.id == purchase_id)
        ).first()
        if row is None:
            raise NotFoundError(f"Purchase {purchase_id} not found")

        linked = db.session.query(func.count(SupplierPayment.id)).filter(
            SupplierPayment.purchase_id == row.id
        ).scalar()
        if linked:
            raise ConflictError(
                f"Purchase {row.id} has {linked} linked payment(s) and cannot be deleted"
            )

        reversed_lines = []
        if rollback_stock:
            items = lock_menu_items(menu_ids)
            for idx, line in enumerate(row.items, start=1):
                item = items.get(line.menu_item_id)
                if not line.stock_applied or item is None:
                    continue
                previous, new = apply_stock_delta(item, -line.quantity, context=f"Line {idx}")
                reversed_lines.append({
                    "menu_item_id": item.id,
                    "quantity": line.quantity,
                    "previous_stock": previous,
                    "new_stock": new,
                })

        payload = {
            "supplier_id": row.supplier_id,
            "total_amount": row.total_amount,
            "rollback_stock": rollback_stock,
            "stock_reversed": reversed_lines,
        }
        db.session.delete(row)
        db.session.flush()

        append_ledger_event(
            event_type="purchase.deleted",
            event_category="purchase",
            entity_type="purchase",
            entity_id=purchase_id,
            actor_id=actor_id,
            payload=payload,
        )

    run_in_aggregate(keys, _op)
