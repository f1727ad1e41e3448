# Overview: Re-derives ledger invariants from stored history and reports violations.

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import (
    MenuItem,
    Purchase,
    PurchaseItem,
    Shift,
    StockAdjustmentItem,
    SupplierPayment,
)
from ..models.inventory import ADJUSTMENT_MODE_ADD, ADJUSTMENT_MODE_REMOVE, ADJUSTMENT_MODE_SET
from ..models.shifts import SHIFT_STATUS_CLOSED, SHIFT_STATUS_OPEN
from backoffice.validation import to_money


@dataclass(frozen=True)
class Violation:
    check: str
    entity_type: str
    entity_id: int
    message: str


def _check_shifts(violations: list[Violation]) -> int:
    open_ids = [
        row.id
        for row in db.session.query(Shift.id).filter(Shift.status == SHIFT_STATUS_OPEN).all()
    ]
    if len(open_ids) > 1:
        for shift_id in open_ids:
            violations.append(Violation(
                "single_open_shift", "shift", shift_id,
                f"{len(open_ids)} shifts are open at once",
            ))

    closed = db.session.query(Shift).filter(Shift.status == SHIFT_STATUS_CLOSED).all()
    for s in closed:
        if s.end_cash_expected is None or s.end_cash_actual is None or s.difference is None:
            violations.append(Violation(
                "shift_close_figures", "shift", s.id, "closed shift is missing Z-report figures",
            ))
            continue
        expected = to_money(s.start_cash) + to_money(s.total_sales) - to_money(s.total_expenses)
        if to_money(s.end_cash_expected) != expected:
            violations.append(Violation(
                "shift_expected_cash", "shift", s.id,
                f"end_cash_expected {to_money(s.end_cash_expected)} != {expected}",
            ))
        difference = to_money(s.end_cash_actual) - to_money(s.end_cash_expected)
        if to_money(s.difference) != difference:
            violations.append(Violation(
                "shift_difference", "shift", s.id,
                f"difference {to_money(s.difference)} != {difference}",
            ))
    return len(closed) + len(open_ids)


def _check_adjustment_lines(violations: list[Violation]) -> int:
    lines = db.session.query(StockAdjustmentItem).all()
    for line in lines:
        if line.new_stock != line.previous_stock + line.quantity_change:
            violations.append(Violation(
                "adjustment_line_balance", "stock_adjustment_item", line.id,
                "new_stock != previous_stock + quantity_change",
            ))
        if line.new_stock < 0:
            violations.append(Violation(
                "adjustment_line_underflow", "stock_adjustment_item", line.id, "new_stock is negative",
            ))

        if line.mode == ADJUSTMENT_MODE_SET:
            ok = line.new_stock == line.quantity
        elif line.mode == ADJUSTMENT_MODE_ADD:
            ok = line.quantity_change == line.quantity and line.quantity > 0
        elif line.mode == ADJUSTMENT_MODE_REMOVE:
            ok = line.quantity_change == -line.quantity and line.quantity > 0
        else:
            ok = False
        if not ok:
            violations.append(Violation(
                "adjustment_line_mode", "stock_adjustment_item", line.id,
                f"figures do not match mode '{line.mode}' with quantity {line.quantity}",
            ))
    return len(lines)


def _check_stock(violations: list[Violation]) -> int:
    negative = db.session.query(MenuItem).filter(MenuItem.stock_quantity < 0).all()
    for item in negative:
        violations.append(Violation(
            "stock_non_negative", "menu_item", item.id, f"stock_quantity is {item.stock_quantity}",
        ))
    return db.session.query(func.count(MenuItem.id)).scalar() or 0


def _check_purchases(violations: list[Violation]) -> int:
    sums = dict(
        db.session.query(PurchaseItem.purchase_id, func.sum(PurchaseItem.line_total))
        .group_by(PurchaseItem.purchase_id)
        .all()
    )
    purchases = db.session.query(Purchase).all()
    for p in purchases:
        lines_total = to_money(sums.get(p.id))
        if to_money(p.total_amount) != lines_total:
            violations.append(Violation(
                "purchase_total", "purchase", p.id,
                f"total_amount {to_money(p.total_amount)} != sum of lines {lines_total}",
            ))
    return len(purchases)


def _check_payments(violations: list[Violation]) -> int:
    payments = db.session.query(SupplierPayment).all()
    purchase_suppliers = dict(db.session.query(Purchase.id, Purchase.supplier_id).all())
    for pay in payments:
        if to_money(pay.amount) <= 0:
            violations.append(Violation(
                "payment_positive", "supplier_payment", pay.id, "amount must be > 0",
            ))
        if pay.purchase_id is not None and purchase_suppliers.get(pay.purchase_id) != pay.supplier_id:
            violations.append(Violation(
                "payment_purchase_supplier", "supplier_payment", pay.id,
                f"linked purchase {pay.purchase_id} belongs to another supplier",
            ))
    return len(payments)


def verify_ledgers() -> dict:
    """
    Re-check every stored ledger against its invariants.

    Returns {"ok", "checked": {...counts}, "violations": [...]}; read-only.
    """
    violations: list[Violation] = []
    checked = {
        "shifts": _check_shifts(violations),
        "adjustment_lines": _check_adjustment_lines(violations),
        "menu_items": _check_stock(violations),
        "purchases": _check_purchases(violations),
        "supplier_payments": _check_payments(violations),
    }
    return {
        "ok": not violations,
        "checked": checked,
        "violations": [asdict(v) for v in violations],
    }
