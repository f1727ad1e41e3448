# Overview: Service-layer operations for suppliers; accounts, payments and derived balances.

"""
Supplier Service

WHY: The business owes suppliers for goods bought on account. The balance
due must always match the purchase and payment history exactly, so it is
re-summed from that history on every read and never stored.

DESIGN:
- balance_due = sum(purchase totals) - sum(payments), over all history
- Payments are append-only; overpayment leaves a credit (negative balance)
- Suppliers with history are deactivated instead of deleted
- Names are unique among active suppliers (case-insensitive)
- Account mutations serialize on ("supplier", id); anything that can
  change the active name set also takes ("supplier", "names")
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Purchase, Supplier, SupplierPayment
from ..models.suppliers import PAYMENT_METHODS
from backoffice.time_utils import to_ymd, utcnow
from backoffice.validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    clean_text,
    money_str,
    parse_id,
    parse_money,
    to_money,
    validate_payload,
)
from .concurrency import lock_for_update
from .ledger_service import append_ledger_event, run_in_aggregate

NAMES_KEY = ("supplier", "names")

SUPPLIER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "notes"},
    required_on_create={"name"},
)

SUPPLIER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "notes", "is_active"},
)

DELETE_OUTCOME_DELETED = "deleted"
DELETE_OUTCOME_DEACTIVATED = "deactivated"


@dataclass(frozen=True)
class DeleteOutcome:
    outcome: str
    supplier_id: int
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


def supplier_key(supplier_id: int) -> tuple[str, int]:
    return ("supplier", supplier_id)


def _ensure_name_available(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Supplier.id).filter(
        func.lower(Supplier.name) == name.lower(),
        Supplier.is_active.is_(True),
    )
    if exclude_id is not None:
        q = q.filter(Supplier.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"An active supplier named '{name}' already exists")


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def _lock_supplier(supplier_id: int) -> Supplier:
    supplier = lock_for_update(
        db.session.query(Supplier).filter(Supplier.id == supplier_id)
    ).first()
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


# =============================================================================
# SUPPLIER CRUD
# =============================================================================

def create_supplier(payload: dict, *, actor_id: int | None = None) -> Supplier:
    """Create an active supplier. Duplicate active name -> ConflictError."""
    patch = validate_payload(
        model=Supplier, payload=payload, policy=SUPPLIER_CREATE_POLICY, partial=False
    )
    if not patch.get("name"):
        raise ValidationError("name is required")

    def _op():
        _ensure_name_available(patch["name"])
        supplier = Supplier(is_active=True, **patch)
        db.session.add(supplier)
        db.session.flush()

        append_ledger_event(
            event_type="supplier.created",
            event_category="supplier",
            entity_type="supplier",
            entity_id=supplier.id,
            actor_id=actor_id,
            payload={"name": supplier.name},
        )
        return supplier

    return run_in_aggregate([NAMES_KEY], _op)


def update_supplier(supplier_id: int, payload: dict, *, actor_id: int | None = None) -> Supplier:
    """
    Patch a supplier (inactive suppliers included).

    Renaming or reactivating re-checks name uniqueness among the
    suppliers that would be active afterwards.
    """
    patch = validate_payload(
        model=Supplier, payload=payload, policy=SUPPLIER_UPDATE_POLICY, partial=True
    )
    if not patch:
        raise ValidationError("No fields to update")

    def _op():
        supplier = _lock_supplier(supplier_id)

        name = patch.get("name", supplier.name)
        active = patch.get("is_active", supplier.is_active)
        if active and ("name" in patch or (not supplier.is_active and active)):
            _ensure_name_available(name, exclude_id=supplier.id)

        changed = {}
        for field, value in patch.items():
            if getattr(supplier, field) != value:
                changed[field] = value
                setattr(supplier, field, value)

        if changed:
            supplier.updated_at = utcnow()
            db.session.flush()
            event_type = "supplier.updated"
            if "is_active" in changed:
                event_type = "supplier.reactivated" if supplier.is_active else "supplier.deactivated"
            append_ledger_event(
                event_type=event_type,
                event_category="supplier",
                entity_type="supplier",
                entity_id=supplier.id,
                actor_id=actor_id,
                payload=changed,
            )
        return supplier

    return run_in_aggregate([NAMES_KEY, supplier_key(supplier_id)], _op)


def delete_supplier(supplier_id: int, *, actor_id: int | None = None) -> DeleteOutcome:
    """
    Delete a supplier with no history; deactivate one that has any.

    Both outcomes are successes and are reported distinctly.
    """

    def _op():
        supplier = _lock_supplier(supplier_id)

        purchase_count = db.session.query(func.count(Purchase.id)).filter(
            Purchase.supplier_id == supplier.id
        ).scalar()
        payment_count = db.session.query(func.count(SupplierPayment.id)).filter(
            SupplierPayment.supplier_id == supplier.id
        ).scalar()

        if purchase_count or payment_count:
            if supplier.is_active:
                supplier.is_active = False
                supplier.updated_at = utcnow()
                db.session.flush()
            append_ledger_event(
                event_type="supplier.deactivated",
                event_category="supplier",
                entity_type="supplier",
                entity_id=supplier.id,
                actor_id=actor_id,
                payload={"purchase_count": purchase_count, "payment_count": payment_count},
            )
            return DeleteOutcome(
                outcome=DELETE_OUTCOME_DEACTIVATED,
                supplier_id=supplier.id,
                message="Supplier has purchase/payment history; it was deactivated instead",
            )

        name = supplier.name
        db.session.delete(supplier)
        db.session.flush()
        append_ledger_event(
            event_type="supplier.deleted",
            event_category="supplier",
            entity_type="supplier",
            entity_id=supplier_id,
            actor_id=actor_id,
            payload={"name": name},
        )
        return DeleteOutcome(
            outcome=DELETE_OUTCOME_DELETED,
            supplier_id=supplier_id,
            message="Supplier deleted",
        )

    return run_in_aggregate([NAMES_KEY, supplier_key(supplier_id)], _op)


def list_suppliers(*, include_inactive: bool = False) -> list[Supplier]:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    return q.order_by(func.lower(Supplier.name), Supplier.id).all()


# =============================================================================
# PAYMENTS AND BALANCES
# =============================================================================

def record_payment(
    supplier_id,
    amount,
    method,
    note=None,
    purchase_id=None,
    *,
    actor_id: int | None = None,
) -> dict:
    """
    Append a payment and return the supplier's freshly summed balance.

    Payments may exceed the amount owed (credit balance). A purchase_id,
    when given, must belong to the same supplier.

    Raises:
        ValidationError: amount <= 0, unknown method, foreign purchase
        NotFoundError: supplier or purchase does not exist
    """
    supplier_id = parse_id(supplier_id, "supplier_id")
    amount = parse_money(amount, "amount", allow_zero=False)
    method = method.strip().lower() if isinstance(method, str) else method
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"method must be one of: {', '.join(PAYMENT_METHODS)}")
    note = clean_text(note, "note", max_length=255)
    if purchase_id is not None:
        purchase_id = parse_id(purchase_id, "purchase_id")

    def _op():
        supplier = _lock_supplier(supplier_id)
        if purchase_id is not None:
            purchase = db.session.get(Purchase, purchase_id)
            if purchase is None:
                raise NotFoundError(f"Purchase {purchase_id} not found")
            if purchase.supplier_id != supplier.id:
                raise ValidationError(f"Purchase {purchase_id} does not belong to supplier {supplier.id}")

        payment = _append_payment(
            supplier_id=supplier.id,
            amount=amount,
            method=method,
            note=note,
            purchase_id=purchase_id,
            actor_id=actor_id,
        )
        summary = _summaries(supplier_ids=[supplier.id], include_inactive=True)[0]
        summary["payment_id"] = payment.id
        return summary

    return run_in_aggregate([supplier_key(supplier_id)], _op)


def _append_payment(*, supplier_id, amount, method, note, purchase_id, actor_id) -> SupplierPayment:
    """Insert a payment row and its ledger event. Caller holds the supplier key."""
    payment = SupplierPayment(
        supplier_id=supplier_id,
        purchase_id=purchase_id,
        amount=amount,
        method=method,
        note=note,
        created_at=utcnow(),
    )
    db.session.add(payment)
    db.session.flush()

    append_ledger_event(
        event_type="supplier.payment_recorded",
        event_category="supplier",
        entity_type="supplier",
        entity_id=supplier_id,
        actor_id=actor_id,
        occurred_at=payment.created_at,
        note=note,
        payload={
            "payment_id": payment.id,
            "purchase_id": purchase_id,
            "amount": amount,
            "method": method,
        },
    )
    return payment


def _summaries(*, supplier_ids=None, include_inactive: bool = False) -> list[dict]:
    """Balance summaries summed over the full purchase/payment history."""
    purchases = (
        db.session.query(
            Purchase.supplier_id.label("supplier_id"),
            func.sum(Purchase.total_amount).label("total_purchases"),
            func.count(Purchase.id).label("purchase_count"),
            func.max(Purchase.purchase_date).label("last_date"),
        )
        .filter(Purchase.supplier_id.isnot(None))
        .group_by(Purchase.supplier_id)
        .subquery()
    )
    payments = (
        db.session.query(
            SupplierPayment.supplier_id.label("supplier_id"),
            func.sum(SupplierPayment.amount).label("total_paid"),
            func.count(SupplierPayment.id).label("payment_count"),
        )
        .group_by(SupplierPayment.supplier_id)
        .subquery()
    )

    q = (
        db.session.query(
            Supplier,
            purchases.c.total_purchases,
            purchases.c.purchase_count,
            purchases.c.last_date,
            payments.c.total_paid,
            payments.c.payment_count,
        )
        .outerjoin(purchases, purchases.c.supplier_id == Supplier.id)
        .outerjoin(payments, payments.c.supplier_id == Supplier.id)
    )
    if supplier_ids is not None:
        q = q.filter(Supplier.id.in_(supplier_ids))
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))

    rows = q.order_by(func.lower(Supplier.name), Supplier.id).all()

    out = []
    for supplier, bought, bought_count, last_date, paid, paid_count in rows:
        total_purchases = to_money(bought)
        total_paid = to_money(paid)
        out.append({
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "is_active": supplier.is_active,
            "total_purchases": money_str(total_purchases),
            "total_paid": money_str(total_paid),
            "balance_due": money_str(total_purchases - total_paid),
            "purchase_count": int(bought_count or 0),
            "payment_count": int(paid_count or 0),
            "last_purchase_date": _ymd(last_date),
        })
    return out


def _ymd(value):
    # Raw string when the driver skips the Date result processor
    if value is None or isinstance(value, str):
        return value
    return to_ymd(value)


def get_balance_summaries(*, include_inactive: bool = False) -> list[dict]:
    return _summaries(include_inactive=include_inactive)


def get_supplier_balance(supplier_id: int) -> dict:
    get_supplier(supplier_id)
    return _summaries(supplier_ids=[supplier_id], include_inactive=True)[0]


def get_supplier_payments(supplier_id: int) -> list[SupplierPayment]:
    """All payments for the supplier, newest first."""
    get_supplier(supplier_id)
    return (
        db.session.query(SupplierPayment)
        .filter(SupplierPayment.supplier_id == supplier_id)
        .order_by(SupplierPayment.created_at.desc(), SupplierPayment.id.desc())
        .all()
    )
