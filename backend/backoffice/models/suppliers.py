from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_ymd
from backoffice.validation import money_str

PAYMENT_METHODS = ("cash", "card", "mobile", "bank")

PAYMENT_MODE_PAY_NOW = "pay_now"
PAYMENT_MODE_PAY_LATER = "pay_later"
PAYMENT_MODE_PAY_PARTIAL = "pay_partial"
PAYMENT_MODES = (PAYMENT_MODE_PAY_NOW, PAYMENT_MODE_PAY_LATER, PAYMENT_MODE_PAY_PARTIAL)


class Supplier(db.Model):
    """
    Supplier account.

    Never hard-deleted once it has purchase or payment history; deletion
    degrades to is_active=False so historical ledger rows keep their
    reference. Names are unique among active suppliers (case-insensitive),
    enforced in supplier_service.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Purchase(db.Model):
    """
    Goods bought from a supplier; total_amount is the charge it adds to
    the supplier's balance due. Fixed at creation.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("total_amount >= 0", name="ck_purchases_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    purchase_date = db.Column(db.Date, nullable=False, index=True)
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    stock_applied = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        backref="purchase",
        lazy=True,
        order_by="PurchaseItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "purchase_date": to_ymd(self.purchase_date),
            "reference": self.reference,
            "notes": self.notes,
            "total_amount": money_str(self.total_amount),
            "stock_applied": self.stock_applied,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        db.CheckConstraint("unit_cost > 0", name="ck_purchase_items_unit_cost_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=True, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(14, 2), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    # True when this line was added to the menu item's stock
    stock_applied = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "menu_item_id": self.menu_item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "line_total": money_str(self.line_total),
            "stock_applied": self.stock_applied,
        }


class SupplierPayment(db.Model):
    """
    Payment made to a supplier. Append-only.

    purchase_id links the payment to one purchase; null means a general
    payment on account.
    """
    __tablename__ = "supplier_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_supplier_payments_amount_positive"),
        db.Index("ix_supplier_payments_supplier_created", "supplier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)  # cash, card, mobile, bank
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    supplier = db.relationship("Supplier", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "purchase_id": self.purchase_id,
            "amount": money_str(self.amount),
            "method": self.method,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
