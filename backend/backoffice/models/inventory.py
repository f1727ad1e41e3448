from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_ymd
from backoffice.validation import money_str

ADJUSTMENT_MODE_SET = "set"
ADJUSTMENT_MODE_ADD = "add"
ADJUSTMENT_MODE_REMOVE = "remove"
ADJUSTMENT_MODES = (ADJUSTMENT_MODE_SET, ADJUSTMENT_MODE_ADD, ADJUSTMENT_MODE_REMOVE)


class MenuItem(db.Model):
    """
    Sellable item. Only items with track_stock=True carry a stock level
    that adjustments and purchases may change.

    stock_quantity is the running balance; every change to it is recorded
    as a StockAdjustmentItem or a purchase line, never edited in place.
    """
    __tablename__ = "menu_items"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_menu_items_stock_non_negative"),
        db.Index("ix_menu_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    price = db.Column(db.Numeric(14, 2), nullable=True)

    track_stock = db.Column(db.Boolean, nullable=False, default=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<MenuItem id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": money_str(self.price),
            "track_stock": self.track_stock,
            "stock_quantity": self.stock_quantity,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Stock adjustment header.

    Created together with its lines in one transaction and immutable
    afterwards; a correction is a new adjustment.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    adjustment_date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "StockAdjustmentItem",
        backref="adjustment",
        lazy=True,
        order_by="StockAdjustmentItem.id",
    )

    def to_dict(self, item_count: int | None = None) -> dict:
        return {
            "id": self.id,
            "adjustment_date": to_ymd(self.adjustment_date),
            "reason": self.reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "item_count": item_count if item_count is not None else len(self.items),
        }


class StockAdjustmentItem(db.Model):
    """
    One audited stock change: previous, signed change and resulting stock
    are snapshots taken when the adjustment was applied.
    """
    __tablename__ = "stock_adjustment_items"
    __table_args__ = (
        db.CheckConstraint("new_stock >= 0", name="ck_adjustment_items_new_stock_non_negative"),
        db.CheckConstraint("quantity >= 0", name="ck_adjustment_items_quantity_non_negative"),
        db.CheckConstraint(
            "new_stock = previous_stock + quantity_change",
            name="ck_adjustment_items_balanced",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False, index=True)

    mode = db.Column(db.String(16), nullable=False)  # set, add, remove
    quantity = db.Column(db.Integer, nullable=False)  # as requested
    note = db.Column(db.String(255), nullable=True)

    previous_stock = db.Column(db.Integer, nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    menu_item = db.relationship("MenuItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_id": self.adjustment_id,
            "menu_item_id": self.menu_item_id,
            "item_name": self.menu_item.name if self.menu_item else None,
            "mode": self.mode,
            "quantity": self.quantity,
            "note": self.note,
            "previous_stock": self.previous_stock,
            "quantity_change": self.quantity_change,
            "new_stock": self.new_stock,
        }
