# Overview: Menu item registry and the stock balance primitives used by adjustments and purchases.

from __future__ import annotations

from ..extensions import db
from ..models import MenuItem
from .concurrency import lock_for_update
from .ledger_service import append_ledger_event, run_in_aggregate
from backoffice.validation import (
    ModelValidationPolicy,
    NotFoundError,
    UnderflowError,
    ValidationError,
    validate_payload,
)

"""
Stock invariants (authoritative)

- Only items with track_stock=True have a meaningful stock_quantity.
- stock_quantity never goes below 0; a change that would underflow is
  rejected before anything is written.
- Every change to stock_quantity happens under the ("menu_item", id)
  aggregate key, on a row loaded with lock_for_update().
"""

MENU_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price", "track_stock", "stock_quantity", "is_available"},
    required_on_create={"name"},
)


def menu_item_key(menu_item_id: int) -> tuple[str, int]:
    return ("menu_item", menu_item_id)


def create_menu_item(payload: dict, *, actor_id: int | None = None) -> MenuItem:
    """
    Register an item. Opening stock is taken as given and recorded on
    the menu_item.created ledger event.
    """
    patch = validate_payload(model=MenuItem, payload=payload, policy=MENU_ITEM_POLICY, partial=False)

    if patch.get("stock_quantity") is not None and patch["stock_quantity"] < 0:
        raise ValidationError("stock_quantity must be a non-negative integer")
    if patch.get("stock_quantity") and not patch.get("track_stock"):
        raise ValidationError("stock_quantity requires track_stock to be true")

    def _op():
        item = MenuItem(**patch)
        db.session.add(item)
        db.session.flush()

        append_ledger_event(
            event_type="menu_item.created",
            event_category="stock",
            entity_type="menu_item",
            entity_id=item.id,
            actor_id=actor_id,
            payload={
                "name": item.name,
                "track_stock": bool(item.track_stock),
                "stock_quantity": item.stock_quantity or 0,
            },
        )
        return item

    return run_in_aggregate([("menu_item", "new")], _op)


def get_menu_item(menu_item_id: int) -> MenuItem:
    item = db.session.get(MenuItem, menu_item_id)
    if item is None:
        raise NotFoundError(f"Menu item {menu_item_id} not found")
    return item


def list_menu_items(*, tracked_only: bool = False) -> list[MenuItem]:
    """All items sorted by name."""
    q = db.session.query(MenuItem)
    if tracked_only:
        q = q.filter(MenuItem.track_stock.is_(True))
    return q.order_by(db.func.lower(MenuItem.name), MenuItem.id).all()


def lock_menu_items(menu_item_ids) -> dict[int, MenuItem]:
    """Load and lock the given items (id order). Missing ids are simply absent."""
    ids = sorted(set(menu_item_ids))
    if not ids:
        return {}
    rows = lock_for_update(
        db.session.query(MenuItem).filter(MenuItem.id.in_(ids)).order_by(MenuItem.id)
    ).all()
    return {row.id: row for row in rows}


def apply_stock_delta(item: MenuItem, delta: int, *, context: str = "") -> tuple[int, int]:
    """
    Move an item's stock by delta. Caller must hold the item's aggregate key.

    Returns (previous_stock, new_stock).
    """
    previous = item.stock_quantity or 0
    new = previous + delta
    if new < 0:
        prefix = f"{context}: " if context else ""
        raise UnderflowError(
            f"{prefix}cannot remove {-delta} from '{item.name}' (only {previous} in stock)"
        )
    item.stock_quantity = new
    return previous, new
