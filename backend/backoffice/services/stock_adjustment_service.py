# backend/backoffice/services/stock_adjustment_service.py
"""
Stock adjustment service.

WHY: Out-of-band corrections to tracked inventory (counts, damage, found
stock) need an audit trail that shows, line by line, what the stock was,
how it moved and where it ended up.

LIFECYCLE:
- Created once, header and lines together, in a single transaction.
- Immutable afterwards: a correction is a new adjustment.

Validation order (the first failure rejects the whole adjustment):
1. date and reason present, at least one line
2. every line references a stock-tracked menu item
3. quantity >= 0 for set, > 0 for add/remove
4. remove never takes more than is in stock
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import StockAdjustment, StockAdjustmentItem
from ..models.inventory import (
    ADJUSTMENT_MODES,
    ADJUSTMENT_MODE_ADD,
    ADJUSTMENT_MODE_REMOVE,
    ADJUSTMENT_MODE_SET,
)
from .inventory_service import lock_menu_items, menu_item_key
from .ledger_service import append_ledger_event, run_in_aggregate
from backoffice.validation import (
    NotFoundError,
    UnderflowError,
    ValidationError,
    clean_text,
    parse_date,
    parse_id,
    parse_quantity,
)


@dataclass
class _DraftLine:
    line_no: int
    menu_item_id: int
    mode: object
    quantity: object
    note: str | None


def compute_line_change(mode: str, quantity: int, previous_stock: int) -> tuple[int, int]:
    """
    Signed change and resulting stock for one line.

    set:    change = quantity - previous, new = quantity
    add:    change = +quantity,           new = previous + quantity
    remove: change = -quantity,           new = previous - quantity
    """
    if mode == ADJUSTMENT_MODE_SET:
        return quantity - previous_stock, quantity
    if mode == ADJUSTMENT_MODE_ADD:
        return quantity, previous_stock + quantity
    if mode == ADJUSTMENT_MODE_REMOVE:
        if quantity > previous_stock:
            raise UnderflowError(f"cannot remove {quantity} (only {previous_stock} in stock)")
        return -quantity, previous_stock - quantity
    raise ValidationError(f"mode must be one of: {', '.join(ADJUSTMENT_MODES)}")


def _draft_lines(items) -> list[_DraftLine]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    lines = []
    for idx, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {idx}: must be an object")
        try:
            menu_item_id = parse_id(raw.get("menu_item_id"), "menu_item_id")
            note = clean_text(raw.get("note"), "note", max_length=255)
        except ValidationError as e:
            raise ValidationError(f"Line {idx}: {e}")
        lines.append(_DraftLine(
            line_no=idx,
            menu_item_id=menu_item_id,
            mode=raw.get("mode"),
            quantity=raw.get("quantity"),
            note=note,
        ))
    return lines


def create_adjustment(
    *,
    adjustment_date,
    reason,
    items,
    notes=None,
    actor_id: int | None = None,
) -> StockAdjustment:
    """
    Apply a stock adjustment and record its audit lines.

    Lines are applied in order against the stock read at submission; a
    menu item listed twice sees the result of its earlier line. A set line
    that matches current stock is still recorded (change 0).

    Raises:
        ValidationError: bad header/line input or non-tracked item
        UnderflowError: a remove line exceeds current stock
    """
    # 1. header
    adj_date = parse_date(adjustment_date, "adjustment_date")
    reason = clean_text(reason, "reason", required=True, max_length=255)
    notes = clean_text(notes, "notes")
    lines = _draft_lines(items)
    if actor_id is not None:
        actor_id = parse_id(actor_id, "admin_id")

    keys = [menu_item_key(line.menu_item_id) for line in lines]

    def _op():
        stock_items = lock_menu_items(line.menu_item_id for line in lines)

        # 2. every line must point at a stock-tracked item
        for line in lines:
            item = stock_items.get(line.menu_item_id)
            if item is None:
                raise ValidationError(f"Line {line.line_no}: menu item {line.menu_item_id} not found")
            if not item.track_stock:
                raise ValidationError(f"Line {line.line_no}: '{item.name}' is not a stock-tracked item")

        # 3. mode and quantity
        parsed = []
        for line in lines:
            mode = line.mode.strip().lower() if isinstance(line.mode, str) else line.mode
            if mode not in ADJUSTMENT_MODES:
                raise ValidationError(
                    f"Line {line.line_no}: mode must be one of: {', '.join(ADJUSTMENT_MODES)}"
                )
            minimum = 0 if mode == ADJUSTMENT_MODE_SET else 1
            try:
                quantity = parse_quantity(line.quantity, "quantity", minimum=minimum)
            except ValidationError as e:
                if minimum == 1 and "must be >= 1" in str(e):
                    raise ValidationError(
                        f"Line {line.line_no}: quantity must be greater than 0 for {mode} mode"
                    )
                raise ValidationError(f"Line {line.line_no}: {e}")
            parsed.append((line, mode, quantity))

        # 4. deltas against the running snapshot
        running = {item_id: item.stock_quantity or 0 for item_id, item in stock_items.items()}
        computed = []
        for line, mode, quantity in parsed:
            previous = running[line.menu_item_id]
            try:
                change, new = compute_line_change(mode, quantity, previous)
            except UnderflowError:
                name = stock_items[line.menu_item_id].name
                raise UnderflowError(
                    f"Line {line.line_no}: cannot remove {quantity} from '{name}' "
                    f"(only {previous} in stock)"
                )
            running[line.menu_item_id] = new
            computed.append((line, mode, quantity, previous, change, new))

        adjustment = StockAdjustment(adjustment_date=adj_date, reason=reason, notes=notes)
        db.session.add(adjustment)
        db.session.flush()

        for line, mode, quantity, previous, change, new in computed:
            db.session.add(StockAdjustmentItem(
                adjustment_id=adjustment.id,
                menu_item_id=line.menu_item_id,
                mode=mode,
                quantity=quantity,
                note=line.note,
                previous_stock=previous,
                quantity_change=change,
                new_stock=new,
            ))

        for item_id, new in running.items():
            stock_items[item_id].stock_quantity = new

        db.session.flush()

        append_ledger_event(
            event_type="stock.adjusted",
            event_category="stock",
            entity_type="stock_adjustment",
            entity_id=adjustment.id,
            actor_id=actor_id,
            note=reason,
            payload={
                "adjustment_date": adj_date.isoformat(),
                "lines": [
                    {
                        "menu_item_id": line.menu_item_id,
                        "mode": mode,
                        "previous_stock": previous,
                        "quantity_change": change,
                        "new_stock": new,
                    }
                    for line, mode, quantity, previous, change, new in computed
                ],
            },
        )
        return adjustment

    return run_in_aggregate(keys, _op)


def list_adjustments() -> list[dict]:
    """Adjustment headers, newest first, each with its line count."""
    counts = (
        db.session.query(
            StockAdjustmentItem.adjustment_id.label("adjustment_id"),
            func.count(StockAdjustmentItem.id).label("item_count"),
        )
        .group_by(StockAdjustmentItem.adjustment_id)
        .subquery()
    )
    rows = (
        db.session.query(StockAdjustment, func.coalesce(counts.c.item_count, 0))
        .outerjoin(counts, counts.c.adjustment_id == StockAdjustment.id)
        .order_by(StockAdjustment.adjustment_date.desc(), StockAdjustment.id.desc())
        .all()
    )
    return [adjustment.to_dict(item_count=int(count)) for adjustment, count in rows]


def get_adjustment_details(adjustment_id: int) -> dict:
    """
    Audit replay view: the header plus every line exactly as recorded.

    Values come from the stored snapshots, never from current stock.
    """
    adjustment = db.session.get(StockAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFoundError(f"Stock adjustment {adjustment_id} not found")

    return {
        "adjustment": adjustment.to_dict(),
        "items": [line.to_dict() for line in adjustment.items],
    }
