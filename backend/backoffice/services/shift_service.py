"""
Shift Reconciliation Service

WHY: Cash accountability for the single cash drawer. A shift brackets the
period the drawer is in business; closing it produces the Z-report
(expected vs actual cash, variance).

DESIGN PRINCIPLES:
- At most one open shift at any time
- Shifts are immutable once closed (never reopened, edited or deleted)
- Sales/expenses accrue as ShiftPosting rows; totals are always sums
- Close freezes the sums read inside the close transaction (cutoff rule)
- Every open/close/posting serializes on the ("shift", "drawer") key
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Shift, ShiftPosting
from ..models.shifts import (
    POSTING_KIND_EXPENSE,
    POSTING_KIND_SALE,
    SHIFT_STATUS_CLOSED,
    SHIFT_STATUS_OPEN,
)
from backoffice.time_utils import utcnow
from backoffice.validation import (
    ConflictError,
    NotFoundError,
    UnderflowError,
    ValidationError,
    clean_text,
    parse_id,
    parse_money,
    to_money,
)
from .concurrency import lock_for_update
from .ledger_service import append_ledger_event, run_in_aggregate

DRAWER_KEY = ("shift", "drawer")


def _open_shift_row(*, for_update: bool = False) -> Shift | None:
    q = db.session.query(Shift).filter(Shift.status == SHIFT_STATUS_OPEN)
    if for_update:
        q = lock_for_update(q)
    return q.first()


def _accrued_totals(shift_id: int) -> tuple[Decimal, Decimal]:
    """(total_sales, total_expenses) summed from the shift's postings."""
    rows = (
        db.session.query(ShiftPosting.kind, func.coalesce(func.sum(ShiftPosting.amount), 0))
        .filter(ShiftPosting.shift_id == shift_id)
        .group_by(ShiftPosting.kind)
        .all()
    )
    totals = {kind: to_money(amount) for kind, amount in rows}
    return (
        totals.get(POSTING_KIND_SALE, Decimal("0.00")),
        totals.get(POSTING_KIND_EXPENSE, Decimal("0.00")),
    )


def shift_summary(shift: Shift) -> dict:
    """Serialized shift; open shifts carry live accrued totals."""
    if shift.is_open:
        sales, expenses = _accrued_totals(shift.id)
        return shift.to_dict(total_sales=sales, total_expenses=expenses)
    return shift.to_dict()


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_shift(admin_id, start_cash) -> Shift:
    """
    Open the cash drawer.

    Raises:
        ValidationError: bad operator id or negative start_cash
        ConflictError: a shift is already open
    """
    admin_id = parse_id(admin_id, "admin_id")
    start_cash = parse_money(start_cash, "start_cash")

    def _op():
        existing = _open_shift_row(for_update=True)
        if existing is not None:
            raise ConflictError(f"A shift is already open (shift {existing.id})")

        shift = Shift(
            status=SHIFT_STATUS_OPEN,
            opened_at=utcnow(),
            opened_by=admin_id,
            start_cash=start_cash,
            total_sales=Decimal("0.00"),
            total_expenses=Decimal("0.00"),
        )
        db.session.add(shift)
        try:
            db.session.flush()
        except IntegrityError:
            # Partial unique index on open status caught a racing open
            db.session.rollback()
            raise ConflictError("A shift is already open")

        append_ledger_event(
            event_type="shift.opened",
            event_category="shift",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=admin_id,
            occurred_at=shift.opened_at,
            payload={"start_cash": start_cash},
        )
        return shift

    return run_in_aggregate([DRAWER_KEY], _op)


def close_shift(shift_id, admin_id, end_cash_actual, notes=None) -> Shift:
    """
    Close the open shift and compute the Z-report figures.

    end_cash_expected = start_cash + total_sales - total_expenses
    difference        = end_cash_actual - end_cash_expected

    Sales/expenses posted after this call commits land outside the shift.

    Raises:
        NotFoundError: shift_id does not refer to an open shift
        ValidationError: negative end_cash_actual or bad ids
    """
    shift_id = parse_id(shift_id, "shift_id")
    admin_id = parse_id(admin_id, "admin_id")
    end_cash_actual = parse_money(end_cash_actual, "end_cash_actual")
    notes = clean_text(notes, "notes")

    def _op():
        shift = lock_for_update(
            db.session.query(Shift).filter(Shift.id == shift_id)
        ).first()
        if shift is None or not shift.is_open:
            raise NotFoundError(f"No open shift with id {shift_id}")

        sales, expenses = _accrued_totals(shift.id)
        expected = to_money(shift.start_cash) + sales - expenses
        difference = end_cash_actual - expected

        shift.total_sales = sales
        shift.total_expenses = expenses
        shift.end_cash_expected = expected
        shift.end_cash_actual = end_cash_actual
        shift.difference = difference
        shift.notes = notes
        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_at = utcnow()
        shift.closed_by = admin_id
        db.session.flush()

        append_ledger_event(
            event_type="shift.closed",
            event_category="shift",
            entity_type="shift",
            entity_id=shift.id,
            actor_id=admin_id,
            occurred_at=shift.closed_at,
            note=notes,
            payload={
                "total_sales": sales,
                "total_expenses": expenses,
                "end_cash_expected": expected,
                "end_cash_actual": end_cash_actual,
                "difference": difference,
                "outcome": shift.outcome,
            },
        )
        return shift

    return run_in_aggregate([DRAWER_KEY], _op)


def post_shift_activity(kind, amount, *, reference=None, note=None) -> ShiftPosting:
    """
    Record a sale or expense against the drawer.

    The posting is attributed to the shift open at the moment it commits,
    or to no shift. An expense that would leave the open shift's expected
    cash negative is rejected.
    """
    kind = kind.strip().lower() if isinstance(kind, str) else kind
    if kind not in (POSTING_KIND_SALE, POSTING_KIND_EXPENSE):
        raise ValidationError("kind must be one of: sale, expense")
    amount = parse_money(amount, "amount", allow_zero=False)
    reference = clean_text(reference, "reference", max_length=64)
    note = clean_text(note, "note", max_length=255)

    def _op():
        shift = _open_shift_row(for_update=True)

        if shift is not None and kind == POSTING_KIND_EXPENSE:
            sales, expenses = _accrued_totals(shift.id)
            expected = to_money(shift.start_cash) + sales - expenses - amount
            if expected < 0:
                raise UnderflowError(
                    f"Expense of {amount:.2f} would leave the drawer negative "
                    f"(expected cash {expected + amount:.2f})"
                )

        posting = ShiftPosting(
            shift_id=shift.id if shift is not None else None,
            kind=kind,
            amount=amount,
            reference=reference,
            note=note,
            occurred_at=utcnow(),
        )
        db.session.add(posting)
        db.session.flush()

        append_ledger_event(
            event_type=f"shift.{kind}_posted",
            event_category="shift",
            entity_type="shift_posting",
            entity_id=posting.id,
            occurred_at=posting.occurred_at,
            note=note,
            payload={"shift_id": posting.shift_id, "amount": amount, "reference": reference},
        )
        return posting

    return run_in_aggregate([DRAWER_KEY], _op)


# =============================================================================
# QUERIES
# =============================================================================

def get_current_shift() -> dict | None:
    """The open shift summary, or None when the drawer is closed."""
    shift = _open_shift_row()
    return shift_summary(shift) if shift is not None else None


def get_shift(shift_id: int) -> dict:
    shift = db.session.get(Shift, shift_id)
    if shift is None:
        raise NotFoundError(f"Shift {shift_id} not found")
    return shift_summary(shift)


def get_shift_history(limit=None) -> list[dict]:
    """
    Most recent shifts: the open one first (if any), then by recency.

    limit defaults to SHIFT_HISTORY_DEFAULT_LIMIT and is capped at
    SHIFT_HISTORY_MAX_LIMIT.
    """
    default_limit = current_app.config.get("SHIFT_HISTORY_DEFAULT_LIMIT", 10)
    max_limit = current_app.config.get("SHIFT_HISTORY_MAX_LIMIT", 200)

    if limit is None or limit == "":
        limit = default_limit
    limit = min(parse_id(limit, "limit"), max_limit)

    open_first = db.case((Shift.status == SHIFT_STATUS_OPEN, 0), else_=1)
    shifts = (
        db.session.query(Shift)
        .order_by(open_first, Shift.id.desc())
        .limit(limit)
        .all()
    )
    return [shift_summary(s) for s in shifts]
