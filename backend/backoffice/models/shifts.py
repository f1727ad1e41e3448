from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z
from backoffice.validation import money_str

SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"

POSTING_KIND_SALE = "sale"
POSTING_KIND_EXPENSE = "expense"


class Shift(db.Model):
    """
    Cash drawer shift (Z-report period).

    LIFECYCLE:
    - open: drawer in business, sales/expenses accrue through ShiftPosting rows
    - closed: totals frozen, expected/actual/difference recorded

    IMMUTABLE: Once closed, a shift is never reopened, edited or deleted.
    At most one row may be open; the partial unique index backs that up at
    the database level.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_single_open",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.CheckConstraint("start_cash >= 0", name="ck_shifts_start_cash_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    opened_by = db.Column(db.Integer, nullable=False)
    closed_by = db.Column(db.Integer, nullable=True)

    start_cash = db.Column(db.Numeric(14, 2), nullable=False)

    # Frozen at close; open shifts report live sums from postings instead
    total_sales = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_expenses = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Null until close
    end_cash_expected = db.Column(db.Numeric(14, 2), nullable=True)
    end_cash_actual = db.Column(db.Numeric(14, 2), nullable=True)
    difference = db.Column(db.Numeric(14, 2), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_STATUS_OPEN

    @property
    def outcome(self) -> str | None:
        """balanced / over / short for a closed shift, None while open."""
        if self.difference is None:
            return None
        if self.difference == 0:
            return "balanced"
        return "over" if self.difference > 0 else "short"

    def to_dict(self, *, total_sales=None, total_expenses=None) -> dict:
        """
        Serialize the shift summary.

        Open shifts pass their live accrued totals in; closed shifts always
        report the frozen figures stored at close.
        """
        if self.is_open:
            sales = total_sales if total_sales is not None else self.total_sales
            expenses = total_expenses if total_expenses is not None else self.total_expenses
        else:
            sales = self.total_sales
            expenses = self.total_expenses

        return {
            "id": self.id,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "start_cash": money_str(self.start_cash),
            "total_sales": money_str(sales),
            "total_expenses": money_str(expenses),
            "end_cash_expected": money_str(self.end_cash_expected),
            "end_cash_actual": money_str(self.end_cash_actual),
            "difference": money_str(self.difference),
            "outcome": self.outcome,
            "notes": self.notes,
        }


class ShiftPosting(db.Model):
    """
    Sale or expense posted by a checkout/expense flow.

    Attributed to the shift that was open when it was posted (or to no
    shift). Append-only: shift totals are always sums over these rows.
    """
    __tablename__ = "shift_postings"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_shift_postings_amount_positive"),
        db.Index("ix_shift_postings_shift_kind", "shift_id", "kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True)

    kind = db.Column(db.String(16), nullable=False)  # sale, expense
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    shift = db.relationship("Shift", backref=db.backref("postings", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "kind": self.kind,
            "amount": money_str(self.amount),
            "reference": self.reference,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
