from __future__ import annotations

import json

from ..extensions import db
from backoffice.time_utils import to_utc_z


class LedgerEvent(db.Model):
    """
    Append-only audit log for every mutation of a ledger aggregate.

    Rows are written inside the same DB transaction as the change they
    record and are never updated or deleted afterwards.
    """
    __tablename__ = "ledger_events"
    __table_args__ = (
        db.Index("ix_ledger_events_entity", "entity_type", "entity_id"),
        db.Index("ix_ledger_events_occurred", "occurred_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # What happened
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g. shift.opened, stock.adjusted
    event_category = db.Column(db.String(32), nullable=False, index=True)  # shift, stock, supplier, purchase

    # What it refers to (generic pointer)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    actor_id = db.Column(db.Integer, nullable=True, index=True)

    # Business vs system time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)  # JSON

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": json.loads(self.payload) if self.payload else None,
        }
