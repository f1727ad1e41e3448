# Overview: Append-only audit events and the per-aggregate transaction boundary.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Hashable, Iterable, Optional, TypeVar

from flask import current_app
from sqlalchemy import and_, or_

from ..extensions import db
from ..models import LedgerEvent
from backoffice.time_utils import utcnow
from .concurrency import AggregateLocks, run_with_retry

"""
Ledger invariants (authoritative)

- Every mutation of a shift, a stock item or a supplier account runs inside
  run_in_aggregate(): the aggregate keys are locked, the change and its
  LedgerEvent are written in one DB transaction, and any error rolls the
  whole call back.
- LedgerEvent rows are append-only (no updates/deletes).
- Derived balances are never cached as the source of truth; they are
  re-summed from history inside the same boundary.
"""

T = TypeVar("T")

aggregate_locks = AggregateLocks()


def run_in_aggregate(keys: Iterable[Hashable], func: Callable[[], T]) -> T:
    """
    Run func as one serialized, all-or-nothing unit for the given aggregates.

    Commits when func returns, rolls back when it raises. Lock timeouts and
    stale version_id conflicts retry the whole unit with fresh reads.
    """
    keys = list(keys)
    attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    backoff = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.05)

    def _op():
        with aggregate_locks.hold(keys):
            try:
                result = func()
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            return result

    return run_with_retry(_op, attempts=max(1, attempts), backoff_base=backoff)


def append_ledger_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    actor_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - Decimal and date values in payload are stored as strings.
    """
    ev = LedgerEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        occurred_at=occurred_at or utcnow(),
        note=note[:255] if note else None,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(
    *,
    category: str | None = None,
    event_type: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    cursor_dt: datetime | None = None,
    cursor_id: int | None = None,
    limit: int = 100,
) -> list[LedgerEvent]:
    """Newest first; (cursor_dt, cursor_id) continues after the last row of a previous page."""
    q = LedgerEvent.query

    if category:
        q = q.filter(LedgerEvent.event_category == category)
    if event_type:
        q = q.filter(LedgerEvent.event_type == event_type)
    if entity_type:
        q = q.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(LedgerEvent.entity_id == entity_id)

    if cursor_dt is not None and cursor_id is not None:
        q = q.filter(
            or_(
                LedgerEvent.occurred_at < cursor_dt,
                and_(LedgerEvent.occurred_at == cursor_dt, LedgerEvent.id < cursor_id),
            )
        )

    return (
        q.order_by(LedgerEvent.occurred_at.desc(), LedgerEvent.id.desc())
        .limit(limit)
        .all()
    )
