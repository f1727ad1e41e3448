# Overview: Pytest coverage for the append-only ledger and the aggregate transaction boundary.

import pytest

from backoffice.models import LedgerEvent, MenuItem
from backoffice.services import ledger_service
from backoffice.services.concurrency import AggregateLocks
from backoffice.validation import ConflictError


def test_run_in_aggregate_commits_on_success(make_item, db_session):
    item = make_item("Cola", stock=1)

    def _op():
        row = db_session.get(MenuItem, item.id)
        row.stock_quantity = 9
        ledger_service.append_ledger_event(
            event_type="test.changed", event_category="stock",
            entity_type="menu_item", entity_id=row.id,
        )
        return row.id

    assert ledger_service.run_in_aggregate([("menu_item", item.id)], _op) == item.id
    db_session.expire_all()
    assert db_session.get(MenuItem, item.id).stock_quantity == 9


def test_run_in_aggregate_rolls_back_on_error(make_item, db_session):
    item = make_item("Cola", stock=1)

    def _op():
        row = db_session.get(MenuItem, item.id)
        row.stock_quantity = 50
        ledger_service.append_ledger_event(
            event_type="test.changed", event_category="stock",
            entity_type="menu_item", entity_id=row.id,
        )
        raise ConflictError("nope")

    with pytest.raises(ConflictError):
        ledger_service.run_in_aggregate([("menu_item", item.id)], _op)

    db_session.expire_all()
    assert db_session.get(MenuItem, item.id).stock_quantity == 1
    assert db_session.query(LedgerEvent).filter_by(event_type="test.changed").count() == 0


def test_aggregate_locks_are_reentrant():
    locks = AggregateLocks()
    with locks.hold([("supplier", 2), ("menu_item", 1)]):
        with locks.hold([("menu_item", 1)]):
            pass


def test_aggregate_locks_released_keys_are_forgotten():
    locks = AggregateLocks()
    with locks.hold([("menu_item", 1), ("menu_item", 2)]):
        assert len(locks) == 2
        with locks.hold([("menu_item", 1)]):
            assert len(locks) == 2
    assert len(locks) == 0


def test_list_events_filters_and_cursor(db_session):
    for i in range(5):
        ledger_service.append_ledger_event(
            event_type="test.event", event_category="stock" if i % 2 else "shift",
            entity_type="thing", entity_id=i,
        )
    db_session.commit()

    stock_only = ledger_service.list_ledger_events(category="stock")
    assert [e.entity_id for e in stock_only] == [3, 1]

    first_page = ledger_service.list_ledger_events(limit=2)
    last = first_page[-1]
    rest = ledger_service.list_ledger_events(cursor_dt=last.occurred_at, cursor_id=last.id, limit=10)
    seen = [e.entity_id for e in first_page + rest]
    assert seen == [4, 3, 2, 1, 0]
