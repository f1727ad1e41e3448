# Overview: Pytest coverage for stock adjustments and their audit trail.

import pytest

from backoffice.models import MenuItem, StockAdjustment, StockAdjustmentItem
from backoffice.services import inventory_service, stock_adjustment_service
from backoffice.services.stock_adjustment_service import compute_line_change
from backoffice.validation import NotFoundError, UnderflowError, ValidationError


def _adjust(items, reason="Count", date="2026-01-31", notes=None):
    return stock_adjustment_service.create_adjustment(
        adjustment_date=date, reason=reason, notes=notes, items=items
    )


def _stock(item_id):
    return inventory_service.get_menu_item(item_id).stock_quantity


class TestComputeLineChange:
    def test_modes(self):
        assert compute_line_change("set", 12, 20) == (-8, 12)
        assert compute_line_change("set", 20, 20) == (0, 20)
        assert compute_line_change("add", 5, 20) == (5, 25)
        assert compute_line_change("remove", 20, 20) == (-20, 0)

    def test_remove_underflow(self):
        with pytest.raises(UnderflowError):
            compute_line_change("remove", 25, 20)


class TestCreateAdjustment:
    def test_applies_all_modes_and_records_snapshots(self, make_item):
        a = make_item("Cola", stock=20)
        b = make_item("Water", stock=5)
        c = make_item("Juice", stock=0)

        adjustment = _adjust([
            {"menu_item_id": a.id, "mode": "set", "quantity": 12, "note": "recount"},
            {"menu_item_id": b.id, "mode": "remove", "quantity": 2},
            {"menu_item_id": c.id, "mode": "add", "quantity": "7"},
        ], notes="month end")

        assert (_stock(a.id), _stock(b.id), _stock(c.id)) == (12, 3, 7)

        details = stock_adjustment_service.get_adjustment_details(adjustment.id)
        assert details["adjustment"]["reason"] == "Count"
        assert details["adjustment"]["notes"] == "month end"
        assert details["adjustment"]["adjustment_date"] == "2026-01-31"
        lines = [(l["item_name"], l["mode"], l["previous_stock"], l["quantity_change"], l["new_stock"])
                 for l in details["items"]]
        assert lines == [
            ("Cola", "set", 20, -8, 12),
            ("Water", "remove", 5, -2, 3),
            ("Juice", "add", 0, 7, 7),
        ]
        assert details["items"][0]["note"] == "recount"

    def test_remove_underflow_rejected_stock_unchanged(self, make_item, db_session):
        item = make_item("Cola", stock=20)
        with pytest.raises(UnderflowError, match="Line 1"):
            _adjust([{"menu_item_id": item.id, "mode": "remove", "quantity": 25}])
        assert _stock(item.id) == 20
        assert db_session.query(StockAdjustment).count() == 0

    def test_all_or_nothing(self, make_item, db_session):
        ok = make_item("Cola", stock=10)
        low = make_item("Water", stock=1)
        with pytest.raises(UnderflowError, match="Line 2"):
            _adjust([
                {"menu_item_id": ok.id, "mode": "add", "quantity": 5},
                {"menu_item_id": low.id, "mode": "remove", "quantity": 2},
            ])
        assert _stock(ok.id) == 10
        assert db_session.query(StockAdjustmentItem).count() == 0

    def test_untracked_item_rejected_naming_line(self, make_item):
        tracked = make_item("Cola", stock=1)
        untracked = make_item("Burger", tracked=False)
        with pytest.raises(ValidationError, match="Line 2: 'Burger' is not a stock-tracked item"):
            _adjust([
                {"menu_item_id": tracked.id, "mode": "add", "quantity": 1},
                {"menu_item_id": untracked.id, "mode": "add", "quantity": 1},
            ])
        assert _stock(tracked.id) == 1

    def test_missing_item_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Line 1: menu item 999 not found"):
            _adjust([{"menu_item_id": 999, "mode": "set", "quantity": 1}])

    @pytest.mark.parametrize("line,message", [
        ({"mode": "add", "quantity": 0}, "greater than 0"),
        ({"mode": "remove", "quantity": 0}, "greater than 0"),
        ({"mode": "set", "quantity": -1}, "non-negative"),
        ({"mode": "add", "quantity": 1.5}, "integer"),
        ({"mode": "swap", "quantity": 1}, "mode must be one of"),
    ])
    def test_quantity_and_mode_rules(self, make_item, line, message):
        item = make_item("Cola", stock=3)
        with pytest.raises(ValidationError, match=message):
            _adjust([{"menu_item_id": item.id, **line}])
        assert _stock(item.id) == 3

    def test_header_validation(self, make_item):
        item = make_item("Cola", stock=3)
        line = [{"menu_item_id": item.id, "mode": "add", "quantity": 1}]
        with pytest.raises(ValidationError, match="adjustment_date is required"):
            _adjust(line, date="")
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            _adjust(line, date="2026-W01-1")
        assert _stock(item.id) == 3
        with pytest.raises(ValidationError, match="reason is required"):
            _adjust(line, reason="  ")
        with pytest.raises(ValidationError, match="At least one item"):
            _adjust([])

    def test_header_checked_before_lines(self, db_session):
        # Untracked/missing line would also fail; the blank reason wins
        with pytest.raises(ValidationError, match="reason is required"):
            _adjust([{"menu_item_id": 999, "mode": "set", "quantity": 1}], reason="")

    def test_zero_delta_set_is_recorded(self, make_item):
        item = make_item("Cola", stock=4)
        adjustment = _adjust([{"menu_item_id": item.id, "mode": "set", "quantity": 4}])
        line = stock_adjustment_service.get_adjustment_details(adjustment.id)["items"][0]
        assert (line["previous_stock"], line["quantity_change"], line["new_stock"]) == (4, 0, 4)

    def test_same_item_twice_chains(self, make_item):
        item = make_item("Cola", stock=5)
        adjustment = _adjust([
            {"menu_item_id": item.id, "mode": "remove", "quantity": 5},
            {"menu_item_id": item.id, "mode": "add", "quantity": 2},
        ])
        lines = stock_adjustment_service.get_adjustment_details(adjustment.id)["items"]
        assert [(l["previous_stock"], l["new_stock"]) for l in lines] == [(5, 0), (0, 2)]
        assert _stock(item.id) == 2


class TestQueries:
    def test_list_newest_first_with_counts(self, make_item):
        item = make_item("Cola", stock=10)
        older = _adjust([{"menu_item_id": item.id, "mode": "add", "quantity": 1}], date="2026-01-01")
        newer = _adjust([
            {"menu_item_id": item.id, "mode": "add", "quantity": 1},
            {"menu_item_id": item.id, "mode": "remove", "quantity": 1},
        ], date="2026-02-01")

        rows = stock_adjustment_service.list_adjustments()
        assert [(r["id"], r["item_count"]) for r in rows] == [(newer.id, 2), (older.id, 1)]

    def test_details_replay_ignores_later_stock_changes(self, make_item, db_session):
        item = make_item("Cola", stock=20)
        first = _adjust([{"menu_item_id": item.id, "mode": "remove", "quantity": 5}])
        before = stock_adjustment_service.get_adjustment_details(first.id)

        _adjust([{"menu_item_id": item.id, "mode": "set", "quantity": 100}])
        db_session.expire_all()

        after = stock_adjustment_service.get_adjustment_details(first.id)
        assert after["items"] == before["items"]
        assert after["items"][0]["new_stock"] == 15

    def test_missing_adjustment(self, db_session):
        with pytest.raises(NotFoundError):
            stock_adjustment_service.get_adjustment_details(12345)


class TestMenuItems:
    def test_list_sorted_and_filtered(self, make_item):
        make_item("water", stock=1)
        make_item("Burger", tracked=False)
        make_item("apple juice", stock=2)

        assert [i.name for i in inventory_service.list_menu_items()] == ["apple juice", "Burger", "water"]
        assert [i.name for i in inventory_service.list_menu_items(tracked_only=True)] == ["apple juice", "water"]

    def test_stock_requires_tracking(self, db_session):
        with pytest.raises(ValidationError, match="requires track_stock"):
            inventory_service.create_menu_item({"name": "Burger", "stock_quantity": 3})

    def test_negative_opening_stock(self, db_session):
        with pytest.raises(ValidationError, match="non-negative"):
            inventory_service.create_menu_item({"name": "Cola", "track_stock": True, "stock_quantity": -1})

    def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.get_menu_item(5555)
        assert db_session.query(MenuItem).count() == 0
