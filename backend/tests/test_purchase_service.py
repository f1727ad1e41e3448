# Overview: Pytest coverage for supplier purchases, their payments and stock receipt.

from decimal import Decimal

import pytest

from backoffice.models import Purchase, PurchaseItem, SupplierPayment
from backoffice.services import (
    inventory_service,
    purchase_service,
    stock_adjustment_service,
    supplier_service,
)
from backoffice.validation import ConflictError, NotFoundError, UnderflowError, ValidationError


def _payload(supplier_id=None, **overrides):
    payload = {
        "supplier_id": supplier_id,
        "purchase_date": "2026-03-01",
        "reference": "INV-1",
        "items": [
            {"item_name": "Flour", "quantity": 4, "unit_cost": "2.50"},
            {"item_name": "Sugar", "quantity": 1, "unit_cost": "3.25"},
        ],
    }
    payload.update(overrides)
    return payload


class TestAddPurchase:
    def test_total_is_sum_of_lines(self, make_supplier):
        s = make_supplier()
        purchase = purchase_service.add_purchase(_payload(s.id))
        assert purchase.total_amount == Decimal("13.25")

        details = purchase_service.get_purchase_details(purchase.id)
        assert details["purchase"]["total_amount"] == "13.25"
        assert details["purchase"]["amount_paid"] == "0.00"
        assert [l["line_total"] for l in details["items"]] == ["10.00", "3.25"]

    def test_pay_now_settles_total(self, make_supplier, db_session):
        s = make_supplier()
        purchase = purchase_service.add_purchase(_payload(s.id, payment_mode="pay_now", payment_method="card"))

        payment = db_session.query(SupplierPayment).one()
        assert payment.purchase_id == purchase.id
        assert payment.amount == Decimal("13.25")
        assert payment.method == "card"
        assert supplier_service.get_supplier_balance(s.id)["balance_due"] == "0.00"

    def test_pay_partial(self, make_supplier):
        s = make_supplier()
        purchase_service.add_purchase(_payload(s.id, payment_mode="pay_partial", payment_amount="5.00"))
        assert supplier_service.get_supplier_balance(s.id)["balance_due"] == "8.25"

    @pytest.mark.parametrize("amount", [None, "0", "13.26"])
    def test_pay_partial_bounds(self, make_supplier, db_session, amount):
        s = make_supplier()
        with pytest.raises(ValidationError):
            purchase_service.add_purchase(_payload(s.id, payment_mode="pay_partial", payment_amount=amount))
        assert db_session.query(Purchase).count() == 0

    def test_pay_later_records_no_payment(self, make_supplier, db_session):
        s = make_supplier()
        purchase_service.add_purchase(_payload(s.id, payment_mode="pay_later"))
        assert db_session.query(SupplierPayment).count() == 0
        assert supplier_service.get_supplier_balance(s.id)["balance_due"] == "13.25"

    def test_without_supplier_no_payment_row(self, db_session):
        purchase = purchase_service.add_purchase(_payload(None, payment_mode="pay_now"))
        assert purchase.supplier_id is None
        assert db_session.query(SupplierPayment).count() == 0

    def test_inactive_supplier_conflicts(self, make_supplier, db_session):
        s = make_supplier()
        supplier_service.update_supplier(s.id, {"is_active": False})
        with pytest.raises(ConflictError):
            purchase_service.add_purchase(_payload(s.id))
        assert db_session.query(Purchase).count() == 0

    def test_missing_supplier(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_service.add_purchase(_payload(4040))

    @pytest.mark.parametrize("items,message", [
        ([], "At least one item"),
        ([{"item_name": "X", "quantity": 0, "unit_cost": "1"}], "Line 1: quantity"),
        ([{"item_name": "X", "quantity": 1, "unit_cost": "0"}], "Line 1: unit_cost"),
        ([{"quantity": 1, "unit_cost": "1"}], "item_name is required"),
    ])
    def test_line_validation(self, db_session, items, message):
        with pytest.raises(ValidationError, match=message):
            purchase_service.add_purchase(_payload(items=items))

    def test_bad_payment_mode(self, db_session):
        with pytest.raises(ValidationError, match="payment_mode"):
            purchase_service.add_purchase(_payload(payment_mode="barter"))


class TestStockReceipt:
    def test_update_stock_adds_to_tracked_items_only(self, make_item, db_session):
        cola = make_item("Cola", stock=2)
        burger = make_item("Burger", tracked=False)

        purchase = purchase_service.add_purchase(_payload(items=[
            {"menu_item_id": cola.id, "quantity": 10, "unit_cost": "0.50"},
            {"menu_item_id": burger.id, "quantity": 3, "unit_cost": "1.00"},
        ], update_stock=True))

        assert inventory_service.get_menu_item(cola.id).stock_quantity == 12
        assert inventory_service.get_menu_item(burger.id).stock_quantity == 0

        lines = db_session.query(PurchaseItem).filter_by(purchase_id=purchase.id).order_by(PurchaseItem.id).all()
        assert [(l.item_name, l.stock_applied) for l in lines] == [("Cola", True), ("Burger", False)]
        assert purchase.stock_applied is True

    def test_no_update_stock_leaves_stock(self, make_item):
        cola = make_item("Cola", stock=2)
        purchase_service.add_purchase(_payload(items=[
            {"menu_item_id": cola.id, "quantity": 10, "unit_cost": "0.50"},
        ]))
        assert inventory_service.get_menu_item(cola.id).stock_quantity == 2

    def test_unknown_menu_item(self, db_session):
        with pytest.raises(NotFoundError, match="Line 1"):
            purchase_service.add_purchase(_payload(items=[
                {"menu_item_id": 9090, "quantity": 1, "unit_cost": "1"},
            ], update_stock=True))


class TestListAndDelete:
    def test_list_newest_first_with_paid(self, make_supplier):
        s = make_supplier("Fresh Farms")
        old = purchase_service.add_purchase(_payload(s.id, purchase_date="2026-01-01"))
        new = purchase_service.add_purchase(_payload(s.id, payment_mode="pay_partial", payment_amount="3.00"))

        rows = purchase_service.list_purchases()
        assert [r["id"] for r in rows] == [new.id, old.id]
        assert rows[0]["amount_paid"] == "3.00"
        assert rows[0]["supplier_name"] == "Fresh Farms"
        assert rows[1]["amount_paid"] == "0.00"

    def test_delete_rolls_back_stock_and_charge(self, make_item, make_supplier, db_session):
        s = make_supplier()
        cola = make_item("Cola", stock=1)
        purchase = purchase_service.add_purchase(_payload(s.id, items=[
            {"menu_item_id": cola.id, "quantity": 6, "unit_cost": "1.00"},
        ], update_stock=True))
        assert inventory_service.get_menu_item(cola.id).stock_quantity == 7

        purchase_service.delete_purchase(purchase.id)

        assert inventory_service.get_menu_item(cola.id).stock_quantity == 1
        assert db_session.query(Purchase).count() == 0
        assert db_session.query(PurchaseItem).count() == 0
        assert supplier_service.get_supplier_balance(s.id)["balance_due"] == "0.00"

    def test_delete_without_rollback_keeps_stock(self, make_item):
        cola = make_item("Cola", stock=0)
        purchase = purchase_service.add_purchase(_payload(items=[
            {"menu_item_id": cola.id, "quantity": 6, "unit_cost": "1.00"},
        ], update_stock=True))
        purchase_service.delete_purchase(purchase.id, rollback_stock=False)
        assert inventory_service.get_menu_item(cola.id).stock_quantity == 6

    def test_delete_rollback_underflow(self, make_item, db_session):
        cola = make_item("Cola", stock=0)
        purchase = purchase_service.add_purchase(_payload(items=[
            {"menu_item_id": cola.id, "quantity": 6, "unit_cost": "1.00"},
        ], update_stock=True))
        stock_adjustment_service.create_adjustment(
            adjustment_date="2026-03-02", reason="Spoiled",
            items=[{"menu_item_id": cola.id, "mode": "remove", "quantity": 4}],
        )

        with pytest.raises(UnderflowError):
            purchase_service.delete_purchase(purchase.id)
        assert db_session.query(Purchase).count() == 1
        assert inventory_service.get_menu_item(cola.id).stock_quantity == 2

    def test_delete_with_linked_payment_conflicts(self, make_supplier, db_session):
        s = make_supplier()
        purchase = purchase_service.add_purchase(_payload(s.id, payment_mode="pay_now"))
        with pytest.raises(ConflictError, match="linked payment"):
            purchase_service.delete_purchase(purchase.id)
        assert db_session.query(Purchase).count() == 1

    def test_missing_purchase(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_service.get_purchase_details(1)
        with pytest.raises(NotFoundError):
            purchase_service.delete_purchase(1)
