# Overview: Threaded concurrency tests for the per-aggregate transaction boundary.

"""
Concurrency tests on a real SQLite file.

Each worker runs in its own app context (own session/connection), the way
concurrent requests would.
"""
import os
import tempfile
import threading
import unittest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Shift, ShiftPosting, StockAdjustmentItem
from backoffice.services import (
    audit_service,
    inventory_service,
    purchase_service,
    shift_service,
    stock_adjustment_service,
    supplier_service,
)
from backoffice.validation import ConflictError, UnderflowError


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "LEDGER_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            item = inventory_service.create_menu_item(
                {"name": "Cola", "track_stock": True, "stock_quantity": 100}
            )
            self.item_id = item.id

            supplier = supplier_service.create_supplier({"name": "Fresh Farms"})
            self.supplier_id = supplier.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, count):
        results = []
        lock = threading.Lock()

        def worker(n):
            with self.app.app_context():
                try:
                    outcome = target(n)
                    with lock:
                        results.append(outcome)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _remove(self, quantity):
        def _target(_n):
            adj = stock_adjustment_service.create_adjustment(
                adjustment_date="2026-01-31",
                reason="Concurrent remove",
                items=[{"menu_item_id": self.item_id, "mode": "remove", "quantity": quantity}],
            )
            return adj.id
        return _target

    def test_concurrent_removes_do_not_lose_updates(self):
        results = self._run_threads(self._remove(5), 10)

        errors = [r for r in results if isinstance(r, Exception)]
        self.assertFalse(errors)

        with self.app.app_context():
            self.assertEqual(inventory_service.get_menu_item(self.item_id).stock_quantity, 50)
            previous = sorted(
                row.previous_stock
                for row in db.session.query(StockAdjustmentItem).all()
            )
            self.assertEqual(previous, list(range(55, 101, 5)))

    def test_concurrent_removes_stop_at_zero(self):
        results = self._run_threads(self._remove(5), 25)

        ok = [r for r in results if isinstance(r, int)]
        underflows = [r for r in results if isinstance(r, UnderflowError)]
        self.assertEqual(len(ok), 20)
        self.assertEqual(len(underflows), 5)

        with self.app.app_context():
            self.assertEqual(inventory_service.get_menu_item(self.item_id).stock_quantity, 0)
            self.assertTrue(audit_service.verify_ledgers()["ok"])

    def test_only_one_shift_opens(self):
        results = self._run_threads(lambda n: shift_service.open_shift(n + 1, "10.00").id, 8)

        opened = [r for r in results if isinstance(r, int)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        self.assertEqual(len(opened), 1)
        self.assertEqual(len(conflicts), 7)

        with self.app.app_context():
            self.assertEqual(db.session.query(Shift).filter_by(status="open").count(), 1)

    def test_postings_and_close_respect_cutoff(self):
        with self.app.app_context():
            shift_id = shift_service.open_shift(1, "0.00").id

        def _target(n):
            if n == 5:
                return shift_service.close_shift(shift_id, 1, "0.00").id
            return shift_service.post_shift_activity("sale", "1.00").shift_id

        self._run_threads(_target, 10)

        with self.app.app_context():
            summary = shift_service.get_shift(shift_id)
            counted = db.session.query(ShiftPosting).filter_by(shift_id=shift_id).count()
            self.assertEqual(summary["total_sales"], f"{counted:.2f}")
            self.assertEqual(summary["end_cash_expected"], f"{counted:.2f}")

    def test_concurrent_payments_balance_exactly(self):
        with self.app.app_context():
            purchase_service.add_purchase({
                "supplier_id": self.supplier_id,
                "purchase_date": "2026-01-31",
                "items": [{"item_name": "Flour", "quantity": 1, "unit_cost": "20.00"}],
            })

        results = self._run_threads(
            lambda n: supplier_service.record_payment(self.supplier_id, "1.50", "cash")["payment_id"],
            10,
        )
        self.assertFalse([r for r in results if isinstance(r, Exception)])

        with self.app.app_context():
            summary = supplier_service.get_supplier_balance(self.supplier_id)
            self.assertEqual(summary["payment_count"], 10)
            self.assertEqual(summary["balance_due"], "5.00")

    def test_receipts_and_adjustments_interleave_safely(self):
        def _target(n):
            if n % 2:
                return purchase_service.add_purchase({
                    "purchase_date": "2026-01-31",
                    "items": [{"menu_item_id": self.item_id, "quantity": 3, "unit_cost": "1.00"}],
                    "update_stock": True,
                }).id
            return self._remove(2)(n)

        results = self._run_threads(_target, 10)
        self.assertFalse([r for r in results if isinstance(r, Exception)])

        with self.app.app_context():
            # 100 + 5 * 3 - 5 * 2
            self.assertEqual(inventory_service.get_menu_item(self.item_id).stock_quantity, 105)


if __name__ == "__main__":
    unittest.main()
