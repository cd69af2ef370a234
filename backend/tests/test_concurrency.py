"""
Concurrency tests against a file-backed SQLite database.

Each worker runs in its own thread with its own app context and session,
the way concurrent requests from several terminals would.
"""
import os
import tempfile
import threading
import unittest

from tillcore import create_app
from tillcore.extensions import db
from tillcore.models import Bill, Product, StockMovement, Store
from tillcore.services import checkout_service, stock_ledger
from tillcore.services.checkout_schemas import CheckoutPayload
from tillcore.services.stock_ledger import InsufficientStockError


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            store = Store(name="Concurrency Store", code="CONC")
            db.session.add(store)
            db.session.commit()
            self.store_id = store.id

            product = Product(
                store_id=self.store_id,
                sku="CONCUR-1",
                name="Concurrent Product",
                price_cents=1000,
                stock=0,
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

            stock_ledger.restock(
                store_id=self.store_id,
                product_id=self.product_id,
                user_id=None,
                quantity=10,
                notes="Seed inventory",
            )

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _payload(self, quantity: int) -> CheckoutPayload:
        subtotal = 1000 * quantity
        tax = subtotal * 7 // 100
        return CheckoutPayload.from_dict({
            "payment_method": "CARD",
            "subtotal_cents": subtotal,
            "tax_cents": tax,
            "total_cents": subtotal + tax,
            "items": [{"product_id": self.product_id, "quantity": quantity, "total_cents": subtotal}],
        })

    def _run_checkouts(self, quantities):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(quantities))

        def worker(quantity):
            with self.app.app_context():
                try:
                    barrier.wait()
                    bill, _ = checkout_service.commit_checkout(
                        store_id=self.store_id,
                        user_id=1,
                        payload=self._payload(quantity),
                    )
                    with lock:
                        results.append(bill.bill_number)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(q,)) for q in quantities]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_concurrent_checkouts_never_oversell(self):
        results = self._run_checkouts([6, 6])

        committed = [r for r in results if isinstance(r, str)]
        failures = [r for r in results if not isinstance(r, str)]
        self.assertEqual(len(committed), 1)
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InsufficientStockError)

        with self.app.app_context():
            stock = db.session.query(Product.stock).filter_by(id=self.product_id).scalar()
            self.assertEqual(stock, 4)
            self.assertEqual(db.session.query(Bill).count(), 1)
            movements = db.session.query(StockMovement).filter_by(product_id=self.product_id).all()
            self.assertEqual(sum(m.quantity_change for m in movements), stock)

    def test_many_small_checkouts_sell_exactly_the_stock(self):
        results = self._run_checkouts([1] * 14)

        committed = [r for r in results if isinstance(r, str)]
        self.assertEqual(len(committed), 10)
        self.assertEqual(len(committed), len(set(committed)))
        for failure in (r for r in results if not isinstance(r, str)):
            self.assertIsInstance(failure, InsufficientStockError)

        with self.app.app_context():
            stock = db.session.query(Product.stock).filter_by(id=self.product_id).scalar()
            self.assertEqual(stock, 0)


if __name__ == "__main__":
    unittest.main()
