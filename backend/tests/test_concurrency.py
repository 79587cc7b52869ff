# Overview: Pytest coverage for concurrent sales against one variant.

"""
Concurrency tests.

Real threads, each with its own app context and session, against a
temporary file-backed SQLite database. The stock check that decides the
race is the conditional UPDATE inside the commit, not the pre-check.
"""

import os
import tempfile
import threading

import pytest

from retailpos import create_app
from retailpos.errors import InsufficientStock
from retailpos.extensions import db
from retailpos.models import Category, Product, Role, Store, Transaction, User
from retailpos.services.catalog_service import create_variant
from retailpos.services.transaction_service import TransactionCommitter, create_transaction

from conftest import TEST_CONFIG, ctx_for, stock_of


@pytest.fixture
def file_app():
    fd, path = tempfile.mkstemp(suffix=".sqlite3")
    os.close(fd)
    app = create_app({**TEST_CONFIG, "SQLALCHEMY_DATABASE_URI": f"sqlite:///{path}"})

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    os.remove(path)


@pytest.fixture
def seeded(file_app):
    """One owner, one store, one variant; returns (owner_ctx, store_id, make_variant)."""
    with file_app.app_context():
        owner = User(
            email="race@owner.test", password_hash="x", first_name="Race", last_name="Owner", role=Role.OWNER,
        )
        db.session.add(owner)
        db.session.commit()

        store = Store(owner_id=owner.id, name="Race Store")
        category = Category(owner_id=owner.id, name="Race")
        db.session.add_all([store, category])
        db.session.commit()

        product = Product(owner_id=owner.id, category_id=category.id, store_id=store.id, name="Limited")
        db.session.add(product)
        db.session.commit()

        ctx = ctx_for(owner)
        ids = {"store": store.id, "product": product.id}
        db.session.remove()

    def make_variant(sku, stock):
        with file_app.app_context():
            variant = create_variant(ctx, ids["product"], {
                "sku": sku, "cost_price_cents": 100, "selling_price_cents": 500, "stock_quantity": stock,
            })
            variant_id = variant.id
            db.session.remove()
        return variant_id

    return ctx, ids["store"], make_variant


def race(app, ctx, payloads, skip_precheck=False):
    """Run one create_transaction per payload concurrently; return (successes, failures)."""
    barrier = threading.Barrier(len(payloads))
    results = []
    lock = threading.Lock()

    def worker(payload):
        with app.app_context():
            try:
                barrier.wait()
                committer = TransactionCommitter(ctx=ctx, payload=payload)
                if skip_precheck:
                    committer._precheck_stock = lambda: None
                committer.run()
                outcome = "ok"
            except InsufficientStock:
                outcome = "insufficient"
            except Exception as exc:  # surfaced through the assertion below
                outcome = f"error: {exc!r}"
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(payload,)) for payload in payloads]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    return results


def payload(store_id, variant_id, quantity):
    return {
        "store_id": store_id,
        "payment_method": "CASH",
        "items": [{"product_variant_id": variant_id, "quantity": quantity}],
    }


@pytest.mark.parametrize("skip_precheck", [False, True])
def test_last_unit_sold_once(file_app, seeded, skip_precheck):
    """Stock 1, two concurrent sales of 1: exactly one commits, final stock 0."""
    ctx, store_id, make_variant = seeded
    variant_id = make_variant("LAST-ONE", 1)

    results = race(file_app, ctx, [payload(store_id, variant_id, 1)] * 2, skip_precheck=skip_precheck)

    assert sorted(results) == ["insufficient", "ok"]
    with file_app.app_context():
        assert stock_of(variant_id) == 0
        assert db.session.query(Transaction).count() == 1


def test_two_sales_of_three_against_five(file_app, seeded):
    ctx, store_id, make_variant = seeded
    variant_id = make_variant("FIVE", 5)

    results = race(file_app, ctx, [payload(store_id, variant_id, 3)] * 2, skip_precheck=True)

    assert sorted(results) == ["insufficient", "ok"]
    with file_app.app_context():
        assert stock_of(variant_id) == 2


def test_many_cashiers_never_oversell(file_app, seeded):
    ctx, store_id, make_variant = seeded
    variant_id = make_variant("POPULAR", 4)

    results = race(file_app, ctx, [payload(store_id, variant_id, 1)] * 6, skip_precheck=True)

    assert results.count("ok") == 4
    assert results.count("insufficient") == 2
    with file_app.app_context():
        assert stock_of(variant_id) == 0


def test_sequential_sale_after_race(file_app, seeded):
    ctx, store_id, make_variant = seeded
    variant_id = make_variant("STEADY", 3)

    race(file_app, ctx, [payload(store_id, variant_id, 1)] * 2)
    with file_app.app_context():
        create_transaction(ctx, payload(store_id, variant_id, 1))
        assert stock_of(variant_id) == 0
        db.session.remove()
