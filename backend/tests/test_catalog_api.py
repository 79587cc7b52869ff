# Overview: Pytest coverage for stores and catalog endpoints.

import pytest

from retailpos.errors import DuplicateIdentifier, ValidationError
from retailpos.models import Category, Product, ProductVariant, Store
from retailpos.services import store_service
from retailpos.services.catalog_service import create_variant

from conftest import ctx_for, headers_for, movement_count, stock_of


class TestStores:

    def test_create_and_get(self, client, db_session, owner_a):
        resp = client.post("/api/stores", json={"name": "Harbor", "city": "Portland"}, headers=headers_for(owner_a))
        assert resp.status_code == 201
        store = resp.get_json()
        assert store["owner_id"] == owner_a.id

        got = client.get(f"/api/stores/{store['id']}", headers=headers_for(owner_a))
        assert got.get_json()["city"] == "Portland"

    def test_name_unique_per_tenant_only(self, client, db_session, owner_a, owner_b, store_b):
        resp = client.post("/api/stores", json={"name": store_b.name}, headers=headers_for(owner_a))
        assert resp.status_code == 201

        again = client.post("/api/stores", json={"name": store_b.name}, headers=headers_for(owner_a))
        assert again.status_code == 409

    def test_missing_name(self, client, db_session, owner_a):
        resp = client.post("/api/stores", json={"city": "Nowhere"}, headers=headers_for(owner_a))
        assert resp.status_code == 400
        assert resp.get_json()["category"] == "VALIDATION_ERROR"

    def test_delete_unused_store(self, client, db_session, owner_a):
        store = Store(owner_id=owner_a.id, name="Popup")
        db_session.add(store)
        db_session.commit()
        store_id = store.id

        resp = client.delete(f"/api/stores/{store_id}", headers=headers_for(owner_a))
        assert resp.status_code == 200
        assert db_session.get(Store, store_id) is None

    def test_delete_store_in_use_refused(self, client, db_session, owner_a, store_a, product_a):
        resp = client.delete(f"/api/stores/{store_a.id}", headers=headers_for(owner_a))
        assert resp.status_code == 400
        assert resp.get_json()["details"]["products"] == 1

    def test_delete_foreign_store(self, client, db_session, owner_a, store_b):
        assert client.delete(f"/api/stores/{store_b.id}", headers=headers_for(owner_a)).status_code == 404

    def test_delete_store_counts_under_write_lock(self, db_session, owner_a, store_a, monkeypatch):
        """A product written just before the lock is taken still blocks the delete."""
        category = Category(owner_id=owner_a.id, name="Seasonal")
        db_session.add(category)
        db_session.commit()
        store_id = store_a.id
        real_begin = store_service.begin_write_unit

        def product_lands_first():
            db_session.add(Product(owner_id=owner_a.id, category_id=category.id, store_id=store_id, name="Late"))
            db_session.flush()
            real_begin()

        monkeypatch.setattr(store_service, "begin_write_unit", product_lands_first)

        with pytest.raises(ValidationError) as excinfo:
            store_service.delete_store(ctx_for(owner_a), store_id)

        assert excinfo.value.details["products"] == 1
        assert db_session.get(Store, store_id) is not None


class TestCatalog:

    def test_category_product_variant_flow(self, client, db_session, manager_a, store_a):
        headers = headers_for(manager_a)

        category = client.post("/api/categories", json={"name": "Hats"}, headers=headers).get_json()
        product = client.post("/api/products", json={
            "name": "Bucket Hat",
            "brand": "Shade",
            "category_id": category["id"],
            "store_id": store_a.id,
        }, headers=headers)
        assert product.status_code == 201
        product_id = product.get_json()["id"]

        variant = client.post(f"/api/products/{product_id}/variants", json={
            "sku": "HAT-S",
            "barcode": "",
            "cost_price_cents": 500,
            "selling_price_cents": 1500,
            "stock_quantity": 12,
            "low_stock_threshold": 3,
        }, headers=headers)
        assert variant.status_code == 201
        body = variant.get_json()
        assert body["stock_quantity"] == 12
        assert body["barcode"] is None
        assert body["is_low_stock"] is False

        detail = client.get(f"/api/products/{product_id}", headers=headers).get_json()
        assert [v["sku"] for v in detail["variants"]] == ["HAT-S"]

        listed = client.get("/api/categories", headers=headers).get_json()
        assert [c["name"] for c in listed] == ["Hats"]

    def test_variant_lookup_by_sku_and_barcode(self, client, db_session, cashier_a, variant_a):
        by_sku = client.get("/api/variants/sku/OXF-M-BLU", headers=headers_for(cashier_a))
        by_code = client.get("/api/variants/barcode/1234567890123", headers=headers_for(cashier_a))
        assert by_sku.get_json()["id"] == by_code.get_json()["id"] == variant_a.id

    @pytest.mark.parametrize("change", [
        {"selling_price_cents": -1},
        {"cost_price_cents": 1_000_000_000},
        {"stock_quantity": -3},
        {"stock_quantity": 1_000_001},
        {"selling_price_cents": "12.50"},
        {"sku": "  "},
    ])
    def test_variant_validation(self, client, db_session, owner_a, product_a, change):
        payload = {"sku": "NEW-1", "cost_price_cents": 100, "selling_price_cents": 200, **change}
        resp = client.post(f"/api/products/{product_a.id}/variants", json=payload, headers=headers_for(owner_a))
        assert resp.status_code == 400

    def test_sku_unique_within_tenant(self, db_session, owner_a, product_a, variant_a):
        with pytest.raises(DuplicateIdentifier):
            create_variant(ctx_for(owner_a), product_a.id, {
                "sku": "OXF-M-BLU", "cost_price_cents": 1, "selling_price_cents": 2,
            })

    def test_same_sku_allowed_across_tenants(self, db_session, owner_b, product_b, variant_a):
        other = create_variant(ctx_for(owner_b), product_b.id, {
            "sku": "OXF-M-BLU", "barcode": "1234567890123", "cost_price_cents": 1, "selling_price_cents": 2,
        })
        assert other.owner_id == owner_b.id
        assert db_session.query(ProductVariant).filter_by(sku="OXF-M-BLU").count() == 2

    def test_variant_without_stock_has_no_movement(self, db_session, owner_a, product_a):
        variant = create_variant(ctx_for(owner_a), product_a.id, {
            "sku": "EMPTY", "cost_price_cents": 1, "selling_price_cents": 2,
        })
        assert stock_of(variant.id) == 0
        assert movement_count(variant.id) == 0
        assert variant.to_dict()["is_low_stock"] is True

    def test_cashier_cannot_manage_catalog(self, client, db_session, cashier_a):
        resp = client.post("/api/categories", json={"name": "Nope"}, headers=headers_for(cashier_a))
        assert resp.status_code == 403


class TestHttpPlumbing:

    def test_unknown_route_json_404(self, client, db_session):
        resp = client.get("/api/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json()["category"] == "NOT_FOUND"

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_cors_other_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers
