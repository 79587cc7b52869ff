# Overview: Pytest coverage for the stock ledger and manual stock adjustments.

import pytest

from retailpos.errors import Forbidden, InsufficientStock, NotFound, ValidationError
from retailpos.models import MovementType, StockMovement
from retailpos.services.stock_service import adjust_stock, apply_stock_delta, list_movements

from conftest import ctx_for, headers_for, movement_count, stock_of


class TestApplyStockDelta:

    def test_decrement_within_stock(self, db_session, owner_a, variant_a):
        movement = apply_stock_delta(
            variant_id=variant_a.id, delta=-5, owner_id=owner_a.id, movement_type=MovementType.ADJUSTMENT
        )
        db_session.commit()
        assert movement.quantity_after == 0
        assert stock_of(variant_a.id) == 0

    def test_rejected_delta_mutates_nothing(self, db_session, owner_a, variant_a):
        before = movement_count(variant_a.id)
        with pytest.raises(InsufficientStock) as excinfo:
            apply_stock_delta(
                variant_id=variant_a.id, delta=-6, owner_id=owner_a.id, movement_type=MovementType.ADJUSTMENT
            )
        db_session.rollback()

        assert excinfo.value.details["available"] == 5
        assert excinfo.value.details["requested_delta"] == -6
        assert stock_of(variant_a.id) == 5
        assert movement_count(variant_a.id) == before

    def test_zero_delta_rejected(self, db_session, owner_a, variant_a):
        with pytest.raises(ValidationError):
            apply_stock_delta(
                variant_id=variant_a.id, delta=0, owner_id=owner_a.id, movement_type=MovementType.ADJUSTMENT
            )

    def test_does_not_commit(self, db_session, owner_a, variant_a):
        apply_stock_delta(
            variant_id=variant_a.id, delta=3, owner_id=owner_a.id, movement_type=MovementType.ADJUSTMENT
        )
        db_session.rollback()
        assert stock_of(variant_a.id) == 5

    def test_initial_stock_goes_through_ledger(self, db_session, variant_a):
        initial = db_session.query(StockMovement).filter_by(variant_id=variant_a.id).one()
        assert initial.movement_type == MovementType.INITIAL
        assert initial.quantity_delta == 5
        assert initial.quantity_after == 5


class TestAdjustStock:

    def test_manager_adjusts(self, db_session, manager_a, variant_a):
        result = adjust_stock(ctx_for(manager_a), variant_a.id, {"adjustment": 4, "reason": "Recount"})

        assert result["previous_stock"] == 5
        assert result["new_stock"] == 9
        assert result["adjustment"] == 4
        assert result["variant"]["stock_quantity"] == 9
        assert result["movement"]["actor_user_id"] == manager_a.id
        assert result["movement"]["reason"] == "Recount"

    def test_large_negative_rejected_without_ledger_entry(self, db_session, owner_a, variant_a):
        before = movement_count(variant_a.id)
        with pytest.raises(InsufficientStock):
            adjust_stock(ctx_for(owner_a), variant_a.id, {"adjustment": -1000, "reason": "Shrinkage"})

        assert stock_of(variant_a.id) == 5
        assert movement_count(variant_a.id) == before

    def test_cashier_forbidden(self, db_session, cashier_a, variant_a):
        with pytest.raises(Forbidden):
            adjust_stock(ctx_for(cashier_a), variant_a.id, {"adjustment": 1, "reason": "x"})
        assert stock_of(variant_a.id) == 5

    @pytest.mark.parametrize("payload", [
        {"reason": "missing adjustment"},
        {"adjustment": 0, "reason": "zero"},
        {"adjustment": 1.5, "reason": "fraction"},
        {"adjustment": 2},
        {"adjustment": 2, "reason": "   "},
        {"adjustment": 2, "reason": "r" * 256},
        {"adjustment": 10**19, "reason": "overflow"},
        {"adjustment": -1_000_001, "reason": "beyond the per-adjustment limit"},
    ])
    def test_invalid_payloads(self, db_session, owner_a, variant_a, payload):
        with pytest.raises(ValidationError):
            adjust_stock(ctx_for(owner_a), variant_a.id, payload)

    def test_foreign_variant_not_found(self, db_session, owner_a, variant_b):
        with pytest.raises(NotFound):
            adjust_stock(ctx_for(owner_a), variant_b.id, {"adjustment": 1, "reason": "cross-tenant attempt"})

    def test_movement_history_newest_first(self, db_session, owner_a, variant_a):
        adjust_stock(ctx_for(owner_a), variant_a.id, {"adjustment": -2, "reason": "Damaged"})
        adjust_stock(ctx_for(owner_a), variant_a.id, {"adjustment": 1, "reason": "Found"})

        movements = list_movements(ctx_for(owner_a), variant_a.id)
        assert [m.quantity_delta for m in movements] == [1, -2, 5]
        assert [m.quantity_after for m in movements] == [4, 3, 5]


class TestStockApi:

    def test_adjust_endpoint(self, client, db_session, owner_a, variant_a):
        resp = client.patch(
            f"/api/variants/{variant_a.id}/stock",
            json={"adjustment": -2, "reason": "Damaged in transit"},
            headers=headers_for(owner_a),
        )
        assert resp.status_code == 200
        assert resp.get_json()["new_stock"] == 3

    def test_adjust_endpoint_conflict(self, client, db_session, owner_a, variant_a):
        resp = client.patch(
            f"/api/variants/{variant_a.id}/stock",
            json={"adjustment": -1000, "reason": "typo"},
            headers=headers_for(owner_a),
        )
        assert resp.status_code == 409
        assert resp.get_json()["category"] == "INSUFFICIENT_STOCK"
        assert stock_of(variant_a.id) == 5

    def test_movements_endpoint(self, client, db_session, manager_a, variant_a):
        resp = client.get(f"/api/variants/{variant_a.id}/movements?limit=1", headers=headers_for(manager_a))
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body) == 1
        assert body[0]["movement_type"] == "INITIAL"
