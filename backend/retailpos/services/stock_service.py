# Overview: Service-layer operations for stock; the single choke point for stock mutation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import select, update

from ..errors import InsufficientStock, ValidationError
from ..extensions import db
from ..models import MovementType, ProductVariant, StockMovement
from ..validation import MAX_LINE_QUANTITY, coerce_int
from .concurrency import begin_write_unit, run_with_retry
from .permission_service import require_permission
from .tenant_service import require_variant_in_tenant
from .token_service import TenantContext
"""
Stock Ledger Invariants (authoritative)

- ProductVariant.stock_quantity >= 0 at all times.
- Every change is a signed delta applied by apply_stock_delta(); nothing
  else assigns stock_quantity.
- The delta is one conditional UPDATE evaluated by the database:
      SET stock = stock + d WHERE id = :id AND stock + d >= 0
  There is no read-compare-write in application code, so concurrent
  writers on other threads, processes or hosts cannot oversell.
- A rejected delta mutates nothing and records no StockMovement.
- apply_stock_delta() never commits; the caller owns the atomic unit.
"""


MAX_REASON_LENGTH = 255


def apply_stock_delta(
    *,
    variant_id: int,
    delta: int,
    owner_id: int,
    movement_type: str,
    reason: str | None = None,
    actor_user_id: int | None = None,
    transaction_id: int | None = None,
) -> StockMovement:
    """
    Apply delta to a variant's stock, succeeding only if the result is >= 0.

    Raises InsufficientStock without mutating when the delta would drive
    stock negative (or the variant vanished). Appends a StockMovement in the
    caller's DB transaction on success.
    """
    if delta == 0:
        raise ValidationError("Stock delta cannot be zero")

    result = db.session.execute(
        update(ProductVariant)
        .where(
            ProductVariant.id == variant_id,
            ProductVariant.stock_quantity + delta >= 0,
        )
        .values(stock_quantity=ProductVariant.stock_quantity + delta)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        current_stock = db.session.execute(
            select(ProductVariant.stock_quantity).where(ProductVariant.id == variant_id)
        ).scalar()
        raise InsufficientStock(
            f"Insufficient stock for variant {variant_id}",
            details={
                "product_variant_id": variant_id,
                "available": current_stock,
                "requested_delta": delta,
            },
        )

    quantity_after = db.session.execute(
        select(ProductVariant.stock_quantity).where(ProductVariant.id == variant_id)
    ).scalar_one()

    movement = StockMovement(
        variant_id=variant_id,
        owner_id=owner_id,
        movement_type=movement_type,
        quantity_delta=delta,
        quantity_after=quantity_after,
        reason=reason,
        actor_user_id=actor_user_id,
        transaction_id=transaction_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(ctx: TenantContext, variant_id: int, payload: dict) -> dict:
    """
    Manual stock correction by an OWNER or MANAGER.

    payload: {"adjustment": non-zero int, "reason": non-blank str}

    Returns {"variant", "previous_stock", "adjustment", "new_stock",
    "reason", "movement"}. Rejected adjustments raise InsufficientStock and
    leave stock and the movement ledger untouched.
    """
    require_permission(ctx, "ADJUST_STOCK")

    payload = payload or {}
    raw = payload.get("adjustment")
    if raw is None:
        raise ValidationError("adjustment is required")
    adjustment = coerce_int(raw, "adjustment")
    if adjustment == 0:
        raise ValidationError("adjustment cannot be zero")
    if abs(adjustment) > MAX_LINE_QUANTITY:
        raise ValidationError(f"adjustment cannot exceed {MAX_LINE_QUANTITY} in either direction")

    reason = payload.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("reason is required")
    reason = reason.strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}")

    # Ownership check is a read; it happens before the write unit opens.
    require_variant_in_tenant(variant_id, ctx.owner_id)

    def _op():
        try:
            begin_write_unit()
            movement = apply_stock_delta(
                variant_id=variant_id,
                delta=adjustment,
                owner_id=ctx.owner_id,
                movement_type=MovementType.ADJUSTMENT,
                reason=reason,
                actor_user_id=ctx.user_id,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return movement

    movement = run_with_retry(_op)

    variant = db.session.get(ProductVariant, variant_id)
    current_app.logger.info(
        "Stock adjusted: variant=%s delta=%s new_stock=%s tenant=%s user=%s",
        variant_id, adjustment, movement.quantity_after, ctx.owner_id, ctx.user_id,
    )
    return {
        "variant": variant.to_dict(),
        "previous_stock": movement.quantity_after - adjustment,
        "adjustment": adjustment,
        "new_stock": movement.quantity_after,
        "reason": reason,
        "movement": movement.to_dict(),
    }


def list_movements(ctx: TenantContext, variant_id: int, limit: int = 100) -> list[StockMovement]:
    require_permission(ctx, "VIEW_STOCK_MOVEMENTS")
    require_variant_in_tenant(variant_id, ctx.owner_id)
    return (
        db.session.query(StockMovement)
        .filter_by(variant_id=variant_id, owner_id=ctx.owner_id)
        .order_by(StockMovement.id.desc())
        .limit(limit)
        .all()
    )
