from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateIdentifier, ValidationError
from ..extensions import db
from ..models import Product, Store, Transaction, User
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import begin_write_unit, run_with_retry
from .permission_service import require_permission
from .tenant_service import require_store_in_tenant
from .token_service import TenantContext


STORE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "city", "state", "zip_code", "phone", "email", "is_active"},
    required_on_create={"name"},
)


def create_store(ctx: TenantContext, payload: dict) -> Store:
    require_permission(ctx, "MANAGE_STORES")
    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=False)

    def _op():
        exists = db.session.query(Store.id).filter_by(owner_id=ctx.owner_id, name=patch["name"]).first()
        if exists:
            raise DuplicateIdentifier("A store with this name already exists")

        store = Store(owner_id=ctx.owner_id, **patch)
        db.session.add(store)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateIdentifier("A store with this name already exists")
        return store

    store = run_with_retry(_op)
    current_app.logger.info("Store created: store=%s tenant=%s", store.id, ctx.owner_id)
    return store


def list_stores(ctx: TenantContext) -> list[Store]:
    require_permission(ctx, "VIEW_STORES")
    return (
        db.session.query(Store)
        .filter(Store.owner_id == ctx.owner_id)
        .order_by(Store.name.asc())
        .all()
    )


def get_store(ctx: TenantContext, store_id: int) -> Store:
    require_permission(ctx, "VIEW_STORES")
    return require_store_in_tenant(store_id, ctx.owner_id)


def delete_store(ctx: TenantContext, store_id: int) -> None:
    """Delete an unused store. Stores with employees, products or transactions are kept."""
    require_permission(ctx, "MANAGE_STORES")
    def _op():
        try:
            # Counts and delete share one write lock
            begin_write_unit()
            store = require_store_in_tenant(store_id, ctx.owner_id)
            in_use = {
                "employees": db.session.query(User.id).filter_by(store_id=store.id).count(),
                "products": db.session.query(Product.id).filter_by(store_id=store.id).count(),
                "transactions": db.session.query(Transaction.id).filter_by(store_id=store.id).count(),
            }
            if any(in_use.values()):
                raise ValidationError(
                    "Cannot delete store with existing employees, products, or transactions",
                    details=in_use,
                )
            db.session.delete(store)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    run_with_retry(_op)
    current_app.logger.info("Store deleted: store=%s tenant=%s", store_id, ctx.owner_id)
