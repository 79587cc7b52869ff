# backend/retailpos/services/catalog_service.py
"""
Catalog Service with Multi-Tenant Support

MULTI-TENANT: All catalog operations are tenant-scoped.
- categories and products carry the caller's owner_id
- create_product requires category_id and store_id within the tenant
- variants inherit their tenant from the parent product
- initial variant stock is seeded through the stock ledger (INITIAL movement)
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateIdentifier, ValidationError
from ..extensions import db
from ..models import Category, MovementType, Product, ProductVariant
from ..validation import ModelValidationPolicy, enforce_rules_variant, validate_payload
from .concurrency import begin_write_unit, run_with_retry
from .permission_service import require_permission
from .stock_service import apply_stock_delta
from .tenant_service import (
    find_variant_by_identifier,
    require_category_in_tenant,
    require_product_in_tenant,
    require_store_in_tenant,
    require_variant_in_tenant,
)
from .token_service import TenantContext


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "store_id", "name", "description", "brand", "image_url", "is_active"},
    required_on_create={"category_id", "store_id", "name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "size", "color", "barcode", "qr_code",
        "cost_price_cents", "selling_price_cents",
        "stock_quantity", "low_stock_threshold",
    },
    required_on_create={"sku", "cost_price_cents", "selling_price_cents"},
)

VARIANT_IDENTIFIERS = ("sku", "barcode", "qr_code")


# -- Categories --


def create_category(ctx: TenantContext, payload: dict) -> Category:
    require_permission(ctx, "MANAGE_CATALOG")
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)

    def _op():
        if db.session.query(Category.id).filter_by(owner_id=ctx.owner_id, name=patch["name"]).first():
            raise DuplicateIdentifier("A category with this name already exists")
        category = Category(owner_id=ctx.owner_id, **patch)
        db.session.add(category)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateIdentifier("A category with this name already exists")
        return category

    return run_with_retry(_op)


def list_categories(ctx: TenantContext) -> list[Category]:
    require_permission(ctx, "VIEW_CATALOG")
    return (
        db.session.query(Category)
        .filter(Category.owner_id == ctx.owner_id)
        .order_by(Category.name.asc())
        .all()
    )


# -- Products --


def create_product(ctx: TenantContext, payload: dict) -> Product:
    """
    Create a product in the caller's tenant.

    MULTI-TENANT: category and store are both checked against the tenant
    before insert; either miss is a NotFound.
    """
    require_permission(ctx, "MANAGE_CATALOG")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)

    require_category_in_tenant(patch["category_id"], ctx.owner_id)
    require_store_in_tenant(patch["store_id"], ctx.owner_id)

    def _op():
        product = Product(owner_id=ctx.owner_id, **patch)
        db.session.add(product)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info("Product created: product=%s tenant=%s", product.id, ctx.owner_id)
    return product


def get_product(ctx: TenantContext, product_id: int) -> Product:
    require_permission(ctx, "VIEW_CATALOG")
    return require_product_in_tenant(product_id, ctx.owner_id)


# -- Variants --


def _duplicate_identifier_field(owner_id: int, patch: dict) -> str | None:
    for field in VARIANT_IDENTIFIERS:
        value = patch.get(field)
        if value is None:
            continue
        taken = (
            db.session.query(ProductVariant.id)
            .filter(ProductVariant.owner_id == owner_id, getattr(ProductVariant, field) == value)
            .first()
        )
        if taken:
            return field
    return None


def create_variant(ctx: TenantContext, product_id: int, payload: dict) -> ProductVariant:
    """
    Create a variant under a tenant product.

    The row is inserted with zero stock and the requested initial quantity
    is applied as an INITIAL ledger movement in the same DB transaction.
    SKU, barcode and QR token are unique within the tenant.
    """
    require_permission(ctx, "MANAGE_CATALOG")
    product = require_product_in_tenant(product_id, ctx.owner_id)

    patch = validate_payload(model=ProductVariant, payload=payload, policy=VARIANT_POLICY, partial=False)
    enforce_rules_variant(patch)
    initial_stock = patch.pop("stock_quantity", None) or 0

    taken = _duplicate_identifier_field(product.owner_id, patch)
    if taken:
        raise DuplicateIdentifier(f"A variant with this {taken} already exists", details={"field": taken})

    def _op():
        try:
            begin_write_unit()
            variant = ProductVariant(
                product_id=product.id,
                owner_id=product.owner_id,
                stock_quantity=0,
                **patch,
            )
            db.session.add(variant)
            db.session.flush()

            if initial_stock:
                apply_stock_delta(
                    variant_id=variant.id,
                    delta=initial_stock,
                    owner_id=ctx.owner_id,
                    movement_type=MovementType.INITIAL,
                    reason="Initial stock",
                    actor_user_id=ctx.user_id,
                )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateIdentifier("A variant with this identifier already exists")
        except Exception:
            db.session.rollback()
            raise
        return variant

    variant = run_with_retry(_op)
    current_app.logger.info(
        "Variant created: variant=%s sku=%s stock=%s tenant=%s", variant.id, variant.sku, initial_stock, ctx.owner_id
    )
    return variant


def get_variant(ctx: TenantContext, variant_id: int) -> ProductVariant:
    require_permission(ctx, "VIEW_CATALOG")
    return require_variant_in_tenant(variant_id, ctx.owner_id)


def lookup_variant(ctx: TenantContext, field: str, value: str) -> ProductVariant:
    """Scan lookup by sku, barcode or qr_code, tenant-filtered."""
    require_permission(ctx, "VIEW_CATALOG")
    if field not in VARIANT_IDENTIFIERS:
        raise ValidationError(f"Unsupported lookup field: {field}")
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return find_variant_by_identifier(field, value, ctx.owner_id)
