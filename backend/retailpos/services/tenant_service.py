"""
Multi-Tenant Service: Referential Validation and Scoping Helpers

WHY: Every id a client sends (store, cashier, category, product, variant,
transaction) must be proven to belong to the caller's tenant before it is
used. The tenant id itself always comes from the resolved TenantContext.

SECURITY INVARIANTS:
1. Tenant id is never read from request input
2. Every referenced id is looked up with the tenant filter applied
3. "Belongs to another tenant" and "does not exist" raise the same NotFound
   with the same message, so status codes never reveal existence
4. Validation only reads; it never writes

USAGE:
    from retailpos.services.tenant_service import require_store_in_tenant

    store = require_store_in_tenant(store_id, ctx.owner_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import and_, or_

from ..errors import NotFound
from ..extensions import db
from ..models import Category, Product, ProductVariant, Role, Store, Transaction, User


@dataclass(frozen=True)
class SaleReferences:
    """Entities referenced by a sale, all proven to be in one tenant."""
    store: Store
    cashier: User
    variants: dict[int, ProductVariant]


def require_store_in_tenant(store_id: int, owner_id: int) -> Store:
    """
    Validate that a store belongs to the tenant.

    Raises NotFound if the store doesn't exist or belongs to another tenant.
    """
    store = db.session.query(Store).filter_by(id=store_id, owner_id=owner_id).first()
    if not store:
        _log_reference_miss("store", store_id, owner_id)
        raise NotFound("Store not found")
    return store


def require_cashier_in_tenant(cashier_id: int, owner_id: int) -> User:
    """
    Validate that a cashier may ring up sales for the tenant.

    Either an employee of the tenant, or the owner personally (an owner has
    no owner_id of their own).
    """
    cashier = (
        db.session.query(User)
        .filter(User.id == cashier_id)
        .filter(
            or_(
                User.owner_id == owner_id,
                and_(User.id == owner_id, User.role == Role.OWNER),
            )
        )
        .first()
    )
    if not cashier:
        _log_reference_miss("cashier", cashier_id, owner_id)
        raise NotFound("Cashier not found")
    return cashier


def require_category_in_tenant(category_id: int, owner_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id, owner_id=owner_id).first()
    if not category:
        _log_reference_miss("category", category_id, owner_id)
        raise NotFound("Category not found")
    return category


def require_product_in_tenant(product_id: int, owner_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id).first()
    if not product:
        _log_reference_miss("product", product_id, owner_id)
        raise NotFound("Product not found")
    return product


def _variants_query(owner_id: int):
    # Ownership is checked through the parent product, the source of truth.
    return (
        db.session.query(ProductVariant)
        .join(Product, ProductVariant.product_id == Product.id)
        .filter(Product.owner_id == owner_id)
    )


def require_variant_in_tenant(variant_id: int, owner_id: int) -> ProductVariant:
    variant = _variants_query(owner_id).filter(ProductVariant.id == variant_id).first()
    if not variant:
        _log_reference_miss("product_variant", variant_id, owner_id)
        raise NotFound(f"Product variant {variant_id} not found")
    return variant


def require_variants_in_tenant(variant_ids: list[int], owner_id: int) -> dict[int, ProductVariant]:
    """
    Validate a batch of variant ids in one query.

    Returns {variant_id: variant}. Raises NotFound naming the first id (in
    request order) that is missing or owned by another tenant.
    """
    if not variant_ids:
        return {}

    unique_ids = list(dict.fromkeys(variant_ids))
    variants = _variants_query(owner_id).filter(ProductVariant.id.in_(unique_ids)).all()
    found = {variant.id: variant for variant in variants}

    for variant_id in unique_ids:
        if variant_id not in found:
            _log_reference_miss("product_variant", variant_id, owner_id)
            raise NotFound(f"Product variant {variant_id} not found")

    return found


def find_variant_by_identifier(field: str, value: str, owner_id: int) -> ProductVariant:
    """Look up a variant by sku, barcode or qr_code within the tenant."""
    if field not in ("sku", "barcode", "qr_code"):
        raise ValueError(f"Unsupported identifier field {field!r}")
    variant = _variants_query(owner_id).filter(getattr(ProductVariant, field) == value).first()
    if not variant:
        raise NotFound("Product variant not found")
    return variant


def require_transaction_in_tenant(transaction_id: int, owner_id: int) -> Transaction:
    txn = db.session.query(Transaction).filter_by(id=transaction_id, owner_id=owner_id).first()
    if not txn:
        raise NotFound("Transaction not found")
    return txn


def validate_sale_references(
    *,
    owner_id: int,
    store_id: int,
    cashier_id: int,
    variant_ids: list[int],
) -> SaleReferences:
    """
    Confirm every entity a sale references belongs to the tenant.

    Order: store, cashier, then every line item's variant. The first failure
    raises NotFound; nothing is written either way.
    """
    store = require_store_in_tenant(store_id, owner_id)
    cashier = require_cashier_in_tenant(cashier_id, owner_id)
    variants = require_variants_in_tenant(variant_ids, owner_id)
    return SaleReferences(store=store, cashier=cashier, variants=variants)


def _log_reference_miss(entity: str, entity_id, owner_id: int) -> None:
    """
    Log a reference that is absent or outside the tenant.

    SECURITY: The log line does not distinguish the two cases either.
    """
    current_app.logger.warning(
        "Tenant reference rejected: entity=%s id=%s tenant=%s", entity, entity_id, owner_id
    )
