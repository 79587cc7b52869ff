# Overview: Flask API routes for catalog operations (categories, products, variants, stock).

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import catalog_service, stock_service
from ..validation import coerce_int

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")
variants_bp = Blueprint("variants", __name__, url_prefix="/api/variants")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_CATALOG")
def list_categories():
    categories = catalog_service.list_categories(g.tenant_context)
    return jsonify([c.to_dict() for c in categories]), 200


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_category():
    category = catalog_service.create_category(g.tenant_context, request.get_json(silent=True))
    return jsonify(category.to_dict()), 201


@products_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_product():
    product = catalog_service.create_product(g.tenant_context, request.get_json(silent=True))
    return jsonify(product.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_product(product_id: int):
    product = catalog_service.get_product(g.tenant_context, product_id)
    data = product.to_dict()
    data["variants"] = [v.to_dict() for v in product.variants]
    return jsonify(data), 200


@products_bp.post("/<int:product_id>/variants")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_variant(product_id: int):
    variant = catalog_service.create_variant(g.tenant_context, product_id, request.get_json(silent=True))
    return jsonify(variant.to_dict()), 201


@variants_bp.get("/<int:variant_id>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_variant(variant_id: int):
    variant = catalog_service.get_variant(g.tenant_context, variant_id)
    return jsonify(variant.to_dict()), 200


@variants_bp.get("/sku/<path:sku>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_variant_by_sku(sku: str):
    variant = catalog_service.lookup_variant(g.tenant_context, "sku", sku)
    return jsonify(variant.to_dict()), 200


@variants_bp.get("/barcode/<path:code>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_variant_by_barcode(code: str):
    variant = catalog_service.lookup_variant(g.tenant_context, "barcode", code)
    return jsonify(variant.to_dict()), 200


@variants_bp.patch("/<int:variant_id>/stock")
@require_auth
@require_permission("ADJUST_STOCK")
def adjust_stock(variant_id: int):
    result = stock_service.adjust_stock(g.tenant_context, variant_id, request.get_json(silent=True))
    return jsonify(result), 200


@variants_bp.get("/<int:variant_id>/movements")
@require_auth
@require_permission("VIEW_STOCK_MOVEMENTS")
def list_movements(variant_id: int):
    limit = request.args.get("limit")
    limit = min(max(coerce_int(limit, "limit"), 1), 500) if limit else 100
    movements = stock_service.list_movements(g.tenant_context, variant_id, limit=limit)
    return jsonify([m.to_dict() for m in movements]), 200
