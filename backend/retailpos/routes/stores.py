# Overview: Flask API routes for stores operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import store_service


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_auth
@require_permission("VIEW_STORES")
def list_stores():
    stores = store_service.list_stores(g.tenant_context)
    return jsonify([store.to_dict() for store in stores]), 200


@stores_bp.post("")
@require_auth
@require_permission("MANAGE_STORES")
def create_store():
    store = store_service.create_store(g.tenant_context, request.get_json(silent=True))
    return jsonify(store.to_dict()), 201


@stores_bp.get("/<int:store_id>")
@require_auth
@require_permission("VIEW_STORES")
def get_store(store_id: int):
    store = store_service.get_store(g.tenant_context, store_id)
    return jsonify(store.to_dict()), 200


@stores_bp.delete("/<int:store_id>")
@require_auth
@require_permission("MANAGE_STORES")
def delete_store(store_id: int):
    store_service.delete_store(g.tenant_context, store_id)
    return jsonify({"deleted": True, "id": store_id}), 200
