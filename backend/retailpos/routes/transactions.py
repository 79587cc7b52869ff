# Overview: Flask API routes for transactions; the HTTP entry point of the transaction engine.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import transaction_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

FILTER_ARGS = ("store_id", "cashier_id", "type", "start_date", "end_date")


def _filters() -> dict:
    return {name: request.args.get(name) for name in FILTER_ARGS if request.args.get(name)}


@transactions_bp.post("")
@require_auth
@require_permission("CREATE_TRANSACTION")
def create_transaction():
    """
    Create a SALE, RETURN or REFUND.

    201 with the committed transaction and its items. Failures return the
    error body with no transaction, items or stock change persisted.
    """
    txn = transaction_service.create_transaction(g.tenant_context, request.get_json(silent=True))
    return jsonify(txn.to_dict(include_items=True)), 201


@transactions_bp.get("")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def list_transactions():
    txns = transaction_service.list_transactions(g.tenant_context, _filters())
    return jsonify([t.to_dict() for t in txns]), 200


@transactions_bp.get("/today")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def list_today_transactions():
    txns = transaction_service.list_today_transactions(g.tenant_context, request.args.get("store_id"))
    return jsonify([t.to_dict() for t in txns]), 200


@transactions_bp.get("/stats")
@require_auth
@require_permission("VIEW_REPORTS")
def transaction_stats():
    stats = transaction_service.get_transaction_stats(g.tenant_context, _filters())
    return jsonify(stats), 200


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def get_transaction(transaction_id: int):
    txn = transaction_service.get_transaction(g.tenant_context, transaction_id)
    return jsonify(txn.to_dict(include_items=True)), 200
