"""
Transaction Service - tenant-isolated sale / return / refund commits

WHY: A transaction row, its items and every stock delta they imply must be
applied together or not at all, for one tenant only, under concurrent
access from any number of workers and hosts.

FLOW (TransactionCommitter.state):
    VALIDATING  payload shape, role check, tenant ownership of store /
                cashier / variants, advisory stock pre-check (SALE only)
    COMPUTING   line subtotals, totals, change, transaction number
    COMMITTING  one DB transaction: insert transaction + items, apply every
                stock delta through the stock ledger
    COMMITTED | REJECTED

Everything before COMMITTING only reads. The only failures possible inside
COMMITTING are stock and uniqueness conflicts, and both roll back the whole
unit.
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateIdentifier, InsufficientStock, PosError, ValidationError
from ..extensions import db
from ..models import (
    MovementType,
    PaymentMethod,
    Transaction,
    TransactionItem,
    TransactionType,
)
from ..time_utils import parse_iso_datetime, start_of_utc_day
from ..validation import (
    MAX_LINE_QUANTITY,
    MAX_PRICE_CENTS,
    coerce_int,
    reject_tenant_fields,
    require_choice,
    require_int,
)
from .concurrency import begin_write_unit, run_with_retry
from .permission_service import require_permission
from .stock_service import apply_stock_delta
from .tenant_service import SaleReferences, require_transaction_in_tenant, validate_sale_references
from .token_service import TenantContext


TRANSACTION_FIELDS = {
    "store_id",
    "cashier_id",
    "type",
    "items",
    "payment_method",
    "amount_paid_cents",
    "tax_cents",
    "discount_cents",
    "notes",
}
ITEM_FIELDS = {"product_variant_id", "quantity", "discount_cents"}

MAX_NOTES_LENGTH = 2000
_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

STOCK_DIRECTION = {
    TransactionType.SALE: -1,
    TransactionType.RETURN: 1,
    TransactionType.REFUND: 1,
}
MOVEMENT_FOR_TYPE = {
    TransactionType.SALE: MovementType.SALE,
    TransactionType.RETURN: MovementType.RETURN,
    TransactionType.REFUND: MovementType.REFUND,
}


class CommitState:
    VALIDATING = "VALIDATING"
    COMPUTING = "COMPUTING"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class LineRequest:
    product_variant_id: int
    quantity: int
    discount_cents: int = 0


@dataclass(frozen=True)
class TransactionRequest:
    store_id: int
    cashier_id: int
    type: str
    items: tuple[LineRequest, ...]
    payment_method: str
    amount_paid_cents: int | None = None
    tax_cents: int = 0
    discount_cents: int = 0
    notes: str | None = None


@dataclass(frozen=True)
class ComputedLine:
    product_variant_id: int
    quantity: int
    unit_price_cents: int
    discount_cents: int
    subtotal_cents: int


@dataclass(frozen=True)
class ComputedTotals:
    lines: tuple[ComputedLine, ...]
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    amount_paid_cents: int
    change_cents: int


def generate_transaction_number(now_ms: int | None = None) -> str:
    """
    TXN-<epoch milliseconds>-<9 random upper-case alphanumerics>.

    Collision resistant, not collision free: the unique constraint on
    transactions.transaction_no is what guarantees uniqueness.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_NUMBER_ALPHABET) for _ in range(9))
    return f"TXN-{now_ms}-{suffix}"


def parse_transaction_request(ctx: TenantContext, payload: dict) -> TransactionRequest:
    """Validate and normalize a create-transaction payload."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    reject_tenant_fields(payload)
    for key in payload:
        if key not in TRANSACTION_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    missing = [name for name in ("store_id", "items", "payment_method") if payload.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    store_id = require_int(payload, "store_id", minimum=1)
    # Defaults to the caller
    cashier_id = require_int(payload, "cashier_id", minimum=1, default=ctx.user_id)
    txn_type = require_choice(payload, "type", TransactionType.ALL, default=TransactionType.SALE)
    payment_method = require_choice(payload, "payment_method", PaymentMethod.ALL)

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        for key in raw:
            if key not in ITEM_FIELDS:
                raise ValidationError(f"items[{index}]: field not allowed: {key}")
        if raw.get("product_variant_id") is None:
            raise ValidationError(f"items[{index}].product_variant_id is required")
        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")

        quantity = coerce_int(raw["quantity"], f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")

        discount = 0
        if raw.get("discount_cents") is not None:
            discount = coerce_int(raw["discount_cents"], f"items[{index}].discount_cents")
            if discount < 0:
                raise ValidationError(f"items[{index}].discount_cents must be >= 0")
            if discount > MAX_PRICE_CENTS:
                raise ValidationError(f"items[{index}].discount_cents cannot exceed {MAX_PRICE_CENTS}")

        items.append(LineRequest(
            product_variant_id=coerce_int(raw["product_variant_id"], f"items[{index}].product_variant_id"),
            quantity=quantity,
            discount_cents=discount,
        ))

    amount_paid = None
    if payload.get("amount_paid_cents") is not None:
        amount_paid = require_int(payload, "amount_paid_cents", minimum=0, maximum=MAX_PRICE_CENTS)

    notes = payload.get("notes")
    if notes is not None:
        if not isinstance(notes, str):
            raise ValidationError("notes must be a string")
        notes = notes.strip() or None
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes exceeds max length {MAX_NOTES_LENGTH}")

    return TransactionRequest(
        store_id=store_id,
        cashier_id=cashier_id,
        type=txn_type,
        items=tuple(items),
        payment_method=payment_method,
        amount_paid_cents=amount_paid,
        tax_cents=require_int(payload, "tax_cents", minimum=0, maximum=MAX_PRICE_CENTS, default=0),
        discount_cents=require_int(payload, "discount_cents", minimum=0, maximum=MAX_PRICE_CENTS, default=0),
        notes=notes,
    )


def compute_totals(request: TransactionRequest, unit_prices: dict[int, int]) -> ComputedTotals:
    """
    Pure financial computation in integer cents.

        line subtotal = unit_price * quantity - line discount
        subtotal      = sum(line subtotals)
        total         = subtotal + tax - discount
        amount_paid   = supplied, else total
        change        = max(0, amount_paid - total)
    """
    lines = []
    for index, item in enumerate(request.items):
        unit_price = unit_prices[item.product_variant_id]
        gross = unit_price * item.quantity
        if item.discount_cents > gross:
            raise ValidationError(f"items[{index}].discount_cents exceeds the line amount")
        lines.append(ComputedLine(
            product_variant_id=item.product_variant_id,
            quantity=item.quantity,
            unit_price_cents=unit_price,
            discount_cents=item.discount_cents,
            subtotal_cents=gross - item.discount_cents,
        ))

    subtotal = sum(line.subtotal_cents for line in lines)
    total = subtotal + request.tax_cents - request.discount_cents
    if total < 0:
        raise ValidationError("discount_cents exceeds subtotal plus tax")

    amount_paid = total if request.amount_paid_cents is None else request.amount_paid_cents

    return ComputedTotals(
        lines=tuple(lines),
        subtotal_cents=subtotal,
        tax_cents=request.tax_cents,
        discount_cents=request.discount_cents,
        total_cents=total,
        amount_paid_cents=amount_paid,
        change_cents=max(0, amount_paid - total),
    )


def _is_transaction_number_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "transaction_no" in message


@dataclass
class TransactionCommitter:
    """
    Runs one create-transaction request through validate, compute, commit.

    ctx is the caller's resolved TenantContext; the tenant id written to the
    transaction and used for every lookup comes from it and nowhere else.
    """
    ctx: TenantContext
    payload: dict
    state: str = CommitState.VALIDATING
    request: TransactionRequest | None = None
    references: SaleReferences | None = None
    totals: ComputedTotals | None = None
    attempts: int = 0
    history: list[str] = field(default_factory=list)

    def _enter(self, state: str) -> None:
        self.state = state
        self.history.append(state)

    def run(self) -> Transaction:
        self._enter(CommitState.VALIDATING)
        try:
            self.validate()
            self._enter(CommitState.COMPUTING)
            self.compute()
            self._enter(CommitState.COMMITTING)
            txn = self.commit()
        except PosError as exc:
            self._enter(CommitState.REJECTED)
            current_app.logger.info(
                "Transaction rejected: tenant=%s user=%s category=%s reason=%s",
                self.ctx.owner_id, self.ctx.user_id, exc.category, exc.message,
            )
            raise
        except Exception:
            self._enter(CommitState.REJECTED)
            raise

        self._enter(CommitState.COMMITTED)
        current_app.logger.info(
            "Transaction committed: no=%s type=%s tenant=%s store=%s total_cents=%s items=%s",
            txn.transaction_no, txn.type, txn.owner_id, txn.store_id, txn.total_cents, len(self.totals.lines),
        )
        return txn

    def validate(self) -> None:
        require_permission(self.ctx, "CREATE_TRANSACTION")
        self.request = parse_transaction_request(self.ctx, self.payload)
        self.references = validate_sale_references(
            owner_id=self.ctx.owner_id,
            store_id=self.request.store_id,
            cashier_id=self.request.cashier_id,
            variant_ids=[item.product_variant_id for item in self.request.items],
        )
        if self.request.type == TransactionType.SALE:
            self._precheck_stock()

    def _precheck_stock(self) -> None:
        """
        Advisory fast-fail before any write. Concurrent sales can still
        exhaust stock after this passes; the conditional decrement inside
        the commit is the authoritative check.
        """
        requested: dict[int, int] = {}
        for item in self.request.items:
            requested[item.product_variant_id] = requested.get(item.product_variant_id, 0) + item.quantity

        insufficient = []
        for variant_id, quantity in requested.items():
            variant = self.references.variants[variant_id]
            if variant.stock_quantity < quantity:
                insufficient.append({
                    "product_variant_id": variant_id,
                    "sku": variant.sku,
                    "available": variant.stock_quantity,
                    "requested": quantity,
                })

        if insufficient:
            first = insufficient[0]
            raise InsufficientStock(
                f"Insufficient stock for variant {first['sku']}. "
                f"Available: {first['available']}, Requested: {first['requested']}",
                details={"items": insufficient},
            )

    def compute(self) -> None:
        prices = {
            variant_id: variant.selling_price_cents
            for variant_id, variant in self.references.variants.items()
        }
        self.totals = compute_totals(self.request, prices)

    def commit(self) -> Transaction:
        max_numbers = current_app.config.get("TRANSACTION_NUMBER_ATTEMPTS", 3)

        for _ in range(max_numbers):
            self.attempts += 1
            number = generate_transaction_number()
            try:
                return run_with_retry(lambda: self._write_unit(number))
            except IntegrityError as exc:
                if not _is_transaction_number_collision(exc):
                    raise
                current_app.logger.warning("Transaction number collision on %s, regenerating", number)

        raise DuplicateIdentifier("Could not allocate a unique transaction number; retry the request")

    def _write_unit(self, number: str) -> Transaction:
        request = self.request
        totals = self.totals
        direction = STOCK_DIRECTION[request.type]

        try:
            begin_write_unit()

            txn = Transaction(
                transaction_no=number,
                type=request.type,
                owner_id=self.ctx.owner_id,
                store_id=self.references.store.id,
                cashier_id=self.references.cashier.id,
                subtotal_cents=totals.subtotal_cents,
                tax_cents=totals.tax_cents,
                discount_cents=totals.discount_cents,
                total_cents=totals.total_cents,
                payment_method=request.payment_method,
                amount_paid_cents=totals.amount_paid_cents,
                change_cents=totals.change_cents,
                notes=request.notes,
            )
            db.session.add(txn)
            db.session.flush()

            for line in totals.lines:
                db.session.add(TransactionItem(
                    transaction_id=txn.id,
                    product_variant_id=line.product_variant_id,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    discount_cents=line.discount_cents,
                    subtotal_cents=line.subtotal_cents,
                ))

            # Lock rows in id order so overlapping sales never wait on each other in a cycle
            for line in sorted(totals.lines, key=lambda computed: computed.product_variant_id):
                apply_stock_delta(
                    variant_id=line.product_variant_id,
                    delta=direction * line.quantity,
                    owner_id=self.ctx.owner_id,
                    movement_type=MOVEMENT_FOR_TYPE[request.type],
                    reason=f"{request.type.title()} {number}",
                    actor_user_id=self.ctx.user_id,
                    transaction_id=txn.id,
                )

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return txn


def create_transaction(ctx: TenantContext, payload: dict) -> Transaction:
    """Run the full engine for one create-transaction request."""
    return TransactionCommitter(ctx=ctx, payload=payload).run()


# -- Tenant-filtered reads --


def _parse_date_filter(value: str | None, name: str) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


def _filtered_query(ctx: TenantContext, filters: dict):
    query = db.session.query(Transaction).filter(Transaction.owner_id == ctx.owner_id)

    if filters.get("store_id"):
        query = query.filter(Transaction.store_id == coerce_int(filters["store_id"], "store_id"))
    if filters.get("cashier_id"):
        query = query.filter(Transaction.cashier_id == coerce_int(filters["cashier_id"], "cashier_id"))
    if filters.get("type"):
        txn_type = str(filters["type"]).upper()
        if txn_type not in TransactionType.ALL:
            raise ValidationError(f"type must be one of: {', '.join(TransactionType.ALL)}")
        query = query.filter(Transaction.type == txn_type)

    start = _parse_date_filter(filters.get("start_date"), "start_date")
    end = _parse_date_filter(filters.get("end_date"), "end_date")
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    return query


def list_transactions(ctx: TenantContext, filters: dict | None = None) -> list[Transaction]:
    require_permission(ctx, "VIEW_TRANSACTIONS")
    return (
        _filtered_query(ctx, filters or {})
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )


def list_today_transactions(ctx: TenantContext, store_id=None) -> list[Transaction]:
    require_permission(ctx, "VIEW_TRANSACTIONS")
    query = _filtered_query(ctx, {"store_id": store_id})
    return (
        query.filter(Transaction.created_at >= start_of_utc_day())
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )


def get_transaction(ctx: TenantContext, transaction_id: int) -> Transaction:
    require_permission(ctx, "VIEW_TRANSACTIONS")
    return require_transaction_in_tenant(transaction_id, ctx.owner_id)


def get_transaction_stats(ctx: TenantContext, filters: dict | None = None) -> dict:
    """Revenue and counts for SALE transactions, overall and for the current UTC day."""
    require_permission(ctx, "VIEW_REPORTS")
    filters = dict(filters or {})
    filters["type"] = TransactionType.SALE

    def _aggregate(query):
        revenue, count = query.with_entities(
            func.coalesce(func.sum(Transaction.total_cents), 0),
            func.count(Transaction.id),
        ).one()
        return int(revenue or 0), int(count or 0)

    base = _filtered_query(ctx, filters)
    total_revenue, total_count = _aggregate(base)
    today_revenue, today_count = _aggregate(base.filter(Transaction.created_at >= start_of_utc_day()))

    return {
        "total_revenue_cents": total_revenue,
        "total_transactions": total_count,
        "today_revenue_cents": today_revenue,
        "today_transactions": today_count,
    }
