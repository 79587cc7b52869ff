from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class TransactionType:
    SALE = "SALE"
    RETURN = "RETURN"
    REFUND = "REFUND"

    ALL = (SALE, RETURN, REFUND)


class PaymentMethod:
    CASH = "CASH"
    CARD = "CARD"
    MOBILE_PAYMENT = "MOBILE_PAYMENT"

    ALL = (CASH, CARD, MOBILE_PAYMENT)


class Transaction(db.Model):
    """
    Committed sale, return or refund.

    Rows are written once, together with their items and stock movements,
    and never updated. Corrections are new RETURN/REFUND transactions.

    MULTI-TENANT: owner_id is denormalized from the caller's credential for
    tenant-filtered reads. It is deliberately not a foreign key; the
    referenced store and cashier were validated against it before insert.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_no", name="uq_transactions_transaction_no"),
        db.Index("ix_transactions_owner_created", "owner_id", "created_at"),
        db.Index("ix_transactions_owner_type", "owner_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_no = db.Column(db.String(64), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=TransactionType.SALE)

    owner_id = db.Column(db.Integer, nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    store = db.relationship("Store", backref=db.backref("transactions", lazy=True))
    cashier = db.relationship("User")

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} no={self.transaction_no!r} type={self.type}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "transaction_no": self.transaction_no,
            "type": self.type,
            "owner_id": self.owner_id,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_paid_cents": self.amount_paid_cents,
            "change_cents": self.change_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """Line item of a transaction. subtotal = unit_price * quantity - discount."""
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("items", lazy=True, order_by="TransactionItem.id"),
    )
    product_variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_variant_id": self.product_variant_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "subtotal_cents": self.subtotal_cents,
        }
