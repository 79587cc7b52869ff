from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Role:
    """User roles. OWNER is the tenant root; the others belong to an owner."""
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"

    ALL = (OWNER, MANAGER, CASHIER)


class User(db.Model):
    """
    User accounts for authentication and attribution.

    MULTI-TENANT: There is no separate tenant table. An OWNER is their own
    tenant root (owner_id is NULL and their id is the tenant id); MANAGER and
    CASHIER users carry the owner's id in owner_id.

    Email is the login identifier and is unique across the deployment.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "(role = 'OWNER' AND owner_id IS NULL) OR (role <> 'OWNER' AND owner_id IS NOT NULL)",
            name="ck_users_owner_root",
        ),
        db.Index("ix_users_owner_id", "owner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # MULTI-TENANT: NULL only for OWNER (tenant root)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    role = db.Column(db.String(16), nullable=False, default=Role.CASHIER)

    # Home store for employees (owners usually have none)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id", use_alter=True), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", remote_side=[id], backref=db.backref("employees", lazy=True))
    store = db.relationship("Store", foreign_keys=[store_id], backref=db.backref("employees", lazy=True))

    @property
    def tenant_id(self) -> int:
        return self.id if self.role == Role.OWNER else self.owner_id

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "role": self.role,
            "store_id": self.store_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
