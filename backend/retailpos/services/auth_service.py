# Overview: Service-layer operations for auth; owner registration, login and employee accounts.

"""
Authentication Service

WHY: Every action must be attributable to a user, and every user belongs to
exactly one tenant. Public registration only ever creates OWNER accounts;
MANAGER and CASHIER accounts are created by an authenticated owner or
manager, inside that caller's tenant.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters; upper, lower, digit and special character required
- Login failures do not reveal whether the email exists
- Email is the login identifier and is unique across the deployment
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateIdentifier, Forbidden, NotFound, Unauthenticated, ValidationError
from ..extensions import db
from ..models import Role, StockMovement, Transaction, User
from ..permissions import can_grant_role
from ..validation import coerce_int, reject_tenant_fields, require_choice, require_text
from .concurrency import begin_write_unit, run_with_retry
from .permission_service import require_can_create_role, require_permission
from .tenant_service import require_store_in_tenant
from .token_service import TenantContext, issue_credential


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REGISTER_FIELDS = {"email", "password", "first_name", "last_name", "phone"}
EMPLOYEE_FIELDS = REGISTER_FIELDS | {"role", "store_id"}
EMPLOYEE_UPDATE_FIELDS = {"first_name", "last_name", "phone", "store_id", "is_active"}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not isinstance(password, str):
        raise PasswordValidationError("password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt. Stored as str."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    # bcrypt.checkpw compares in constant time
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_email(payload: dict) -> str:
    email = require_text(payload, "email", max_length=255).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email


def _check_fields(payload, allowed: set[str]) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    reject_tenant_fields(payload)
    for key in payload:
        if key not in allowed:
            raise ValidationError(f"Field not allowed: {key}")
    return payload


def _optional_phone(payload: dict) -> str | None:
    phone = payload.get("phone")
    if phone is None:
        return None
    if not isinstance(phone, str):
        raise ValidationError("phone must be a string")
    phone = phone.strip()
    if len(phone) > 32:
        raise ValidationError("phone exceeds max length 32")
    return phone or None


def _insert_user(user: User) -> User:
    if db.session.query(User.id).filter_by(email=user.email).first():
        raise DuplicateIdentifier("User with this email already exists")

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent registration with the same email
        db.session.rollback()
        raise DuplicateIdentifier("User with this email already exists")
    return user


def register_owner(payload: dict) -> tuple[User, str]:
    """
    Create a new OWNER (tenant root) and sign their first credential.

    MULTI-TENANT: The new user's id becomes the tenant id. owner_id stays NULL.
    """
    payload = _check_fields(payload, REGISTER_FIELDS)

    missing = [f for f in ("email", "password", "first_name", "last_name") if not payload.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    email = _normalize_email(payload)
    user = User(
        email=email,
        password_hash=hash_password(payload["password"]),
        first_name=require_text(payload, "first_name", max_length=120),
        last_name=require_text(payload, "last_name", max_length=120),
        phone=_optional_phone(payload),
        role=Role.OWNER,
        owner_id=None,
    )
    _insert_user(user)

    current_app.logger.info("Owner registered: user=%s", user.id)
    return user, issue_credential(user)


def authenticate(email, password) -> tuple[User, str]:
    """
    Verify email + password and sign a credential.

    Raises Unauthenticated with one message for unknown email and wrong
    password; Forbidden for a deactivated account with valid credentials.
    """
    if not email or not password or not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError("Please provide email and password")

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        current_app.logger.info("Login failed for email=%s", email)
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        current_app.logger.info("Login refused for deactivated user=%s", user.id)
        raise Forbidden("Your account has been deactivated")

    return user, issue_credential(user)


def get_current_user(ctx: TenantContext) -> User:
    user = db.session.get(User, ctx.user_id)
    if user is None or user.tenant_id != ctx.owner_id:
        raise Unauthenticated("Invalid or expired token")
    return user


def create_employee(ctx: TenantContext, payload: dict) -> User:
    """
    Create a MANAGER or CASHIER in the caller's tenant.

    MULTI-TENANT: owner_id is the caller's tenant id; a client-supplied
    owner_id is rejected. store_id, when given, must belong to the tenant.
    """
    require_permission(ctx, "CREATE_EMPLOYEE")
    payload = _check_fields(payload, EMPLOYEE_FIELDS)

    missing = [f for f in ("email", "password", "first_name", "last_name", "role") if not payload.get(f)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    role = require_choice(payload, "role", Role.ALL)
    require_can_create_role(ctx, role)

    store_id = None
    if payload.get("store_id") is not None:
        store_id = require_store_in_tenant(coerce_int(payload["store_id"], "store_id"), ctx.owner_id).id

    user = User(
        email=_normalize_email(payload),
        password_hash=hash_password(payload["password"]),
        first_name=require_text(payload, "first_name", max_length=120),
        last_name=require_text(payload, "last_name", max_length=120),
        phone=_optional_phone(payload),
        role=role,
        owner_id=ctx.owner_id,
        store_id=store_id,
    )
    _insert_user(user)

    current_app.logger.info(
        "Employee created: user=%s role=%s tenant=%s by=%s", user.id, role, ctx.owner_id, ctx.user_id
    )
    return user


def list_employees(ctx: TenantContext) -> list[User]:
    require_permission(ctx, "VIEW_EMPLOYEES")
    return (
        db.session.query(User)
        .filter(User.owner_id == ctx.owner_id)
        .order_by(User.id)
        .all()
    )


def _require_employee_in_tenant(employee_id: int, owner_id: int) -> User:
    # Owners have no owner_id, so they never match here
    employee = db.session.query(User).filter_by(id=employee_id, owner_id=owner_id).first()
    if employee is None:
        current_app.logger.warning(
            "Tenant reference rejected: entity=employee id=%s tenant=%s", employee_id, owner_id
        )
        raise NotFound("Employee not found")
    return employee


def _require_can_manage(ctx: TenantContext, employee: User) -> None:
    """Managers only manage cashiers of their own store."""
    if not can_grant_role(ctx.role, employee.role):
        raise Forbidden(f"{ctx.role} cannot manage {employee.role} accounts")

    if ctx.role == Role.MANAGER:
        manager = db.session.get(User, ctx.user_id)
        if manager is None or manager.store_id is None or manager.store_id != employee.store_id:
            raise Forbidden("Managers can only manage cashiers in their own store")


def update_employee(ctx: TenantContext, employee_id: int, payload: dict) -> User:
    """
    Edit names, phone, home store or active flag of an employee.

    Setting is_active to false is how an account is switched off: the user
    can no longer log in. Role and email are fixed once created.
    """
    require_permission(ctx, "UPDATE_EMPLOYEE")
    payload = _check_fields(payload, EMPLOYEE_UPDATE_FIELDS)

    employee = _require_employee_in_tenant(employee_id, ctx.owner_id)
    _require_can_manage(ctx, employee)

    if "first_name" in payload:
        employee.first_name = require_text(payload, "first_name", max_length=120)
    if "last_name" in payload:
        employee.last_name = require_text(payload, "last_name", max_length=120)
    if "phone" in payload:
        employee.phone = _optional_phone(payload)
    if "store_id" in payload:
        store_id = payload["store_id"]
        if store_id is not None:
            store_id = require_store_in_tenant(coerce_int(store_id, "store_id"), ctx.owner_id).id
        employee.store_id = store_id
    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        employee.is_active = payload["is_active"]

    db.session.commit()
    current_app.logger.info(
        "Employee updated: user=%s tenant=%s by=%s fields=%s",
        employee.id, ctx.owner_id, ctx.user_id, sorted(payload),
    )
    return employee


def delete_employee(ctx: TenantContext, employee_id: int) -> None:
    """
    Remove an employee that never rang up a sale or moved stock.

    Employees with history are kept for attribution; deactivate them instead.
    """
    require_permission(ctx, "DELETE_EMPLOYEE")

    def _op():
        try:
            begin_write_unit()
            employee = _require_employee_in_tenant(employee_id, ctx.owner_id)
            _require_can_manage(ctx, employee)

            history = {
                "transactions": db.session.query(Transaction.id).filter_by(cashier_id=employee.id).count(),
                "stock_movements": db.session.query(StockMovement.id).filter_by(actor_user_id=employee.id).count(),
            }
            if any(history.values()):
                raise ValidationError(
                    "Cannot delete an employee with transactions or stock movements; deactivate instead",
                    details=history,
                )
            db.session.delete(employee)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    run_with_retry(_op)
    current_app.logger.info("Employee deleted: user=%s tenant=%s by=%s", employee_id, ctx.owner_id, ctx.user_id)
