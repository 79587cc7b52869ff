# Overview: Service-layer operations for signed credentials; derives the trusted tenant context.

"""
Credential Issuing and Tenant Context Resolution

WHY: The tenant a request acts for must come from something the server
signed, never from a request parameter or body field. Every tenant-scoped
service takes the resolved TenantContext as an explicit argument.

CREDENTIAL: HS256 JWT with claims
    {"userId": str, "email": str, "role": OWNER|MANAGER|CASHIER, "ownerId": str,
     "iat": int, "exp": int}
For OWNER credentials ownerId == userId (the owner is their own tenant).

resolve_credential() is pure: it verifies the signature and expiry and
checks the claims' shape. It does not touch the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import jwt
from flask import current_app

from ..errors import Unauthenticated
from ..models import Role, User
from ..time_utils import utcnow


REQUIRED_CLAIMS = ("userId", "email", "role", "ownerId")


@dataclass(frozen=True)
class TenantContext:
    """
    Trusted identity of the caller.

    owner_id is the tenant id every query and write is scoped to.
    """
    user_id: int
    email: str
    role: str
    owner_id: int

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role,
            "owner_id": self.owner_id,
        }


def issue_credential(user: User, *, expires_in: int | None = None) -> str:
    """
    Sign a credential for user.

    The tenant id is derived from the stored user row: an OWNER's own id, or
    the owner_id of an employee.
    """
    if user.role not in Role.ALL:
        raise ValueError(f"Unknown role {user.role!r}")

    owner_id = user.id if user.role == Role.OWNER else user.owner_id
    if owner_id is None:
        raise ValueError("Employee has no owner")

    if expires_in is None:
        expires_in = current_app.config["JWT_EXPIRES_IN_SECONDS"]

    now = utcnow()
    claims = {
        "userId": str(user.id),
        "email": user.email,
        "role": user.role,
        "ownerId": str(owner_id),
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def extract_bearer_token(auth_header: str | None) -> str:
    """Return the token from an 'Authorization: Bearer <token>' header value."""
    if not auth_header or not auth_header.startswith("Bearer "):
        raise Unauthenticated("No token provided")
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise Unauthenticated("No token provided")
    return token


def _parse_id(value) -> int:
    if isinstance(value, bool):
        raise Unauthenticated("Invalid or expired token")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    raise Unauthenticated("Invalid or expired token")


def resolve_credential(token: str | None) -> TenantContext:
    """
    Verify a signed credential and return the caller's TenantContext.

    Raises Unauthenticated when the token is absent, malformed, expired,
    signed with another key, or its claims are inconsistent.
    """
    if not token:
        raise Unauthenticated("No token provided")

    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid or expired token")

    missing = [name for name in REQUIRED_CLAIMS if claims.get(name) in (None, "")]
    if missing:
        raise Unauthenticated("Invalid or expired token")

    role = claims["role"]
    if role not in Role.ALL:
        raise Unauthenticated("Invalid or expired token")

    user_id = _parse_id(claims["userId"])
    owner_id = _parse_id(claims["ownerId"])

    # An owner is its own tenant; an employee never is.
    if role == Role.OWNER and owner_id != user_id:
        raise Unauthenticated("Invalid or expired token")
    if role != Role.OWNER and owner_id == user_id:
        raise Unauthenticated("Invalid or expired token")

    return TenantContext(
        user_id=user_id,
        email=str(claims["email"]),
        role=role,
        owner_id=owner_id,
    )
