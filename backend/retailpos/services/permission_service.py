# Overview: Service-layer operations for authorization; applies the static role matrix.

"""
Authorization Gate

WHY: Role checks happen once, against plain data, after the tenant context
is resolved and before any data access.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and unknown operations are denied
- Log denials only: grants are not logged
- Pure decisions: the same (role, operation) always gives the same answer
"""

from __future__ import annotations

from flask import current_app

from ..errors import Forbidden
from ..permissions import is_allowed, can_grant_role
from .token_service import TenantContext


def require_permission(ctx: TenantContext, operation: str) -> None:
    """
    Raise Forbidden unless the caller's role may perform operation.

    MULTI-TENANT: Denials are logged with the caller's tenant id.
    """
    if is_allowed(ctx.role, operation):
        return

    current_app.logger.warning(
        "Permission denied: user=%s role=%s tenant=%s operation=%s",
        ctx.user_id, ctx.role, ctx.owner_id, operation,
    )
    raise Forbidden(
        "You do not have permission to perform this operation",
        details={"required_permission": operation},
    )


def require_can_create_role(ctx: TenantContext, target_role: str) -> None:
    """
    Enforce the employee grant rules on top of CREATE_EMPLOYEE:
    MANAGER may only create CASHIER accounts and nobody creates an OWNER.
    """
    require_permission(ctx, "CREATE_EMPLOYEE")

    if can_grant_role(ctx.role, target_role):
        return

    current_app.logger.warning(
        "Role grant denied: user=%s role=%s tenant=%s target_role=%s",
        ctx.user_id, ctx.role, ctx.owner_id, target_role,
    )
    raise Forbidden(
        f"{ctx.role} cannot create {target_role} accounts",
        details={"target_role": target_role},
    )
