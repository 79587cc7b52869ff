# Overview: Permission system package.
# Re-exports all public APIs for imports from the package root.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    SALES_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    CATALOG_PERMISSIONS,
    STORE_PERMISSIONS,
    USER_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, EMPLOYEE_ROLE_GRANTS
from .helpers import (
    get_all_permission_codes,
    validate_permission_code,
    is_allowed,
    can_grant_role,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "SALES_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "STORE_PERMISSIONS",
    "USER_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "EMPLOYEE_ROLE_GRANTS",
    "get_all_permission_codes",
    "validate_permission_code",
    "is_allowed",
    "can_grant_role",
]
