# Overview: Utility functions for operation lookups and role checks.

from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS, EMPLOYEE_ROLE_GRANTS


def get_all_permission_codes():
    """Get list of all operation codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def validate_permission_code(code):
    """Check if an operation code is valid."""
    return code in get_all_permission_codes()


def is_allowed(role: str, operation: str) -> bool:
    """
    Decide (role, operation) from the static matrix.

    Unknown roles and unknown operations are denied.
    """
    return operation in DEFAULT_ROLE_PERMISSIONS.get(role, frozenset())


def can_grant_role(actor_role: str, target_role: str) -> bool:
    """Whether a user with actor_role may create an employee with target_role."""
    return target_role in EMPLOYEE_ROLE_GRANTS.get(actor_role, frozenset())
