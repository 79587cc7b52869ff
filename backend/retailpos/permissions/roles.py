# Overview: Static role matrix (role -> allowed operations) and employee role grants.

"""
Roles form a hierarchy: every CASHIER operation is a MANAGER operation and
every MANAGER operation is an OWNER operation. The matrix is plain data so
it can be inspected and tested without a database or a request.
"""

from ..models.auth import Role


CASHIER_OPERATIONS = frozenset({
    "CREATE_TRANSACTION",
    "VIEW_CATALOG",
    "VIEW_STORES",
})

MANAGER_OPERATIONS = CASHIER_OPERATIONS | frozenset({
    "VIEW_TRANSACTIONS",
    "VIEW_REPORTS",
    "ADJUST_STOCK",
    "VIEW_STOCK_MOVEMENTS",
    "MANAGE_CATALOG",
    "CREATE_EMPLOYEE",
    "VIEW_EMPLOYEES",
    "UPDATE_EMPLOYEE",
})

OWNER_OPERATIONS = MANAGER_OPERATIONS | frozenset({
    "MANAGE_STORES",
    "DELETE_EMPLOYEE",
})

DEFAULT_ROLE_PERMISSIONS = {
    Role.OWNER: OWNER_OPERATIONS,
    Role.MANAGER: MANAGER_OPERATIONS,
    Role.CASHIER: CASHIER_OPERATIONS,
}

# Which employee roles each role may create or manage. Nobody creates an OWNER:
# owners only come from public registration.
EMPLOYEE_ROLE_GRANTS = {
    Role.OWNER: frozenset({Role.MANAGER, Role.CASHIER}),
    Role.MANAGER: frozenset({Role.CASHIER}),
    Role.CASHIER: frozenset(),
}
