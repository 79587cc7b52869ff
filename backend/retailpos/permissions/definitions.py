# Overview: All operation definitions organized by category.
# Each operation is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_TRANSACTION",
        "Create Transaction",
        "Ring up a sale, return or refund (POS access)",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_TRANSACTIONS",
        "View Transactions",
        "List and inspect transaction history",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_REPORTS",
        "View Reports",
        "Access transaction statistics",
        PermissionCategory.SALES,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Apply a manual signed stock correction with a reason",
        PermissionCategory.INVENTORY,
    ),
    (
        "VIEW_STOCK_MOVEMENTS",
        "View Stock Movements",
        "View the stock movement ledger of a variant",
        PermissionCategory.INVENTORY,
    ),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_CATALOG",
        "View Catalog",
        "Look up categories, products and variants (scanning at the till)",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_CATALOG",
        "Manage Catalog",
        "Create categories, products and variants",
        PermissionCategory.CATALOG,
    ),
]


# -- STORES --

STORE_PERMISSIONS = [
    (
        "VIEW_STORES",
        "View Stores",
        "View the tenant's stores",
        PermissionCategory.STORES,
    ),
    (
        "MANAGE_STORES",
        "Manage Stores",
        "Create and delete stores",
        PermissionCategory.STORES,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "CREATE_EMPLOYEE",
        "Create Employee",
        "Create manager or cashier accounts (subject to role grants)",
        PermissionCategory.USERS,
    ),
    (
        "VIEW_EMPLOYEES",
        "View Employees",
        "List the tenant's employees",
        PermissionCategory.USERS,
    ),
    (
        "UPDATE_EMPLOYEE",
        "Update Employee",
        "Edit, move or deactivate employee accounts (subject to role grants)",
        PermissionCategory.USERS,
    ),
    (
        "DELETE_EMPLOYEE",
        "Delete Employee",
        "Remove an employee account with no sales or stock history",
        PermissionCategory.USERS,
    ),
]


PERMISSION_DEFINITIONS = (
    SALES_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + CATALOG_PERMISSIONS
    + STORE_PERMISSIONS
    + USER_PERMISSIONS
)
