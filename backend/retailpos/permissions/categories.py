# Overview: Permission category constants for grouping related operations.


class PermissionCategory:
    """Operation categories for organization and UI display."""
    SALES = "SALES"
    INVENTORY = "INVENTORY"
    CATALOG = "CATALOG"
    STORES = "STORES"
    USERS = "USERS"
