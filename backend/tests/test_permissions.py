# Overview: Pytest coverage for the static role matrix and employee grant rules.

import pytest

from retailpos.errors import Forbidden
from retailpos.models import Role
from retailpos.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    can_grant_role,
    get_all_permission_codes,
    is_allowed,
    validate_permission_code,
)
from retailpos.services.permission_service import require_can_create_role, require_permission
from retailpos.services.token_service import TenantContext


MATRIX = {
    "CREATE_TRANSACTION": (True, True, True),
    "VIEW_TRANSACTIONS": (True, True, False),
    "VIEW_REPORTS": (True, True, False),
    "ADJUST_STOCK": (True, True, False),
    "VIEW_STOCK_MOVEMENTS": (True, True, False),
    "VIEW_CATALOG": (True, True, True),
    "MANAGE_CATALOG": (True, True, False),
    "VIEW_STORES": (True, True, True),
    "MANAGE_STORES": (True, False, False),
    "CREATE_EMPLOYEE": (True, True, False),
    "VIEW_EMPLOYEES": (True, True, False),
    "UPDATE_EMPLOYEE": (True, True, False),
    "DELETE_EMPLOYEE": (True, False, False),
}


def ctx(role):
    return TenantContext(user_id=2, email="u@x.test", role=role, owner_id=1)


class TestMatrix:

    @pytest.mark.parametrize("operation,expected", MATRIX.items())
    def test_matrix(self, operation, expected):
        owner, manager, cashier = expected
        assert is_allowed(Role.OWNER, operation) is owner
        assert is_allowed(Role.MANAGER, operation) is manager
        assert is_allowed(Role.CASHIER, operation) is cashier

    def test_every_operation_is_defined(self):
        assert set(MATRIX) == set(get_all_permission_codes())
        for operations in DEFAULT_ROLE_PERMISSIONS.values():
            assert all(validate_permission_code(op) for op in operations)

    def test_roles_form_a_hierarchy(self):
        cashier = DEFAULT_ROLE_PERMISSIONS[Role.CASHIER]
        manager = DEFAULT_ROLE_PERMISSIONS[Role.MANAGER]
        owner = DEFAULT_ROLE_PERMISSIONS[Role.OWNER]
        assert cashier <= manager <= owner

    def test_decision_is_stable(self):
        first = [(role, op, is_allowed(role, op)) for role in Role.ALL for op in MATRIX]
        for _ in range(3):
            assert [(role, op, is_allowed(role, op)) for role in Role.ALL for op in MATRIX] == first

    def test_unknown_role_and_operation_denied(self):
        assert not is_allowed("ADMIN", "CREATE_TRANSACTION")
        assert not is_allowed(Role.OWNER, "DROP_DATABASE")


class TestEmployeeGrants:

    @pytest.mark.parametrize("actor,target,expected", [
        (Role.OWNER, Role.MANAGER, True),
        (Role.OWNER, Role.CASHIER, True),
        (Role.OWNER, Role.OWNER, False),
        (Role.MANAGER, Role.CASHIER, True),
        (Role.MANAGER, Role.MANAGER, False),
        (Role.MANAGER, Role.OWNER, False),
        (Role.CASHIER, Role.CASHIER, False),
    ])
    def test_grants(self, actor, target, expected):
        assert can_grant_role(actor, target) is expected


class TestPermissionService:

    def test_require_permission_allows(self, app):
        require_permission(ctx(Role.MANAGER), "ADJUST_STOCK")

    def test_require_permission_denies_with_operation(self, app):
        with pytest.raises(Forbidden) as excinfo:
            require_permission(ctx(Role.CASHIER), "ADJUST_STOCK")
        assert excinfo.value.details == {"required_permission": "ADJUST_STOCK"}
        assert excinfo.value.status_code == 403

    def test_manager_cannot_create_manager(self, app):
        with pytest.raises(Forbidden):
            require_can_create_role(ctx(Role.MANAGER), Role.MANAGER)

    def test_cashier_cannot_create_anyone(self, app):
        with pytest.raises(Forbidden):
            require_can_create_role(ctx(Role.CASHIER), Role.CASHIER)
