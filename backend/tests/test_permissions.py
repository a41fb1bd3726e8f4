"""
Tests for the role → permission table.
"""
import pytest

from domain.enums import Permission, Role
from services import permissions


class TestRolePermissions:

    @pytest.mark.unit
    def test_owner_has_every_permission(self):
        for perm in Permission:
            assert permissions.has_permission(Role.OWNER, perm)

    @pytest.mark.unit
    def test_admin_lacks_owner_only_permissions(self):
        for perm in (
            Permission.MANAGE_ORDERS,
            Permission.MANAGE_EMAIL_SETTINGS,
            Permission.EDIT_ADMINS,
            Permission.DELETE_ADMINS,
            Permission.MANAGE_PERMISSIONS,
            Permission.MANAGE_SYSTEM_SETTINGS,
            Permission.MANAGE_PAYMENT_SETTINGS,
        ):
            assert not permissions.has_permission(Role.ADMIN, perm)
        assert permissions.has_permission(Role.ADMIN, Permission.DELETE_CUSTOMERS)
        assert permissions.has_permission(Role.ADMIN, Permission.CREATE_ADMINS)

    @pytest.mark.unit
    def test_operator_subset(self):
        assert permissions.has_permission(Role.OPERATOR, Permission.VIEW_CUSTOMERS)
        assert permissions.has_permission(Role.OPERATOR, Permission.EDIT_ORDERS)
        assert permissions.has_permission(Role.OPERATOR, Permission.SEND_BULK_EMAIL)
        assert not permissions.has_permission(Role.OPERATOR, Permission.DELETE_CUSTOMERS)
        assert not permissions.has_permission(Role.OPERATOR, Permission.CREATE_PRODUCTS)
        assert not permissions.has_permission(Role.OPERATOR, Permission.VIEW_AUDIT_LOGS)

    @pytest.mark.unit
    def test_customer_has_no_admin_permissions(self):
        assert permissions.get_role_permissions(Role.CUSTOMER) == frozenset()

    @pytest.mark.unit
    def test_unknown_role_and_permission_are_denied(self):
        assert permissions.has_permission("SUPERUSER", Permission.VIEW_CUSTOMERS) is False
        assert permissions.has_permission(Role.OWNER, "LAUNCH_ROCKETS") is False

    @pytest.mark.unit
    def test_string_inputs_are_accepted(self):
        assert permissions.has_permission("OPERATOR", "VIEW_CUSTOMERS") is True

    @pytest.mark.unit
    def test_lookup_is_deterministic(self):
        first = [permissions.has_permission(r, p) for r in Role for p in Permission]
        second = [permissions.has_permission(r, p) for r in Role for p in Permission]
        assert first == second

    @pytest.mark.unit
    def test_any_and_all(self):
        perms = [Permission.VIEW_CUSTOMERS, Permission.DELETE_CUSTOMERS]
        assert permissions.has_any_permission(Role.OPERATOR, perms)
        assert not permissions.has_all_permissions(Role.OPERATOR, perms)
        assert permissions.has_all_permissions(Role.ADMIN, perms)

    @pytest.mark.unit
    def test_only_owner_manages_admins(self):
        assert permissions.can_manage_admins(Role.OWNER)
        assert not permissions.can_manage_admins(Role.ADMIN)
        assert not permissions.can_manage_admins("OPERATOR")
