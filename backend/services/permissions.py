"""
Role → permission table.

Pure lookups, no I/O. Every administrative route guards itself with
has_permission() through deps.require_permission().
"""
from typing import Iterable

from domain.enums import Permission, Role

P = Permission

_OPERATOR = frozenset({
    P.VIEW_CUSTOMERS,
    P.CREATE_CUSTOMERS,
    P.EDIT_CUSTOMERS,
    P.EXPORT_CUSTOMERS,
    P.VIEW_COURSES,
    P.VIEW_TAGS,
    P.VIEW_PRODUCTS,
    P.VIEW_ORDERS,
    P.EDIT_ORDERS,
    P.VIEW_EMAIL_TEMPLATES,
    P.CREATE_EMAIL_TEMPLATES,
    P.EDIT_EMAIL_TEMPLATES,
    P.SEND_INDIVIDUAL_EMAIL,
    P.SEND_BULK_EMAIL,
    P.VIEW_EMAIL_LOGS,
    P.EDIT_PROFILE,
})

# Owner-only capabilities
_OWNER_ONLY = frozenset({
    P.MANAGE_ORDERS,
    P.MANAGE_EMAIL_SETTINGS,
    P.EDIT_ADMINS,
    P.DELETE_ADMINS,
    P.MANAGE_PERMISSIONS,
    P.MANAGE_SYSTEM_SETTINGS,
    P.MANAGE_PAYMENT_SETTINGS,
})

_OWNER = frozenset(Permission)
_ADMIN = _OWNER - _OWNER_ONLY

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.OWNER: _OWNER,
    Role.ADMIN: _ADMIN,
    Role.OPERATOR: _OPERATOR,
    Role.CUSTOMER: frozenset(),
}


def _coerce_role(role) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def get_role_permissions(role) -> frozenset[Permission]:
    """Permissions granted to a role; unknown roles get none."""
    r = _coerce_role(role)
    if r is None:
        return frozenset()
    return ROLE_PERMISSIONS[r]


def has_permission(role, permission: Permission | str) -> bool:
    try:
        perm = Permission(permission)
    except ValueError:
        return False
    return perm in get_role_permissions(role)


def has_any_permission(role, permissions: Iterable[Permission | str]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role, permissions: Iterable[Permission | str]) -> bool:
    return all(has_permission(role, p) for p in permissions)


def can_manage_admins(role) -> bool:
    """Only the owner may edit or delete other administrators."""
    return _coerce_role(role) == Role.OWNER
