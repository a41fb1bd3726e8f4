"""
Shared FastAPI dependencies.

Routers import auth guards and pagination from here so permission checks sit
at the top of every handler signature.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query, Request

from config import settings
from domain.enums import Permission, Role
from domain.errors import PermissionDeniedError
from middleware.auth import Principal, get_current_principal
from services import permissions


# Any authenticated caller, admin or customer.
get_principal = get_current_principal


class Pagination(TypedDict):
    page: int
    limit: int
    offset: int


def pagination_params(
    page: int = Query(1, ge=1, le=100_000),
    limit: int = Query(20, ge=1, le=200),
) -> Pagination:
    return {"page": page, "limit": limit, "offset": (page - 1) * limit}


class RequestMeta(TypedDict):
    ip_address: str
    user_agent: str


def request_meta(request: Request) -> RequestMeta:
    """
    Client IP / user agent for audit entries.

    Forwarding headers are honoured only when the direct peer is listed in
    TRUSTED_PROXIES; the left-most X-Forwarded-For entry is the client.
    """
    ip = request.client.host if request.client else None
    if ip and ip in settings.trusted_proxies_set:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        ip = forwarded or request.headers.get("x-real-ip") or ip
    return {"ip_address": ip or "unknown", "user_agent": request.headers.get("user-agent", "unknown")}


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    if not principal.is_admin:
        raise PermissionDeniedError("Administrator account required.")
    return principal


async def require_customer(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    if not principal.is_customer:
        raise PermissionDeniedError("Customer account required.")
    return principal


async def require_owner(
    principal: Principal = Depends(require_admin),
) -> Principal:
    if principal.role != Role.OWNER:
        raise PermissionDeniedError("Owner role required.")
    return principal


def require_permission(permission: Permission):
    """
    Dependency factory: administrator holding `permission`.

    Usage:
        principal: Principal = Depends(require_permission(Permission.VIEW_CUSTOMERS))
    """
    async def _guard(principal: Principal = Depends(require_admin)) -> Principal:
        if not permissions.has_permission(principal.role, permission):
            raise PermissionDeniedError(
                f"Missing permission: {permission.value}",
                details={"permission": permission.value, "role": principal.role.value},
            )
        return principal

    return _guard
