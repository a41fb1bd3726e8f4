"""
Auth endpoints: email/password login for administrators and EC customers.

Flow:
  1) POST /auth/login     -> bearer access token + principal
  2) Send "Authorization: Bearer <token>" on every protected call
  3) POST /auth/logout    -> audit entry only; tokens expire on their own
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from deps import RequestMeta, request_meta
from domain.enums import AuditAction, UserType
from domain.responses import success_response
from middleware.auth import Principal, get_current_principal, issue_access_token
from middleware.rate_limit import rate_limit
from models import LoginRequest, RegisterRequest
from services import permissions

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _token_payload(principal: Principal) -> dict:
    token = issue_access_token(
        principal_id=principal.id,
        role=principal.role,
        user_type=principal.user_type,
        email=principal.email,
        name=principal.name,
    )
    return {
        "accessToken": token,
        "tokenType": "Bearer",
        "expiresInSeconds": settings.jwt_access_ttl_minutes * 60,
        "user": _principal_payload(principal),
    }


def _principal_payload(principal: Principal) -> dict:
    return {
        "id": principal.id,
        "email": principal.email,
        "name": principal.name,
        "role": principal.role.value,
        "userType": principal.user_type.value,
        "permissions": sorted(p.value for p in permissions.get_role_permissions(principal.role)),
    }


@router.post("/login")
async def login(
    request: LoginRequest,
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=settings.login_rate_limit, window_seconds=settings.auth_rate_window_seconds)),
):
    from services import audit_service, auth_service

    principal = await auth_service.authenticate(db, email=request.email, password=request.password)
    if principal.user_type == UserType.ADMIN:
        await audit_service.create_audit_log(
            db, user_id=principal.audit_id, action=AuditAction.LOGIN, entity="AUTH", **meta
        )
    await db.commit()
    return success_response(data=_token_payload(principal))


@router.post("/register", status_code=201)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=settings.register_rate_limit, window_seconds=settings.auth_rate_window_seconds)),
):
    """Public EC sign-up; the new customer is logged in immediately."""
    from services import customer_service
    from domain.enums import Role

    customer = await customer_service.register_customer(
        db, name=request.name, email=request.email, password=request.password
    )
    await db.commit()

    principal = Principal(
        id=customer.id,
        role=Role.CUSTOMER,
        user_type=UserType.CUSTOMER,
        email=customer.email,
        name=customer.name,
    )
    return success_response(data=_token_payload(principal))


@router.post("/logout")
async def logout(
    principal: Principal = Depends(get_current_principal),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service

    if principal.is_admin:
        await audit_service.create_audit_log(
            db, user_id=principal.audit_id, action=AuditAction.LOGOUT, entity="AUTH", **meta
        )
        await db.commit()
    return success_response(data={"loggedOut": True})


@router.get("/me")
async def me(principal: Principal = Depends(get_current_principal)):
    return success_response(data=_principal_payload(principal))
