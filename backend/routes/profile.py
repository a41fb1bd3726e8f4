"""
Self-service endpoints: the signed-in administrator's own account and the
shop customer's My Page (profile and course enrollments).
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import RequestMeta, request_meta, require_customer, require_permission
from domain.enums import Permission
from domain.responses import success_response
from middleware.auth import Principal
from models import AdminProfileRequest, CustomerProfileRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["profile"])


# ── Administrator ───────────────────────────────────────────────────


@router.get("/profile")
async def get_profile(
    principal: Principal = Depends(require_permission(Permission.EDIT_PROFILE)),
    db: AsyncSession = Depends(get_db),
):
    from services import admin_service

    admin = await admin_service.get_admin(db, admin_id=principal.id)
    return success_response(data=admin_service.serialize_admin(admin))


@router.put("/profile")
async def update_profile(
    request: AdminProfileRequest,
    principal: Principal = Depends(require_permission(Permission.EDIT_PROFILE)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import admin_service

    admin = await admin_service.update_own_profile(
        db,
        actor=principal,
        name=request.name,
        email=request.email,
        current_password=request.current_password,
        new_password=request.new_password,
        audit_meta=meta,
    )
    await db.commit()
    return success_response(data=admin_service.serialize_admin(admin))


# ── Customer (My Page) ──────────────────────────────────────────────


@router.get("/customer-profile")
async def get_customer_profile(
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.get_customer(db, customer_id=principal.id)
    return success_response(data=customer_service.serialize_own_profile(customer))


@router.put("/customer-profile")
async def update_customer_profile(
    request: CustomerProfileRequest,
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.update_own_profile(
        db,
        customer_id=principal.id,
        data=request.profile(),
        current_password=request.current_password,
        new_password=request.new_password,
    )
    await db.commit()
    return success_response(data=customer_service.serialize_own_profile(customer))


@router.get("/customer-enrollments")
async def list_customer_enrollments(
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    enrollments = await customer_service.list_own_enrollments(db, customer_id=principal.id)
    return success_response(
        data=[customer_service.serialize_enrollment(e) for e in enrollments],
        meta={"total": len(enrollments)},
    )
