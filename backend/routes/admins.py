"""
Administrator management and the audit trail.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import (
    Pagination,
    RequestMeta,
    pagination_params,
    request_meta,
    require_owner,
    require_permission,
)
from domain.enums import Permission
from domain.responses import paginated_response, success_response
from middleware.auth import Principal
from models import AdminCreateRequest, AdminUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["admins"])


@router.get("/admins")
async def list_admins(
    _principal: Principal = Depends(require_permission(Permission.VIEW_ADMINS)),
    db: AsyncSession = Depends(get_db),
):
    from services import admin_service

    admins = await admin_service.list_admins(db)
    return success_response(
        data=[admin_service.serialize_admin(a) for a in admins],
        meta={"total": len(admins)},
    )


@router.post("/admins", status_code=201)
async def create_admin(
    request: AdminCreateRequest,
    principal: Principal = Depends(require_permission(Permission.CREATE_ADMINS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import admin_service

    admin = await admin_service.create_admin(
        db,
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role,
        actor=principal,
        audit_meta=meta,
    )
    await db.commit()
    return success_response(data=admin_service.serialize_admin(admin))


@router.put("/admins/{admin_id}")
async def update_admin(
    admin_id: int,
    request: AdminUpdateRequest,
    principal: Principal = Depends(require_owner),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import admin_service

    admin = await admin_service.update_admin(
        db, admin_id=admin_id, changes=request.changes(), actor=principal, audit_meta=meta
    )
    await db.commit()
    return success_response(data=admin_service.serialize_admin(admin))


@router.delete("/admins/{admin_id}")
async def delete_admin(
    admin_id: int,
    principal: Principal = Depends(require_owner),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import admin_service

    await admin_service.delete_admin(db, admin_id=admin_id, actor=principal, audit_meta=meta)
    await db.commit()
    return success_response(data={"id": admin_id, "deleted": True})


# ── Audit trail ─────────────────────────────────────────────────────


@router.get("/audit-logs")
async def list_audit_logs(
    action: Optional[str] = Query(None),
    entity: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    page: Pagination = Depends(pagination_params),
    _principal: Principal = Depends(require_permission(Permission.VIEW_AUDIT_LOGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service

    entries, total = await audit_service.list_audit_logs(
        db,
        action=action,
        entity=entity,
        user_id=user_id,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        [audit_service.serialize_audit_log(e) for e in entries],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )
