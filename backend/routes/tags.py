"""
Tag endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import require_permission
from domain.enums import Permission
from domain.responses import success_response
from middleware.auth import Principal
from models import TagRequest
from utils.csv_export import csv_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("")
async def list_tags(
    _principal: Principal = Depends(require_permission(Permission.VIEW_TAGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import tag_service

    rows = await tag_service.list_tags(db)
    return success_response(
        data=[tag_service.serialize_tag(t, customer_count=n) for t, n in rows],
        meta={"total": len(rows)},
    )


@router.get("/export")
async def export_tags(
    _principal: Principal = Depends(require_permission(Permission.EXPORT_TAGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import tag_service

    headers, rows = await tag_service.export_rows(db)
    return csv_response("tags.csv", headers, rows)


@router.post("", status_code=201)
async def create_tag(
    request: TagRequest,
    _principal: Principal = Depends(require_permission(Permission.CREATE_TAGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import tag_service

    tag = await tag_service.create_tag(db, name=request.name, color=request.color)
    await db.commit()
    return success_response(data=tag_service.serialize_tag(tag, customer_count=0))


@router.get("/{tag_id}")
async def get_tag(
    tag_id: int,
    _principal: Principal = Depends(require_permission(Permission.VIEW_TAGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import tag_service

    tag = await tag_service.get_tag(db, tag_id=tag_id)
    return success_response(data=tag_service.serialize_tag(tag))


@router.put("/{tag_id}")
async def update_tag(
    tag_id: int,
    request: TagRequest,
    _principal: Principal = Depends(require_permission(Permission.EDIT_TAGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import tag_service

    tag = await tag_service.update_tag(db, tag_id=tag_id, name=request.name, color=request.color)
    await db.commit()
    return success_response(data=tag_service.serialize_tag(tag))


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: int,
    _principal: Principal = Depends(require_permission(Permission.DELETE_TAGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import tag_service

    await tag_service.delete_tag(db, tag_id=tag_id)
    await db.commit()
    return success_response(data={"id": tag_id, "deleted": True})
