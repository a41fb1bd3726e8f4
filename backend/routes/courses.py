"""
Course endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import require_permission
from domain.enums import Permission
from domain.responses import success_response
from middleware.auth import Principal
from models import CourseCreateRequest, CourseUpdateRequest
from utils.csv_export import csv_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("")
async def list_courses(
    active_only: bool = Query(False, alias="activeOnly"),
    _principal: Principal = Depends(require_permission(Permission.VIEW_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    rows = await course_service.list_courses(db, active_only=active_only)
    return success_response(
        data=[course_service.serialize_course(c, enrolled_count=n) for c, n in rows],
        meta={"total": len(rows)},
    )


@router.get("/export")
async def export_courses(
    _principal: Principal = Depends(require_permission(Permission.EXPORT_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    headers, rows = await course_service.export_rows(db)
    return csv_response("courses.csv", headers, rows)


@router.post("", status_code=201)
async def create_course(
    request: CourseCreateRequest,
    _principal: Principal = Depends(require_permission(Permission.CREATE_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    course = await course_service.create_course(
        db,
        name=request.name,
        price=request.price,
        description=request.description,
        duration=request.duration,
        is_active=request.is_active,
    )
    await db.commit()
    return success_response(data=course_service.serialize_course(course, enrolled_count=0))


@router.get("/{course_id}")
async def get_course(
    course_id: int,
    _principal: Principal = Depends(require_permission(Permission.VIEW_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    course = await course_service.get_course(db, course_id=course_id)
    enrolled = await course_service.count_active_enrollments(db, course_id)
    return success_response(data=course_service.serialize_course(course, enrolled_count=enrolled))


@router.get("/{course_id}/customers")
async def list_course_customers(
    course_id: int,
    _principal: Principal = Depends(require_permission(Permission.VIEW_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    enrolled = await course_service.list_enrolled_customers(db, course_id=course_id)
    return success_response(data=enrolled, meta={"total": len(enrolled)})


@router.put("/{course_id}")
async def update_course(
    course_id: int,
    request: CourseUpdateRequest,
    _principal: Principal = Depends(require_permission(Permission.EDIT_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    course = await course_service.update_course(db, course_id=course_id, changes=request.changes())
    await db.commit()
    return success_response(data=course_service.serialize_course(course))


@router.delete("/{course_id}")
async def delete_course(
    course_id: int,
    _principal: Principal = Depends(require_permission(Permission.DELETE_COURSES)),
    db: AsyncSession = Depends(get_db),
):
    from services import course_service

    await course_service.delete_course(db, course_id=course_id)
    await db.commit()
    return success_response(data={"id": course_id, "deleted": True})
