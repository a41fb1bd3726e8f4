"""
Customer endpoints: CRUD, archive, tags, course enrollments, CSV export.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, RequestMeta, pagination_params, request_meta, require_permission
from domain.enums import Permission
from domain.responses import paginated_response, success_response
from middleware.auth import Principal
from models import (
    ChangePasswordRequest,
    CustomerCreateRequest,
    CustomerUpdateRequest,
    EnrollRequest,
    TagAssignRequest,
)
from utils.csv_export import csv_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("")
async def list_customers(
    search: Optional[str] = Query(None, max_length=200),
    tag_id: Optional[int] = Query(None, alias="tagId"),
    course_id: Optional[int] = Query(None, alias="courseId"),
    page: Pagination = Depends(pagination_params),
    _principal: Principal = Depends(require_permission(Permission.VIEW_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customers, total = await customer_service.list_customers(
        db,
        search=search,
        tag_id=tag_id,
        course_id=course_id,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        [customer_service.serialize_customer(c) for c in customers],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


@router.get("/export")
async def export_customers(
    _principal: Principal = Depends(require_permission(Permission.EXPORT_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    headers, rows = await customer_service.export_rows(db)
    return csv_response("customers.csv", headers, rows)


@router.get("/archived")
async def list_archived_customers(
    search: Optional[str] = Query(None, max_length=200),
    page: Pagination = Depends(pagination_params),
    _principal: Principal = Depends(require_permission(Permission.RESTORE_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customers, total = await customer_service.list_customers(
        db, archived=True, search=search, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        [customer_service.serialize_customer(c) for c in customers],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


@router.post("", status_code=201)
async def create_customer(
    request: CustomerCreateRequest,
    principal: Principal = Depends(require_permission(Permission.CREATE_CUSTOMERS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.create_customer(
        db,
        data=request.profile(),
        course_ids=request.course_ids,
        tag_ids=request.tag_ids,
        actor=principal,
        audit_meta=meta,
    )
    await db.commit()
    return success_response(data=customer_service.serialize_customer(customer))


@router.get("/{customer_id}")
async def get_customer(
    customer_id: int,
    _principal: Principal = Depends(require_permission(Permission.VIEW_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.get_customer(db, customer_id=customer_id)
    return success_response(data=customer_service.serialize_customer(customer))


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    request: CustomerUpdateRequest,
    principal: Principal = Depends(require_permission(Permission.EDIT_CUSTOMERS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.update_customer(
        db,
        customer_id=customer_id,
        data=request.profile(),
        course_ids=request.course_ids,
        tag_ids=request.tag_ids,
        actor=principal,
        audit_meta=meta,
    )
    await db.commit()
    return success_response(data=customer_service.serialize_customer(customer))


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    principal: Principal = Depends(require_permission(Permission.DELETE_CUSTOMERS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    await customer_service.delete_customer(db, customer_id=customer_id, actor=principal, audit_meta=meta)
    await db.commit()
    return success_response(data={"id": customer_id, "deleted": True})


@router.post("/{customer_id}/archive")
async def archive_customer(
    customer_id: int,
    principal: Principal = Depends(require_permission(Permission.ARCHIVE_CUSTOMERS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.set_archived(
        db, customer_id=customer_id, archived=True, actor=principal, audit_meta=meta
    )
    await db.commit()
    return success_response(data=customer_service.serialize_customer(customer))


@router.post("/{customer_id}/unarchive")
async def unarchive_customer(
    customer_id: int,
    principal: Principal = Depends(require_permission(Permission.RESTORE_CUSTOMERS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.set_archived(
        db, customer_id=customer_id, archived=False, actor=principal, audit_meta=meta
    )
    await db.commit()
    return success_response(data=customer_service.serialize_customer(customer))


@router.post("/{customer_id}/change-password")
async def change_customer_password(
    customer_id: int,
    request: ChangePasswordRequest,
    _principal: Principal = Depends(require_permission(Permission.CHANGE_CUSTOMER_PASSWORD)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.change_password(db, customer_id=customer_id, password=request.password)
    await db.commit()
    return success_response(data={"id": customer.id, "isEcUser": customer.is_ec_user})


# ── Tags ────────────────────────────────────────────────────────────


@router.post("/{customer_id}/tags")
async def add_customer_tag(
    customer_id: int,
    request: TagAssignRequest,
    _principal: Principal = Depends(require_permission(Permission.EDIT_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.add_tag(db, customer_id=customer_id, tag_id=request.tag_id)
    await db.commit()
    return success_response(data=customer_service.serialize_customer(customer))


@router.delete("/{customer_id}/tags/{tag_id}")
async def remove_customer_tag(
    customer_id: int,
    tag_id: int,
    _principal: Principal = Depends(require_permission(Permission.EDIT_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    customer = await customer_service.remove_tag(db, customer_id=customer_id, tag_id=tag_id)
    await db.commit()
    return success_response(data=customer_service.serialize_customer(customer))


# ── Course enrollments ──────────────────────────────────────────────


@router.post("/{customer_id}/courses", status_code=201)
async def enroll_customer(
    customer_id: int,
    request: EnrollRequest,
    _principal: Principal = Depends(require_permission(Permission.EDIT_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    enrollment = await customer_service.enroll(db, customer_id=customer_id, course_id=request.course_id)
    await db.commit()
    return success_response(
        data={
            "enrollmentId": enrollment.id,
            "customerId": customer_id,
            "courseId": enrollment.course_id,
            "status": enrollment.status,
            "enrolledAt": enrollment.enrolled_at.isoformat() if enrollment.enrolled_at else None,
        }
    )


@router.delete("/{customer_id}/courses/{enrollment_id}")
async def unenroll_customer(
    customer_id: int,
    enrollment_id: int,
    _principal: Principal = Depends(require_permission(Permission.EDIT_CUSTOMERS)),
    db: AsyncSession = Depends(get_db),
):
    from services import customer_service

    await customer_service.unenroll(db, customer_id=customer_id, enrollment_id=enrollment_id)
    await db.commit()
    return success_response(data={"enrollmentId": enrollment_id, "deleted": True})
