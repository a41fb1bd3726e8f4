"""
Email endpoints: templates, individual and bulk sends, logs, SMTP settings.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, RequestMeta, pagination_params, request_meta, require_permission
from domain.enums import AuditAction, Permission
from domain.errors import DomainError
from domain.responses import paginated_response, success_response
from middleware.auth import Principal
from models import (
    BulkEmailRequest,
    EmailSettingsRequest,
    EmailTemplateCreateRequest,
    EmailTemplateUpdateRequest,
    RecipientSelection,
    SendEmailRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["email"])


# ── Templates ───────────────────────────────────────────────────────


@router.get("/email-templates")
async def list_templates(
    _principal: Principal = Depends(require_permission(Permission.VIEW_EMAIL_TEMPLATES)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    templates = await email_service.list_templates(db)
    return success_response(
        data=[email_service.serialize_template(t) for t in templates],
        meta={"total": len(templates)},
    )


@router.post("/email-templates", status_code=201)
async def create_template(
    request: EmailTemplateCreateRequest,
    _principal: Principal = Depends(require_permission(Permission.CREATE_EMAIL_TEMPLATES)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    template = await email_service.create_template(
        db,
        name=request.name,
        subject=request.subject,
        content=request.content,
        is_default=request.is_default,
    )
    await db.commit()
    return success_response(data=email_service.serialize_template(template))


@router.get("/email-templates/{template_id}")
async def get_template(
    template_id: int,
    _principal: Principal = Depends(require_permission(Permission.VIEW_EMAIL_TEMPLATES)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    template = await email_service.get_template(db, template_id=template_id)
    return success_response(data=email_service.serialize_template(template))


@router.put("/email-templates/{template_id}")
async def update_template(
    template_id: int,
    request: EmailTemplateUpdateRequest,
    _principal: Principal = Depends(require_permission(Permission.EDIT_EMAIL_TEMPLATES)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    template = await email_service.update_template(db, template_id=template_id, changes=request.changes())
    await db.commit()
    return success_response(data=email_service.serialize_template(template))


@router.delete("/email-templates/{template_id}")
async def delete_template(
    template_id: int,
    _principal: Principal = Depends(require_permission(Permission.DELETE_EMAIL_TEMPLATES)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    await email_service.delete_template(db, template_id=template_id)
    await db.commit()
    return success_response(data={"id": template_id, "deleted": True})


# ── Sending ─────────────────────────────────────────────────────────


@router.post("/emails/send")
async def send_email(
    request: SendEmailRequest,
    principal: Principal = Depends(require_permission(Permission.SEND_INDIVIDUAL_EMAIL)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service, customer_service, email_service

    customer = await customer_service.get_customer(db, customer_id=request.customer_id)
    personalize = dict(name=customer.name, email=customer.email)
    try:
        log = await email_service.send_email(
            db,
            to=customer.email,
            to_name=customer.name,
            subject=email_service.replace_placeholders(request.subject, **personalize),
            html=email_service.replace_placeholders(request.content, **personalize),
            customer_id=customer.id,
            template_id=request.template_id,
        )
    except DomainError:
        # keep the FAILED log row
        await db.commit()
        raise

    await audit_service.create_audit_log(
        db,
        user_id=principal.audit_id,
        action=AuditAction.SEND_EMAIL,
        entity="CUSTOMER",
        entity_id=customer.id,
        new_data={"subject": log.subject, "recipient": log.recipient_email},
        **meta,
    )
    await db.commit()
    return success_response(data=email_service.serialize_log(log))


@router.post("/emails/preview-recipients")
async def preview_recipients(
    request: RecipientSelection,
    _principal: Principal = Depends(require_permission(Permission.SEND_BULK_EMAIL)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    recipients = await email_service.resolve_recipients(
        db,
        include_all=request.include_all,
        tag_ids=request.tag_ids,
        course_ids=request.course_ids,
        customer_ids=request.customer_ids,
    )
    return success_response(
        data=[{"id": c.id, "name": c.name, "email": c.email} for c in recipients],
        meta={"total": len(recipients)},
    )


@router.post("/emails/bulk-send")
async def bulk_send(
    request: BulkEmailRequest,
    principal: Principal = Depends(require_permission(Permission.SEND_BULK_EMAIL)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service, email_service

    recipients = await email_service.resolve_recipients(
        db,
        include_all=request.include_all,
        tag_ids=request.tag_ids,
        course_ids=request.course_ids,
        customer_ids=request.customer_ids,
    )
    result = await email_service.send_bulk(
        db,
        subject=request.subject,
        content=request.content,
        recipients=recipients,
        template_id=request.template_id,
    )
    await audit_service.create_audit_log(
        db,
        user_id=principal.audit_id,
        action=AuditAction.SEND_EMAIL,
        entity="EMAIL",
        new_data={"subject": request.subject, **result},
        **meta,
    )
    await db.commit()
    return success_response(data=result)


@router.get("/emails/logs")
async def list_email_logs(
    status: Optional[str] = Query(None),
    customer_id: Optional[int] = Query(None, alias="customerId"),
    page: Pagination = Depends(pagination_params),
    _principal: Principal = Depends(require_permission(Permission.VIEW_EMAIL_LOGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    logs, total = await email_service.list_logs(
        db, status=status, customer_id=customer_id, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        [email_service.serialize_log(entry) for entry in logs],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


# ── SMTP settings ───────────────────────────────────────────────────


@router.get("/email-settings")
async def get_email_settings(
    _principal: Principal = Depends(require_permission(Permission.MANAGE_EMAIL_SETTINGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    row = await email_service.get_email_settings(db)
    await db.commit()
    return success_response(data=email_service.serialize_email_settings(row))


@router.put("/email-settings")
async def update_email_settings(
    request: EmailSettingsRequest,
    principal: Principal = Depends(require_permission(Permission.MANAGE_EMAIL_SETTINGS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service, email_service

    changes = request.changes()
    row = await email_service.update_email_settings(db, changes=changes)
    await audit_service.create_audit_log(
        db,
        user_id=principal.audit_id,
        action=AuditAction.SETTING_CHANGE,
        entity="EMAIL_SETTINGS",
        entity_id=row.id,
        new_data={k: v for k, v in changes.items() if k != "smtp_pass"},
        **meta,
    )
    await db.commit()
    return success_response(data=email_service.serialize_email_settings(row))


@router.post("/email-settings/test")
async def test_email_settings(
    _principal: Principal = Depends(require_permission(Permission.MANAGE_EMAIL_SETTINGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import email_service

    await email_service.verify_smtp_connection(db)
    return success_response(data={"connected": True})
