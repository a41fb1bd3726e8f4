"""
Settings endpoints: payment (Stripe) settings and system branding.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import RequestMeta, request_meta, require_owner, require_permission
from domain.enums import AuditAction, Permission
from domain.responses import success_response
from middleware.auth import Principal
from models import PaymentSettingsRequest, SystemSettingsRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["settings"])

_SECRET_FIELDS = ("stripe_secret_key", "stripe_webhook_secret")


# ── Payment settings ────────────────────────────────────────────────


@router.get("/payment-settings/public")
async def get_public_payment_settings(db: AsyncSession = Depends(get_db)):
    """Checkout needs the enabled payment methods and fees; no auth, no secrets."""
    from services import settings_service

    row = await settings_service.get_payment_settings(db, create=False)
    return success_response(data=settings_service.public_payment_settings(row))


@router.get("/payment-settings")
async def get_payment_settings(
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PAYMENT_SETTINGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import settings_service

    row = await settings_service.get_payment_settings(db)
    await db.commit()
    return success_response(data=settings_service.serialize_payment_settings(row))


@router.put("/payment-settings")
async def update_payment_settings(
    request: PaymentSettingsRequest,
    principal: Principal = Depends(require_permission(Permission.MANAGE_PAYMENT_SETTINGS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service, settings_service

    changes = request.changes()
    row = await settings_service.update_payment_settings(db, changes=changes)
    await audit_service.create_audit_log(
        db,
        user_id=principal.audit_id,
        action=AuditAction.SETTING_CHANGE,
        entity="PAYMENT_SETTINGS",
        entity_id=row.id,
        new_data={k: v for k, v in changes.items() if k not in _SECRET_FIELDS},
        **meta,
    )
    await db.commit()
    return success_response(data=settings_service.serialize_payment_settings(row))


@router.post("/payment-settings/test")
async def test_payment_settings(
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PAYMENT_SETTINGS)),
    db: AsyncSession = Depends(get_db),
):
    from services import settings_service

    row = await settings_service.get_payment_settings(db)
    await db.commit()
    account = await settings_service.check_stripe_connection(row)
    return success_response(data=account)


# ── System settings ─────────────────────────────────────────────────


@router.get("/system-settings")
async def get_system_settings(db: AsyncSession = Depends(get_db)):
    from services import settings_service

    row = await settings_service.get_system_settings(db)
    await db.commit()
    return success_response(data=settings_service.serialize_system_settings(row))


@router.put("/system-settings")
async def update_system_settings(
    request: SystemSettingsRequest,
    principal: Principal = Depends(require_owner),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import audit_service, settings_service

    row, old = await settings_service.update_system_settings(db, changes=request.changes())
    await audit_service.create_audit_log(
        db,
        user_id=principal.audit_id,
        action=AuditAction.SETTING_CHANGE,
        entity="SYSTEM_SETTINGS",
        entity_id=row.id,
        old_data=old,
        new_data={key: getattr(row, key) for key in old},
        **meta,
    )
    await db.commit()
    return success_response(data=settings_service.serialize_system_settings(row))
