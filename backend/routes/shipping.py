"""
Shipping endpoints: rate configuration and fee quotes.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import get_principal, require_permission
from domain.enums import Permission
from domain.responses import success_response
from middleware.auth import Principal
from models import ShippingCalcRequest, ShippingRateCreateRequest, ShippingRateUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["shipping"])


@router.get("/shipping-rates")
async def list_shipping_rates(
    _principal: Principal = Depends(require_permission(Permission.VIEW_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import shipping_rate_service

    rates = await shipping_rate_service.list_rates(db)
    return success_response(
        data=[shipping_rate_service.serialize_rate(r) for r in rates],
        meta={"total": len(rates)},
    )


@router.post("/shipping-rates", status_code=201)
async def create_shipping_rate(
    request: ShippingRateCreateRequest,
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import shipping_rate_service

    rate = await shipping_rate_service.create_rate(
        db,
        category_id=request.category_id,
        shipping_fee=request.shipping_fee,
        free_shipping_threshold=request.free_shipping_threshold,
        is_active=request.is_active,
    )
    await db.commit()
    return success_response(data=shipping_rate_service.serialize_rate(rate))


@router.get("/shipping-rates/{rate_id}")
async def get_shipping_rate(
    rate_id: int,
    _principal: Principal = Depends(require_permission(Permission.VIEW_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import shipping_rate_service

    rate = await shipping_rate_service.get_rate(db, rate_id=rate_id)
    return success_response(data=shipping_rate_service.serialize_rate(rate))


@router.put("/shipping-rates/{rate_id}")
async def update_shipping_rate(
    rate_id: int,
    request: ShippingRateUpdateRequest,
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import shipping_rate_service

    rate = await shipping_rate_service.update_rate(db, rate_id=rate_id, changes=request.changes())
    await db.commit()
    return success_response(data=shipping_rate_service.serialize_rate(rate))


@router.delete("/shipping-rates/{rate_id}")
async def delete_shipping_rate(
    rate_id: int,
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import shipping_rate_service

    await shipping_rate_service.delete_rate(db, rate_id=rate_id)
    await db.commit()
    return success_response(data={"id": rate_id, "deleted": True})


@router.post("/shipping-calc")
async def calculate_shipping(
    request: ShippingCalcRequest,
    _principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    """Quote shipping for an arbitrary basket without placing an order."""
    from services import shipping_service

    quote = await shipping_service.calculate_shipping_for_items(
        db, [{"product_id": i.product_id, "quantity": i.quantity} for i in request.items]
    )
    return success_response(data=quote)
