"""
Order endpoints.

Customers place, list and cancel their own orders. Administrators need
VIEW_ORDERS to read and EDIT_ORDERS to cancel or change status.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import (
    Pagination,
    RequestMeta,
    get_principal,
    pagination_params,
    request_meta,
    require_customer,
    require_permission,
)
from domain.enums import Permission
from domain.errors import PermissionDeniedError
from domain.responses import paginated_response, success_response
from middleware.auth import Principal
from models import OrderCancelRequest, OrderCreateRequest, OrderStatusRequest
from services import permissions

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


def _ensure_admin_permission(principal: Principal, permission: Permission) -> None:
    if principal.is_admin and not permissions.has_permission(principal.role, permission):
        raise PermissionDeniedError(
            f"Missing permission: {permission.value}",
            details={"permission": permission.value, "role": principal.role.value},
        )


@router.get("")
async def list_orders(
    search: Optional[str] = Query(None, max_length=200),
    status: Optional[str] = Query(None),
    page: Pagination = Depends(pagination_params),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    from services import order_service

    _ensure_admin_permission(principal, Permission.VIEW_ORDERS)
    orders, total = await order_service.list_orders(
        db,
        customer_id=principal.id if principal.is_customer else None,
        search=search,
        status=status,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        [order_service.serialize_order(o, include_customer=principal.is_admin) for o in orders],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


@router.post("", status_code=201)
async def create_order(
    request: OrderCreateRequest,
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    """Place an order from the caller's cart."""
    from services import order_service

    order = await order_service.create_order_from_cart(
        db,
        customer_id=principal.id,
        shipping_address=request.shipping_address,
        recipient_name=request.recipient_name,
        contact_phone=request.contact_phone,
        notes=request.notes,
        payment_method=request.payment_method,
    )
    await db.commit()
    return success_response(data=order_service.serialize_order(order))


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    from services import order_service

    _ensure_admin_permission(principal, Permission.VIEW_ORDERS)
    order = await order_service.get_order(
        db, order_id=order_id, customer_id=principal.id if principal.is_customer else None
    )
    return success_response(data=order_service.serialize_order(order, include_customer=principal.is_admin))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    request: Optional[OrderCancelRequest] = None,
    principal: Principal = Depends(get_principal),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import order_service

    _ensure_admin_permission(principal, Permission.EDIT_ORDERS)
    order = await order_service.cancel_order(
        db,
        order_id=order_id,
        actor=principal,
        reason=request.reason if request else None,
        audit_meta=meta,
    )
    await db.commit()
    return success_response(data=order_service.serialize_order(order))


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    request: OrderStatusRequest,
    principal: Principal = Depends(require_permission(Permission.EDIT_ORDERS)),
    meta: RequestMeta = Depends(request_meta),
    db: AsyncSession = Depends(get_db),
):
    from services import order_service

    order = await order_service.update_order_status(
        db,
        order_id=order_id,
        status=request.status,
        actor=principal,
        reason=request.reason,
        audit_meta=meta,
    )
    await db.commit()
    return success_response(data=order_service.serialize_order(order))
