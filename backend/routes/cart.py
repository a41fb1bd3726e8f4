"""
Cart endpoints: EC customers only.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import require_customer
from domain.responses import success_response
from middleware.auth import Principal
from models import CartAddRequest, CartUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cart", tags=["cart"])


async def _cart_payload(db: AsyncSession, customer_id: int) -> dict:
    from services import cart_service, shipping_service

    items = await cart_service.list_cart(db, customer_id=customer_id)
    quote = await shipping_service.calculate_shipping(db, [(i.product, i.quantity) for i in items])
    return {
        "items": [cart_service.serialize_cart_item(i) for i in items],
        "itemCount": sum(i.quantity for i in items),
        "shipping": quote,
    }


@router.get("")
async def get_cart(
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await _cart_payload(db, principal.id))


@router.post("", status_code=201)
async def add_to_cart(
    request: CartAddRequest,
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import cart_service

    await cart_service.add_item(
        db, customer_id=principal.id, product_id=request.product_id, quantity=request.quantity
    )
    await db.commit()
    return success_response(data=await _cart_payload(db, principal.id))


@router.put("/{item_id}")
async def update_cart_item(
    item_id: int,
    request: CartUpdateRequest,
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import cart_service

    await cart_service.update_quantity(
        db, customer_id=principal.id, item_id=item_id, quantity=request.quantity
    )
    await db.commit()
    return success_response(data=await _cart_payload(db, principal.id))


@router.delete("/{item_id}")
async def remove_cart_item(
    item_id: int,
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import cart_service

    await cart_service.remove_item(db, customer_id=principal.id, item_id=item_id)
    await db.commit()
    return success_response(data=await _cart_payload(db, principal.id))


@router.delete("")
async def clear_cart(
    principal: Principal = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    from services import cart_service

    removed = await cart_service.clear_cart(db, customer_id=principal.id)
    await db.commit()
    return success_response(data={"removed": removed})
