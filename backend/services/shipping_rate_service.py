"""
Shipping rate configuration: one rate per category, plus at most one default
(category_id NULL) rate.
"""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Category, ShippingRate
from domain.errors import ConflictError, NotFoundError, ValidationError
from utils.validators import validate_non_negative

logger = logging.getLogger(__name__)


async def _ensure_slot_free(db: AsyncSession, category_id: int | None, exclude_id: int | None = None) -> None:
    if category_id is None:
        q = select(ShippingRate.id).where(ShippingRate.category_id.is_(None))
        message = "A default shipping rate already exists"
    else:
        if await db.get(Category, category_id) is None:
            raise NotFoundError("Category", str(category_id))
        q = select(ShippingRate.id).where(ShippingRate.category_id == category_id)
        message = f"Category {category_id} already has a shipping rate"
    if exclude_id is not None:
        q = q.where(ShippingRate.id != exclude_id)
    if (await db.execute(q.limit(1))).first():
        raise ConflictError(message)


def _validate_amounts(shipping_fee, free_shipping_threshold) -> None:
    validate_non_negative(shipping_fee, "shippingFee")
    validate_non_negative(free_shipping_threshold, "freeShippingThreshold")


async def list_rates(db: AsyncSession) -> list[ShippingRate]:
    res = await db.execute(
        select(ShippingRate).order_by(ShippingRate.category_id.is_not(None), ShippingRate.category_id)
    )
    return list(res.scalars().all())


async def get_rate(db: AsyncSession, *, rate_id: int) -> ShippingRate:
    rate = await db.get(ShippingRate, rate_id)
    if rate is None:
        raise NotFoundError("Shipping rate", str(rate_id))
    return rate


async def create_rate(
    db: AsyncSession,
    *,
    category_id: int | None,
    shipping_fee: int,
    free_shipping_threshold: int | None = None,
    is_active: bool = True,
) -> ShippingRate:
    if shipping_fee is None:
        raise ValidationError("shippingFee is required", field="shippingFee")
    _validate_amounts(shipping_fee, free_shipping_threshold)
    await _ensure_slot_free(db, category_id)

    rate = ShippingRate(
        category_id=category_id,
        shipping_fee=shipping_fee,
        free_shipping_threshold=free_shipping_threshold,
        is_active=is_active,
    )
    db.add(rate)
    await db.flush()
    await db.refresh(rate, attribute_names=["category"])
    logger.info(f"Shipping rate created: category={category_id or 'default'} fee={shipping_fee}")
    return rate


async def update_rate(db: AsyncSession, *, rate_id: int, changes: dict) -> ShippingRate:
    rate = await get_rate(db, rate_id=rate_id)
    if "shipping_fee" in changes and changes["shipping_fee"] is None:
        raise ValidationError("shippingFee cannot be empty", field="shippingFee")
    _validate_amounts(changes.get("shipping_fee"), changes.get("free_shipping_threshold"))
    if "category_id" in changes and changes["category_id"] != rate.category_id:
        await _ensure_slot_free(db, changes["category_id"], exclude_id=rate_id)

    for key in ("category_id", "shipping_fee", "free_shipping_threshold", "is_active"):
        if key in changes:
            setattr(rate, key, changes[key])
    rate.updated_at = datetime.utcnow()
    await db.flush()
    await db.refresh(rate, attribute_names=["category"])
    return rate


async def delete_rate(db: AsyncSession, *, rate_id: int) -> ShippingRate:
    rate = await get_rate(db, rate_id=rate_id)
    await db.delete(rate)
    await db.flush()
    return rate


def serialize_rate(rate: ShippingRate) -> dict:
    return {
        "id": rate.id,
        "categoryId": rate.category_id,
        "categoryName": rate.category.name if rate.category is not None else None,
        "isDefault": rate.category_id is None,
        "shippingFee": rate.shipping_fee,
        "freeShippingThreshold": rate.free_shipping_threshold,
        "isActive": rate.is_active,
        "updatedAt": rate.updated_at.isoformat() if rate.updated_at else None,
    }
