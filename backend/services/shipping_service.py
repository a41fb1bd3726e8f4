"""
Shipping fee calculation.

Fees are computed per category, once per order:

1. DIGITAL-category items never ship; they count toward the subtotal only.
2. Physical items are grouped by category (uncategorized items share one group).
3. A group uses its category's rate when one exists and is active, otherwise
   the default rate (category_id NULL, active). No rate at all means no fee.
4. A group whose subtotal reaches its rate's free_shipping_threshold ships free.
5. The order fee is the sum of the group fees.
"""
import logging
from collections import OrderedDict
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Product, ShippingRate
from domain.constants import DEFAULT_SHIPPING_GROUP
from domain.enums import CategoryType
from domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# (product, quantity)
Line = tuple[Product, int]


def _is_digital(product) -> bool:
    category = getattr(product, "category", None)
    return category is not None and category.category_type == CategoryType.DIGITAL.value


def _resolve_rate(category_id, rates_by_category: dict, default_rate):
    rate = rates_by_category.get(category_id) if category_id is not None else None
    if rate is not None and rate.is_active:
        return rate
    if default_rate is not None and default_rate.is_active:
        return default_rate
    return None


def compute_shipping(
    lines: Sequence[Line],
    rates_by_category: dict,
    default_rate=None,
) -> dict:
    """
    Pure calculation over already-loaded products and rates.

    Returns:
        { shippingFee, subtotalAmount, totalAmount, freeShippingApplied,
          freeShippingThreshold, categories: [...] }
    """
    if not lines:
        return {
            "shippingFee": 0,
            "subtotalAmount": 0,
            "totalAmount": 0,
            "freeShippingApplied": True,
            "freeShippingThreshold": settings.default_free_shipping_threshold,
            "categories": [],
        }

    subtotal = 0
    groups: "OrderedDict[object, int]" = OrderedDict()
    for product, quantity in lines:
        if quantity <= 0:
            raise ValidationError("Quantity must be positive", field="quantity")
        line_total = product.price * quantity
        subtotal += line_total
        if _is_digital(product):
            continue
        groups[product.category_id] = groups.get(product.category_id, 0) + line_total

    shipping_fee = 0
    breakdown = []
    for category_id, group_subtotal in groups.items():
        rate = _resolve_rate(category_id, rates_by_category, default_rate)
        threshold = rate.free_shipping_threshold if rate is not None else None
        is_free = threshold is not None and group_subtotal >= threshold
        fee = 0 if is_free or rate is None else rate.shipping_fee
        shipping_fee += fee
        breakdown.append({
            "categoryId": category_id if category_id is not None else DEFAULT_SHIPPING_GROUP,
            "subtotal": group_subtotal,
            "shippingFee": fee,
            "freeShippingThreshold": threshold,
            "isFree": fee == 0,
        })

    display_threshold = (
        default_rate.free_shipping_threshold
        if default_rate is not None and default_rate.free_shipping_threshold is not None
        else settings.default_free_shipping_threshold
    )
    return {
        "shippingFee": shipping_fee,
        "subtotalAmount": subtotal,
        "totalAmount": subtotal + shipping_fee,
        "freeShippingApplied": shipping_fee == 0,
        "freeShippingThreshold": display_threshold,
        "categories": breakdown,
    }


async def load_rates(db: AsyncSession) -> tuple[dict, ShippingRate | None]:
    """All rates keyed by category id, plus the default (NULL-category) rate."""
    res = await db.execute(select(ShippingRate))
    rates_by_category = {}
    default_rate = None
    for rate in res.scalars().all():
        if rate.category_id is None:
            default_rate = rate
        else:
            rates_by_category[rate.category_id] = rate
    return rates_by_category, default_rate


async def calculate_shipping(db: AsyncSession, lines: Sequence[Line]) -> dict:
    rates_by_category, default_rate = await load_rates(db)
    quote = compute_shipping(lines, rates_by_category, default_rate)
    logger.debug(
        f"Shipping quote: subtotal={quote['subtotalAmount']} fee={quote['shippingFee']} "
        f"groups={len(quote['categories'])}"
    )
    return quote


async def calculate_shipping_for_items(db: AsyncSession, items: Iterable[dict]) -> dict:
    """
    items: [{product_id:int, quantity:int}]

    Raises:
        NotFoundError if any product id does not exist
    """
    items = list(items)
    product_ids = {int(i["product_id"]) for i in items}
    res = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in res.scalars().all()}

    lines: list[Line] = []
    for i in items:
        pid = int(i["product_id"])
        product = products.get(pid)
        if product is None:
            raise NotFoundError("Product", str(pid))
        lines.append((product, int(i.get("quantity", 1))))
    return await calculate_shipping(db, lines)
