"""
EC customer cart.
"""
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import CartItem, Product
from domain.errors import NotFoundError, ValidationError


async def _get_active_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product", str(product_id))
    return product


async def list_cart(db: AsyncSession, *, customer_id: int) -> list[CartItem]:
    res = await db.execute(
        select(CartItem)
        .where(CartItem.customer_id == customer_id)
        .order_by(CartItem.created_at, CartItem.id)
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def add_item(db: AsyncSession, *, customer_id: int, product_id: int, quantity: int = 1) -> CartItem:
    """Add a product; an existing line for the same product is increased."""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity")
    product = await _get_active_product(db, product_id)

    res = await db.execute(
        select(CartItem).where(CartItem.customer_id == customer_id, CartItem.product_id == product_id)
    )
    item = res.scalar_one_or_none()
    new_quantity = quantity + (item.quantity if item else 0)
    if new_quantity > product.stock:
        raise ValidationError(f"Insufficient stock for {product.name} (available: {product.stock})")

    if item is None:
        item = CartItem(customer_id=customer_id, product_id=product_id, quantity=new_quantity, product=product)
        db.add(item)
    else:
        item.quantity = new_quantity
        item.updated_at = datetime.utcnow()
    await db.flush()
    return item


async def _get_own_item(db: AsyncSession, *, customer_id: int, item_id: int) -> CartItem:
    res = await db.execute(
        select(CartItem).where(CartItem.id == item_id, CartItem.customer_id == customer_id)
    )
    item = res.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Cart item", str(item_id))
    return item


async def update_quantity(db: AsyncSession, *, customer_id: int, item_id: int, quantity: int) -> CartItem:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity")
    item = await _get_own_item(db, customer_id=customer_id, item_id=item_id)
    if quantity > item.product.stock:
        raise ValidationError(
            f"Insufficient stock for {item.product.name} (available: {item.product.stock})"
        )
    item.quantity = quantity
    item.updated_at = datetime.utcnow()
    await db.flush()
    return item


async def remove_item(db: AsyncSession, *, customer_id: int, item_id: int) -> None:
    item = await _get_own_item(db, customer_id=customer_id, item_id=item_id)
    await db.delete(item)
    await db.flush()


async def clear_cart(db: AsyncSession, *, customer_id: int) -> int:
    result = await db.execute(delete(CartItem).where(CartItem.customer_id == customer_id))
    return result.rowcount


def serialize_cart_item(item: CartItem) -> dict:
    p = item.product
    return {
        "id": item.id,
        "productId": item.product_id,
        "quantity": item.quantity,
        "product": {
            "id": p.id,
            "name": p.name,
            "price": p.price,
            "stock": p.stock,
            "imageUrl": p.image_url,
            "categoryId": p.category_id,
            "isActive": p.is_active,
        },
        "subtotal": p.price * item.quantity,
    }
