"""
Product catalog.
"""
from datetime import datetime

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import CartItem, Category, OrderItem, Product
from domain.errors import ConflictError, NotFoundError, ValidationError
from utils.validators import require_text, validate_non_negative


async def _ensure_category(db: AsyncSession, category_id: int | None) -> None:
    if category_id is not None and await db.get(Category, category_id) is None:
        raise NotFoundError("Category", str(category_id))


async def list_products(
    db: AsyncSession,
    *,
    active_only: bool,
    category_id: int | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Product], int]:
    filters = []
    if active_only:
        filters.append(Product.is_active == True)  # noqa: E712
    if category_id is not None:
        filters.append(Product.category_id == category_id)
    if search:
        like = f"%{search.strip()}%"
        filters.append(or_(Product.name.ilike(like), Product.description.ilike(like)))

    total = (await db.execute(select(func.count(Product.id)).where(*filters))).scalar_one()
    res = await db.execute(
        select(Product)
        .where(*filters)
        .order_by(Product.sort_order, Product.created_at.desc(), Product.id)
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all()), total


async def get_product(db: AsyncSession, *, product_id: int, active_only: bool = False) -> Product:
    product = await db.get(Product, product_id, populate_existing=True)
    if product is None or (active_only and not product.is_active):
        raise NotFoundError("Product", str(product_id))
    return product


async def create_product(
    db: AsyncSession,
    *,
    name: str,
    price: int,
    stock: int = 0,
    description: str | None = None,
    category_id: int | None = None,
    image_url: str | None = None,
    sort_order: int = 0,
    is_active: bool = True,
) -> Product:
    name = require_text(name, "name")
    if price is None:
        raise ValidationError("price is required", field="price")
    validate_non_negative(price, "price")
    validate_non_negative(stock, "stock")
    await _ensure_category(db, category_id)

    product = Product(
        name=name,
        description=description,
        price=price,
        stock=stock,
        category_id=category_id,
        image_url=image_url,
        sort_order=sort_order,
        is_active=is_active,
    )
    db.add(product)
    await db.flush()
    await db.refresh(product, attribute_names=["category"])
    return product


_UPDATABLE = ("name", "description", "price", "stock", "category_id", "image_url", "sort_order", "is_active")


async def update_product(db: AsyncSession, *, product_id: int, changes: dict) -> Product:
    """Only keys present in `changes` are applied."""
    product = await get_product(db, product_id=product_id)

    if "name" in changes:
        changes["name"] = require_text(changes["name"], "name")
    for field in ("price", "stock"):
        if field in changes:
            if changes[field] is None:
                raise ValidationError(f"{field} cannot be empty", field=field)
            validate_non_negative(changes[field], field)
    if "category_id" in changes:
        await _ensure_category(db, changes["category_id"])

    for key in _UPDATABLE:
        if key in changes:
            setattr(product, key, changes[key])
    product.updated_at = datetime.utcnow()
    await db.flush()
    await db.refresh(product, attribute_names=["category"])
    return product


async def delete_product(db: AsyncSession, *, product_id: int) -> Product:
    """Hard delete; products referenced by past orders must be deactivated instead."""
    product = await get_product(db, product_id=product_id)
    used = (
        await db.execute(select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id))
    ).scalar_one()
    if used:
        raise ConflictError(
            f"Product '{product.name}' appears in {used} order line(s); deactivate it instead"
        )
    await db.execute(delete(CartItem).where(CartItem.product_id == product_id))
    await db.delete(product)
    await db.flush()
    return product


def serialize_product(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "stock": p.stock,
        "categoryId": p.category_id,
        "category": (
            {"id": p.category.id, "name": p.category.name, "categoryType": p.category.category_type}
            if p.category is not None
            else None
        ),
        "imageUrl": p.image_url,
        "sortOrder": p.sort_order,
        "isActive": p.is_active,
        "createdAt": p.created_at.isoformat() if p.created_at else None,
    }
