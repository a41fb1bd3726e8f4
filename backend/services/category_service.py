"""
Product categories.
"""
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Category, Product
from domain.enums import CategoryType
from domain.errors import ConflictError, NotFoundError, ValidationError
from utils.validators import require_text


def _category_type(value: str | None) -> str:
    try:
        return CategoryType(value or CategoryType.PHYSICAL.value).value
    except ValueError:
        raise ValidationError(f"Unknown category type: {value}", field="categoryType")


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    q = select(Category.id).where(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.where(Category.id != exclude_id)
    if (await db.execute(q.limit(1))).first():
        raise ConflictError(f"Category name already exists: {name}")


async def list_categories(db: AsyncSession, *, active_only: bool = False) -> list[tuple[Category, int]]:
    """Categories with their product counts."""
    counts = (
        select(Product.category_id, func.count(Product.id).label("n"))
        .group_by(Product.category_id)
        .subquery()
    )
    q = (
        select(Category, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.category_id == Category.id)
        .order_by(Category.sort_order, Category.name)
    )
    if active_only:
        q = q.where(Category.is_active == True)  # noqa: E712
    res = await db.execute(q)
    return [(row[0], row[1]) for row in res.all()]


async def get_category(db: AsyncSession, *, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category", str(category_id))
    return category


async def create_category(
    db: AsyncSession,
    *,
    name: str,
    description: str | None = None,
    category_type: str | None = None,
    sort_order: int = 0,
    is_active: bool = True,
) -> Category:
    name = require_text(name, "name")
    await _ensure_unique_name(db, name)
    category = Category(
        name=name,
        description=description,
        category_type=_category_type(category_type),
        sort_order=sort_order,
        is_active=is_active,
    )
    db.add(category)
    await db.flush()
    return category


async def update_category(db: AsyncSession, *, category_id: int, changes: dict) -> Category:
    category = await get_category(db, category_id=category_id)
    if "name" in changes:
        changes["name"] = require_text(changes["name"], "name")
        await _ensure_unique_name(db, changes["name"], exclude_id=category_id)
    if "category_type" in changes:
        changes["category_type"] = _category_type(changes["category_type"])

    for key in ("name", "description", "category_type", "sort_order", "is_active"):
        if key in changes:
            setattr(category, key, changes[key])
    category.updated_at = datetime.utcnow()
    await db.flush()
    return category


async def delete_category(db: AsyncSession, *, category_id: int) -> Category:
    category = await get_category(db, category_id=category_id)
    in_use = (
        await db.execute(select(func.count(Product.id)).where(Product.category_id == category_id))
    ).scalar_one()
    if in_use:
        raise ValidationError(f"Category '{category.name}' still has {in_use} product(s)")
    await db.delete(category)
    await db.flush()
    return category


def serialize_category(c: Category, product_count: int | None = None) -> dict:
    data = {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "categoryType": c.category_type,
        "sortOrder": c.sort_order,
        "isActive": c.is_active,
        "createdAt": c.created_at.isoformat() if c.created_at else None,
    }
    if product_count is not None:
        data["productCount"] = product_count
    return data
