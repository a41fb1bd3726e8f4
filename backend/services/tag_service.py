"""
Customer tags.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import CustomerTag, Tag
from domain.constants import DEFAULT_TAG_COLOR, TAG_EXPORT_HEADERS
from domain.errors import ConflictError, NotFoundError, ValidationError
from utils.validators import require_text, validate_hex_color


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    q = select(Tag.id).where(func.lower(Tag.name) == name.lower())
    if exclude_id is not None:
        q = q.where(Tag.id != exclude_id)
    if (await db.execute(q.limit(1))).first():
        raise ConflictError(f"Tag name already exists: {name}")


async def list_tags(db: AsyncSession) -> list[tuple[Tag, int]]:
    """Tags with the number of customers carrying them."""
    counts = (
        select(CustomerTag.tag_id, func.count(CustomerTag.id).label("n"))
        .group_by(CustomerTag.tag_id)
        .subquery()
    )
    res = await db.execute(
        select(Tag, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.tag_id == Tag.id)
        .order_by(Tag.name)
    )
    return [(row[0], row[1]) for row in res.all()]


async def get_tag(db: AsyncSession, *, tag_id: int) -> Tag:
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError("Tag", str(tag_id))
    return tag


async def create_tag(db: AsyncSession, *, name: str, color: str | None = None) -> Tag:
    name = require_text(name, "name")
    await _ensure_unique_name(db, name)
    tag = Tag(name=name, color=validate_hex_color(color) if color else DEFAULT_TAG_COLOR)
    db.add(tag)
    await db.flush()
    return tag


async def update_tag(db: AsyncSession, *, tag_id: int, name: str | None = None, color: str | None = None) -> Tag:
    tag = await get_tag(db, tag_id=tag_id)
    if name is not None:
        name = require_text(name, "name")
        await _ensure_unique_name(db, name, exclude_id=tag_id)
        tag.name = name
    if color is not None:
        tag.color = validate_hex_color(color)
    await db.flush()
    return tag


async def delete_tag(db: AsyncSession, *, tag_id: int) -> Tag:
    tag = await get_tag(db, tag_id=tag_id)
    in_use = (
        await db.execute(select(func.count(CustomerTag.id)).where(CustomerTag.tag_id == tag_id))
    ).scalar_one()
    if in_use:
        raise ValidationError(f"Tag '{tag.name}' is assigned to {in_use} customer(s) and cannot be deleted")
    await db.delete(tag)
    await db.flush()
    return tag


def serialize_tag(tag: Tag, customer_count: int | None = None) -> dict:
    data = {
        "id": tag.id,
        "name": tag.name,
        "color": tag.color,
        "createdAt": tag.created_at.isoformat() if tag.created_at else None,
    }
    if customer_count is not None:
        data["customerCount"] = customer_count
    return data


async def export_rows(db: AsyncSession) -> tuple[list[str], list[list]]:
    rows = [[t.name, t.color, n, t.created_at] for t, n in await list_tags(db)]
    return TAG_EXPORT_HEADERS, rows
