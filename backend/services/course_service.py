"""
Courses and their enrollments.
"""
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Course, Customer, Enrollment
from domain.constants import COURSE_EXPORT_HEADERS
from domain.errors import NotFoundError, ValidationError
from utils.validators import require_text, validate_non_negative


def _enrolled_count_subquery():
    """Enrollments of non-archived customers, per course."""
    return (
        select(Enrollment.course_id, func.count(Enrollment.id).label("n"))
        .join(Customer, Enrollment.customer_id == Customer.id)
        .where(Customer.is_archived == False)  # noqa: E712
        .group_by(Enrollment.course_id)
        .subquery()
    )


async def list_courses(db: AsyncSession, *, active_only: bool = False) -> list[tuple[Course, int]]:
    counts = _enrolled_count_subquery()
    q = (
        select(Course, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.course_id == Course.id)
        .order_by(Course.created_at.desc(), Course.id.desc())
    )
    if active_only:
        q = q.where(Course.is_active == True)  # noqa: E712
    res = await db.execute(q)
    return [(row[0], row[1]) for row in res.all()]


async def get_course(db: AsyncSession, *, course_id: int) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", str(course_id))
    return course


async def count_active_enrollments(db: AsyncSession, course_id: int) -> int:
    return (
        await db.execute(
            select(func.count(Enrollment.id))
            .join(Customer, Enrollment.customer_id == Customer.id)
            .where(Enrollment.course_id == course_id, Customer.is_archived == False)  # noqa: E712
        )
    ).scalar_one()


async def create_course(
    db: AsyncSession,
    *,
    name: str,
    price: int | None,
    description: str | None = None,
    duration: int | None = None,
    is_active: bool = True,
) -> Course:
    name = require_text(name, "name")
    if price is None:
        raise ValidationError("Course name and price are required")
    validate_non_negative(price, "price")
    validate_non_negative(duration, "duration")

    course = Course(name=name, price=price, description=description, duration=duration, is_active=is_active)
    db.add(course)
    await db.flush()
    return course


async def update_course(db: AsyncSession, *, course_id: int, changes: dict) -> Course:
    course = await get_course(db, course_id=course_id)
    if "name" in changes:
        changes["name"] = require_text(changes["name"], "name")
    if "price" in changes:
        if changes["price"] is None:
            raise ValidationError("price cannot be empty", field="price")
        validate_non_negative(changes["price"], "price")
    validate_non_negative(changes.get("duration"), "duration")

    for key in ("name", "description", "price", "duration", "is_active"):
        if key in changes:
            setattr(course, key, changes[key])
    course.updated_at = datetime.utcnow()
    await db.flush()
    return course


async def delete_course(db: AsyncSession, *, course_id: int) -> Course:
    """Blocked while active (non-archived) customers are enrolled."""
    course = await get_course(db, course_id=course_id)
    enrolled = await count_active_enrollments(db, course_id)
    if enrolled:
        raise ValidationError(
            f"Course '{course.name}' has {enrolled} enrolled customer(s) and cannot be deleted"
        )
    await db.delete(course)
    await db.flush()
    return course


async def list_enrolled_customers(db: AsyncSession, *, course_id: int) -> list[dict]:
    await get_course(db, course_id=course_id)
    res = await db.execute(
        select(Enrollment, Customer)
        .join(Customer, Enrollment.customer_id == Customer.id)
        .where(Enrollment.course_id == course_id, Customer.is_archived == False)  # noqa: E712
        .order_by(Enrollment.enrolled_at.desc())
    )
    return [
        {
            "enrollmentId": e.id,
            "status": e.status,
            "enrolledAt": e.enrolled_at.isoformat() if e.enrolled_at else None,
            "customer": {"id": c.id, "name": c.name, "email": c.email, "phone": c.phone},
        }
        for e, c in res.all()
    ]


def serialize_course(course: Course, enrolled_count: int | None = None) -> dict:
    data = {
        "id": course.id,
        "name": course.name,
        "description": course.description,
        "price": course.price,
        "duration": course.duration,
        "isActive": course.is_active,
        "createdAt": course.created_at.isoformat() if course.created_at else None,
    }
    if enrolled_count is not None:
        data["enrolledCount"] = enrolled_count
    return data


async def export_rows(db: AsyncSession) -> tuple[list[str], list[list]]:
    rows = [
        [c.name, c.description, c.price, c.duration, c.is_active, n, c.created_at]
        for c, n in await list_courses(db)
    ]
    return COURSE_EXPORT_HEADERS, rows
