"""
Customer management: CRUD, course enrollments, tags, archiving, EC accounts.

Email addresses are unique across customers *and* administrators; every path
that sets an email goes through auth_service.ensure_email_available().
"""
import logging
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Course, Customer, CustomerTag, Enrollment, Order, Tag
from domain.constants import CUSTOMER_EXPORT_HEADERS
from domain.enums import AuditAction, EnrollmentStatus
from domain.errors import NotFoundError, ValidationError
from middleware.auth import Principal
from services import audit_service, auth_service
from utils.validators import require_text, validate_email, validate_password

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "name_kana", "email", "phone", "address", "birth_date", "gender", "joined_at")


# ── Lookups ─────────────────────────────────────────────────────────


async def get_customer(db: AsyncSession, *, customer_id: int) -> Customer:
    res = await db.execute(
        select(Customer).where(Customer.id == customer_id).execution_options(populate_existing=True)
    )
    customer = res.scalar_one_or_none()
    if customer is None:
        raise NotFoundError("Customer", str(customer_id))
    return customer


async def list_customers(
    db: AsyncSession,
    *,
    archived: bool = False,
    search: str | None = None,
    tag_id: int | None = None,
    course_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    filters = [Customer.is_archived == archived]
    if search:
        like = f"%{search.strip()}%"
        filters.append(
            or_(Customer.name.ilike(like), Customer.name_kana.ilike(like), Customer.email.ilike(like))
        )
    if tag_id is not None:
        filters.append(Customer.customer_tags.any(CustomerTag.tag_id == tag_id))
    if course_id is not None:
        filters.append(Customer.enrollments.any(Enrollment.course_id == course_id))

    total = (await db.execute(select(func.count(Customer.id)).where(*filters))).scalar_one()
    order_col = Customer.archived_at.desc() if archived else Customer.created_at.desc()
    res = await db.execute(
        select(Customer).where(*filters).order_by(order_col, Customer.id.desc()).limit(limit).offset(offset)
    )
    return list(res.scalars().all()), total


async def _load_courses(db: AsyncSession, course_ids: list[int]) -> dict[int, Course]:
    if not course_ids:
        return {}
    res = await db.execute(select(Course).where(Course.id.in_(set(course_ids))))
    courses = {c.id: c for c in res.scalars().all()}
    missing = set(course_ids) - set(courses)
    if missing:
        raise NotFoundError("Course", ", ".join(str(m) for m in sorted(missing)))
    return courses


async def _load_tags(db: AsyncSession, tag_ids: list[int]) -> dict[int, Tag]:
    if not tag_ids:
        return {}
    res = await db.execute(select(Tag).where(Tag.id.in_(set(tag_ids))))
    tags = {t.id: t for t in res.scalars().all()}
    missing = set(tag_ids) - set(tags)
    if missing:
        raise NotFoundError("Tag", ", ".join(str(m) for m in sorted(missing)))
    return tags


def _sync_enrollments(customer: Customer, courses: dict[int, Course]) -> None:
    """Make the customer's enrollments match exactly `courses`, keeping existing rows."""
    keep = [e for e in customer.enrollments if e.course_id in courses]
    existing = {e.course_id for e in keep}
    for course_id, course in courses.items():
        if course_id not in existing:
            keep.append(Enrollment(course=course, status=EnrollmentStatus.ACTIVE.value))
    customer.enrollments = keep


def _sync_tags(customer: Customer, tags: dict[int, Tag]) -> None:
    keep = [ct for ct in customer.customer_tags if ct.tag_id in tags]
    existing = {ct.tag_id for ct in keep}
    for tag_id, tag in tags.items():
        if tag_id not in existing:
            keep.append(CustomerTag(tag=tag))
    customer.customer_tags = keep


def _clean_profile(data: dict) -> dict:
    profile = {k: data[k] for k in PROFILE_FIELDS if k in data}
    if "name" in profile:
        profile["name"] = require_text(profile["name"], "name")
    if "email" in profile:
        profile["email"] = validate_email(profile["email"])
    return profile


# ── Create / update / delete ────────────────────────────────────────


async def create_customer(
    db: AsyncSession,
    *,
    data: dict,
    course_ids: list[int] | None = None,
    tag_ids: list[int] | None = None,
    actor: Principal | None = None,
    audit_meta: dict | None = None,
) -> Customer:
    """
    data keys: name, email (required), name_kana, phone, address, birth_date,
    gender, joined_at.
    """
    if "name" not in data or "email" not in data:
        raise ValidationError("Name and email are required")
    profile = _clean_profile(data)
    await auth_service.ensure_email_available(db, profile["email"])
    courses = await _load_courses(db, course_ids or [])
    tags = await _load_tags(db, tag_ids or [])

    if profile.get("joined_at") is None:
        profile["joined_at"] = datetime.utcnow()
    customer = Customer(**profile, enrollments=[], customer_tags=[])
    _sync_enrollments(customer, courses)
    _sync_tags(customer, tags)
    db.add(customer)
    await db.flush()

    if actor is not None:
        await audit_service.create_audit_log(
            db,
            user_id=actor.audit_id,
            action=AuditAction.CREATE,
            entity="CUSTOMER",
            entity_id=customer.id,
            new_data=serialize_customer(customer),
            **(audit_meta or {}),
        )
    logger.info(f"Customer created: id={customer.id}")
    return customer


async def update_customer(
    db: AsyncSession,
    *,
    customer_id: int,
    data: dict,
    course_ids: list[int] | None = None,
    tag_ids: list[int] | None = None,
    actor: Principal | None = None,
    audit_meta: dict | None = None,
) -> Customer:
    """
    Replace profile fields; course_ids / tag_ids (when not None) replace the
    customer's enrollments / tags.
    """
    customer = await get_customer(db, customer_id=customer_id)
    before = serialize_customer(customer)

    profile = _clean_profile(data)
    if "email" in profile and profile["email"] != customer.email:
        await auth_service.ensure_email_available(db, profile["email"], exclude_customer_id=customer_id)

    for key, value in profile.items():
        setattr(customer, key, value)
    if course_ids is not None:
        _sync_enrollments(customer, await _load_courses(db, course_ids))
    if tag_ids is not None:
        _sync_tags(customer, await _load_tags(db, tag_ids))
    customer.updated_at = datetime.utcnow()
    await db.flush()

    if actor is not None:
        await audit_service.create_audit_log(
            db,
            user_id=actor.audit_id,
            action=AuditAction.UPDATE,
            entity="CUSTOMER",
            entity_id=customer.id,
            old_data=before,
            new_data=serialize_customer(customer),
            **(audit_meta or {}),
        )
    return customer


async def delete_customer(
    db: AsyncSession, *, customer_id: int, actor: Principal | None = None, audit_meta: dict | None = None
) -> None:
    customer = await get_customer(db, customer_id=customer_id)
    order_count = (
        await db.execute(select(func.count(Order.id)).where(Order.customer_id == customer_id))
    ).scalar_one()
    if order_count:
        raise ValidationError(
            f"Customer has {order_count} order(s) and cannot be deleted; archive instead"
        )
    snapshot = serialize_customer(customer)
    await db.delete(customer)
    await db.flush()

    if actor is not None:
        await audit_service.create_audit_log(
            db,
            user_id=actor.audit_id,
            action=AuditAction.DELETE,
            entity="CUSTOMER",
            entity_id=customer_id,
            old_data=snapshot,
            **(audit_meta or {}),
        )
    logger.info(f"Customer deleted: id={customer_id}")


async def set_archived(
    db: AsyncSession,
    *,
    customer_id: int,
    archived: bool,
    actor: Principal | None = None,
    audit_meta: dict | None = None,
) -> Customer:
    customer = await get_customer(db, customer_id=customer_id)
    if customer.is_archived == archived:
        raise ValidationError("Customer is already archived" if archived else "Customer is not archived")
    customer.is_archived = archived
    customer.archived_at = datetime.utcnow() if archived else None
    await db.flush()

    if actor is not None:
        await audit_service.create_audit_log(
            db,
            user_id=actor.audit_id,
            action=AuditAction.ARCHIVE if archived else AuditAction.RESTORE,
            entity="CUSTOMER",
            entity_id=customer.id,
            **(audit_meta or {}),
        )
    return customer


# ── Tags & enrollments ──────────────────────────────────────────────


async def add_tag(db: AsyncSession, *, customer_id: int, tag_id: int) -> Customer:
    customer = await get_customer(db, customer_id=customer_id)
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError("Tag", str(tag_id))
    if any(ct.tag_id == tag_id for ct in customer.customer_tags):
        raise ValidationError("Tag is already assigned to this customer")
    customer.customer_tags.append(CustomerTag(tag=tag))
    await db.flush()
    return customer


async def remove_tag(db: AsyncSession, *, customer_id: int, tag_id: int) -> Customer:
    customer = await get_customer(db, customer_id=customer_id)
    link = next((ct for ct in customer.customer_tags if ct.tag_id == tag_id), None)
    if link is None:
        raise NotFoundError("Customer tag", str(tag_id))
    customer.customer_tags.remove(link)
    await db.flush()
    return customer


async def enroll(db: AsyncSession, *, customer_id: int, course_id: int) -> Enrollment:
    customer = await get_customer(db, customer_id=customer_id)
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", str(course_id))
    if not course.is_active:
        raise ValidationError("Course is not active")
    if any(e.course_id == course_id for e in customer.enrollments):
        raise ValidationError("Customer is already enrolled in this course")
    enrollment = Enrollment(course=course, status=EnrollmentStatus.ACTIVE.value)
    customer.enrollments.append(enrollment)
    await db.flush()
    return enrollment


async def unenroll(db: AsyncSession, *, customer_id: int, enrollment_id: int) -> None:
    customer = await get_customer(db, customer_id=customer_id)
    enrollment = next((e for e in customer.enrollments if e.id == enrollment_id), None)
    if enrollment is None:
        raise NotFoundError("Enrollment", str(enrollment_id))
    customer.enrollments.remove(enrollment)
    await db.flush()


# ── EC accounts ─────────────────────────────────────────────────────


async def change_password(db: AsyncSession, *, customer_id: int, password: str) -> Customer:
    """Set a login password; the customer becomes an EC user."""
    validate_password(password)
    customer = await get_customer(db, customer_id=customer_id)
    customer.password_hash = auth_service.hash_password(password)
    customer.is_ec_user = True
    customer.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Password changed for customer {customer_id}")
    return customer


SELF_SERVICE_FIELDS = ("name", "name_kana", "email", "phone", "address")


async def update_own_profile(
    db: AsyncSession,
    *,
    customer_id: int,
    data: dict,
    current_password: str | None = None,
    new_password: str | None = None,
) -> Customer:
    """
    Shop customers edit their contact details and password from My Page.

    name and email are required; other fields sent blank are cleared.
    """
    if not data.get("name") or not data.get("email"):
        raise ValidationError("Name and email are required")
    customer = await get_customer(db, customer_id=customer_id)

    profile = _clean_profile({k: data.get(k) or None for k in SELF_SERVICE_FIELDS})
    if profile["email"] != customer.email:
        await auth_service.ensure_email_available(db, profile["email"], exclude_customer_id=customer_id)
    if new_password:
        customer.password_hash = auth_service.rehash_for_change(
            current_password, new_password, customer.password_hash
        )

    for key, value in profile.items():
        setattr(customer, key, value)
    customer.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Customer {customer_id} updated own profile")
    return customer


async def list_own_enrollments(db: AsyncSession, *, customer_id: int) -> list[Enrollment]:
    """Enrollments in courses that are still offered, newest first."""
    res = await db.execute(
        select(Enrollment)
        .join(Course, Enrollment.course_id == Course.id)
        .where(Enrollment.customer_id == customer_id, Course.is_active == True)  # noqa: E712
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
    )
    return list(res.scalars().all())


def serialize_own_profile(c: Customer) -> dict:
    data = serialize_customer(c)
    for key in ("isArchived", "archivedAt", "courses", "tags"):
        data.pop(key)
    return data


def serialize_enrollment(e: Enrollment) -> dict:
    return {
        "id": e.id,
        "status": e.status,
        "enrolledAt": _iso(e.enrolled_at),
        "course": {
            "id": e.course.id,
            "name": e.course.name,
            "description": e.course.description,
            "price": e.course.price,
            "duration": e.course.duration,
        },
    }


async def register_customer(db: AsyncSession, *, name: str, email: str, password: str) -> Customer:
    """Public sign-up for the shop."""
    name = require_text(name, "name")
    email = validate_email(email)
    validate_password(password)
    await auth_service.ensure_email_available(db, email)

    customer = Customer(
        name=name,
        email=email,
        password_hash=auth_service.hash_password(password),
        is_ec_user=True,
        joined_at=datetime.utcnow(),
        enrollments=[],
        customer_tags=[],
    )
    db.add(customer)
    await db.flush()
    logger.info(f"Customer registered: id={customer.id}")
    return customer


# ── Serialization / export ──────────────────────────────────────────


def _iso(value):
    return value.isoformat() if value is not None else None


def serialize_customer(c: Customer) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "nameKana": c.name_kana,
        "email": c.email,
        "phone": c.phone,
        "address": c.address,
        "birthDate": _iso(c.birth_date),
        "gender": c.gender,
        "joinedAt": _iso(c.joined_at),
        "isEcUser": c.is_ec_user,
        "isArchived": c.is_archived,
        "archivedAt": _iso(c.archived_at),
        "courses": [
            {
                "enrollmentId": e.id,
                "courseId": e.course_id,
                "name": e.course.name if e.course is not None else None,
                "status": e.status,
                "enrolledAt": _iso(e.enrolled_at),
            }
            for e in c.enrollments
        ],
        "tags": [
            {"id": ct.tag_id, "name": ct.tag.name, "color": ct.tag.color}
            for ct in c.customer_tags
            if ct.tag is not None
        ],
    }


async def export_rows(db: AsyncSession) -> tuple[list[str], list[list]]:
    res = await db.execute(
        select(Customer).where(Customer.is_archived == False).order_by(Customer.created_at, Customer.id)  # noqa: E712
    )
    rows = []
    for c in res.scalars().all():
        rows.append([
            c.name,
            c.name_kana,
            c.email,
            c.phone,
            c.address,
            c.birth_date,
            c.gender,
            c.joined_at,
            ";".join(e.course.name for e in c.enrollments if e.course is not None),
            ";".join(ct.tag.name for ct in c.customer_tags if ct.tag is not None),
        ])
    return CUSTOMER_EXPORT_HEADERS, rows
