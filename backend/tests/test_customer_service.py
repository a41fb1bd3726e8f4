"""
Unit tests for customer management.

Tests: creation with relations, cross-table email uniqueness, archiving,
tags / enrollments, delete guard and CSV export rows.
"""
import pytest
from sqlalchemy import select

from db_models import AuditLog, Course, Order, Tag
from domain.errors import NotFoundError, ValidationError
from services import customer_service
from tests.conftest import TEST_PASSWORD, admin_principal


@pytest.fixture
async def course(db_session):
    c = Course(name="Python Basics", price=30000, is_active=True)
    db_session.add(c)
    await db_session.commit()
    return c


@pytest.fixture
async def vip_tag(db_session):
    t = Tag(name="VIP", color="#FF0000")
    db_session.add(t)
    await db_session.commit()
    return t


class TestCreateCustomer:

    @pytest.mark.asyncio
    async def test_create_with_courses_and_tags(self, db_session, owner, course, vip_tag):
        customer = await customer_service.create_customer(
            db_session,
            data={"name": "Jiro Tanaka", "email": "Jiro@Example.com", "phone": "090-0000-0000"},
            course_ids=[course.id],
            tag_ids=[vip_tag.id],
            actor=admin_principal(owner),
        )
        await db_session.commit()

        data = customer_service.serialize_customer(customer)
        assert data["email"] == "jiro@example.com"
        assert [c["name"] for c in data["courses"]] == ["Python Basics"]
        assert [t["name"] for t in data["tags"]] == ["VIP"]

        entries = (await db_session.execute(select(AuditLog))).scalars().all()
        assert [e.action for e in entries] == ["CREATE"]

    @pytest.mark.asyncio
    async def test_name_and_email_required(self, db_session):
        with pytest.raises(ValidationError):
            await customer_service.create_customer(db_session, data={"name": "No Email"})

    @pytest.mark.asyncio
    async def test_duplicate_customer_email_rejected(self, db_session, ec_customer):
        with pytest.raises(ValidationError) as exc_info:
            await customer_service.create_customer(
                db_session, data={"name": "Copy", "email": "HANAKO@example.com"}
            )
        assert "already registered" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_email_used_by_admin_rejected(self, db_session, owner):
        with pytest.raises(ValidationError):
            await customer_service.create_customer(
                db_session, data={"name": "Shadow", "email": "owner@example.com"}
            )

    @pytest.mark.asyncio
    async def test_unknown_course_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await customer_service.create_customer(
                db_session, data={"name": "A", "email": "a@example.com"}, course_ids=[999]
            )


class TestUpdateCustomer:

    @pytest.mark.asyncio
    async def test_update_keeps_own_email_and_replaces_tags(self, db_session, ec_customer, vip_tag, owner):
        customer = await customer_service.update_customer(
            db_session,
            customer_id=ec_customer.id,
            data={"email": "hanako@example.com", "phone": "03-1111-2222"},
            tag_ids=[vip_tag.id],
            actor=admin_principal(owner),
        )
        await db_session.commit()
        assert customer.phone == "03-1111-2222"
        assert [ct.tag_id for ct in customer.customer_tags] == [vip_tag.id]

        customer = await customer_service.update_customer(
            db_session, customer_id=ec_customer.id, data={}, tag_ids=[]
        )
        await db_session.commit()
        assert customer.customer_tags == []

    @pytest.mark.asyncio
    async def test_update_to_admin_email_rejected(self, db_session, ec_customer, owner):
        with pytest.raises(ValidationError):
            await customer_service.update_customer(
                db_session, customer_id=ec_customer.id, data={"email": "owner@example.com"}
            )


class TestArchiveAndDelete:

    @pytest.mark.asyncio
    async def test_archive_hides_from_default_list(self, db_session, ec_customer, owner):
        await customer_service.set_archived(
            db_session, customer_id=ec_customer.id, archived=True, actor=admin_principal(owner)
        )
        await db_session.commit()

        active, total = await customer_service.list_customers(db_session)
        archived, archived_total = await customer_service.list_customers(db_session, archived=True)
        assert total == 0 and active == []
        assert archived_total == 1
        assert archived[0].archived_at is not None

    @pytest.mark.asyncio
    async def test_archiving_twice_rejected(self, db_session, ec_customer):
        await customer_service.set_archived(db_session, customer_id=ec_customer.id, archived=True)
        with pytest.raises(ValidationError):
            await customer_service.set_archived(db_session, customer_id=ec_customer.id, archived=True)

    @pytest.mark.asyncio
    async def test_delete_blocked_by_orders(self, db_session, ec_customer):
        db_session.add(Order(order_number="ORDER-1-AAAAAAAAA", customer_id=ec_customer.id))
        await db_session.commit()
        with pytest.raises(ValidationError):
            await customer_service.delete_customer(db_session, customer_id=ec_customer.id)

    @pytest.mark.asyncio
    async def test_delete_without_orders(self, db_session, other_customer):
        customer_id = other_customer.id
        await customer_service.delete_customer(db_session, customer_id=customer_id)
        await db_session.commit()
        with pytest.raises(NotFoundError):
            await customer_service.get_customer(db_session, customer_id=customer_id)


class TestTagsAndEnrollments:

    @pytest.mark.asyncio
    async def test_duplicate_tag_rejected(self, db_session, ec_customer, vip_tag):
        await customer_service.add_tag(db_session, customer_id=ec_customer.id, tag_id=vip_tag.id)
        with pytest.raises(ValidationError):
            await customer_service.add_tag(db_session, customer_id=ec_customer.id, tag_id=vip_tag.id)

    @pytest.mark.asyncio
    async def test_enroll_requires_active_course(self, db_session, ec_customer, course):
        course.is_active = False
        await db_session.commit()
        with pytest.raises(ValidationError):
            await customer_service.enroll(db_session, customer_id=ec_customer.id, course_id=course.id)

    @pytest.mark.asyncio
    async def test_enroll_then_unenroll(self, db_session, ec_customer, course):
        enrollment = await customer_service.enroll(db_session, customer_id=ec_customer.id, course_id=course.id)
        await db_session.commit()
        with pytest.raises(ValidationError):
            await customer_service.enroll(db_session, customer_id=ec_customer.id, course_id=course.id)

        await customer_service.unenroll(db_session, customer_id=ec_customer.id, enrollment_id=enrollment.id)
        await db_session.commit()
        customer = await customer_service.get_customer(db_session, customer_id=ec_customer.id)
        assert customer.enrollments == []


class TestAccountsAndExport:

    @pytest.mark.asyncio
    async def test_change_password_makes_ec_user(self, db_session, other_customer):
        from services import auth_service

        other_customer.is_ec_user = False
        await db_session.commit()
        customer = await customer_service.change_password(
            db_session, customer_id=other_customer.id, password="newpass1"
        )
        assert customer.is_ec_user is True
        assert auth_service.verify_password("newpass1", customer.password_hash)

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, db_session, other_customer):
        with pytest.raises(ValidationError):
            await customer_service.change_password(db_session, customer_id=other_customer.id, password="abc")

    @pytest.mark.asyncio
    async def test_register_rejects_admin_email(self, db_session, owner):
        with pytest.raises(ValidationError):
            await customer_service.register_customer(
                db_session, name="Someone", email="owner@example.com", password="secret123"
            )

    @pytest.mark.asyncio
    async def test_export_rows_join_courses_and_tags(self, db_session, course, vip_tag):
        await customer_service.create_customer(
            db_session,
            data={"name": "Jiro", "email": "jiro@example.com"},
            course_ids=[course.id],
            tag_ids=[vip_tag.id],
        )
        await db_session.commit()

        headers, rows = await customer_service.export_rows(db_session)
        assert headers[0] == "name" and headers[-1] == "tags"
        assert rows[0][0] == "Jiro"
        assert rows[0][-2] == "Python Basics"
        assert rows[0][-1] == "VIP"


class TestSelfService:

    @pytest.mark.asyncio
    async def test_update_own_profile_clears_blank_fields(self, db_session, ec_customer):
        ec_customer.phone = "090-0000-0000"
        await db_session.commit()

        customer = await customer_service.update_own_profile(
            db_session,
            customer_id=ec_customer.id,
            data={"name": "Hanako Sato", "email": "hanako@example.com", "phone": "", "address": "Osaka"},
        )
        await db_session.commit()

        assert customer.name == "Hanako Sato"
        assert customer.phone is None
        assert customer.address == "Osaka"
        data = customer_service.serialize_own_profile(customer)
        assert data["email"] == "hanako@example.com"
        assert "tags" not in data and "isArchived" not in data

    @pytest.mark.asyncio
    async def test_own_profile_requires_name_and_email(self, db_session, ec_customer):
        with pytest.raises(ValidationError):
            await customer_service.update_own_profile(
                db_session, customer_id=ec_customer.id, data={"name": "Hanako", "email": ""}
            )

    @pytest.mark.asyncio
    async def test_own_profile_email_taken_by_other_customer(self, db_session, ec_customer, other_customer):
        with pytest.raises(ValidationError) as exc_info:
            await customer_service.update_own_profile(
                db_session, customer_id=ec_customer.id, data={"name": "Hanako", "email": "taro@example.com"}
            )
        assert "already registered" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_own_password_change(self, db_session, ec_customer):
        from services import auth_service

        with pytest.raises(ValidationError):
            await customer_service.update_own_profile(
                db_session,
                customer_id=ec_customer.id,
                data={"name": "Hanako", "email": "hanako@example.com"},
                current_password="not-it",
                new_password="another-pass",
            )
        customer = await customer_service.update_own_profile(
            db_session,
            customer_id=ec_customer.id,
            data={"name": "Hanako", "email": "hanako@example.com"},
            current_password=TEST_PASSWORD,
            new_password="another-pass",
        )
        assert auth_service.verify_password("another-pass", customer.password_hash)

    @pytest.mark.asyncio
    async def test_enrollments_hide_inactive_courses(self, db_session, ec_customer, course):
        retired = Course(name="Old Course", price=1000, is_active=True)
        db_session.add(retired)
        await db_session.commit()
        await customer_service.enroll(db_session, customer_id=ec_customer.id, course_id=course.id)
        await customer_service.enroll(db_session, customer_id=ec_customer.id, course_id=retired.id)
        retired.is_active = False
        await db_session.commit()

        enrollments = await customer_service.list_own_enrollments(db_session, customer_id=ec_customer.id)
        assert [e.course_id for e in enrollments] == [course.id]
        data = customer_service.serialize_enrollment(enrollments[0])
        assert data["course"]["name"] == "Python Basics"
        assert data["status"] == "ACTIVE"
