"""
Unit tests for the order lifecycle.

Covers placement from the cart, cancellation with stock restoration (and its
all-or-nothing rollback), and administrative status changes.
"""
from unittest.mock import patch

import pytest

from tests.conftest import admin_principal, customer_principal
from db_models import AuditLog, Product
from domain.enums import OrderStatus
from domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from services import cart_service, order_service


async def place_order(db, customer, lines, payment_method="CREDIT_CARD"):
    for product, qty in lines:
        await cart_service.add_item(db, customer_id=customer.id, product_id=product.id, quantity=qty)
    order = await order_service.create_order_from_cart(
        db,
        customer_id=customer.id,
        shipping_address="1-2-3 Shibuya, Tokyo",
        recipient_name=customer.name,
        payment_method=payment_method,
    )
    await db.commit()
    return order


async def stock_of(db, product_id):
    product = await db.get(Product, product_id, populate_existing=True)
    return product.stock


class TestCreateOrder:

    @pytest.mark.asyncio
    async def test_order_snapshots_items_and_decrements_stock(self, db_session, ec_customer, products):
        a, b = products
        order = await place_order(db_session, ec_customer, [(a, 2), (b, 3)])

        assert order.status == OrderStatus.PENDING.value
        assert order.order_number.startswith("ORDER-")
        assert order.subtotal_amount == 2 * 1000 + 3 * 2500
        assert {(i.product_name, i.quantity) for i in order.items} == {("Product A", 2), ("Product B", 3)}
        assert await stock_of(db_session, a.id) == 8
        assert await stock_of(db_session, b.id) == 2
        assert await cart_service.list_cart(db_session, customer_id=ec_customer.id) == []

    @pytest.mark.asyncio
    async def test_empty_cart_rejected(self, db_session, ec_customer):
        with pytest.raises(ValidationError):
            await order_service.create_order_from_cart(
                db_session,
                customer_id=ec_customer.id,
                shipping_address="Tokyo",
                recipient_name="Hanako",
            )

    @pytest.mark.asyncio
    async def test_cash_on_delivery_adds_fee(self, db_session, ec_customer, products):
        from config import settings

        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)], payment_method="CASH_ON_DELIVERY")
        assert order.cod_fee == settings.default_cod_fee
        assert order.total_amount == order.subtotal_amount + order.shipping_fee + order.cod_fee

    @pytest.mark.asyncio
    async def test_unknown_payment_method_rejected(self, db_session, ec_customer):
        with pytest.raises(ValidationError):
            await order_service.create_order_from_cart(
                db_session,
                customer_id=ec_customer.id,
                shipping_address="Tokyo",
                recipient_name="Hanako",
                payment_method="BITCOIN",
            )


class TestCancelOrder:

    @pytest.mark.asyncio
    async def test_cancel_restores_each_item_stock(self, db_session, ec_customer, products):
        a, b = products
        order = await place_order(db_session, ec_customer, [(a, 2), (b, 3)])
        assert await stock_of(db_session, a.id) == 8

        cancelled = await order_service.cancel_order(
            db_session, order_id=order.id, actor=customer_principal(ec_customer)
        )
        await db_session.commit()

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancelled_by == "CUSTOMER"
        assert cancelled.cancel_reason
        assert cancelled.cancelled_at is not None
        assert await stock_of(db_session, a.id) == 10
        assert await stock_of(db_session, b.id) == 5

    @pytest.mark.asyncio
    async def test_failure_mid_restore_leaves_nothing_applied(self, db_session, ec_customer, products):
        a, b = products
        order = await place_order(db_session, ec_customer, [(a, 2), (b, 3)])
        # rollback expires every loaded instance
        a_id, b_id, order_id = a.id, b.id, order.id
        actor = customer_principal(ec_customer)
        real_restore = order_service._restore_item_stock
        calls = []

        async def flaky_restore(db, item):
            calls.append(item.product_id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            await real_restore(db, item)

        with patch.object(order_service, "_restore_item_stock", flaky_restore):
            with pytest.raises(RuntimeError):
                await order_service.cancel_order(db_session, order_id=order_id, actor=actor)

        assert len(calls) == 2
        fresh = await order_service.get_order(db_session, order_id=order_id)
        assert fresh.status == OrderStatus.PENDING.value
        assert fresh.cancelled_at is None
        assert await stock_of(db_session, a_id) == 8
        assert await stock_of(db_session, b_id) == 2

    @pytest.mark.asyncio
    async def test_already_cancelled_rejected_without_stock_change(self, db_session, ec_customer, products):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 2)])
        actor = customer_principal(ec_customer)
        await order_service.cancel_order(db_session, order_id=order.id, actor=actor)
        await db_session.commit()

        with pytest.raises(ValidationError) as exc_info:
            await order_service.cancel_order(db_session, order_id=order.id, actor=actor)
        assert "already cancelled" in exc_info.value.message
        assert await stock_of(db_session, a.id) == 10

    @pytest.mark.asyncio
    async def test_shipped_order_cannot_be_cancelled(self, db_session, ec_customer, owner, products):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])
        await order_service.update_order_status(
            db_session, order_id=order.id, status="SHIPPED", actor=admin_principal(owner)
        )
        await db_session.commit()

        with pytest.raises(ValidationError):
            await order_service.cancel_order(
                db_session, order_id=order.id, actor=customer_principal(ec_customer)
            )
        assert await stock_of(db_session, a.id) == 9

    @pytest.mark.asyncio
    async def test_customer_can_cancel_completed_order(self, db_session, ec_customer, owner, products):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])
        assert await stock_of(db_session, a.id) == 9
        await order_service.update_order_status(
            db_session, order_id=order.id, status="COMPLETED", actor=admin_principal(owner)
        )
        await db_session.commit()

        cancelled = await order_service.cancel_order(
            db_session, order_id=order.id, actor=customer_principal(ec_customer)
        )
        await db_session.commit()

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancelled_by == "CUSTOMER"
        assert await stock_of(db_session, a.id) == 10

    @pytest.mark.asyncio
    async def test_customer_cannot_cancel_someone_elses_order(
        self, db_session, ec_customer, other_customer, products
    ):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])

        with pytest.raises(PermissionDeniedError):
            await order_service.cancel_order(
                db_session, order_id=order.id, actor=customer_principal(other_customer)
            )

    @pytest.mark.asyncio
    async def test_missing_order_is_not_found(self, db_session, ec_customer):
        with pytest.raises(NotFoundError):
            await order_service.cancel_order(
                db_session, order_id=12345, actor=customer_principal(ec_customer)
            )

    @pytest.mark.asyncio
    async def test_admin_cancel_writes_audit_entry(self, db_session, ec_customer, owner, products):
        from sqlalchemy import select

        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])
        cancelled = await order_service.cancel_order(
            db_session, order_id=order.id, actor=admin_principal(owner), reason="Out of season"
        )
        await db_session.commit()

        assert cancelled.cancelled_by == "ADMIN"
        assert cancelled.cancel_reason == "Out of season"
        entries = (await db_session.execute(select(AuditLog).where(AuditLog.action == "CANCEL"))).scalars().all()
        assert len(entries) == 1
        assert entries[0].user_id == f"admin:{owner.id}"


class TestUpdateOrderStatus:

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, db_session, ec_customer, owner, products):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])
        with pytest.raises(ValidationError):
            await order_service.update_order_status(
                db_session, order_id=order.id, status="LOST", actor=admin_principal(owner)
            )

    @pytest.mark.asyncio
    async def test_status_change_recorded(self, db_session, ec_customer, owner, products):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])
        updated = await order_service.update_order_status(
            db_session, order_id=order.id, status="BACKORDERED", actor=admin_principal(owner)
        )
        await db_session.commit()
        assert updated.status == "BACKORDERED"

    @pytest.mark.asyncio
    async def test_cancelling_via_status_restores_stock(self, db_session, ec_customer, owner, products):
        a, b = products
        order = await place_order(db_session, ec_customer, [(a, 2), (b, 3)])
        updated = await order_service.update_order_status(
            db_session, order_id=order.id, status="CANCELLED", actor=admin_principal(owner)
        )
        await db_session.commit()

        assert updated.status == "CANCELLED"
        assert updated.cancelled_by == "ADMIN"
        assert await stock_of(db_session, a.id) == 10
        assert await stock_of(db_session, b.id) == 5

    @pytest.mark.asyncio
    async def test_cancelled_order_stays_cancelled(self, db_session, ec_customer, owner, products):
        a, _ = products
        order = await place_order(db_session, ec_customer, [(a, 1)])
        actor = admin_principal(owner)
        await order_service.cancel_order(db_session, order_id=order.id, actor=actor)
        await db_session.commit()

        with pytest.raises(ValidationError):
            await order_service.update_order_status(
                db_session, order_id=order.id, status="PENDING", actor=actor
            )
