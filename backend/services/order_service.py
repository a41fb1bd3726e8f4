"""
Order lifecycle: placement from cart, listing, cancellation, status changes.

Stock invariant: an order moving to CANCELLED gives back every line's quantity
to its product in the same transaction as the status change. cancel_order()
rolls the session back on any failure so a half-applied cancellation is never
committed by the caller.
"""
import logging
import secrets
import string
import time
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import CartItem, Customer, Order, OrderItem, Product
from domain.constants import (
    ADMIN_CANCEL_REASON,
    CUSTOMER_CANCEL_REASON,
    ORDER_NUMBER_PREFIX,
    ORDER_NUMBER_SUFFIX_LENGTH,
)
from domain.enums import AuditAction, CancelledBy, OrderStatus, PaymentMethod
from domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from middleware.auth import Principal

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}-{suffix}"


# ── Placement ───────────────────────────────────────────────────────


async def _cod_fee(db: AsyncSession, payment_method: PaymentMethod) -> int:
    if payment_method != PaymentMethod.CASH_ON_DELIVERY:
        return 0
    from services import settings_service

    payment = await settings_service.get_payment_settings(db, create=False)
    if payment is not None:
        return payment.cash_on_delivery_fee
    from config import settings
    return settings.default_cod_fee


async def create_order_from_cart(
    db: AsyncSession,
    *,
    customer_id: int,
    shipping_address: str,
    recipient_name: str,
    contact_phone: str | None = None,
    notes: str | None = None,
    payment_method: PaymentMethod | str = PaymentMethod.CREDIT_CARD,
) -> Order:
    """
    Turn the customer's cart into an order.

    Creates the order and its item snapshots, decrements stock and empties the
    cart. Nothing is committed here.
    """
    if not shipping_address or not shipping_address.strip():
        raise ValidationError("Shipping address is required", field="shippingAddress")
    if not recipient_name or not recipient_name.strip():
        raise ValidationError("Recipient name is required", field="recipientName")
    try:
        payment_method = PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError(f"Unknown payment method: {payment_method}", field="paymentMethod")

    res = await db.execute(
        select(CartItem).where(CartItem.customer_id == customer_id).order_by(CartItem.id)
    )
    cart_items = list(res.scalars().all())
    if not cart_items:
        raise ValidationError("Cart is empty")

    lines = []
    for ci in cart_items:
        product = ci.product
        if product is None or not product.is_active:
            raise ValidationError(f"Product is no longer available: {ci.product_id}")
        if product.stock < ci.quantity:
            raise ValidationError(f"Insufficient stock for {product.name}")
        lines.append((product, ci.quantity))

    from services import shipping_service

    quote = await shipping_service.calculate_shipping(db, lines)
    cod_fee = await _cod_fee(db, payment_method)

    order = Order(
        order_number=generate_order_number(),
        customer_id=customer_id,
        subtotal_amount=quote["subtotalAmount"],
        shipping_fee=quote["shippingFee"],
        cod_fee=cod_fee,
        total_amount=quote["totalAmount"] + cod_fee,
        status=OrderStatus.PENDING.value,
        payment_method=payment_method.value,
        shipping_address=shipping_address.strip(),
        recipient_name=recipient_name.strip(),
        contact_phone=contact_phone,
        notes=notes,
        ordered_at=datetime.utcnow(),
        items=[
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                price=product.price,
                quantity=qty,
                subtotal=product.price * qty,
            )
            for product, qty in lines
        ],
    )
    db.add(order)
    await db.flush()

    for product, qty in lines:
        # Conditional decrement guards against a concurrent order taking the stock
        result = await db.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock >= qty)
            .values(stock=Product.stock - qty)
        )
        if result.rowcount != 1:
            raise ValidationError(f"Insufficient stock for {product.name}")

    for ci in cart_items:
        await db.delete(ci)
    await db.flush()

    logger.info(
        f"Order {order.order_number} placed: customer={customer_id} "
        f"items={len(lines)} total={order.total_amount}"
    )
    return order


# ── Queries ─────────────────────────────────────────────────────────


async def list_orders(
    db: AsyncSession,
    *,
    customer_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
    search: str | None = None,
    status: str | None = None,
) -> tuple[list[Order], int]:
    filters = []
    if customer_id is not None:
        filters.append(Order.customer_id == customer_id)
    if status:
        try:
            filters.append(Order.status == OrderStatus(status).value)
        except ValueError:
            raise ValidationError(f"Unknown order status: {status}", field="status")
    if search:
        like = f"%{search.strip()}%"
        filters.append(
            or_(
                Order.order_number.ilike(like),
                Order.recipient_name.ilike(like),
                Customer.name.ilike(like),
                Customer.email.ilike(like),
            )
        )

    base = select(Order).join(Customer, Order.customer_id == Customer.id).where(*filters)
    total = (
        await db.execute(
            select(func.count(Order.id)).join(Customer, Order.customer_id == Customer.id).where(*filters)
        )
    ).scalar_one()
    res = await db.execute(
        base.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset)
    )
    return list(res.scalars().all()), total


async def get_order(db: AsyncSession, *, order_id: int, customer_id: int | None = None) -> Order:
    """
    Fetch one order. When customer_id is given the order must belong to it.

    Raises:
        NotFoundError, PermissionDeniedError
    """
    res = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = res.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", str(order_id))
    if customer_id is not None and order.customer_id != customer_id:
        raise PermissionDeniedError("You can only access your own orders")
    return order


# ── Cancellation ────────────────────────────────────────────────────


def _check_cancellable(order: Order) -> None:
    if order.status == OrderStatus.CANCELLED.value:
        raise ValidationError("Order is already cancelled")
    if order.status == OrderStatus.SHIPPED.value:
        raise ValidationError("Shipped orders cannot be cancelled")


async def _restore_item_stock(db: AsyncSession, item: OrderItem) -> None:
    await db.execute(
        update(Product)
        .where(Product.id == item.product_id)
        .values(stock=Product.stock + item.quantity)
    )


async def cancel_order(
    db: AsyncSession,
    *,
    order_id: int,
    actor: Principal,
    reason: str | None = None,
    audit_meta: dict | None = None,
) -> Order:
    """
    Cancel an order and give its stock back.

    Raises:
        NotFoundError: order does not exist
        PermissionDeniedError: a customer cancelling someone else's order
        ValidationError: already cancelled, shipped (or completed, for customers)
    """
    order = await get_order(
        db,
        order_id=order_id,
        customer_id=actor.id if actor.is_customer else None,
    )
    _check_cancellable(order)

    cancelled_by = CancelledBy.CUSTOMER if actor.is_customer else CancelledBy.ADMIN
    default_reason = CUSTOMER_CANCEL_REASON if actor.is_customer else ADMIN_CANCEL_REASON
    previous_status = order.status

    try:
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = datetime.utcnow()
        order.cancelled_by = cancelled_by.value
        order.cancel_reason = reason or default_reason
        await db.flush()

        for item in order.items:
            await _restore_item_stock(db, item)
        await db.flush()
    except Exception:
        logger.error(f"Cancellation of order {order_id} failed; rolling back", exc_info=True)
        await db.rollback()
        raise

    if actor.is_admin:
        from services import audit_service

        await audit_service.create_audit_log(
            db,
            user_id=actor.audit_id,
            action=AuditAction.CANCEL,
            entity="ORDER",
            entity_id=order.id,
            old_data={"status": previous_status},
            new_data={"status": order.status, "reason": order.cancel_reason},
            **(audit_meta or {}),
        )

    logger.info(
        f"Order {order.order_number} cancelled by {cancelled_by.value} "
        f"(restored {sum(i.quantity for i in order.items)} units)"
    )
    return order


async def update_order_status(
    db: AsyncSession,
    *,
    order_id: int,
    status: str,
    actor: Principal,
    reason: str | None = None,
    audit_meta: dict | None = None,
) -> Order:
    """
    Administrative status change.

    CANCELLED goes through cancel_order() so stock is restored exactly as on
    the dedicated cancel endpoint. A cancelled order cannot be moved to any
    other status (its stock has already been returned).
    """
    try:
        target = OrderStatus(status)
    except ValueError:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(s.value for s in OrderStatus)}",
            field="status",
        )

    if target == OrderStatus.CANCELLED:
        return await cancel_order(
            db, order_id=order_id, actor=actor, reason=reason, audit_meta=audit_meta
        )

    order = await get_order(db, order_id=order_id)
    if order.status == OrderStatus.CANCELLED.value:
        raise ValidationError("Cancelled orders cannot change status")

    previous_status = order.status
    order.status = target.value
    await db.flush()

    from services import audit_service

    await audit_service.create_audit_log(
        db,
        user_id=actor.audit_id,
        action=AuditAction.STATUS_CHANGE,
        entity="ORDER",
        entity_id=order.id,
        old_data={"status": previous_status},
        new_data={"status": order.status},
        **(audit_meta or {}),
    )
    logger.info(f"Order {order.order_number}: {previous_status} → {order.status}")
    return order


def serialize_order(order: Order, *, include_customer: bool = False) -> dict:
    data = {
        "id": order.id,
        "orderNumber": order.order_number,
        "customerId": order.customer_id,
        "subtotalAmount": order.subtotal_amount,
        "shippingFee": order.shipping_fee,
        "codFee": order.cod_fee,
        "totalAmount": order.total_amount,
        "status": order.status,
        "paymentMethod": order.payment_method,
        "shippingAddress": order.shipping_address,
        "recipientName": order.recipient_name,
        "contactPhone": order.contact_phone,
        "notes": order.notes,
        "orderedAt": order.ordered_at.isoformat() if order.ordered_at else None,
        "cancelledAt": order.cancelled_at.isoformat() if order.cancelled_at else None,
        "cancelledBy": order.cancelled_by,
        "cancelReason": order.cancel_reason,
        "items": [
            {
                "id": i.id,
                "productId": i.product_id,
                "productName": i.product_name,
                "price": i.price,
                "quantity": i.quantity,
                "subtotal": i.subtotal,
            }
            for i in order.items
        ],
    }
    if include_customer and order.customer is not None:
        data["customer"] = {
            "id": order.customer.id,
            "name": order.customer.name,
            "email": order.customer.email,
        }
    return data
