"""
SQLAlchemy ORM models for the CRM / EC admin API.

Tables:
    users            : administrator accounts (OWNER / ADMIN / OPERATOR)
    customers        : CRM customers; EC customers also hold a password
    courses          : sellable courses
    enrollments      : customer ↔ course registrations
    tags             : customer labels
    customer_tags    : customer ↔ tag links
    categories       : product categories (PHYSICAL / DIGITAL)
    products         : catalog items with mutable stock
    shipping_rates   : per-category (or default) shipping fee + free threshold
    cart_items       : EC customer carts
    orders           : placed orders with cancellation metadata
    order_items      : price / name snapshots per order line
    email_templates  : reusable email bodies
    email_logs       : every send attempt (SENT / FAILED)
    email_settings   : SMTP configuration (single row)
    payment_settings : Stripe keys and payment-method fees (single row)
    system_settings  : branding (single active row)
    audit_logs       : append-only admin activity trail
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Date, Text, ForeignKey,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base


# ════════════════════════════════════════════════════════════════════
# Accounts
# ════════════════════════════════════════════════════════════════════


class AdminUser(Base):
    """Administrator accounts."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="OPERATOR")  # OWNER | ADMIN | OPERATOR
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Customer(Base):
    """CRM customer. is_ec_user customers can log in to the shop."""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    name_kana = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    joined_at = Column(DateTime, default=datetime.utcnow)
    password_hash = Column(String(255), nullable=True)
    is_ec_user = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False, index=True)
    archived_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    enrollments = relationship(
        "Enrollment", back_populates="customer", cascade="all, delete-orphan", lazy="selectin"
    )
    customer_tags = relationship(
        "CustomerTag", back_populates="customer", cascade="all, delete-orphan", lazy="selectin"
    )
    cart_items = relationship("CartItem", back_populates="customer", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="customer")


# ════════════════════════════════════════════════════════════════════
# Courses & tags
# ════════════════════════════════════════════════════════════════════


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False, default=0)
    duration = Column(Integer, nullable=True)  # months
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")


class Enrollment(Base):
    """One enrollment per customer + course."""
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("customer_id", "course_id", name="uq_enrollment_customer_course"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime, default=datetime.utcnow)
    status = Column(String(20), nullable=False, default="ACTIVE")

    customer = relationship("Customer", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments", lazy="selectin")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    color = Column(String(7), nullable=False, default="#3B82F6")
    created_at = Column(DateTime, default=datetime.utcnow)

    customer_tags = relationship("CustomerTag", back_populates="tag", cascade="all, delete-orphan")


class CustomerTag(Base):
    __tablename__ = "customer_tags"
    __table_args__ = (
        UniqueConstraint("customer_id", "tag_id", name="uq_customer_tag"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="customer_tags")
    tag = relationship("Tag", back_populates="customer_tags", lazy="selectin")


# ════════════════════════════════════════════════════════════════════
# Catalog & shipping
# ════════════════════════════════════════════════════════════════════


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    category_type = Column(String(20), nullable=False, default="PHYSICAL")  # PHYSICAL | DIGITAL
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="category")
    shipping_rate = relationship(
        "ShippingRate", back_populates="category", uselist=False, cascade="all, delete-orphan"
    )


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_category_active", "category_id", "is_active"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    image_url = Column(String(500), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="products", lazy="selectin")


class ShippingRate(Base):
    """Per-category shipping rate; category_id NULL is the default rate."""
    __tablename__ = "shipping_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), unique=True, nullable=True)
    shipping_fee = Column(Integer, nullable=False, default=0)
    free_shipping_threshold = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="shipping_rate", lazy="selectin")


# ════════════════════════════════════════════════════════════════════
# Cart & orders
# ════════════════════════════════════════════════════════════════════


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("customer_id", "product_id", name="uq_cart_customer_product"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="cart_items")
    product = relationship("Product", lazy="selectin")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_customer_status", "customer_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(40), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    subtotal_amount = Column(Integer, nullable=False, default=0)
    shipping_fee = Column(Integer, nullable=False, default=0)
    cod_fee = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="PENDING")
    payment_method = Column(String(30), nullable=False, default="CREDIT_CARD")
    shipping_address = Column(Text, nullable=True)
    recipient_name = Column(String(100), nullable=True)
    contact_phone = Column(String(30), nullable=True)
    notes = Column(Text, nullable=True)
    ordered_at = Column(DateTime, default=datetime.utcnow)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(20), nullable=True)  # CUSTOMER | ADMIN
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="orders", lazy="selectin")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )


class OrderItem(Base):
    """Order line with name / price snapshot at order time."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")


# ════════════════════════════════════════════════════════════════════
# Email
# ════════════════════════════════════════════════════════════════════


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    subject = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    subject = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    recipient_email = Column(String(255), nullable=False)
    recipient_name = Column(String(100), nullable=True)
    status = Column(String(10), nullable=False)  # SENT | FAILED
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class EmailSettings(Base):
    __tablename__ = "email_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    smtp_host = Column(String(255), nullable=False, default="smtp.gmail.com")
    smtp_port = Column(Integer, nullable=False, default=587)
    smtp_user = Column(String(255), nullable=True)
    smtp_pass = Column(String(255), nullable=True)
    from_address = Column(String(255), nullable=True)
    from_name = Column(String(100), nullable=False, default="CRM")
    signature = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ════════════════════════════════════════════════════════════════════
# Settings & audit
# ════════════════════════════════════════════════════════════════════


class PaymentSettings(Base):
    __tablename__ = "payment_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stripe_public_key = Column(String(255), nullable=True)
    stripe_secret_key = Column(String(255), nullable=True)
    stripe_webhook_secret = Column(String(255), nullable=True)
    is_test_mode = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=False)
    currency = Column(String(10), nullable=False, default="jpy")
    enable_credit_card = Column(Boolean, nullable=False, default=False)
    enable_bank_transfer = Column(Boolean, nullable=False, default=True)
    enable_cash_on_delivery = Column(Boolean, nullable=False, default=True)
    credit_card_fee_rate = Column(Float, nullable=False, default=3.6)
    bank_transfer_fee = Column(Integer, nullable=False, default=0)
    cash_on_delivery_fee = Column(Integer, nullable=False, default=330)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    system_name = Column(String(200), nullable=False)
    logo_url = Column(String(500), nullable=True)
    favicon_url = Column(String(500), nullable=True)
    primary_color = Column(String(7), nullable=False)
    secondary_color = Column(String(7), nullable=False)
    background_color = Column(String(7), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AuditLog(Base):
    """Append-only. old_data / new_data hold JSON text."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_entity", "entity", "entity_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), nullable=False, index=True)
    action = Column(String(30), nullable=False, index=True)
    entity = Column(String(50), nullable=True)
    entity_id = Column(String(50), nullable=True)
    old_data = Column(Text, nullable=True)
    new_data = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
