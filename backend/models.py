"""
Pydantic models for request validation.

Bodies arrive in camelCase; every model also accepts the snake_case field
names so tests and internal callers can construct them directly.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiBase(BaseModel):
    """Shared base: allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    def changes(self) -> dict:
        """Fields the client actually sent, keyed by Python name."""
        return self.model_dump(exclude_unset=True)


# ── Auth ────────────────────────────────────────────────────────────

class LoginRequest(ApiBase):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=200)


class RegisterRequest(ApiBase):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=200)


# ── Customers ───────────────────────────────────────────────────────

class CustomerBase(ApiBase):
    name_kana: Optional[str] = Field(default=None, alias="nameKana", max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = None
    birth_date: Optional[date] = Field(default=None, alias="birthDate")
    gender: Optional[str] = Field(default=None, max_length=20)
    joined_at: Optional[datetime] = Field(default=None, alias="joinedAt")
    course_ids: Optional[List[int]] = Field(default=None, alias="courseIds")
    tag_ids: Optional[List[int]] = Field(default=None, alias="tagIds")

    def profile(self) -> dict:
        data = self.changes()
        data.pop("course_ids", None)
        data.pop("tag_ids", None)
        return data


class CustomerCreateRequest(CustomerBase):
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)


class CustomerUpdateRequest(CustomerBase):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)


class ChangePasswordRequest(ApiBase):
    password: str = Field(..., min_length=1, max_length=200)


class TagAssignRequest(ApiBase):
    tag_id: int = Field(..., alias="tagId", gt=0)


class EnrollRequest(ApiBase):
    course_id: int = Field(..., alias="courseId", gt=0)


# ── Courses & tags ──────────────────────────────────────────────────

class CourseCreateRequest(ApiBase):
    name: str = Field(..., max_length=200)
    price: Optional[int] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    is_active: bool = Field(True, alias="isActive")


class CourseUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, max_length=200)
    price: Optional[int] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class TagRequest(ApiBase):
    name: Optional[str] = Field(default=None, max_length=100)
    color: Optional[str] = Field(default=None, max_length=7)


# ── Catalog ─────────────────────────────────────────────────────────

class ProductCreateRequest(ApiBase):
    name: str = Field(..., max_length=200)
    price: int
    stock: int = 0
    description: Optional[str] = None
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=500)
    sort_order: int = Field(0, alias="sortOrder")
    is_active: bool = Field(True, alias="isActive")


class ProductUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, max_length=200)
    price: Optional[int] = None
    stock: Optional[int] = None
    description: Optional[str] = None
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=500)
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class CategoryCreateRequest(ApiBase):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    category_type: Optional[str] = Field(default=None, alias="categoryType")
    sort_order: int = Field(0, alias="sortOrder")
    is_active: bool = Field(True, alias="isActive")


class CategoryUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    category_type: Optional[str] = Field(default=None, alias="categoryType")
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class ShippingRateCreateRequest(ApiBase):
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    shipping_fee: int = Field(..., alias="shippingFee")
    free_shipping_threshold: Optional[int] = Field(default=None, alias="freeShippingThreshold")
    is_active: bool = Field(True, alias="isActive")


class ShippingRateUpdateRequest(ApiBase):
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    shipping_fee: Optional[int] = Field(default=None, alias="shippingFee")
    free_shipping_threshold: Optional[int] = Field(default=None, alias="freeShippingThreshold")
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class ShippingLine(ApiBase):
    product_id: int = Field(..., alias="productId", gt=0)
    quantity: int = Field(1)


class ShippingCalcRequest(ApiBase):
    items: List[ShippingLine]


# ── Cart & orders ───────────────────────────────────────────────────

class CartAddRequest(ApiBase):
    product_id: int = Field(..., alias="productId", gt=0)
    quantity: int = Field(1, ge=1, le=999)


class CartUpdateRequest(ApiBase):
    quantity: int = Field(..., ge=1, le=999)


class OrderCreateRequest(ApiBase):
    shipping_address: str = Field(..., alias="shippingAddress")
    recipient_name: str = Field(..., alias="recipientName", max_length=100)
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone", max_length=30)
    notes: Optional[str] = None
    payment_method: str = Field("CREDIT_CARD", alias="paymentMethod")


class OrderCancelRequest(ApiBase):
    reason: Optional[str] = Field(default=None, max_length=1000)


class OrderStatusRequest(ApiBase):
    status: str
    reason: Optional[str] = Field(default=None, max_length=1000)


# ── Email ───────────────────────────────────────────────────────────

class EmailTemplateCreateRequest(ApiBase):
    name: str = Field(..., max_length=200)
    subject: str = Field(..., max_length=500)
    content: str
    is_default: bool = Field(False, alias="isDefault")


class EmailTemplateUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, max_length=200)
    subject: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = None
    is_default: Optional[bool] = Field(default=None, alias="isDefault")


class SendEmailRequest(ApiBase):
    customer_id: int = Field(..., alias="customerId", gt=0)
    subject: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    template_id: Optional[int] = Field(default=None, alias="templateId")


class RecipientSelection(ApiBase):
    include_all: bool = Field(False, alias="includeAll")
    tag_ids: List[int] = Field(default_factory=list, alias="tagIds")
    course_ids: List[int] = Field(default_factory=list, alias="courseIds")
    customer_ids: List[int] = Field(default_factory=list, alias="customerIds")


class BulkEmailRequest(RecipientSelection):
    subject: str = Field(..., max_length=500)
    content: str
    template_id: Optional[int] = Field(default=None, alias="templateId")


class EmailSettingsRequest(ApiBase):
    smtp_host: Optional[str] = Field(default=None, alias="smtpHost", max_length=255)
    smtp_port: Optional[int] = Field(default=None, alias="smtpPort")
    smtp_user: Optional[str] = Field(default=None, alias="smtpUser", max_length=255)
    smtp_pass: Optional[str] = Field(default=None, alias="smtpPass", max_length=255)
    from_address: Optional[str] = Field(default=None, alias="fromAddress", max_length=255)
    from_name: Optional[str] = Field(default=None, alias="fromName", max_length=100)
    signature: Optional[str] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")


# ── Settings ────────────────────────────────────────────────────────

class PaymentSettingsRequest(ApiBase):
    stripe_public_key: Optional[str] = Field(default=None, alias="stripePublicKey", max_length=255)
    stripe_secret_key: Optional[str] = Field(default=None, alias="stripeSecretKey", max_length=255)
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="stripeWebhookSecret", max_length=255)
    is_test_mode: Optional[bool] = Field(default=None, alias="isTestMode")
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    currency: Optional[str] = Field(default=None, max_length=10)
    enable_credit_card: Optional[bool] = Field(default=None, alias="enableCreditCard")
    enable_bank_transfer: Optional[bool] = Field(default=None, alias="enableBankTransfer")
    enable_cash_on_delivery: Optional[bool] = Field(default=None, alias="enableCashOnDelivery")
    credit_card_fee_rate: Optional[float] = Field(default=None, alias="creditCardFeeRate")
    bank_transfer_fee: Optional[int] = Field(default=None, alias="bankTransferFee")
    cash_on_delivery_fee: Optional[int] = Field(default=None, alias="cashOnDeliveryFee")


class SystemSettingsRequest(ApiBase):
    system_name: Optional[str] = Field(default=None, alias="systemName", max_length=200)
    logo_url: Optional[str] = Field(default=None, alias="logoUrl", max_length=500)
    favicon_url: Optional[str] = Field(default=None, alias="faviconUrl", max_length=500)
    primary_color: Optional[str] = Field(default=None, alias="primaryColor")
    secondary_color: Optional[str] = Field(default=None, alias="secondaryColor")
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    description: Optional[str] = None


# ── Admins ──────────────────────────────────────────────────────────

class AdminCreateRequest(ApiBase):
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=200)
    role: Optional[str] = None


class AdminUpdateRequest(ApiBase):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=200)
    role: Optional[str] = None


# ── Self-service profiles ───────────────────────────────────────────

class PasswordChangeFields(ApiBase):
    current_password: Optional[str] = Field(default=None, alias="currentPassword", max_length=200)
    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=200)


class AdminProfileRequest(PasswordChangeFields):
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)


class CustomerProfileRequest(PasswordChangeFields):
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    name_kana: Optional[str] = Field(default=None, alias="nameKana", max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = None

    def profile(self) -> dict:
        return self.model_dump(include={"name", "email", "name_kana", "phone", "address"})
