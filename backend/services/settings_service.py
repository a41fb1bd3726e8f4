"""
Singleton settings rows: payment settings and system (branding) settings.

Secrets (Stripe secret key, webhook secret) are write-only: serializers never
include them and updates only overwrite them when a new value is supplied.
"""
import logging
from datetime import datetime

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import PaymentSettings, SystemSettings
from domain.constants import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    DEFAULT_SYSTEM_NAME,
)
from domain.errors import ExternalServiceError, ValidationError
from utils.validators import validate_hex_color, validate_non_negative

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Payment settings
# ════════════════════════════════════════════════════════════════════


async def get_payment_settings(db: AsyncSession, *, create: bool = True) -> PaymentSettings | None:
    res = await db.execute(select(PaymentSettings).order_by(PaymentSettings.id).limit(1))
    row = res.scalar_one_or_none()
    if row is None and create:
        row = PaymentSettings(is_test_mode=True, is_active=False, currency=settings.currency)
        db.add(row)
        await db.flush()
    return row


async def update_payment_settings(db: AsyncSession, *, changes: dict) -> PaymentSettings:
    """
    changes keys mirror PaymentSettings columns. Missing keys are left untouched;
    empty secret values are ignored.
    """
    row = await get_payment_settings(db)

    for secret in ("stripe_secret_key", "stripe_webhook_secret"):
        if not changes.get(secret):
            changes.pop(secret, None)
    for fee_field in ("credit_card_fee_rate", "bank_transfer_fee", "cash_on_delivery_fee"):
        validate_non_negative(changes.get(fee_field), fee_field)

    public_key = changes.get("stripe_public_key", row.stripe_public_key)
    is_active = changes.get("is_active", row.is_active)
    if is_active and not public_key:
        raise ValidationError("Stripe public key is required when payment is active")

    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Payment settings updated: fields={sorted(changes)}")
    return row


def serialize_payment_settings(row: PaymentSettings) -> dict:
    return {
        "id": row.id,
        "stripePublicKey": row.stripe_public_key,
        "hasSecretKey": bool(row.stripe_secret_key),
        "hasWebhookSecret": bool(row.stripe_webhook_secret),
        "isTestMode": row.is_test_mode,
        "isActive": row.is_active,
        "currency": row.currency,
        "enableCreditCard": row.enable_credit_card,
        "enableBankTransfer": row.enable_bank_transfer,
        "enableCashOnDelivery": row.enable_cash_on_delivery,
        "creditCardFeeRate": row.credit_card_fee_rate,
        "bankTransferFee": row.bank_transfer_fee,
        "cashOnDeliveryFee": row.cash_on_delivery_fee,
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }


def public_payment_settings(row: PaymentSettings | None) -> dict:
    """Customer-facing subset; defaults when nothing is configured."""
    if row is None:
        return {
            "enableCreditCard": False,
            "enableBankTransfer": True,
            "enableCashOnDelivery": True,
            "creditCardFeeRate": 3.6,
            "bankTransferFee": 0,
            "cashOnDeliveryFee": settings.default_cod_fee,
            "isActive": False,
            "currency": settings.currency,
            "stripePublicKey": None,
        }
    return {
        "enableCreditCard": row.enable_credit_card,
        "enableBankTransfer": row.enable_bank_transfer,
        "enableCashOnDelivery": row.enable_cash_on_delivery,
        "creditCardFeeRate": row.credit_card_fee_rate,
        "bankTransferFee": row.bank_transfer_fee,
        "cashOnDeliveryFee": row.cash_on_delivery_fee,
        "isActive": row.is_active,
        "currency": row.currency,
        "stripePublicKey": row.stripe_public_key if row.is_active else None,
    }


async def check_stripe_connection(row: PaymentSettings) -> dict:
    """
    Call GET /v1/account with the stored secret key.

    Raises:
        ValidationError if no secret key is stored
        ExternalServiceError if Stripe rejects the key or is unreachable
    """
    if not row.stripe_secret_key:
        raise ValidationError("Stripe secret key is not configured")

    url = f"{settings.stripe_api_base.rstrip('/')}/v1/account"
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            resp = await client.get(url, auth=(row.stripe_secret_key, ""))
    except httpx.HTTPError as e:
        logger.error(f"Stripe connection test failed: {e}")
        raise ExternalServiceError("Could not reach Stripe")

    if resp.status_code != 200:
        logger.warning(f"Stripe connection test rejected: HTTP {resp.status_code}")
        raise ExternalServiceError(
            "Stripe rejected the configured key",
            details={"status": resp.status_code},
        )

    account = resp.json()
    return {
        "accountId": account.get("id"),
        "country": account.get("country"),
        "defaultCurrency": account.get("default_currency"),
        "chargesEnabled": account.get("charges_enabled"),
        "isTestMode": row.stripe_secret_key.startswith("sk_test_"),
    }


# ════════════════════════════════════════════════════════════════════
# System settings
# ════════════════════════════════════════════════════════════════════


async def get_system_settings(db: AsyncSession) -> SystemSettings:
    """Active settings row, created with defaults on first read."""
    res = await db.execute(
        select(SystemSettings).where(SystemSettings.is_active == True).order_by(SystemSettings.id).limit(1)  # noqa: E712
    )
    row = res.scalar_one_or_none()
    if row is None:
        row = SystemSettings(
            system_name=DEFAULT_SYSTEM_NAME,
            primary_color=DEFAULT_PRIMARY_COLOR,
            secondary_color=DEFAULT_SECONDARY_COLOR,
            background_color=DEFAULT_BACKGROUND_COLOR,
            is_active=True,
        )
        db.add(row)
        await db.flush()
        logger.info("Default system settings created")
    return row


async def update_system_settings(db: AsyncSession, *, changes: dict) -> tuple[SystemSettings, dict]:
    """Returns (row, old_values) for auditing."""
    row = await get_system_settings(db)

    if "system_name" in changes and not (changes["system_name"] or "").strip():
        raise ValidationError("System name is required", field="systemName")
    for color_field in ("primary_color", "secondary_color", "background_color"):
        if changes.get(color_field) is not None:
            changes[color_field] = validate_hex_color(changes[color_field], field=color_field)

    old = {key: getattr(row, key) for key in changes}
    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.utcnow()
    await db.flush()
    return row, old


def serialize_system_settings(row: SystemSettings) -> dict:
    return {
        "id": row.id,
        "systemName": row.system_name,
        "logoUrl": row.logo_url,
        "faviconUrl": row.favicon_url,
        "primaryColor": row.primary_color,
        "secondaryColor": row.secondary_color,
        "backgroundColor": row.background_color,
        "description": row.description,
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }
