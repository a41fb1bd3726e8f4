"""
Tests for the EC cart and the singleton settings rows.
"""
from unittest.mock import patch

import httpx
import pytest

from domain.errors import ExternalServiceError, NotFoundError, ValidationError
from services import cart_service, settings_service


class TestCart:

    @pytest.mark.asyncio
    async def test_adding_same_product_merges_lines(self, db_session, ec_customer, products):
        a, _ = products
        await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=a.id, quantity=2)
        await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=a.id, quantity=3)
        await db_session.commit()

        items = await cart_service.list_cart(db_session, customer_id=ec_customer.id)
        assert len(items) == 1
        assert items[0].quantity == 5
        assert cart_service.serialize_cart_item(items[0])["subtotal"] == 5000

    @pytest.mark.asyncio
    async def test_cannot_exceed_stock(self, db_session, ec_customer, products):
        _, b = products
        with pytest.raises(ValidationError) as exc_info:
            await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=b.id, quantity=6)
        assert "Insufficient stock" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_inactive_product_not_found(self, db_session, ec_customer, products):
        a, _ = products
        a.is_active = False
        await db_session.commit()
        with pytest.raises(NotFoundError):
            await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=a.id)

    @pytest.mark.asyncio
    async def test_other_customers_item_is_not_found(self, db_session, ec_customer, other_customer, products):
        a, _ = products
        item = await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=a.id)
        with pytest.raises(NotFoundError):
            await cart_service.update_quantity(
                db_session, customer_id=other_customer.id, item_id=item.id, quantity=2
            )

    @pytest.mark.asyncio
    async def test_clear_cart(self, db_session, ec_customer, products):
        a, b = products
        await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=a.id)
        await cart_service.add_item(db_session, customer_id=ec_customer.id, product_id=b.id)
        assert await cart_service.clear_cart(db_session, customer_id=ec_customer.id) == 2
        assert await cart_service.list_cart(db_session, customer_id=ec_customer.id) == []


class TestPaymentSettings:

    @pytest.mark.asyncio
    async def test_secrets_are_write_only(self, db_session):
        row = await settings_service.update_payment_settings(
            db_session, changes={"stripe_public_key": "pk_test_1", "stripe_secret_key": "sk_test_1"}
        )
        row = await settings_service.update_payment_settings(
            db_session, changes={"stripe_secret_key": "", "cash_on_delivery_fee": 500}
        )
        assert row.stripe_secret_key == "sk_test_1"
        data = settings_service.serialize_payment_settings(row)
        assert data["hasSecretKey"] is True
        assert "stripeSecretKey" not in data
        assert data["cashOnDeliveryFee"] == 500

    @pytest.mark.asyncio
    async def test_activation_requires_public_key(self, db_session):
        with pytest.raises(ValidationError):
            await settings_service.update_payment_settings(db_session, changes={"is_active": True})

    @pytest.mark.unit
    def test_public_defaults_without_row(self):
        data = settings_service.public_payment_settings(None)
        assert data["isActive"] is False
        assert data["stripePublicKey"] is None

    @pytest.mark.asyncio
    async def test_stripe_check_reports_account(self, db_session):
        row = await settings_service.update_payment_settings(
            db_session, changes={"stripe_secret_key": "sk_test_abc"}
        )
        real_client = httpx.AsyncClient

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/account"
            return httpx.Response(200, json={"id": "acct_1", "country": "JP", "charges_enabled": True})

        def fake_client(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        with patch.object(settings_service.httpx, "AsyncClient", fake_client):
            result = await settings_service.check_stripe_connection(row)
        assert result["accountId"] == "acct_1"
        assert result["isTestMode"] is True

    @pytest.mark.asyncio
    async def test_stripe_rejection_is_external_error(self, db_session):
        row = await settings_service.update_payment_settings(
            db_session, changes={"stripe_secret_key": "sk_live_bad"}
        )
        real_client = httpx.AsyncClient

        def fake_client(**kwargs):
            return real_client(transport=httpx.MockTransport(lambda r: httpx.Response(401)), **kwargs)

        with patch.object(settings_service.httpx, "AsyncClient", fake_client):
            with pytest.raises(ExternalServiceError) as exc_info:
                await settings_service.check_stripe_connection(row)
        assert exc_info.value.details == {"status": 401}


class TestSystemSettings:

    @pytest.mark.asyncio
    async def test_defaults_created_on_first_read(self, db_session):
        row = await settings_service.get_system_settings(db_session)
        again = await settings_service.get_system_settings(db_session)
        assert row.id == again.id
        assert row.system_name

    @pytest.mark.asyncio
    async def test_update_returns_old_values(self, db_session):
        original = (await settings_service.get_system_settings(db_session)).system_name
        row, old = await settings_service.update_system_settings(
            db_session, changes={"system_name": "My Shop", "primary_color": "#abcdef"}
        )
        assert old["system_name"] == original
        assert row.primary_color == "#ABCDEF"

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await settings_service.update_system_settings(db_session, changes={"system_name": "  "})
