"""
Tests for the shared input validators.

Tests: validate_email, validate_password, validate_hex_color,
validate_non_negative, require_text
"""
import pytest

from config import settings
from domain.errors import ValidationError
from utils.validators import (
    require_text,
    validate_email,
    validate_hex_color,
    validate_non_negative,
    validate_password,
)


class TestValidateEmail:

    @pytest.mark.unit
    def test_normalizes_case_and_whitespace(self):
        assert validate_email("  Hanako@Example.COM ") == "hanako@example.com"

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_missing_email_raises_400(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_email(value)
        assert exc_info.value.status_code == 400
        assert "required" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["plainaddress", "a@b", "two@@example.com", "sp ace@example.com"])
    def test_malformed_email_raises_400(self, value):
        with pytest.raises(ValidationError):
            validate_email(value)

    @pytest.mark.unit
    def test_field_name_in_message(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_email("bad", field="smtpUser")
        assert "smtpUser" in exc_info.value.message


class TestValidatePassword:

    @pytest.mark.unit
    def test_minimum_length_accepted(self):
        password = "x" * settings.password_min_length
        assert validate_password(password) == password

    @pytest.mark.unit
    def test_short_password_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_password("x" * (settings.password_min_length - 1))
        assert str(settings.password_min_length) in exc_info.value.message

    @pytest.mark.unit
    def test_empty_password_rejected(self):
        with pytest.raises(ValidationError):
            validate_password("")


class TestSmallValidators:

    @pytest.mark.unit
    def test_hex_color_uppercased(self):
        assert validate_hex_color("#ff00aa") == "#FF00AA"

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["red", "#FFF", "FF00AA", "#GG0000", ""])
    def test_bad_hex_color(self, value):
        with pytest.raises(ValidationError):
            validate_hex_color(value)

    @pytest.mark.unit
    def test_non_negative(self):
        assert validate_non_negative(0, "price") == 0
        assert validate_non_negative(None, "price") is None
        with pytest.raises(ValidationError):
            validate_non_negative(-1, "price")

    @pytest.mark.unit
    def test_require_text_strips(self):
        assert require_text("  VIP ", "name") == "VIP"
        with pytest.raises(ValidationError):
            require_text("   ", "name")
