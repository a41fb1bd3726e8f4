"""
Input validation utilities shared by services.

Each validator returns the (normalized) value or raises ValidationError (400).
"""
import re

from config import settings
from domain.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def validate_email(email: str | None, field: str = "email") -> str:
    """
    Normalize (strip + lowercase) and validate an email address.

    Raises:
        ValidationError if missing or malformed
    """
    if not email or not email.strip():
        raise ValidationError("Email is required", field=field)
    normalized = email.strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise ValidationError(f"Invalid email address: {email}", field=field)
    return normalized


def validate_password(password: str | None) -> str:
    if not password:
        raise ValidationError("Password is required", field="password")
    if len(password) < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters",
            field="password",
        )
    return password


def validate_hex_color(color: str, field: str = "color") -> str:
    if not _HEX_COLOR_RE.match(color or ""):
        raise ValidationError(f"Invalid color (expected #RRGGBB): {color}", field=field)
    return color.upper()


def validate_non_negative(value: int | float | None, field: str):
    if value is not None and value < 0:
        raise ValidationError("must be zero or greater", field=field)
    return value


def require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()
