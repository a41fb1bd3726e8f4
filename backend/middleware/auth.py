"""
Bearer-token authentication.

Login (routes/auth.py) issues a short-lived HS256 JWT carrying:
    sub       : principal id (admin user id or customer id)
    role      : OWNER | ADMIN | OPERATOR | CUSTOMER
    user_type : "admin" | "customer"

Every protected route resolves the token into a Principal via
get_current_principal(); permission checks live in deps.py.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from fastapi import Header

from config import settings
from domain.enums import Role, UserType
from domain.errors import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""
    id: int
    role: Role
    user_type: UserType
    email: str | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.user_type == UserType.CUSTOMER

    @property
    def audit_id(self) -> str:
        return f"{self.user_type.value}:{self.id}"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_secret() -> str:
    if not settings.jwt_secret:
        from domain.errors import DomainError
        raise DomainError("Server auth misconfigured (JWT secret missing).", status_code=500)
    return settings.jwt_secret


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def decode_access_token(token: str) -> dict:
    secret = _require_secret()
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid access token.")


def issue_access_token(
    *,
    principal_id: int,
    role: Role | str,
    user_type: UserType | str,
    email: str | None = None,
    name: str | None = None,
) -> str:
    secret = _require_secret()
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.jwt_access_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": str(principal_id),
        "role": Role(role).value,
        "user_type": UserType(user_type).value,
        "email": email,
        "name": name,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def principal_from_claims(payload: dict) -> Principal:
    try:
        return Principal(
            id=int(payload["sub"]),
            role=Role(payload.get("role")),
            user_type=UserType(payload.get("user_type")),
            email=payload.get("email"),
            name=payload.get("name"),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Access token with malformed claims rejected")
        raise UnauthorizedError("Invalid access token.")


async def get_optional_principal(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Optional[Principal]:
    token = _parse_bearer_token(authorization)
    if not token:
        return None
    return principal_from_claims(decode_access_token(token))


async def get_current_principal(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Principal:
    principal = await get_optional_principal(authorization=authorization)
    if principal is None:
        raise UnauthorizedError("Authentication required. Provide Authorization: Bearer <token>.")
    return principal
