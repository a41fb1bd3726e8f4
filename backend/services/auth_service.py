"""
Credentials: password hashing, login and cross-table email uniqueness.

An email address identifies exactly one account across administrators
(users table) and customers, so every create/update of either kind goes
through ensure_email_available().
"""
import logging

from passlib.hash import bcrypt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import AdminUser, Customer
from domain.enums import Role, UserType
from domain.errors import UnauthorizedError, ValidationError
from middleware.auth import Principal
from utils.validators import validate_password

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        # malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


def rehash_for_change(current_password: str | None, new_password: str, password_hash: str | None) -> str:
    """Self-service password change: verify the current password, hash the new one."""
    if not current_password:
        raise ValidationError("Current password is required to change password", field="currentPassword")
    validate_password(new_password)
    if not password_hash:
        raise ValidationError("Password is not set for this account", field="currentPassword")
    if not verify_password(current_password, password_hash):
        raise ValidationError("Current password is incorrect", field="currentPassword")
    return hash_password(new_password)


async def ensure_email_available(
    db: AsyncSession,
    email: str,
    *,
    exclude_customer_id: int | None = None,
    exclude_admin_id: int | None = None,
) -> None:
    """
    Raise ValidationError if `email` already belongs to a customer or admin.

    The optional exclude_* ids skip the record being updated.
    """
    normalized = email.strip().lower()

    q = select(Customer.id).where(func.lower(Customer.email) == normalized)
    if exclude_customer_id is not None:
        q = q.where(Customer.id != exclude_customer_id)
    if (await db.execute(q.limit(1))).first():
        raise ValidationError("This email address is already registered", field="email")

    q = select(AdminUser.id).where(func.lower(AdminUser.email) == normalized)
    if exclude_admin_id is not None:
        q = q.where(AdminUser.id != exclude_admin_id)
    if (await db.execute(q.limit(1))).first():
        raise ValidationError("This email address is already registered", field="email")


async def authenticate(db: AsyncSession, *, email: str, password: str) -> Principal:
    """
    Check administrators first, then EC customers.

    Raises:
        UnauthorizedError on any mismatch (no hint which part was wrong)
    """
    if not email or not password:
        raise UnauthorizedError("Invalid email or password")
    normalized = email.strip().lower()

    res = await db.execute(select(AdminUser).where(func.lower(AdminUser.email) == normalized))
    admin = res.scalar_one_or_none()
    if admin and verify_password(password, admin.password_hash):
        logger.info(f"Admin login: user_id={admin.id}")
        return Principal(
            id=admin.id,
            role=Role(admin.role),
            user_type=UserType.ADMIN,
            email=admin.email,
            name=admin.name,
        )

    res = await db.execute(
        select(Customer).where(
            func.lower(Customer.email) == normalized,
            Customer.is_ec_user == True,  # noqa: E712
            Customer.is_archived == False,  # noqa: E712
        )
    )
    customer = res.scalar_one_or_none()
    if customer and verify_password(password, customer.password_hash):
        logger.info(f"Customer login: customer_id={customer.id}")
        return Principal(
            id=customer.id,
            role=Role.CUSTOMER,
            user_type=UserType.CUSTOMER,
            email=customer.email,
            name=customer.name,
        )

    logger.info("Login failed")
    raise UnauthorizedError("Invalid email or password")
