"""
Administrator accounts.

Only the OWNER may change or remove other administrators; nobody can delete
their own account. Password hashes never leave this module.
"""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import AdminUser
from domain.enums import AuditAction, Role
from domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from middleware.auth import Principal
from services import audit_service, auth_service, permissions
from utils.validators import require_text, validate_email, validate_password

logger = logging.getLogger(__name__)

ADMIN_ROLES = (Role.OWNER, Role.ADMIN, Role.OPERATOR)


def _parse_role(value: str | None) -> Role:
    if value is None:
        return Role.OPERATOR
    try:
        role = Role(value)
    except ValueError:
        raise ValidationError(f"Unknown role: {value}", field="role")
    if role not in ADMIN_ROLES:
        raise ValidationError(f"Role {value} cannot be assigned to an administrator", field="role")
    return role


async def list_admins(db: AsyncSession) -> list[AdminUser]:
    res = await db.execute(select(AdminUser).order_by(AdminUser.created_at, AdminUser.id))
    return list(res.scalars().all())


async def get_admin(db: AsyncSession, *, admin_id: int) -> AdminUser:
    admin = await db.get(AdminUser, admin_id)
    if admin is None:
        raise NotFoundError("Admin user", str(admin_id))
    return admin


async def create_admin(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
    role: str | None = None,
    actor: Principal,
    audit_meta: dict | None = None,
) -> AdminUser:
    name = require_text(name, "name")
    email = validate_email(email)
    validate_password(password)
    parsed = _parse_role(role)
    if parsed == Role.OWNER and actor.role != Role.OWNER:
        raise PermissionDeniedError("Only the owner can create another owner")
    await auth_service.ensure_email_available(db, email)

    admin = AdminUser(
        name=name,
        email=email,
        password_hash=auth_service.hash_password(password),
        role=parsed.value,
    )
    db.add(admin)
    await db.flush()

    await audit_service.create_audit_log(
        db,
        user_id=actor.audit_id,
        action=AuditAction.CREATE,
        entity="ADMIN",
        entity_id=admin.id,
        new_data=serialize_admin(admin),
        **(audit_meta or {}),
    )
    logger.info(f"Admin created: id={admin.id} role={parsed.value}")
    return admin


async def update_admin(
    db: AsyncSession,
    *,
    admin_id: int,
    changes: dict,
    actor: Principal,
    audit_meta: dict | None = None,
) -> AdminUser:
    """changes keys: name, email, password, role. Blank password keeps the old one."""
    if not permissions.can_manage_admins(actor.role):
        raise PermissionDeniedError("Only the owner can edit administrators")
    admin = await get_admin(db, admin_id=admin_id)
    before = serialize_admin(admin)

    if "name" in changes:
        admin.name = require_text(changes["name"], "name")
    if changes.get("email"):
        email = validate_email(changes["email"])
        if email != admin.email:
            await auth_service.ensure_email_available(db, email, exclude_admin_id=admin_id)
            admin.email = email
    if changes.get("password"):
        validate_password(changes["password"])
        admin.password_hash = auth_service.hash_password(changes["password"])
    if changes.get("role"):
        role = _parse_role(changes["role"])
        if admin_id == actor.id and role != Role.OWNER:
            raise ValidationError("You cannot change your own role")
        admin.role = role.value
    admin.updated_at = datetime.utcnow()
    await db.flush()

    await audit_service.create_audit_log(
        db,
        user_id=actor.audit_id,
        action=AuditAction.UPDATE,
        entity="ADMIN",
        entity_id=admin.id,
        old_data=before,
        new_data=serialize_admin(admin),
        **(audit_meta or {}),
    )
    return admin


async def update_own_profile(
    db: AsyncSession,
    *,
    actor: Principal,
    name: str,
    email: str,
    current_password: str | None = None,
    new_password: str | None = None,
    audit_meta: dict | None = None,
) -> AdminUser:
    """Name, email and password of the signed-in administrator; the role is not editable here."""
    admin = await get_admin(db, admin_id=actor.id)
    before = serialize_admin(admin)

    name = require_text(name, "name")
    email = validate_email(email)
    await auth_service.ensure_email_available(db, email, exclude_admin_id=admin.id)
    if new_password:
        admin.password_hash = auth_service.rehash_for_change(current_password, new_password, admin.password_hash)
    admin.name = name
    admin.email = email
    admin.updated_at = datetime.utcnow()
    await db.flush()

    await audit_service.create_audit_log(
        db,
        user_id=actor.audit_id,
        action=AuditAction.UPDATE,
        entity="ADMIN",
        entity_id=admin.id,
        old_data=before,
        new_data=serialize_admin(admin),
        **(audit_meta or {}),
    )
    logger.info(f"Admin {admin.id} updated own profile")
    return admin


async def delete_admin(
    db: AsyncSession, *, admin_id: int, actor: Principal, audit_meta: dict | None = None
) -> None:
    if not permissions.can_manage_admins(actor.role):
        raise PermissionDeniedError("Only the owner can delete administrators")
    if admin_id == actor.id:
        raise ValidationError("You cannot delete your own account")
    admin = await get_admin(db, admin_id=admin_id)
    snapshot = serialize_admin(admin)
    await db.delete(admin)
    await db.flush()

    await audit_service.create_audit_log(
        db,
        user_id=actor.audit_id,
        action=AuditAction.DELETE,
        entity="ADMIN",
        entity_id=admin_id,
        old_data=snapshot,
        **(audit_meta or {}),
    )
    logger.info(f"Admin deleted: id={admin_id}")


def serialize_admin(admin: AdminUser) -> dict:
    return {
        "id": admin.id,
        "name": admin.name,
        "email": admin.email,
        "role": admin.role,
        "createdAt": admin.created_at.isoformat() if admin.created_at else None,
        "updatedAt": admin.updated_at.isoformat() if admin.updated_at else None,
    }
