"""
Audit log writer.

Entries are written inside the caller's transaction, wrapped in a SAVEPOINT so
a failing audit insert is rolled back on its own and never aborts the
operation being audited.
"""
import json
import logging
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import AuditLog
from domain.enums import AuditAction

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _dump(data) -> str | None:
    if data is None:
        return None
    return json.dumps(data, ensure_ascii=False, default=_json_default)


async def create_audit_log(
    db: AsyncSession,
    *,
    user_id: str,
    action: AuditAction | str,
    entity: str | None = None,
    entity_id: str | int | None = None,
    old_data: dict | None = None,
    new_data: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuditLog | None:
    """Append an audit entry. Returns None (and logs) if the write fails."""
    try:
        async with db.begin_nested():
            entry = AuditLog(
                user_id=str(user_id),
                action=AuditAction(action).value,
                entity=entity,
                entity_id=str(entity_id) if entity_id is not None else None,
                old_data=_dump(old_data),
                new_data=_dump(new_data),
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.add(entry)
            await db.flush()
        return entry
    except (SQLAlchemyError, ValueError, TypeError) as e:
        logger.error(f"Error creating audit log ({action} {entity}:{entity_id}): {e}")
        return None


async def list_audit_logs(
    db: AsyncSession,
    *,
    limit: int = 50,
    offset: int = 0,
    action: str | None = None,
    entity: str | None = None,
    user_id: str | None = None,
) -> tuple[list[AuditLog], int]:
    filters = []
    if action:
        filters.append(AuditLog.action == action)
    if entity:
        filters.append(AuditLog.entity == entity)
    if user_id:
        filters.append(AuditLog.user_id == user_id)

    total = (await db.execute(select(func.count(AuditLog.id)).where(*filters))).scalar_one()
    res = await db.execute(
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all()), total


def serialize_audit_log(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "action": entry.action,
        "entity": entry.entity,
        "entityId": entry.entity_id,
        "oldData": json.loads(entry.old_data) if entry.old_data else None,
        "newData": json.loads(entry.new_data) if entry.new_data else None,
        "ipAddress": entry.ip_address,
        "userAgent": entry.user_agent,
        "createdAt": entry.created_at.isoformat() if entry.created_at else None,
    }
