"""
Email: SMTP delivery, templates, bulk campaigns and send logs.

SMTP settings live in the database (email_settings, single row). Delivery is
blocking smtplib work, so it runs in a worker thread via asyncio.to_thread.
Every attempt, successful or not, leaves an EmailLog row.
"""
import asyncio
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Customer, CustomerTag, EmailLog, EmailSettings, EmailTemplate, Enrollment
from domain.constants import PLACEHOLDER_CUSTOMER_EMAIL, PLACEHOLDER_CUSTOMER_NAME
from domain.enums import EmailStatus, EnrollmentStatus
from domain.errors import DomainError, ExternalServiceError, NotFoundError, ValidationError
from utils.validators import require_text, validate_email

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# SMTP settings
# ════════════════════════════════════════════════════════════════════


async def get_email_settings(db: AsyncSession, *, create: bool = True) -> EmailSettings | None:
    res = await db.execute(select(EmailSettings).order_by(EmailSettings.id).limit(1))
    row = res.scalar_one_or_none()
    if row is None and create:
        row = EmailSettings(is_active=False)
        db.add(row)
        await db.flush()
    return row


async def update_email_settings(db: AsyncSession, *, changes: dict) -> EmailSettings:
    """A blank smtp_pass keeps the stored password."""
    for field in ("smtp_host", "smtp_port", "from_name"):
        if field in changes and not changes[field]:
            raise ValidationError("SMTP host, port and from name are required", field=field)
    if changes.get("smtp_port") is not None and not (0 < int(changes["smtp_port"]) < 65536):
        raise ValidationError("Invalid port", field="smtpPort")
    if changes.get("from_address"):
        changes["from_address"] = validate_email(changes["from_address"], field="fromAddress")
    if not changes.get("smtp_pass"):
        changes.pop("smtp_pass", None)

    row = await get_email_settings(db)
    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.utcnow()
    await db.flush()
    return row


def serialize_email_settings(row: EmailSettings) -> dict:
    return {
        "id": row.id,
        "smtpHost": row.smtp_host,
        "smtpPort": row.smtp_port,
        "smtpUser": row.smtp_user,
        "hasPassword": bool(row.smtp_pass),
        "fromAddress": row.from_address,
        "fromName": row.from_name,
        "signature": row.signature,
        "isActive": row.is_active,
    }


def _smtp_config(row: EmailSettings) -> dict:
    return {
        "host": row.smtp_host,
        "port": row.smtp_port,
        "user": row.smtp_user,
        "password": row.smtp_pass,
        "from_name": row.from_name,
        "from_address": row.from_address or row.smtp_user,
    }


def _open_smtp(config: dict) -> smtplib.SMTP:
    timeout = settings.smtp_timeout_seconds
    if config["port"] == 465:
        server = smtplib.SMTP_SSL(config["host"], config["port"], timeout=timeout)
    else:
        server = smtplib.SMTP(config["host"], config["port"], timeout=timeout)
        server.starttls()
    server.login(config["user"], config["password"])
    return server


def _deliver(config: dict, *, to: str, to_name: str | None, subject: str, html: str) -> None:
    """Blocking send; raises smtplib.SMTPException / OSError on failure."""
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = formataddr((config["from_name"], config["from_address"]))
    msg["To"] = formataddr((to_name, to)) if to_name else to
    msg.set_content(html, subtype="html")

    server = _open_smtp(config)
    try:
        server.send_message(msg)
    finally:
        server.quit()


def _check_connection(config: dict) -> None:
    server = _open_smtp(config)
    server.quit()


async def verify_smtp_connection(db: AsyncSession) -> None:
    row = await get_email_settings(db, create=False)
    if row is None or not row.smtp_user or not row.smtp_pass:
        raise ValidationError("SMTP settings are incomplete")
    try:
        await asyncio.to_thread(_check_connection, _smtp_config(row))
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"SMTP connection test failed: {e}")
        raise ExternalServiceError(f"SMTP connection failed: {e}")


# ════════════════════════════════════════════════════════════════════
# Sending
# ════════════════════════════════════════════════════════════════════


def replace_placeholders(text: str, *, name: str | None, email: str | None) -> str:
    return text.replace(PLACEHOLDER_CUSTOMER_NAME, name or "").replace(PLACEHOLDER_CUSTOMER_EMAIL, email or "")


async def send_email(
    db: AsyncSession,
    *,
    to: str,
    subject: str,
    html: str,
    to_name: str | None = None,
    customer_id: int | None = None,
    template_id: int | None = None,
) -> EmailLog:
    """
    Send one email and record it.

    Raises:
        ValidationError: sending disabled or SMTP settings incomplete
        ExternalServiceError: the SMTP server refused or was unreachable
    """
    log = EmailLog(
        template_id=template_id,
        customer_id=customer_id,
        subject=subject,
        content=html,
        recipient_email=to,
        recipient_name=to_name,
    )
    try:
        row = await get_email_settings(db, create=False)
        if row is None or not row.is_active:
            raise ValidationError("Email sending is disabled")
        if not row.smtp_user or not row.smtp_pass:
            raise ValidationError("SMTP settings are incomplete")

        body = html
        if row.signature:
            body += "<br><br>" + row.signature.replace("\n", "<br>")
        try:
            await asyncio.to_thread(
                _deliver, _smtp_config(row), to=to, to_name=to_name, subject=subject, html=body
            )
        except (smtplib.SMTPException, OSError) as e:
            raise ExternalServiceError(f"Failed to send email: {e}")
    except DomainError as e:
        log.status = EmailStatus.FAILED.value
        log.error_message = e.message
        db.add(log)
        await db.flush()
        logger.error(f"Email to {to} failed: {e.message}")
        raise

    log.status = EmailStatus.SENT.value
    log.sent_at = datetime.utcnow()
    db.add(log)
    await db.flush()
    logger.info(f"Email sent to {to} (subject={subject!r})")
    return log


async def resolve_recipients(
    db: AsyncSession,
    *,
    include_all: bool = False,
    tag_ids: list[int] | None = None,
    course_ids: list[int] | None = None,
    customer_ids: list[int] | None = None,
) -> list[Customer]:
    """
    Non-archived customers matching any of the selections (union), or all of
    them when include_all is set. Each customer appears once.
    """
    q = select(Customer).where(Customer.is_archived == False).order_by(Customer.id)  # noqa: E712
    if not include_all:
        conditions = []
        if tag_ids:
            conditions.append(Customer.customer_tags.any(CustomerTag.tag_id.in_(tag_ids)))
        if course_ids:
            conditions.append(
                Customer.enrollments.any(
                    (Enrollment.course_id.in_(course_ids))
                    & (Enrollment.status == EnrollmentStatus.ACTIVE.value)
                )
            )
        if customer_ids:
            conditions.append(Customer.id.in_(customer_ids))
        if not conditions:
            return []
        q = q.where(or_(*conditions))
    res = await db.execute(q)
    return list(res.scalars().unique().all())


async def send_bulk(
    db: AsyncSession,
    *,
    subject: str,
    content: str,
    recipients: list[Customer],
    template_id: int | None = None,
) -> dict:
    """Personalize and send to each recipient; one failure does not stop the batch."""
    subject = require_text(subject, "subject")
    content = require_text(content, "content")
    if not recipients:
        raise ValidationError("No recipients found")

    sent = failed = 0
    for index, customer in enumerate(recipients):
        try:
            await send_email(
                db,
                to=customer.email,
                to_name=customer.name,
                subject=replace_placeholders(subject, name=customer.name, email=customer.email),
                html=replace_placeholders(content, name=customer.name, email=customer.email),
                customer_id=customer.id,
                template_id=template_id,
            )
            sent += 1
        except DomainError:
            failed += 1
        if settings.email_send_delay_seconds and index < len(recipients) - 1:
            await asyncio.sleep(settings.email_send_delay_seconds)

    logger.info(f"Bulk email finished: sent={sent} failed={failed}")
    return {"success": sent, "failed": failed, "total": len(recipients)}


# ════════════════════════════════════════════════════════════════════
# Templates
# ════════════════════════════════════════════════════════════════════


async def list_templates(db: AsyncSession) -> list[EmailTemplate]:
    res = await db.execute(
        select(EmailTemplate).order_by(EmailTemplate.is_default.desc(), EmailTemplate.created_at.desc())
    )
    return list(res.scalars().all())


async def get_template(db: AsyncSession, *, template_id: int) -> EmailTemplate:
    template = await db.get(EmailTemplate, template_id)
    if template is None:
        raise NotFoundError("Email template", str(template_id))
    return template


async def _clear_default(db: AsyncSession, except_id: int | None = None) -> None:
    stmt = update(EmailTemplate).where(EmailTemplate.is_default == True)  # noqa: E712
    if except_id is not None:
        stmt = stmt.where(EmailTemplate.id != except_id)
    await db.execute(stmt.values(is_default=False))


async def create_template(
    db: AsyncSession, *, name: str, subject: str, content: str, is_default: bool = False
) -> EmailTemplate:
    if not (name and subject and content):
        raise ValidationError("Name, subject, and content are required")
    if is_default:
        await _clear_default(db)
    template = EmailTemplate(name=name.strip(), subject=subject, content=content, is_default=is_default)
    db.add(template)
    await db.flush()
    return template


async def update_template(db: AsyncSession, *, template_id: int, changes: dict) -> EmailTemplate:
    template = await get_template(db, template_id=template_id)
    for field in ("name", "subject", "content"):
        if field in changes:
            changes[field] = require_text(changes[field], field)
    if changes.get("is_default"):
        await _clear_default(db, except_id=template_id)
    for key in ("name", "subject", "content", "is_default"):
        if key in changes:
            setattr(template, key, changes[key])
    template.updated_at = datetime.utcnow()
    await db.flush()
    return template


async def delete_template(db: AsyncSession, *, template_id: int) -> EmailTemplate:
    template = await get_template(db, template_id=template_id)
    if template.is_default:
        raise ValidationError("The default template cannot be deleted")
    await db.delete(template)
    await db.flush()
    return template


def serialize_template(t: EmailTemplate) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "subject": t.subject,
        "content": t.content,
        "isDefault": t.is_default,
        "createdAt": t.created_at.isoformat() if t.created_at else None,
        "updatedAt": t.updated_at.isoformat() if t.updated_at else None,
    }


# ════════════════════════════════════════════════════════════════════
# Logs
# ════════════════════════════════════════════════════════════════════


async def list_logs(
    db: AsyncSession,
    *,
    status: str | None = None,
    customer_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[EmailLog], int]:
    filters = []
    if status:
        try:
            filters.append(EmailLog.status == EmailStatus(status).value)
        except ValueError:
            raise ValidationError(f"Unknown email status: {status}", field="status")
    if customer_id is not None:
        filters.append(EmailLog.customer_id == customer_id)

    total = (await db.execute(select(func.count(EmailLog.id)).where(*filters))).scalar_one()
    res = await db.execute(
        select(EmailLog).where(*filters).order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(limit).offset(offset)
    )
    return list(res.scalars().all()), total


def serialize_log(log: EmailLog) -> dict:
    return {
        "id": log.id,
        "templateId": log.template_id,
        "customerId": log.customer_id,
        "subject": log.subject,
        "recipientEmail": log.recipient_email,
        "recipientName": log.recipient_name,
        "status": log.status,
        "errorMessage": log.error_message,
        "sentAt": log.sent_at.isoformat() if log.sent_at else None,
        "createdAt": log.created_at.isoformat() if log.created_at else None,
    }
