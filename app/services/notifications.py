"""
Job update fan-out and the in-app notification inbox.

notify_job_update() runs after a dispatcher mutation has committed. In-app
rows are written in their own transaction; email delivery is best effort and
every failure is logged per recipient and dropped.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import SessionLocal, begin_write
from app.core.errors import NotFound
from app.models.notification import EmailSettings, NotificationType, UserNotification
from app.models.traffic_job import TrafficJob
from app.models.user import TRAFFIC_JOBS_PERMISSION, RolePermission, User, UserRole
from app.services.mailer import MessageSender, get_mailer

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

# (attribute, label) in display order; a changed attribute is highlighted
EMAIL_FIELDS = (
    ("internal_ref", "Reference"),
    ("booking_status", "Booking status"),
    ("status", "Job status"),
    ("agent_name", "Agent"),
    ("agent_ref", "Agent ref"),
    ("customer_name", "Customer"),
    ("service_type", "Service type"),
    ("job_date", "Service date"),
    ("pick_up_time", "Pick-up time"),
    ("adult_count", "Adults"),
    ("child_count", "Children"),
    ("pax_count", "Pax"),
    ("client_name", "Client name"),
    ("client_mobile", "Client mobile"),
    ("origin_name", "From"),
    ("destination_name", "To"),
    ("flight_no", "Flight"),
    ("collection_required", "Collection required"),
    ("collection_amount", "Collection amount"),
    ("notes", "Notes"),
)

INBOX_LIMIT = 50


@dataclass
class FanOutResult:
    notified_users: int = 0
    emailed: int = 0
    failed: int = 0


def _local_time(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(settings.NOTIFY_TIMEZONE)).strftime("%d/%m/%Y %H:%M")


def _display(job: TrafficJob, attr: str):
    value = getattr(job, attr)
    if attr == "pick_up_time":
        return _local_time(value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return getattr(value, "value", value)


def render_job_update_email(job: TrafficJob, changed_fields: Sequence[str], updated_by: str) -> str:
    changed = set(changed_fields)
    rows = [
        {"label": label, "value": _display(job, attr), "changed": attr in changed}
        for attr, label in EMAIL_FIELDS
    ]
    return _env.get_template("email/job_updated.html").render(
        internal_ref=job.internal_ref,
        updated_by=updated_by,
        updated_at=_local_time(datetime.now(timezone.utc)),
        rows=rows,
        changed_fields=list(changed_fields),
    )


def find_update_recipients(db: Session, exclude_user_id: Optional[str]) -> list[User]:
    """Active users allowed to see traffic jobs, minus whoever made the change."""
    granted_roles = select(RolePermission.role_id).where(RolePermission.permission_key == TRAFFIC_JOBS_PERMISSION)
    q = db.query(User).filter(
        User.is_active.is_(True),
        User.deleted_at.is_(None),
        or_(User.role == UserRole.ADMIN, User.role_id.in_(granted_roles)),
    )
    if exclude_user_id:
        q = q.filter(User.id != exclude_user_id)
    return q.order_by(User.created_at.asc()).all()


def department_mailboxes(db: Session) -> list[str]:
    row = db.query(EmailSettings).first()
    dispatch = (row.notify_dispatch_email if row else None) or settings.NOTIFY_DISPATCH_EMAIL
    traffic = (row.notify_traffic_email if row else None) or settings.NOTIFY_TRAFFIC_EMAIL
    return [addr for addr in (dispatch, traffic) if addr]


def unique_addresses(addresses: Iterable[Optional[str]]) -> list[str]:
    seen = set()
    out = []
    for addr in addresses:
        if not addr:
            continue
        addr = addr.strip()
        key = addr.lower()
        if addr and key not in seen:
            seen.add(key)
            out.append(addr)
    return out


def create_user_notifications(
    db: Session,
    user_ids: Iterable[str],
    job: Optional[TrafficJob],
    type_: NotificationType,
    title: str,
    message: str,
    metadata: Optional[dict] = None,
) -> list[UserNotification]:
    """Stage one notification per distinct user. Does not commit."""
    rows = [
        UserNotification(
            id=str(uuid.uuid4()),
            user_id=user_id,
            traffic_job_id=job.id if job is not None else None,
            type=type_,
            title=title,
            message=message,
            metadata_=metadata,
        )
        for user_id in dict.fromkeys(user_ids)
    ]
    db.add_all(rows)
    return rows


def notify_job_update(
    db: Session,
    job_id: str,
    actor_user_id: Optional[str],
    changed_fields: Sequence[str],
    mailer: Optional[MessageSender] = None,
) -> FanOutResult:
    result = FanOutResult()

    job = db.query(TrafficJob).filter(TrafficJob.id == job_id).first()
    if job is None:
        logger.warning("Job %s vanished before update notification", job_id)
        return result

    recipients = find_update_recipients(db, actor_user_id)
    mailboxes = department_mailboxes(db)
    if not recipients and not mailboxes:
        logger.info("No recipients for update of job %s", job.internal_ref)
        return result

    updater = db.get(User, actor_user_id) if actor_user_id else None
    updated_by = updater.name if updater else "System"

    title = f"Job Updated: {job.internal_ref}"
    message = f"{job.booking_status} - {job.internal_ref} - {job.agent_ref or 'N/A'} - Updated by {updated_by}"
    if recipients:
        begin_write(db)
        create_user_notifications(
            db,
            [u.id for u in recipients],
            job,
            NotificationType.JOB_UPDATED,
            title,
            message,
            {"changed_fields": list(changed_fields)},
        )
        db.commit()
        result.notified_users = len(recipients)
        logger.info("Created %d in-app notifications for job %s", len(recipients), job.internal_ref)

    addresses = unique_addresses([u.email for u in recipients] + mailboxes)
    html = render_job_update_email(job, changed_fields, updated_by)
    sender = mailer or get_mailer()
    for address in addresses:
        try:
            sender.send(address, title, html)
            result.emailed += 1
        except Exception:
            result.failed += 1
            logger.exception("Failed to send job update email to %s for job %s", address, job.internal_ref)

    logger.info(
        "Sent %d/%d email notifications for job %s", result.emailed, len(addresses), job.internal_ref
    )
    return result


def run_job_update_notification(
    job_id: str,
    actor_user_id: Optional[str],
    changed_fields: Sequence[str],
    mailer: Optional[MessageSender] = None,
) -> None:
    """Post-commit hook; owns its session and never raises."""
    if not changed_fields:
        return
    db = SessionLocal()
    try:
        notify_job_update(db, job_id, actor_user_id, changed_fields, mailer)
    except Exception:
        db.rollback()
        logger.exception("Job update notification failed for job %s", job_id)
    finally:
        db.close()


# -------- Inbox --------
def list_user_notifications(db: Session, user_id: str) -> dict:
    items = (
        db.query(UserNotification)
        .filter(UserNotification.user_id == user_id)
        .order_by(UserNotification.created_at.desc())
        .limit(INBOX_LIMIT)
        .all()
    )
    unread = (
        db.query(UserNotification)
        .filter(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))
        .count()
    )
    return {"notifications": items, "unread_count": unread}


def mark_read(db: Session, user_id: str, notification_id: str) -> UserNotification:
    begin_write(db)
    n = (
        db.query(UserNotification)
        .filter(UserNotification.id == notification_id, UserNotification.user_id == user_id)
        .first()
    )
    if not n:
        raise NotFound("Notification not found")
    n.is_read = True
    db.commit()
    db.refresh(n)
    return n


def mark_all_read(db: Session, user_id: str) -> int:
    begin_write(db)
    updated = (
        db.query(UserNotification)
        .filter(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))
        .update({UserNotification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
