"""
Time-lock gate for field-role status edits.

A driver, rep or supplier may change their status on a job only until the
service date plus FIELD_EDIT_WINDOW_HOURS, unless an admin has unlocked the
job for that role. The gate itself is a pure check; lock/unlock only set or
clear the per-role marker on the job.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import begin_write
from app.core.errors import BadRequest, NotFound, TimeLocked
from app.models.assignment import FIELD_ROLES, ActorRole, TrafficAssignment
from app.models.fleet import Vehicle
from app.models.traffic_job import TrafficJob

logger = logging.getLogger(__name__)

_UNLOCK_FIELDS = {
    ActorRole.DRIVER: ("driver_unlocked_at", "driver_unlocked_by_id"),
    ActorRole.REP: ("rep_unlocked_at", "rep_unlocked_by_id"),
    ActorRole.SUPPLIER: ("supplier_unlocked_at", "supplier_unlocked_by_id"),
}


def _field_role(role) -> ActorRole:
    try:
        role = ActorRole(getattr(role, "value", role))
    except ValueError:
        raise BadRequest(f"Unknown role {role!r}")
    if role not in FIELD_ROLES:
        raise BadRequest(f"Role must be one of {[r.value for r in FIELD_ROLES]}")
    return role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cutoff(job: TrafficJob) -> datetime:
    service_day = job.job_date
    if isinstance(service_day, datetime):
        service_day = service_day.date()
    start = datetime.combine(service_day, time.min, tzinfo=timezone.utc)
    return start + timedelta(hours=settings.FIELD_EDIT_WINDOW_HOURS)


def is_unlocked(job: TrafficJob, role) -> bool:
    at_field, _ = _UNLOCK_FIELDS[_field_role(role)]
    return getattr(job, at_field) is not None


def is_locked(job: TrafficJob, role, now: Optional[datetime] = None) -> bool:
    if is_unlocked(job, role):
        return False
    now = now or _utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now > cutoff(job)


def ensure_unlocked(job: TrafficJob, role, now: Optional[datetime] = None) -> None:
    role = _field_role(role)
    if is_locked(job, role, now):
        logger.warning("Time-lock rejected %s update on job %s", role.value, job.internal_ref)
        raise TimeLocked(
            f"Edit window closed: {role.value.lower()}s cannot update job status more than "
            f"{settings.FIELD_EDIT_WINDOW_HOURS} hours after the service date. Ask an admin to unlock the job."
        )


def _get_job(db: Session, job_id: str) -> TrafficJob:
    begin_write(db)
    job = (
        db.query(TrafficJob)
        .filter(TrafficJob.id == job_id, TrafficJob.deleted_at.is_(None))
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not job:
        raise NotFound(f'Traffic job with ID "{job_id}" not found')
    return job


def unlock_job(db: Session, job_id: str, role, admin_user_id: str) -> TrafficJob:
    role = _field_role(role)
    job = _get_job(db, job_id)
    at_field, by_field = _UNLOCK_FIELDS[role]
    setattr(job, at_field, _utcnow())
    setattr(job, by_field, admin_user_id)
    db.commit()
    db.refresh(job)
    logger.info("Job %s unlocked for %s by %s", job.internal_ref, role.value, admin_user_id)
    return job


def lock_job(db: Session, job_id: str, role) -> TrafficJob:
    role = _field_role(role)
    job = _get_job(db, job_id)
    at_field, by_field = _UNLOCK_FIELDS[role]
    setattr(job, at_field, None)
    setattr(job, by_field, None)
    db.commit()
    db.refresh(job)
    logger.info("Job %s locked for %s", job.internal_ref, role.value)
    return job


def list_lock_board(
    db: Session,
    role,
    date_from: date,
    date_to: date,
    search: Optional[str] = None,
) -> list[dict]:
    """Jobs in a date range that involve the role, with their unlock state."""
    role = _field_role(role)
    q = db.query(TrafficJob).filter(
        TrafficJob.deleted_at.is_(None),
        TrafficJob.job_date >= date_from,
        TrafficJob.job_date <= date_to,
    )
    if search:
        q = q.filter(TrafficJob.internal_ref.ilike(f"%{search.strip()}%"))

    active = TrafficAssignment.superseded_at.is_(None)
    if role == ActorRole.DRIVER:
        q = q.join(TrafficAssignment).filter(active, TrafficAssignment.driver_id.isnot(None))
    elif role == ActorRole.REP:
        q = q.join(TrafficAssignment).filter(active, TrafficAssignment.rep_id.isnot(None))
    else:
        q = (
            q.join(TrafficAssignment)
            .join(Vehicle, Vehicle.id == TrafficAssignment.vehicle_id)
            .filter(active, Vehicle.supplier_id.isnot(None))
        )

    at_field, by_field = _UNLOCK_FIELDS[role]
    now = _utcnow()
    return [
        {
            "id": job.id,
            "internal_ref": job.internal_ref,
            "job_date": job.job_date,
            "service_type": job.service_type.value,
            "status": job.status.value,
            "client_name": job.client_name,
            "unlocked_at": getattr(job, at_field),
            "unlocked_by_id": getattr(job, by_field),
            "is_unlocked": getattr(job, at_field) is not None,
            "is_locked": is_locked(job, role, now),
        }
        for job in q.order_by(TrafficJob.job_date.desc()).all()
    ]
