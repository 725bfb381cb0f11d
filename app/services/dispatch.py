"""
Dispatcher-side job operations: creation, field edits with change tracking,
resource assignment and reassignment, and collection bookkeeping.
"""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.db import begin_write
from app.core.errors import BadRequest, InvalidState, NotFound
from app.models.assignment import ActorRole, DriverStatus, RepStatus, SupplierStatus, TrafficAssignment
from app.models.fleet import Driver, Rep, Vehicle
from app.models.notification import NotificationType
from app.models.traffic_job import JobStatus, ServiceType, TrafficJob
from app.services import notifications
from app.services.job_status import apply_job_transition, load_job_for_update
from app.services.status_rules import is_terminal

logger = logging.getLogger(__name__)

REF_PREFIX = "TJ"
_REF_RE = re.compile(rf"^{REF_PREFIX}-(\d+)$")

# Fields a dispatcher may edit after creation. internal_ref is immutable.
EDITABLE_FIELDS = (
    "job_date",
    "pick_up_time",
    "service_type",
    "booking_status",
    "adult_count",
    "child_count",
    "origin_name",
    "destination_name",
    "agent_name",
    "agent_ref",
    "customer_name",
    "client_name",
    "client_mobile",
    "flight_no",
    "notes",
    "collection_required",
    "collection_amount",
    "collection_currency",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_internal_ref(db: Session) -> str:
    refs = db.query(TrafficJob.internal_ref).filter(TrafficJob.internal_ref.like(f"{REF_PREFIX}-%")).all()
    last = 0
    for (ref,) in refs:
        m = _REF_RE.match(ref)
        if m:
            last = max(last, int(m.group(1)))
    return f"{REF_PREFIX}-{last + 1:04d}"


def get_job(db: Session, job_id: str) -> TrafficJob:
    job = db.query(TrafficJob).filter(TrafficJob.id == job_id, TrafficJob.deleted_at.is_(None)).first()
    if not job:
        raise NotFound(f'Traffic job with ID "{job_id}" not found')
    return job


def create_job(db: Session, data: dict, actor_user_id: Optional[str]) -> TrafficJob:
    values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    adult = values.get("adult_count", 1)
    child = values.get("child_count", 0)

    begin_write(db)
    job = TrafficJob(
        id=str(uuid.uuid4()),
        internal_ref=next_internal_ref(db),
        status=JobStatus.PENDING,
        created_by_id=actor_user_id,
        **values,
    )
    job.adult_count = adult
    job.child_count = child
    job.pax_count = adult + child
    if not job.collection_required:
        job.collection_amount = None

    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("Job %s created", job.internal_ref)
    return job


def _normalize(value: Any) -> Any:
    value = getattr(value, "value", value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def update_job(db: Session, job_id: str, data: dict, actor_user_id: Optional[str]) -> Tuple[TrafficJob, list[str]]:
    """
    Apply the submitted fields and return (job, changed_field_names).
    Only values that differ from the stored ones are written and reported.
    """
    try:
        job = load_job_for_update(db, job_id)
        changed: list[str] = []

        for field, value in data.items():
            if field not in EDITABLE_FIELDS:
                continue
            if _normalize(getattr(job, field)) == _normalize(value):
                continue
            setattr(job, field, value)
            changed.append(field)

        if "adult_count" in changed or "child_count" in changed:
            job.pax_count = (job.adult_count or 0) + (job.child_count or 0)
            changed.append("pax_count")

        if "collection_required" in changed and not job.collection_required:
            job.collection_amount = None
            job.collection_collected = False
            job.collection_collected_at = None

        if job.assignment and job.assignment.rep_id and job.service_type == ServiceType.EXCURSION:
            raise BadRequest("Rep assignment is not available for Excursion jobs.")

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(job)
    if changed:
        logger.info("Job %s updated by %s: %s", job.internal_ref, actor_user_id, ", ".join(changed))
    return job, changed


def _active_vehicle(db: Session, vehicle_id: str) -> Vehicle:
    vehicle = (
        db.query(Vehicle)
        .filter(Vehicle.id == vehicle_id, Vehicle.deleted_at.is_(None), Vehicle.is_active.is_(True))
        .first()
    )
    if not vehicle:
        raise NotFound(f'Vehicle with ID "{vehicle_id}" not found or inactive')
    return vehicle


def _active_driver(db: Session, driver_id: str) -> Driver:
    driver = (
        db.query(Driver)
        .filter(Driver.id == driver_id, Driver.deleted_at.is_(None), Driver.is_active.is_(True))
        .first()
    )
    if not driver:
        raise NotFound(f'Driver with ID "{driver_id}" not found or inactive')
    return driver


def _active_rep(db: Session, job: TrafficJob, rep_id: str) -> Rep:
    if job.service_type == ServiceType.EXCURSION:
        raise BadRequest("Rep assignment is not available for Excursion jobs.")
    rep = db.query(Rep).filter(Rep.id == rep_id, Rep.deleted_at.is_(None), Rep.is_active.is_(True)).first()
    if not rep:
        raise NotFound(f'Rep with ID "{rep_id}" not found or inactive')
    return rep


def _check_capacity(job: TrafficJob, vehicle: Vehicle) -> None:
    if vehicle.seat_capacity is not None and job.pax_count > vehicle.seat_capacity:
        raise BadRequest(f"Pax count ({job.pax_count}) exceeds vehicle capacity ({vehicle.seat_capacity})")


def _assignment_message(job: TrafficJob) -> str:
    return f"{job.internal_ref} - {job.service_type.value} on {job.job_date.isoformat()}"


def assign_job(
    db: Session,
    job_id: str,
    vehicle_id: str,
    driver_id: Optional[str],
    rep_id: Optional[str],
    actor_user_id: Optional[str],
    remarks: Optional[str] = None,
) -> TrafficJob:
    try:
        job = load_job_for_update(db, job_id)
        if job.status == JobStatus.CANCELLED:
            raise InvalidState("Cannot assign a cancelled job")
        if job.assignment is not None:
            raise InvalidState("This job already has an assignment. Use reassign instead.")

        vehicle = _active_vehicle(db, vehicle_id)
        _check_capacity(job, vehicle)
        driver = _active_driver(db, driver_id) if driver_id else None
        rep = _active_rep(db, job, rep_id) if rep_id else None

        assignment = TrafficAssignment(
            id=str(uuid.uuid4()),
            vehicle_id=vehicle.id,
            driver_id=driver.id if driver else None,
            rep_id=rep.id if rep else None,
            driver_status=DriverStatus.PENDING,
            rep_status=RepStatus.PENDING,
            supplier_status=SupplierStatus.PENDING,
            remarks=remarks,
            assigned_by_id=actor_user_id,
        )
        assignment.vehicle = vehicle
        assignment.driver = driver
        assignment.rep = rep
        job.assignments.append(assignment)
        db.flush()

        if job.status == JobStatus.PENDING:
            apply_job_transition(db, job, JobStatus.ASSIGNED, actor_user_id)

        recipients = [p.user_id for p in (driver, rep) if p is not None and p.user_id]
        notifications.create_user_notifications(
            db,
            recipients,
            job,
            NotificationType.JOB_ASSIGNED,
            "New Job Assigned",
            _assignment_message(job),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(job)
    logger.info("Job %s assigned to vehicle %s", job.internal_ref, vehicle.plate_number)
    return job


_UNSET = object()


def reassign_job(
    db: Session,
    job_id: str,
    actor_user_id: Optional[str],
    vehicle_id=_UNSET,
    driver_id=_UNSET,
    rep_id=_UNSET,
    remarks=_UNSET,
) -> TrafficJob:
    """
    Replace the active assignment with a new version. Roles whose resource is
    unchanged keep their status; a changed role starts over at PENDING.
    """
    try:
        job = load_job_for_update(db, job_id)
        current = job.assignment
        if current is None:
            raise InvalidState("This job has no assignment. Use assign instead.")
        if is_terminal(ActorRole.DISPATCHER, job.status):
            raise InvalidState(f'Cannot reassign a job in terminal status "{job.status.value}"')

        vehicle = current.vehicle if vehicle_id is _UNSET else _active_vehicle(db, vehicle_id)
        _check_capacity(job, vehicle)

        if driver_id is _UNSET:
            driver = current.driver
        else:
            driver = _active_driver(db, driver_id) if driver_id else None
        if rep_id is _UNSET:
            rep = current.rep
        else:
            rep = _active_rep(db, job, rep_id) if rep_id else None

        same_driver = (driver.id if driver else None) == current.driver_id
        same_rep = (rep.id if rep else None) == current.rep_id
        same_supplier = vehicle.supplier_id == current.vehicle.supplier_id

        current.superseded_at = _utcnow()
        db.flush()  # free the one-active-assignment slot before inserting

        replacement = TrafficAssignment(
            id=str(uuid.uuid4()),
            vehicle_id=vehicle.id,
            driver_id=driver.id if driver else None,
            rep_id=rep.id if rep else None,
            driver_status=current.driver_status if same_driver else DriverStatus.PENDING,
            rep_status=current.rep_status if same_rep else RepStatus.PENDING,
            supplier_status=current.supplier_status if same_supplier else SupplierStatus.PENDING,
            supplier_notes=current.supplier_notes if same_supplier else None,
            remarks=current.remarks if remarks is _UNSET else remarks,
            assigned_by_id=actor_user_id,
        )
        replacement.vehicle = vehicle
        replacement.driver = driver
        replacement.rep = rep
        job.assignments.append(replacement)
        db.flush()
        current.superseded_by_id = replacement.id

        recipients = []
        if driver is not None and not same_driver and driver.user_id:
            recipients.append(driver.user_id)
        if rep is not None and not same_rep and rep.user_id:
            recipients.append(rep.user_id)
        notifications.create_user_notifications(
            db,
            recipients,
            job,
            NotificationType.JOB_ASSIGNED,
            "New Job Assigned",
            _assignment_message(job),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(job)
    logger.info("Job %s reassigned (assignment %s -> %s)", job.internal_ref, current.id, replacement.id)
    return job


def apply_collection_collected(job: TrafficJob) -> None:
    if not job.collection_required:
        raise InvalidState("This job does not require a collection")
    if not job.collection_collected:
        job.collection_collected = True
        job.collection_collected_at = _utcnow()


def mark_collection_collected(db: Session, job_id: str, actor_user_id: Optional[str]) -> TrafficJob:
    try:
        job = load_job_for_update(db, job_id)
        apply_collection_collected(job)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(job)
    logger.info("Collection for job %s marked collected by %s", job.internal_ref, actor_user_id)
    return job
