"""
Status machines for the field roles (driver, rep, supplier).

Each role writes only its own column on the active assignment. Every
mutating call resolves the caller's role identity, finds the assignment that
binds that identity to the job, then passes the time-lock gate before any
transition rule is looked at, so a closed window is reported as such and not
as a bad transition. Once the dispatcher has closed the job (cancelled,
completed or no-show) no field role can change anything on it.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.db import begin_write
from app.core.errors import BadRequest, Forbidden, InvalidState, NotFound
from app.models.assignment import ActorRole, DriverStatus, SupplierStatus, TrafficAssignment
from app.models.fee import DriverFee, RepFee
from app.models.fleet import Driver, Rep, Supplier, Vehicle
from app.models.no_show import NoShowEvidence
from app.models.traffic_job import TrafficJob
from app.services import audit, time_lock
from app.services.dispatch import apply_collection_collected
from app.services.status_rules import NO_SHOW_ELIGIBLE, STATUS_FIELDS, ensure_transition, is_terminal

logger = logging.getLogger(__name__)

_IDENTITY_MODELS = {
    ActorRole.DRIVER: Driver,
    ActorRole.REP: Rep,
    ActorRole.SUPPLIER: Supplier,
}

_GPS_ROLES = (ActorRole.DRIVER, ActorRole.REP)


def _role(role, allowed=tuple(_IDENTITY_MODELS)) -> ActorRole:
    try:
        role = ActorRole(getattr(role, "value", role))
    except ValueError:
        raise BadRequest(f"Unknown role {role!r}")
    if role not in allowed:
        raise BadRequest(f"Operation not available for role {role.value}")
    return role


def resolve_identity(db: Session, role: ActorRole, actor_user_id: str):
    model = _IDENTITY_MODELS[role]
    identity = db.query(model).filter(model.user_id == actor_user_id, model.deleted_at.is_(None)).first()
    if not identity:
        raise Forbidden(f"No {role.value.lower()} profile linked to this account")
    return identity


def _assignment_query(db: Session, role: ActorRole, identity_id: str):
    q = (
        db.query(TrafficAssignment)
        .join(TrafficJob, TrafficJob.id == TrafficAssignment.traffic_job_id)
        .filter(TrafficAssignment.superseded_at.is_(None), TrafficJob.deleted_at.is_(None))
    )
    if role == ActorRole.DRIVER:
        return q.filter(TrafficAssignment.driver_id == identity_id)
    if role == ActorRole.REP:
        return q.filter(TrafficAssignment.rep_id == identity_id)
    return q.join(Vehicle, Vehicle.id == TrafficAssignment.vehicle_id).filter(Vehicle.supplier_id == identity_id)


def load_my_assignment(db: Session, role: ActorRole, identity_id: str, job_id: str) -> TrafficAssignment:
    assignment = (
        _assignment_query(db, role, identity_id)
        .filter(TrafficAssignment.traffic_job_id == job_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not assignment:
        raise NotFound("Job not found or not assigned to you")
    # lock the shared job row too, all roles serialize on it
    db.query(TrafficJob).filter(TrafficJob.id == job_id).with_for_update().populate_existing().first()
    return assignment


def _authorize(db: Session, role: ActorRole, actor_user_id: str, job_id: str) -> Tuple[object, TrafficAssignment]:
    begin_write(db)
    identity = resolve_identity(db, role, actor_user_id)
    assignment = load_my_assignment(db, role, identity.id, job_id)
    job = assignment.traffic_job
    time_lock.ensure_unlocked(job, role)
    # dispatcher terminal states close the job to every field role
    if is_terminal(ActorRole.DISPATCHER, job.status):
        raise InvalidState(f'Job is already in terminal status "{job.status.value}"')
    return identity, assignment


def update_field_status(
    db: Session,
    role,
    actor_user_id: str,
    job_id: str,
    new_status,
    lat,
    lng,
) -> TrafficAssignment:
    """Driver/rep status change with GPS. Returns the updated assignment."""
    role = _role(role, _GPS_ROLES)
    lat_f, lng_f = audit.parse_coordinates(lat, lng)
    field = STATUS_FIELDS[role]

    try:
        identity, assignment = _authorize(db, role, actor_user_id, job_id)
        job = assignment.traffic_job
        current = getattr(assignment, field)

        requested = getattr(new_status, "value", new_status)
        if (
            role == ActorRole.DRIVER
            and requested == DriverStatus.COMPLETED.value
            and job.collection_required
            and not job.collection_collected
        ):
            raise InvalidState("Collection must be marked as collected before completing this job")

        target = ensure_transition(role, current, new_status)
        setattr(assignment, field, target)
        audit.record_status_change(
            db,
            traffic_job_id=job.id,
            assignment_id=assignment.id,
            actor_role=role,
            actor_user_id=actor_user_id,
            previous_status=current,
            new_status=target,
            lat=lat_f,
            lng=lng_f,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    logger.info(
        "%s %s moved job %s %s -> %s",
        role.value, identity.id, job.internal_ref, current.value, target.value,
    )
    return assignment


def submit_no_show(
    db: Session,
    role,
    actor_user_id: str,
    job_id: str,
    photo1: Optional[str],
    photo2: Optional[str],
    lat,
    lng,
) -> TrafficAssignment:
    role = _role(role, _GPS_ROLES)
    photos = [p.strip() for p in (photo1, photo2) if isinstance(p, str) and p.strip()]
    if len(photos) < 2:
        raise BadRequest("Two evidence photos are required to report a no-show")
    lat_f, lng_f = audit.parse_coordinates(lat, lng)
    field = STATUS_FIELDS[role]

    try:
        identity, assignment = _authorize(db, role, actor_user_id, job_id)
        job = assignment.traffic_job
        current = getattr(assignment, field)

        if is_terminal(role, current):
            raise InvalidState(f'Job is already in terminal status "{current.value}"')
        if current not in NO_SHOW_ELIGIBLE[role]:
            raise InvalidState(f'Cannot report a no-show from status "{current.value}"')

        no_show = type(current).NO_SHOW
        setattr(assignment, field, no_show)

        link = audit.map_link(lat_f, lng_f)
        db.add(
            NoShowEvidence(
                id=str(uuid.uuid4()),
                traffic_job_id=job.id,
                assignment_id=assignment.id,
                image_url_1=photos[0],
                image_url_2=photos[1],
                gps_latitude=lat_f,
                gps_longitude=lng_f,
                gps_map_link=link,
                submitted_by=role,
                submitted_by_id=identity.id,
                submitted_by_user_id=actor_user_id,
            )
        )
        audit.record_status_change(
            db,
            traffic_job_id=job.id,
            assignment_id=assignment.id,
            actor_role=role,
            actor_user_id=actor_user_id,
            previous_status=current,
            new_status=no_show,
            lat=lat_f,
            lng=lng_f,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    logger.info("%s %s reported no-show on job %s", role.value, identity.id, job.internal_ref)
    return assignment


def update_supplier_status(
    db: Session,
    actor_user_id: str,
    job_id: str,
    new_status,
    notes: Optional[str] = None,
) -> TrafficAssignment:
    role = ActorRole.SUPPLIER
    try:
        identity, assignment = _authorize(db, role, actor_user_id, job_id)
        current = assignment.supplier_status
        target = ensure_transition(role, current, new_status)

        assignment.supplier_status = target
        if notes is not None:
            assignment.supplier_notes = notes.strip() or None
        audit.record_status_change(
            db,
            traffic_job_id=assignment.traffic_job_id,
            assignment_id=assignment.id,
            actor_role=role,
            actor_user_id=actor_user_id,
            previous_status=current,
            new_status=target,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(assignment)
    logger.info(
        "Supplier %s moved job %s %s -> %s",
        identity.id, assignment.traffic_job.internal_ref, current.value, target.value,
    )
    return assignment


def complete_supplier_job(db: Session, actor_user_id: str, job_id: str, notes: Optional[str] = None):
    return update_supplier_status(db, actor_user_id, job_id, SupplierStatus.COMPLETED, notes)


def mark_collection_by_driver(db: Session, actor_user_id: str, job_id: str) -> TrafficJob:
    try:
        _, assignment = _authorize(db, ActorRole.DRIVER, actor_user_id, job_id)
        job = assignment.traffic_job
        apply_collection_collected(job)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(job)
    logger.info("Driver collected payment for job %s", job.internal_ref)
    return job


# -------- Portal reads --------
def portal_row(role: ActorRole, assignment: TrafficAssignment) -> dict:
    job = assignment.traffic_job
    row = {
        "job": job,
        "assignment_id": assignment.id,
        "my_status": getattr(assignment, STATUS_FIELDS[role]).value,
        "is_locked": time_lock.is_locked(job, role),
    }
    if role == ActorRole.SUPPLIER:
        row["supplier_notes"] = assignment.supplier_notes
    return row


def list_my_jobs(db: Session, role, actor_user_id: str, on_date: Optional[date] = None) -> list[dict]:
    role = _role(role)
    identity = resolve_identity(db, role, actor_user_id)
    on_date = on_date or date.today()
    rows = (
        _assignment_query(db, role, identity.id)
        .filter(TrafficJob.job_date == on_date)
        .order_by(TrafficJob.pick_up_time.asc(), TrafficAssignment.created_at.asc())
        .all()
    )
    return [portal_row(role, a) for a in rows]


def job_history(db: Session, role, actor_user_id: str, date_from: date, date_to: date) -> list[dict]:
    """Jobs in range where the caller's own status is final, with the fee earned."""
    role = _role(role, _GPS_ROLES)
    identity = resolve_identity(db, role, actor_user_id)
    rows = (
        _assignment_query(db, role, identity.id)
        .filter(TrafficJob.job_date >= date_from, TrafficJob.job_date <= date_to)
        .order_by(TrafficJob.job_date.asc())
        .all()
    )

    fee_model, owner = (DriverFee, DriverFee.driver_id) if role == ActorRole.DRIVER else (RepFee, RepFee.rep_id)
    out = []
    for a in rows:
        if not is_terminal(role, getattr(a, STATUS_FIELDS[role])):
            continue
        fee = (
            db.query(fee_model)
            .filter(owner == identity.id, fee_model.traffic_job_id == a.traffic_job_id)
            .first()
        )
        out.append(portal_row(role, a) | {"fee_earned": float(fee.amount) if fee else None})
    return out
