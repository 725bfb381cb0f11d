from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.db import begin_write
from app.core.errors import NotFound
from app.models.assignment import ActorRole
from app.models.traffic_job import JobStatus, ServiceType, TrafficJob
from app.services import audit, fees
from app.services.status_rules import ensure_transition

logger = logging.getLogger(__name__)


def load_job_for_update(db: Session, job_id: str) -> TrafficJob:
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


def apply_job_transition(
    db: Session,
    job: TrafficJob,
    new_status,
    actor_user_id: Optional[str] = None,
) -> JobStatus:
    """
    Validate and stage a dispatcher transition plus its side effects
    (audit row, fees on completion). The caller owns the commit.

    On COMPLETED the rep fee is posted for arrivals that carry a rep. A
    driver trip fee is posted as well, for any service type, whenever the
    assigned driver has a trip_fee configured. The driver fee goes beyond
    the rep-fee rule; drivers without a trip_fee are never charged.
    """
    old = job.status
    target = ensure_transition(ActorRole.DISPATCHER, old, new_status)
    job.status = target

    assignment = job.assignment
    audit.record_status_change(
        db,
        traffic_job_id=job.id,
        assignment_id=assignment.id if assignment else None,
        actor_role=ActorRole.DISPATCHER,
        actor_user_id=actor_user_id,
        previous_status=old,
        new_status=target,
    )

    if target == JobStatus.COMPLETED and assignment is not None:
        if job.service_type == ServiceType.ARR and assignment.rep is not None:
            fees.post_rep_fee(db, assignment.rep, job)
        if assignment.driver is not None and assignment.driver.trip_fee is not None:
            fees.post_driver_fee(db, assignment.driver, job)

    return target


def set_job_status(
    db: Session,
    job_id: str,
    new_status,
    actor_user_id: Optional[str] = None,
) -> TrafficJob:
    """Dispatcher status change in one transaction; rolled back whole on any error."""
    try:
        job = load_job_for_update(db, job_id)
        old = job.status
        apply_job_transition(db, job, new_status, actor_user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(job)
    logger.info("Job %s status %s -> %s", job.internal_ref, old.value, job.status.value)
    return job
