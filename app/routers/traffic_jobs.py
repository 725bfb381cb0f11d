from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.core.auth import require_desk
from app.core.db import get_db
from app.models.user import User
from app.schemas.traffic_job import (
    AssignJob,
    AssignmentOut,
    JobStatusUpdate,
    ReassignJob,
    StatusChangeOut,
    TrafficJobCreate,
    TrafficJobDetail,
    TrafficJobOut,
    TrafficJobUpdate,
)
from app.services import audit, dispatch
from app.services.job_status import set_job_status
from app.services.mailer import MessageSender, get_mailer
from app.services.notifications import run_job_update_notification

router = APIRouter(prefix="/traffic-jobs", tags=["traffic-jobs"])


def _job_detail(db: Session, job) -> TrafficJobDetail:
    out = TrafficJobDetail.model_validate(job)
    out.history = [StatusChangeOut.model_validate(e) for e in audit.list_status_history(db, job.id)]
    out.assignment_versions = [AssignmentOut.model_validate(a) for a in job.assignments]
    return out


def _schedule_notification(
    background_tasks: BackgroundTasks,
    job_id: str,
    user: User,
    changed_fields: list[str],
    mailer: MessageSender,
) -> None:
    # Runs after the response; the mutation is already committed
    if changed_fields:
        background_tasks.add_task(run_job_update_notification, job_id, user.id, changed_fields, mailer)


@router.post("", response_model=TrafficJobOut)
def create_traffic_job(
    payload: TrafficJobCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_desk),
):
    return dispatch.create_job(db, payload.model_dump(), user.id)


@router.get("/{job_id}", response_model=TrafficJobDetail)
def get_traffic_job(
    job_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(require_desk),
):
    return _job_detail(db, dispatch.get_job(db, job_id))


@router.patch("/{job_id}", response_model=TrafficJobOut)
def update_traffic_job(
    job_id: str,
    payload: TrafficJobUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_desk),
    mailer: MessageSender = Depends(get_mailer),
):
    job, changed = dispatch.update_job(db, job_id, payload.model_dump(exclude_unset=True), user.id)
    _schedule_notification(background_tasks, job.id, user, changed, mailer)
    return job


@router.post("/{job_id}/status", response_model=TrafficJobOut)
def update_traffic_job_status(
    job_id: str,
    payload: JobStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_desk),
    mailer: MessageSender = Depends(get_mailer),
):
    job = set_job_status(db, job_id, payload.status, user.id)
    _schedule_notification(background_tasks, job.id, user, ["status"], mailer)
    return job


@router.post("/{job_id}/assign", response_model=TrafficJobOut)
def assign_traffic_job(
    job_id: str,
    payload: AssignJob,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_desk),
    mailer: MessageSender = Depends(get_mailer),
):
    job = dispatch.assign_job(
        db, job_id, payload.vehicle_id, payload.driver_id, payload.rep_id, user.id, payload.remarks
    )
    _schedule_notification(background_tasks, job.id, user, ["assignment", "status"], mailer)
    return job


@router.post("/{job_id}/reassign", response_model=TrafficJobOut)
def reassign_traffic_job(
    job_id: str,
    payload: ReassignJob,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_desk),
    mailer: MessageSender = Depends(get_mailer),
):
    job = dispatch.reassign_job(db, job_id, user.id, **payload.model_dump(exclude_unset=True))
    _schedule_notification(background_tasks, job.id, user, ["assignment"], mailer)
    return job


@router.post("/{job_id}/collection", response_model=TrafficJobOut)
def mark_traffic_job_collected(
    job_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_desk),
):
    return dispatch.mark_collection_collected(db, job_id, user.id)
