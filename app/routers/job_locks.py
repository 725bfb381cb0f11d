from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import require_admin
from app.core.db import get_db
from app.models.assignment import ActorRole
from app.models.user import User
from app.schemas.traffic_job import LockBoardRow, TrafficJobOut
from app.services import time_lock

router = APIRouter(prefix="/job-locks", tags=["job-locks"])


# -------- Endpoints (ADMIN-only) --------
@router.get("/{role}", response_model=list[LockBoardRow])
def lock_board(
    role: ActorRole,
    date_from: date,
    date_to: date,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return time_lock.list_lock_board(db, role, date_from, date_to, search)


@router.post("/{role}/{job_id}/unlock", response_model=TrafficJobOut)
def unlock_job(
    role: ActorRole,
    job_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return time_lock.unlock_job(db, job_id, role, admin.id)


@router.post("/{role}/{job_id}/lock", response_model=TrafficJobOut)
def lock_job(
    role: ActorRole,
    job_id: str,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return time_lock.lock_job(db, job_id, role)
