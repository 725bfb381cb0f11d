"""
Field-worker portals. Drivers and reps share the same contract; suppliers
have a simpler completion flow without GPS.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import require_roles
from app.core.db import get_db
from app.models.assignment import ActorRole
from app.models.user import User, UserRole
from app.schemas.portal import (
    FieldStatusUpdate,
    NoShowSubmit,
    PortalJobOut,
    SupplierComplete,
    SupplierStatusUpdate,
)
from app.schemas.traffic_job import TrafficJobOut
from app.services import field_status


def _portal_out(row: dict) -> PortalJobOut:
    row = dict(row)
    return PortalJobOut(job=TrafficJobOut.model_validate(row.pop("job")), **row)


def build_field_portal(role: ActorRole, user_role: UserRole, prefix: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])
    guard = require_roles(user_role)

    @router.get("/jobs", response_model=list[PortalJobOut])
    def my_jobs(
        on_date: Optional[date] = Query(default=None, alias="date"),
        db: Session = Depends(get_db),
        user: User = Depends(guard),
    ):
        return [_portal_out(r) for r in field_status.list_my_jobs(db, role, user.id, on_date)]

    @router.get("/history", response_model=list[PortalJobOut])
    def my_history(
        date_from: date,
        date_to: date,
        db: Session = Depends(get_db),
        user: User = Depends(guard),
    ):
        return [_portal_out(r) for r in field_status.job_history(db, role, user.id, date_from, date_to)]

    @router.post("/jobs/{job_id}/status", response_model=PortalJobOut)
    def update_my_status(
        job_id: str,
        payload: FieldStatusUpdate,
        db: Session = Depends(get_db),
        user: User = Depends(guard),
    ):
        assignment = field_status.update_field_status(
            db, role, user.id, job_id, payload.status, payload.latitude, payload.longitude
        )
        return _portal_out(field_status.portal_row(role, assignment))

    @router.post("/jobs/{job_id}/no-show", response_model=PortalJobOut)
    def report_no_show(
        job_id: str,
        payload: NoShowSubmit,
        db: Session = Depends(get_db),
        user: User = Depends(guard),
    ):
        assignment = field_status.submit_no_show(
            db, role, user.id, job_id, payload.photo1, payload.photo2, payload.latitude, payload.longitude
        )
        return _portal_out(field_status.portal_row(role, assignment))

    return router


driver_router = build_field_portal(ActorRole.DRIVER, UserRole.DRIVER, "/driver-portal")
rep_router = build_field_portal(ActorRole.REP, UserRole.REP, "/rep-portal")


@driver_router.post("/jobs/{job_id}/collection", response_model=TrafficJobOut)
def driver_mark_collected(
    job_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.DRIVER)),
):
    return field_status.mark_collection_by_driver(db, user.id, job_id)


supplier_router = APIRouter(prefix="/supplier-portal", tags=["supplier-portal"])


@supplier_router.get("/jobs", response_model=list[PortalJobOut])
def supplier_jobs(
    on_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.SUPPLIER)),
):
    return [_portal_out(r) for r in field_status.list_my_jobs(db, ActorRole.SUPPLIER, user.id, on_date)]


@supplier_router.post("/jobs/{job_id}/status", response_model=PortalJobOut)
def supplier_update_status(
    job_id: str,
    payload: SupplierStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.SUPPLIER)),
):
    assignment = field_status.update_supplier_status(db, user.id, job_id, payload.status, payload.notes)
    return _portal_out(field_status.portal_row(ActorRole.SUPPLIER, assignment))


@supplier_router.post("/jobs/{job_id}/complete", response_model=PortalJobOut)
def supplier_complete(
    job_id: str,
    payload: SupplierComplete,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.SUPPLIER)),
):
    assignment = field_status.complete_supplier_job(db, user.id, job_id, payload.notes)
    return _portal_out(field_status.portal_row(ActorRole.SUPPLIER, assignment))
