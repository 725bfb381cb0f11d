import math
from datetime import date, timedelta

import pytest

from app.core.errors import BadRequest, Forbidden, InvalidState, InvalidTransition, NotFound
from app.models.assignment import ActorRole, DriverStatus, RepStatus, SupplierStatus
from app.models.no_show import NoShowEvidence
from app.models.status_log import StatusChangeLog
from app.models.traffic_job import JobStatus, ServiceType
from app.models.user import UserRole
from app.services import field_status
from app.services.job_status import set_job_status

from conftest import make_job, make_user

LAT, LNG = 25.1, 55.2


def _logs(db, role):
    return (
        db.query(StatusChangeLog)
        .filter(StatusChangeLog.actor_role == role)
        .order_by(StatusChangeLog.created_at.asc())
        .all()
    )


def test_driver_moves_forward_and_cannot_go_back(db, world):
    job = make_job(db, world)

    a = field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "IN_PROGRESS", LAT, LNG)
    assert a.driver_status == DriverStatus.IN_PROGRESS

    with pytest.raises(InvalidTransition) as exc:
        field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "PENDING", LAT, LNG)
    assert "Allowed transitions: COMPLETED, CANCELLED" in exc.value.detail

    logs = _logs(db, ActorRole.DRIVER)
    assert len(logs) == 1
    assert logs[0].previous_status == "PENDING"
    assert logs[0].new_status == "IN_PROGRESS"
    assert logs[0].actor_user_id == world.driver_user.id
    assert logs[0].assignment_id == a.id
    assert logs[0].gps_map_link == "https://www.google.com/maps?q=25.1,55.2"


def test_role_columns_are_disjoint(db, world):
    job = make_job(db, world)

    a = field_status.update_field_status(db, ActorRole.REP, world.rep_user.id, job.id, "COMPLETED", "25.1", "55.2")
    assert a.rep_status == RepStatus.COMPLETED
    assert a.driver_status == DriverStatus.PENDING
    assert a.supplier_status == SupplierStatus.PENDING
    db.refresh(job)
    assert job.status == JobStatus.ASSIGNED


def test_collection_must_be_collected_before_driver_completes(db, world):
    job = make_job(db, world, collection_required=True, collection_amount=250, collection_currency="EGP")

    with pytest.raises(InvalidState):
        field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "COMPLETED", LAT, LNG)
    assert _logs(db, ActorRole.DRIVER) == []

    job = field_status.mark_collection_by_driver(db, world.driver_user.id, job.id)
    assert job.collection_collected is True
    assert job.collection_collected_at is not None

    a = field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "COMPLETED", LAT, LNG)
    assert a.driver_status == DriverStatus.COMPLETED


@pytest.mark.parametrize(
    "lat,lng",
    [(None, LNG), ("abc", LNG), (math.nan, LNG), (LAT, math.inf), (91, LNG), (LAT, -181), (True, LNG)],
)
def test_gps_must_be_finite_coordinates(db, world, lat, lng):
    job = make_job(db, world)
    with pytest.raises(BadRequest):
        field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "IN_PROGRESS", lat, lng)
    assert _logs(db, ActorRole.DRIVER) == []


def test_no_show_requires_two_photos(db, world):
    job = make_job(db, world)

    with pytest.raises(BadRequest):
        field_status.submit_no_show(
            db, ActorRole.DRIVER, world.driver_user.id, job.id, "uploads/a.jpg", None, LAT, LNG
        )
    with pytest.raises(BadRequest):
        field_status.submit_no_show(
            db, ActorRole.DRIVER, world.driver_user.id, job.id, "uploads/a.jpg", "  ", LAT, LNG
        )
    assert db.query(NoShowEvidence).count() == 0
    db.refresh(job.assignment)
    assert job.assignment.driver_status == DriverStatus.PENDING


def test_no_show_records_evidence_and_status(db, world):
    job = make_job(db, world)
    field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "IN_PROGRESS", LAT, LNG)

    a = field_status.submit_no_show(
        db, ActorRole.DRIVER, world.driver_user.id, job.id, "uploads/a.jpg", "uploads/b.jpg", LAT, LNG
    )
    assert a.driver_status == DriverStatus.NO_SHOW

    evidence = db.query(NoShowEvidence).one()
    assert evidence.assignment_id == a.id
    assert evidence.submitted_by == ActorRole.DRIVER
    assert evidence.submitted_by_id == world.driver.id
    assert (evidence.image_url_1, evidence.image_url_2) == ("uploads/a.jpg", "uploads/b.jpg")
    assert evidence.gps_map_link == "https://www.google.com/maps?q=25.1,55.2"

    assert [(e.previous_status, e.new_status) for e in _logs(db, ActorRole.DRIVER)] == [
        ("PENDING", "IN_PROGRESS"),
        ("IN_PROGRESS", "NO_SHOW"),
    ]


def test_no_show_from_terminal_status_is_rejected(db, world):
    job = make_job(db, world)
    field_status.update_field_status(db, ActorRole.REP, world.rep_user.id, job.id, "COMPLETED", LAT, LNG)

    with pytest.raises(InvalidState):
        field_status.submit_no_show(
            db, ActorRole.REP, world.rep_user.id, job.id, "uploads/a.jpg", "uploads/b.jpg", LAT, LNG
        )
    assert db.query(NoShowEvidence).count() == 0


def test_cancelled_job_is_closed_to_field_roles(db, world):
    job = make_job(db, world, collection_required=True, collection_amount=250, collection_currency="EGP")
    set_job_status(db, job.id, JobStatus.CANCELLED, world.dispatcher.id)

    with pytest.raises(InvalidState) as exc:
        field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "COMPLETED", LAT, LNG)
    assert exc.value.status_code == 409
    assert exc.value.detail == 'Job is already in terminal status "CANCELLED"'

    with pytest.raises(InvalidState):
        field_status.complete_supplier_job(db, world.supplier_user.id, job.id, "done")
    with pytest.raises(InvalidState):
        field_status.mark_collection_by_driver(db, world.driver_user.id, job.id)

    db.refresh(job)
    assert job.status == JobStatus.CANCELLED
    assert job.collection_collected is False
    assert job.assignment.driver_status == DriverStatus.PENDING
    assert job.assignment.supplier_status == SupplierStatus.PENDING
    assert _logs(db, ActorRole.DRIVER) == []
    assert _logs(db, ActorRole.SUPPLIER) == []


def test_no_show_rejected_after_dispatcher_completes(db, world):
    job = make_job(db, world)
    set_job_status(db, job.id, JobStatus.IN_PROGRESS, world.dispatcher.id)
    set_job_status(db, job.id, JobStatus.COMPLETED, world.dispatcher.id)

    with pytest.raises(InvalidState) as exc:
        field_status.submit_no_show(
            db, ActorRole.REP, world.rep_user.id, job.id, "uploads/a.jpg", "uploads/b.jpg", LAT, LNG
        )
    assert "COMPLETED" in exc.value.detail
    assert db.query(NoShowEvidence).count() == 0

    db.refresh(job)
    assert job.assignment.rep_status == RepStatus.PENDING
    assert _logs(db, ActorRole.REP) == []


def test_supplier_cannot_report_no_show(db, world):
    job = make_job(db, world)
    with pytest.raises(BadRequest):
        field_status.submit_no_show(
            db, ActorRole.SUPPLIER, world.supplier_user.id, job.id, "a.jpg", "b.jpg", LAT, LNG
        )


def test_unassigned_identity_gets_not_found(db, world):
    job = make_job(db, world, with_rep=False)
    with pytest.raises(NotFound) as exc:
        field_status.update_field_status(db, ActorRole.REP, world.rep_user.id, job.id, "COMPLETED", LAT, LNG)
    assert exc.value.detail == "Job not found or not assigned to you"


def test_user_without_identity_is_forbidden(db, world):
    job = make_job(db, world)
    stranger = make_user(db, UserRole.DRIVER)
    with pytest.raises(Forbidden):
        field_status.update_field_status(db, ActorRole.DRIVER, stranger.id, job.id, "IN_PROGRESS", LAT, LNG)


def test_supplier_completes_with_notes_and_no_gps(db, world):
    job = make_job(db, world, service_type=ServiceType.EXCURSION, with_rep=False)

    a = field_status.complete_supplier_job(db, world.supplier_user.id, job.id, "  Coach left on time  ")
    assert a.supplier_status == SupplierStatus.COMPLETED
    assert a.supplier_notes == "Coach left on time"

    log = _logs(db, ActorRole.SUPPLIER)[0]
    assert (log.previous_status, log.new_status) == ("PENDING", "COMPLETED")
    assert log.gps_latitude is None
    assert log.gps_map_link is None

    with pytest.raises(InvalidTransition):
        field_status.update_supplier_status(db, world.supplier_user.id, job.id, "IN_PROGRESS")


def test_portal_lists_and_history(db, world):
    today = make_job(db, world)
    yesterday = make_job(db, world, job_date=date.today() - timedelta(days=1))
    field_status.update_field_status(db, ActorRole.REP, world.rep_user.id, yesterday.id, "COMPLETED", LAT, LNG)

    rows = field_status.list_my_jobs(db, ActorRole.REP, world.rep_user.id)
    assert [r["job"].id for r in rows] == [today.id]
    assert rows[0]["my_status"] == "PENDING"
    assert rows[0]["is_locked"] is False

    history = field_status.job_history(
        db, ActorRole.REP, world.rep_user.id, date.today() - timedelta(days=7), date.today()
    )
    assert [r["job"].id for r in history] == [yesterday.id]
    # no fee until the dispatcher completes the job
    assert history[0]["fee_earned"] is None

    supplier_rows = field_status.list_my_jobs(db, ActorRole.SUPPLIER, world.supplier_user.id)
    assert supplier_rows[0]["supplier_notes"] is None
