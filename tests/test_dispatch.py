import uuid
from datetime import date

import pytest

from app.core.errors import BadRequest, InvalidState
from app.models.assignment import ActorRole, DriverStatus, RepStatus, TrafficAssignment
from app.models.fleet import Driver, Vehicle
from app.models.notification import NotificationType, UserNotification
from app.models.traffic_job import JobStatus, ServiceType
from app.models.user import UserRole
from app.services import dispatch, field_status

from conftest import make_job, make_user

LAT, LNG = 30.0, 31.0


def test_internal_refs_are_sequential(db, world):
    first = make_job(db, world, assign=False)
    second = make_job(db, world, assign=False)
    assert (first.internal_ref, second.internal_ref) == ("TJ-0001", "TJ-0002")
    assert first.status == JobStatus.PENDING
    assert first.pax_count == 2


def test_assign_moves_job_to_assigned_and_notifies_field_users(db, world):
    job = make_job(db, world)

    assert job.status == JobStatus.ASSIGNED
    assert job.assignment.driver_id == world.driver.id
    assert job.assignment.rep_id == world.rep.id

    notified = {
        n.user_id
        for n in db.query(UserNotification).filter(UserNotification.type == NotificationType.JOB_ASSIGNED)
    }
    assert notified == {world.driver_user.id, world.rep_user.id}


def test_assign_twice_is_rejected(db, world):
    job = make_job(db, world)
    with pytest.raises(InvalidState):
        dispatch.assign_job(db, job.id, world.vehicle.id, world.driver.id, None, world.dispatcher.id)


def test_rep_not_allowed_on_excursion(db, world):
    job = make_job(db, world, service_type=ServiceType.EXCURSION, assign=False)
    with pytest.raises(BadRequest):
        dispatch.assign_job(db, job.id, world.vehicle.id, world.driver.id, world.rep.id, world.dispatcher.id)
    db.refresh(job)
    assert job.assignment is None
    assert job.status == JobStatus.PENDING


def test_pax_over_capacity_is_rejected(db, world):
    job = make_job(db, world, assign=False, adult_count=12, child_count=4)
    with pytest.raises(BadRequest) as exc:
        dispatch.assign_job(db, job.id, world.vehicle.id, world.driver.id, None, world.dispatcher.id)
    assert "exceeds vehicle capacity" in exc.value.detail


def test_reassign_keeps_history_and_resets_only_changed_role(db, world):
    job = make_job(db, world)
    field_status.update_field_status(db, ActorRole.DRIVER, world.driver_user.id, job.id, "IN_PROGRESS", LAT, LNG)
    field_status.update_field_status(db, ActorRole.REP, world.rep_user.id, job.id, "COMPLETED", LAT, LNG)
    original_id = job.assignment.id

    new_driver_user = make_user(db, UserRole.DRIVER, "Karim Driver")
    new_driver = Driver(id=str(uuid.uuid4()), name="Karim Driver", user_id=new_driver_user.id)
    db.add(new_driver)
    db.commit()

    job = dispatch.reassign_job(db, job.id, world.dispatcher.id, driver_id=new_driver.id)

    versions = db.query(TrafficAssignment).filter(TrafficAssignment.traffic_job_id == job.id).all()
    assert len(versions) == 2
    old = next(v for v in versions if v.id == original_id)
    active = next(v for v in versions if v.id != original_id)
    assert old.superseded_at is not None
    assert old.superseded_by_id == active.id
    assert old.driver_status == DriverStatus.IN_PROGRESS
    assert active.superseded_at is None
    assert active.driver_id == new_driver.id
    assert active.driver_status == DriverStatus.PENDING
    assert active.rep_status == RepStatus.COMPLETED
    assert job.assignment.id == active.id

    # the previous driver no longer sees the job
    assert field_status.list_my_jobs(db, ActorRole.DRIVER, world.driver_user.id) == []
    notified = db.query(UserNotification).filter(UserNotification.user_id == new_driver_user.id).count()
    assert notified == 1


def test_reassign_to_owned_vehicle_resets_supplier(db, world):
    job = make_job(db, world, with_rep=False)
    field_status.update_supplier_status(db, world.supplier_user.id, job.id, "IN_PROGRESS", "on the way")

    owned = Vehicle(id=str(uuid.uuid4()), plate_number="OWN-1", seat_capacity=4)
    db.add(owned)
    db.commit()
    job = dispatch.reassign_job(db, job.id, world.dispatcher.id, vehicle_id=owned.id)

    assert job.assignment.vehicle_id == owned.id
    assert job.assignment.supplier_status.value == "PENDING"
    assert job.assignment.supplier_notes is None


def test_reassign_terminal_job_is_rejected(db, world):
    job = make_job(db, world)
    job.status = JobStatus.CANCELLED
    db.commit()
    with pytest.raises(InvalidState):
        dispatch.reassign_job(db, job.id, world.dispatcher.id, rep_id=None)


def test_update_reports_only_changed_fields(db, world):
    job = make_job(db, world)

    job, changed = dispatch.update_job(
        db,
        job.id,
        {"client_name": "John Smith", "flight_no": "MS 777", "child_count": 1, "internal_ref": "HACK"},
        world.dispatcher.id,
    )
    assert changed == ["flight_no", "child_count", "pax_count"]
    assert job.pax_count == 3
    assert job.internal_ref == "TJ-0001"

    _, changed = dispatch.update_job(db, job.id, {"flight_no": "MS 777", "job_date": date.today()}, world.dispatcher.id)
    assert changed == []


def test_clearing_collection_resets_amount(db, world):
    job = make_job(db, world, collection_required=True, collection_amount=80)
    job, changed = dispatch.update_job(db, job.id, {"collection_required": False}, world.dispatcher.id)
    assert changed == ["collection_required"]
    assert job.collection_amount is None
    with pytest.raises(InvalidState):
        dispatch.mark_collection_collected(db, job.id, world.dispatcher.id)
