from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import BadRequest, TimeLocked
from app.models.assignment import ActorRole, DriverStatus
from app.models.status_log import StatusChangeLog
from app.models.traffic_job import TrafficJob
from app.services import field_status, time_lock

from conftest import make_job

GPS = (30.0444, 31.2357)


def _job(day=date(2024, 1, 1)) -> TrafficJob:
    return TrafficJob(job_date=day)


def test_cutoff_is_window_after_service_day_start():
    assert time_lock.cutoff(_job()) == datetime(2024, 1, 3, tzinfo=timezone.utc)


def test_window_boundary():
    job = _job()
    edge = datetime(2024, 1, 3, tzinfo=timezone.utc)
    assert not time_lock.is_locked(job, ActorRole.DRIVER, edge)
    assert time_lock.is_locked(job, ActorRole.DRIVER, edge + timedelta(seconds=1))
    # naive timestamps are read as UTC
    assert time_lock.is_locked(job, "REP", datetime(2024, 1, 3, 0, 0, 1))


def test_unlock_marker_bypasses_lock_per_role():
    job = _job()
    job.rep_unlocked_at = datetime(2024, 2, 1, tzinfo=timezone.utc)
    late = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert not time_lock.is_locked(job, ActorRole.REP, late)
    assert time_lock.is_locked(job, ActorRole.DRIVER, late)
    assert time_lock.is_locked(job, ActorRole.SUPPLIER, late)


def test_ensure_unlocked_raises_forbidden():
    with pytest.raises(TimeLocked) as exc:
        time_lock.ensure_unlocked(_job(), ActorRole.DRIVER, datetime(2024, 1, 10, tzinfo=timezone.utc))
    assert exc.value.status_code == 403
    assert "48 hours" in exc.value.detail


def test_dispatcher_is_not_a_lockable_role():
    with pytest.raises(BadRequest):
        time_lock.is_locked(_job(), ActorRole.DISPATCHER)


def test_locked_job_rejects_even_valid_transitions(db, world):
    job = make_job(db, world, job_date=date.today() - timedelta(days=3))

    with pytest.raises(TimeLocked):
        field_status.update_field_status(
            db, ActorRole.DRIVER, world.driver_user.id, job.id, "IN_PROGRESS", *GPS
        )
    # the invalid transition reports the window, not the transition table
    with pytest.raises(TimeLocked):
        field_status.update_field_status(
            db, ActorRole.DRIVER, world.driver_user.id, job.id, "PENDING", *GPS
        )
    assert db.query(StatusChangeLog).filter(StatusChangeLog.actor_role == ActorRole.DRIVER).count() == 0


def test_unlock_then_lock_again(db, world):
    job = make_job(db, world, job_date=date.today() - timedelta(days=5))

    job = time_lock.unlock_job(db, job.id, ActorRole.DRIVER, world.admin.id)
    assert job.driver_unlocked_at is not None
    assert job.driver_unlocked_by_id == world.admin.id
    assert job.rep_unlocked_at is None

    assignment = field_status.update_field_status(
        db, ActorRole.DRIVER, world.driver_user.id, job.id, "IN_PROGRESS", *GPS
    )
    assert assignment.driver_status == DriverStatus.IN_PROGRESS

    job = time_lock.lock_job(db, job.id, "DRIVER")
    assert job.driver_unlocked_at is None
    assert job.driver_unlocked_by_id is None
    with pytest.raises(TimeLocked):
        field_status.update_field_status(
            db, ActorRole.DRIVER, world.driver_user.id, job.id, "COMPLETED", *GPS
        )


def test_lock_board_lists_jobs_for_role(db, world):
    old = make_job(db, world, job_date=date.today() - timedelta(days=4))
    make_job(db, world, job_date=date.today() - timedelta(days=4), with_rep=False)
    time_lock.unlock_job(db, old.id, ActorRole.REP, world.admin.id)

    since = date.today() - timedelta(days=10)
    rep_rows = time_lock.list_lock_board(db, ActorRole.REP, since, date.today())
    assert [r["internal_ref"] for r in rep_rows] == [old.internal_ref]
    assert rep_rows[0]["is_unlocked"] is True
    assert rep_rows[0]["is_locked"] is False

    driver_rows = time_lock.list_lock_board(db, ActorRole.DRIVER, since, date.today())
    assert len(driver_rows) == 2
    assert all(r["is_locked"] for r in driver_rows)

    supplier_rows = time_lock.list_lock_board(db, ActorRole.SUPPLIER, since, date.today(), search=old.internal_ref)
    assert [r["id"] for r in supplier_rows] == [old.id]
