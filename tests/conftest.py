"""Shared fixtures: a throwaway SQLite database, a recording mailer and a small fleet."""
from __future__ import annotations

import os
import uuid
from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

TMP = Path(__file__).resolve().parent / ".tmp"
TMP.mkdir(parents=True, exist_ok=True)
os.environ["JWT_SECRET"] = "test-secret-0123456789-abcdefghijklmnop"
os.environ["DATABASE_URL"] = f"sqlite:///{TMP / 'traffic_test.db'}"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["NOTIFY_DISPATCH_EMAIL"] = ""
os.environ["NOTIFY_TRAFFIC_EMAIL"] = ""

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.core.db import Base, SessionLocal, engine  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.models.fleet import Driver, Rep, Supplier, Vehicle  # noqa: E402
from app.models.traffic_job import ServiceType  # noqa: E402
from app.models.user import TRAFFIC_JOBS_PERMISSION, Role, RolePermission, User, UserRole  # noqa: E402
from app.services import dispatch  # noqa: E402
from app.services.mailer import get_mailer  # noqa: E402

# One hash for every fixture user; argon2 is slow on purpose
PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


class RecordingMailer:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = {a.lower() for a in fail_for}

    def send(self, to, subject, html):
        if to.lower() in self.fail_for:
            raise ConnectionError(f"SMTP refused {to}")
        self.sent.append({"to": to, "subject": subject, "html": html})

    @property
    def recipients(self):
        return [m["to"] for m in self.sent]


def _uid() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(db, mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, role: UserRole, name=None, email=None, role_ref=None, is_active=True) -> User:
    user = User(
        id=_uid(),
        name=name or f"{role.value.title()} {uuid.uuid4().hex[:4]}",
        phone=f"+20{uuid.uuid4().int % 10**10:010d}",
        email=email,
        role=role,
        role_ref=role_ref,
        password_hash=PASSWORD_HASH,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id, role=user.role.value)}"}


@pytest.fixture
def world(db):
    """Admin, dispatcher with the traffic-jobs permission, and linked field identities."""
    traffic_role = Role(id=_uid(), name="Traffic")
    traffic_role.permissions.append(RolePermission(id=_uid(), permission_key=TRAFFIC_JOBS_PERMISSION))
    db.add(traffic_role)
    db.commit()

    admin = make_user(db, UserRole.ADMIN, "Admin", "admin@traffic.test")
    dispatcher = make_user(db, UserRole.DISPATCHER, "Dina Dispatcher", "dina@traffic.test", traffic_role)
    driver_user = make_user(db, UserRole.DRIVER, "Omar Driver")
    rep_user = make_user(db, UserRole.REP, "Sara Rep")
    supplier_user = make_user(db, UserRole.SUPPLIER, "Nile Coaches")

    supplier = Supplier(id=_uid(), legal_name="Nile Coaches", user_id=supplier_user.id)
    db.add(supplier)
    db.flush()
    vehicle = Vehicle(id=_uid(), plate_number=f"V-{uuid.uuid4().hex[:6]}", seat_capacity=14, supplier_id=supplier.id)
    driver = Driver(id=_uid(), name="Omar Driver", user_id=driver_user.id, trip_fee=150)
    rep = Rep(id=_uid(), name="Sara Rep", user_id=rep_user.id, fee_per_flight=100)
    db.add_all([vehicle, driver, rep])
    db.commit()

    return SimpleNamespace(
        traffic_role=traffic_role,
        admin=admin,
        dispatcher=dispatcher,
        driver_user=driver_user,
        rep_user=rep_user,
        supplier_user=supplier_user,
        supplier=supplier,
        vehicle=vehicle,
        driver=driver,
        rep=rep,
    )


def make_job(db, world, service_type=ServiceType.ARR, job_date=None, assign=True, with_rep=True, **fields):
    data = {
        "job_date": job_date or date.today(),
        "service_type": service_type,
        "adult_count": 2,
        "agent_ref": "AG-77",
        "client_name": "John Smith",
        **fields,
    }
    job = dispatch.create_job(db, data, world.dispatcher.id)
    if assign:
        job = dispatch.assign_job(
            db,
            job.id,
            world.vehicle.id,
            world.driver.id,
            world.rep.id if with_rep else None,
            world.dispatcher.id,
        )
    return job
