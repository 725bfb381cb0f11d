import logging
import uuid

from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.fleet import Driver, Rep, Supplier, Vehicle
from app.models.user import TRAFFIC_JOBS_PERMISSION, Role, RolePermission, User, UserRole

logger = logging.getLogger(__name__)


def _uid() -> str:
    return str(uuid.uuid4())


def seed_demo_data(db: Session):
    # Only seed if no users exist
    if db.query(User).count() > 0:
        return

    traffic_role = Role(id=_uid(), name="Traffic")
    traffic_role.permissions.append(RolePermission(id=_uid(), permission_key=TRAFFIC_JOBS_PERMISSION))
    db.add(traffic_role)

    def user(name, phone, role, password, email=None, role_ref=None):
        return User(
            id=_uid(),
            name=name,
            phone=phone,
            email=email,
            role=role,
            role_ref=role_ref,
            password_hash=hash_password(password),
            is_active=True,
        )

    admin = user("Admin", "+201000000001", UserRole.ADMIN, "admin123", "admin@traffic.local")
    dispatcher = user(
        "Dispatcher One", "+201000000002", UserRole.DISPATCHER, "dispatch123",
        "dispatch@traffic.local", traffic_role,
    )
    driver_user = user("Driver One", "+201000000003", UserRole.DRIVER, "driver123")
    rep_user = user("Rep One", "+201000000004", UserRole.REP, "rep123")
    supplier_user = user("Supplier One", "+201000000005", UserRole.SUPPLIER, "supplier123")
    db.add_all([admin, dispatcher, driver_user, rep_user, supplier_user])
    db.flush()

    supplier = Supplier(id=_uid(), legal_name="Nile Coaches", user_id=supplier_user.id)
    db.add(supplier)
    db.flush()

    db.add_all(
        [
            Vehicle(id=_uid(), plate_number="ABC-1234", seat_capacity=14, supplier_id=supplier.id),
            Vehicle(id=_uid(), plate_number="OWN-0001", seat_capacity=4),
            Driver(id=_uid(), name="Driver One", mobile_number=driver_user.phone, user_id=driver_user.id, trip_fee=150),
            Rep(id=_uid(), name="Rep One", mobile_number=rep_user.phone, user_id=rep_user.id, fee_per_flight=100),
        ]
    )
    db.commit()
    logger.info("Seeded demo users, fleet and the %s role", traffic_role.name)
