import enum
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.db import Base


class ActorRole(str, enum.Enum):
    DISPATCHER = "DISPATCHER"
    DRIVER = "DRIVER"
    REP = "REP"
    SUPPLIER = "SUPPLIER"


FIELD_ROLES = (ActorRole.DRIVER, ActorRole.REP, ActorRole.SUPPLIER)


class DriverStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class RepStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class SupplierStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class TrafficAssignment(Base):
    """
    Resource binding for a job. Rows are never repointed to other resources:
    a reassignment supersedes the active row and inserts a new version.
    """

    __tablename__ = "traffic_assignments"
    __table_args__ = (
        Index(
            "uq_active_assignment_per_job",
            "traffic_job_id",
            unique=True,
            sqlite_where=text("superseded_at IS NULL"),
            postgresql_where=text("superseded_at IS NULL"),
        ),
    )

    id = Column(String, primary_key=True)  # uuid
    traffic_job_id = Column(String, ForeignKey("traffic_jobs.id"), index=True, nullable=False)
    vehicle_id = Column(String, ForeignKey("vehicles.id"), index=True, nullable=False)
    driver_id = Column(String, ForeignKey("drivers.id"), index=True, nullable=True)
    rep_id = Column(String, ForeignKey("reps.id"), index=True, nullable=True)

    driver_status = Column(Enum(DriverStatus), default=DriverStatus.PENDING, nullable=False)
    rep_status = Column(Enum(RepStatus), default=RepStatus.PENDING, nullable=False)
    supplier_status = Column(Enum(SupplierStatus), default=SupplierStatus.PENDING, nullable=False)
    supplier_notes = Column(Text, nullable=True)

    remarks = Column(Text, nullable=True)
    assigned_by_id = Column(String, ForeignKey("users.id"), nullable=True)

    superseded_at = Column(DateTime(timezone=True), nullable=True)
    superseded_by_id = Column(String, ForeignKey("traffic_assignments.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    traffic_job = relationship("TrafficJob", back_populates="assignments")
    vehicle = relationship("Vehicle")
    driver = relationship("Driver")
    rep = relationship("Rep")
