import enum
from sqlalchemy import Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.db import Base


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ServiceType(str, enum.Enum):
    ARR = "ARR"  # arrival
    DEP = "DEP"  # departure
    EXCURSION = "EXCURSION"
    OTHER = "OTHER"


class TrafficJob(Base):
    __tablename__ = "traffic_jobs"

    id = Column(String, primary_key=True)  # uuid string
    internal_ref = Column(String, unique=True, index=True, nullable=False)

    job_date = Column(Date, index=True, nullable=False)  # service date
    pick_up_time = Column(DateTime(timezone=True), nullable=True)
    service_type = Column(Enum(ServiceType), nullable=False)
    booking_status = Column(String, default="CONFIRMED", nullable=False)

    adult_count = Column(Integer, default=1, nullable=False)
    child_count = Column(Integer, default=0, nullable=False)
    pax_count = Column(Integer, default=1, nullable=False)

    # Resolved display names; location/agent/customer entities live elsewhere
    origin_name = Column(String, nullable=True)
    destination_name = Column(String, nullable=True)
    agent_name = Column(String, nullable=True)
    agent_ref = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    client_name = Column(String, nullable=True)
    client_mobile = Column(String, nullable=True)
    flight_no = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(Enum(JobStatus), default=JobStatus.PENDING, nullable=False)

    collection_required = Column(Boolean, default=False, nullable=False)
    collection_amount = Column(Numeric(10, 2), nullable=True)
    collection_currency = Column(String, nullable=True)
    collection_collected = Column(Boolean, default=False, nullable=False)
    collection_collected_at = Column(DateTime(timezone=True), nullable=True)

    # Admin override of the field-role time-lock; any non-null value bypasses it
    driver_unlocked_at = Column(DateTime(timezone=True), nullable=True)
    driver_unlocked_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    rep_unlocked_at = Column(DateTime(timezone=True), nullable=True)
    rep_unlocked_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    supplier_unlocked_at = Column(DateTime(timezone=True), nullable=True)
    supplier_unlocked_by_id = Column(String, ForeignKey("users.id"), nullable=True)

    created_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    assignments = relationship(
        "TrafficAssignment",
        back_populates="traffic_job",
        order_by="TrafficAssignment.created_at",
    )

    @property
    def assignment(self):
        """The active (non-superseded) assignment, if any."""
        for a in self.assignments:
            if a.superseded_at is None:
                return a
        return None
