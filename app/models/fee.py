from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.sql import func

from app.core.db import Base


class DriverFee(Base):
    __tablename__ = "driver_fees"
    __table_args__ = (UniqueConstraint("driver_id", "traffic_job_id", name="uq_driver_fee_per_job"),)

    id = Column(String, primary_key=True)  # uuid
    driver_id = Column(String, ForeignKey("drivers.id"), index=True, nullable=False)
    traffic_job_id = Column(String, ForeignKey("traffic_jobs.id"), index=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class RepFee(Base):
    __tablename__ = "rep_fees"
    __table_args__ = (UniqueConstraint("rep_id", "traffic_job_id", name="uq_rep_fee_per_job"),)

    id = Column(String, primary_key=True)
    rep_id = Column(String, ForeignKey("reps.id"), index=True, nullable=False)
    traffic_job_id = Column(String, ForeignKey("traffic_jobs.id"), index=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
