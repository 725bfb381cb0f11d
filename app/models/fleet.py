from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.db import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String, primary_key=True)  # uuid
    legal_name = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String, primary_key=True)
    plate_number = Column(String, unique=True, index=True, nullable=False)
    seat_capacity = Column(Integer, nullable=True)
    # Owned vehicles have no supplier
    supplier_id = Column(String, ForeignKey("suppliers.id"), index=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    supplier = relationship("Supplier")


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    mobile_number = Column(String, nullable=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    # Flat fee posted when a job this driver drove is completed. None = no auto fee.
    trip_fee = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Rep(Base):
    __tablename__ = "reps"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    mobile_number = Column(String, nullable=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    fee_per_flight = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
