import enum
from sqlalchemy import Column, String, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.db import Base

# Granular permission that makes a user a job-update notification recipient
TRAFFIC_JOBS_PERMISSION = "traffic-jobs"


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    DISPATCHER = "DISPATCHER"
    DRIVER = "DRIVER"
    REP = "REP"
    SUPPLIER = "SUPPLIER"


class Role(Base):
    __tablename__ = "roles"

    id = Column(String, primary_key=True)  # uuid string
    name = Column(String, unique=True, nullable=False)

    permissions = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")


class RolePermission(Base):
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_key", name="uq_role_permission"),)

    id = Column(String, primary_key=True)
    role_id = Column(String, ForeignKey("roles.id", ondelete="CASCADE"), index=True, nullable=False)
    permission_key = Column(String, nullable=False)

    role = relationship("Role", back_populates="permissions")


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # uuid string
    name = Column(String, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, index=True, nullable=True)
    role = Column(Enum(UserRole), nullable=False)
    role_id = Column(String, ForeignKey("roles.id"), index=True, nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    role_ref = relationship("Role")
