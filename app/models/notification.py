import enum
from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.db import Base


class NotificationType(str, enum.Enum):
    JOB_UPDATED = "JOB_UPDATED"
    JOB_ASSIGNED = "JOB_ASSIGNED"


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(String, primary_key=True)  # uuid
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    traffic_job_id = Column(String, ForeignKey("traffic_jobs.id"), index=True, nullable=True)

    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # e.g. {"changed_fields": ["status"]}
    metadata_ = Column("metadata", JSON, nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    traffic_job = relationship("TrafficJob")


class EmailSettings(Base):
    """Single-row override for the department mailboxes in settings."""

    __tablename__ = "email_settings"

    id = Column(String, primary_key=True)
    notify_dispatch_email = Column(String, nullable=True)
    notify_traffic_email = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)
