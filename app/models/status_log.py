from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Enum, Float, ForeignKey

from app.core.db import Base
from app.models.assignment import ActorRole


class StatusChangeLog(Base):
    """Insert-only record of one accepted status transition."""

    __tablename__ = "status_change_logs"

    id = Column(String, primary_key=True)  # uuid
    traffic_job_id = Column(String, ForeignKey("traffic_jobs.id"), index=True, nullable=False)
    # Null for dispatcher transitions on jobs that were never assigned
    assignment_id = Column(String, ForeignKey("traffic_assignments.id"), index=True, nullable=True)

    actor_role = Column(Enum(ActorRole), nullable=False)
    actor_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)

    previous_status = Column(String, nullable=False)
    new_status = Column(String, nullable=False)

    gps_latitude = Column(Float, nullable=True)
    gps_longitude = Column(Float, nullable=True)
    gps_map_link = Column(String, nullable=True)

    # Client-side so entries written in the same second keep their order
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
