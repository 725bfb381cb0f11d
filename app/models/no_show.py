from sqlalchemy import Column, String, DateTime, Enum, Float, ForeignKey
from sqlalchemy.sql import func

from app.core.db import Base
from app.models.assignment import ActorRole


class NoShowEvidence(Base):
    __tablename__ = "no_show_evidence"

    id = Column(String, primary_key=True)  # uuid
    traffic_job_id = Column(String, ForeignKey("traffic_jobs.id"), index=True, nullable=False)
    assignment_id = Column(String, ForeignKey("traffic_assignments.id"), index=True, nullable=False)

    # Photos are uploaded by the portal before submission; these are references
    image_url_1 = Column(String, nullable=False)
    image_url_2 = Column(String, nullable=False)

    gps_latitude = Column(Float, nullable=False)
    gps_longitude = Column(Float, nullable=False)
    gps_map_link = Column(String, nullable=False)

    submitted_by = Column(Enum(ActorRole), nullable=False)
    submitted_by_id = Column(String, nullable=False)  # driver/rep id
    submitted_by_user_id = Column(String, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
