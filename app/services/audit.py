from __future__ import annotations

import math
import uuid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import BadRequest
from app.models.assignment import ActorRole
from app.models.status_log import StatusChangeLog


def _to_float(value, name: str) -> float:
    if isinstance(value, bool):
        raise BadRequest(f"{name} must be a number")
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be a number")
    if not math.isfinite(num):
        raise BadRequest(f"{name} must be a finite number")
    return num


def parse_coordinates(lat, lng) -> Tuple[float, float]:
    """Validate device GPS. Accepts numbers or numeric strings."""
    lat_f = _to_float(lat, "latitude")
    lng_f = _to_float(lng, "longitude")
    if not (-90.0 <= lat_f <= 90.0):
        raise BadRequest("latitude must be between -90 and 90")
    if not (-180.0 <= lng_f <= 180.0):
        raise BadRequest("longitude must be between -180 and 180")
    return lat_f, lng_f


def map_link(lat: float, lng: float) -> str:
    return f"{settings.MAP_LINK_BASE}{lat},{lng}"


def record_status_change(
    db: Session,
    *,
    traffic_job_id: str,
    assignment_id: Optional[str],
    actor_role: ActorRole,
    actor_user_id: Optional[str],
    previous_status,
    new_status,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> StatusChangeLog:
    """Stage one log row in the caller's transaction. Never commits."""
    entry = StatusChangeLog(
        id=str(uuid.uuid4()),
        traffic_job_id=traffic_job_id,
        assignment_id=assignment_id,
        actor_role=actor_role,
        actor_user_id=actor_user_id,
        previous_status=getattr(previous_status, "value", previous_status),
        new_status=getattr(new_status, "value", new_status),
        gps_latitude=lat,
        gps_longitude=lng,
        gps_map_link=map_link(lat, lng) if lat is not None and lng is not None else None,
    )
    db.add(entry)
    return entry


def list_status_history(db: Session, traffic_job_id: str) -> list[StatusChangeLog]:
    return (
        db.query(StatusChangeLog)
        .filter(StatusChangeLog.traffic_job_id == traffic_job_id)
        .order_by(StatusChangeLog.created_at.asc())
        .all()
    )
