from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.traffic_job import JobStatus, ServiceType


class TrafficJobCreate(BaseModel):
    job_date: date
    service_type: ServiceType
    pick_up_time: Optional[datetime] = None
    booking_status: str = "CONFIRMED"
    adult_count: int = Field(default=1, ge=0)
    child_count: int = Field(default=0, ge=0)
    origin_name: Optional[str] = None
    destination_name: Optional[str] = None
    agent_name: Optional[str] = None
    agent_ref: Optional[str] = None
    customer_name: Optional[str] = None
    client_name: Optional[str] = None
    client_mobile: Optional[str] = None
    flight_no: Optional[str] = None
    notes: Optional[str] = None
    collection_required: bool = False
    collection_amount: Optional[Decimal] = None
    collection_currency: Optional[str] = None


class TrafficJobUpdate(BaseModel):
    """Every field optional; only fields sent in the request are compared."""

    job_date: Optional[date] = None
    service_type: Optional[ServiceType] = None
    pick_up_time: Optional[datetime] = None
    booking_status: Optional[str] = None
    adult_count: Optional[int] = Field(default=None, ge=0)
    child_count: Optional[int] = Field(default=None, ge=0)
    origin_name: Optional[str] = None
    destination_name: Optional[str] = None
    agent_name: Optional[str] = None
    agent_ref: Optional[str] = None
    customer_name: Optional[str] = None
    client_name: Optional[str] = None
    client_mobile: Optional[str] = None
    flight_no: Optional[str] = None
    notes: Optional[str] = None
    collection_required: Optional[bool] = None
    collection_amount: Optional[Decimal] = None
    collection_currency: Optional[str] = None


class JobStatusUpdate(BaseModel):
    status: JobStatus


class AssignJob(BaseModel):
    vehicle_id: str
    driver_id: Optional[str] = None
    rep_id: Optional[str] = None
    remarks: Optional[str] = None


class ReassignJob(BaseModel):
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    rep_id: Optional[str] = None
    remarks: Optional[str] = None


class AssignmentOut(BaseModel):
    id: str
    vehicle_id: str
    driver_id: Optional[str]
    rep_id: Optional[str]
    driver_status: str
    rep_status: str
    supplier_status: str
    supplier_notes: Optional[str]
    remarks: Optional[str]
    superseded_at: Optional[datetime] = None
    superseded_by_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TrafficJobOut(BaseModel):
    id: str
    internal_ref: str
    job_date: date
    pick_up_time: Optional[datetime]
    service_type: str
    booking_status: str
    status: str
    adult_count: int
    child_count: int
    pax_count: int
    origin_name: Optional[str]
    destination_name: Optional[str]
    agent_name: Optional[str]
    agent_ref: Optional[str]
    customer_name: Optional[str]
    client_name: Optional[str]
    client_mobile: Optional[str]
    flight_no: Optional[str]
    notes: Optional[str]
    collection_required: bool
    collection_amount: Optional[Decimal]
    collection_currency: Optional[str]
    collection_collected: bool
    driver_unlocked_at: Optional[datetime]
    rep_unlocked_at: Optional[datetime]
    supplier_unlocked_at: Optional[datetime]
    assignment: Optional[AssignmentOut] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StatusChangeOut(BaseModel):
    id: str
    assignment_id: Optional[str]
    actor_role: str
    actor_user_id: Optional[str]
    previous_status: str
    new_status: str
    gps_latitude: Optional[float]
    gps_longitude: Optional[float]
    gps_map_link: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class TrafficJobDetail(TrafficJobOut):
    history: list[StatusChangeOut] = []
    assignment_versions: list[AssignmentOut] = []


class LockBoardRow(BaseModel):
    id: str
    internal_ref: str
    job_date: date
    service_type: str
    status: str
    client_name: Optional[str]
    unlocked_at: Optional[datetime]
    unlocked_by_id: Optional[str]
    is_unlocked: bool
    is_locked: bool
