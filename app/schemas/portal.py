from typing import Optional, Union

from pydantic import BaseModel

from app.schemas.traffic_job import TrafficJobOut

# Coordinates are validated by the service so a bad value is a 400, not a 422
Coordinate = Optional[Union[float, str]]


class FieldStatusUpdate(BaseModel):
    status: str
    latitude: Coordinate = None
    longitude: Coordinate = None


class NoShowSubmit(BaseModel):
    photo1: Optional[str] = None
    photo2: Optional[str] = None
    latitude: Coordinate = None
    longitude: Coordinate = None


class SupplierStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class SupplierComplete(BaseModel):
    notes: Optional[str] = None


class PortalJobOut(BaseModel):
    job: TrafficJobOut
    assignment_id: str
    my_status: str
    is_locked: bool
    supplier_notes: Optional[str] = None
    fee_earned: Optional[float] = None
