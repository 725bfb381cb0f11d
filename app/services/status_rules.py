"""
Transition tables for the four status machines that share a traffic job.

Each role has its own enum and its own `state -> allowed next states` map.
The dispatcher machine writes TrafficJob.status; the field roles write their
own column on the active TrafficAssignment.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Type

from app.core.errors import InvalidTransition
from app.models.assignment import ActorRole, DriverStatus, RepStatus, SupplierStatus
from app.models.traffic_job import JobStatus

JOB_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.ASSIGNED, JobStatus.CANCELLED}),
    JobStatus.ASSIGNED: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED, JobStatus.NO_SHOW}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.NO_SHOW}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
    JobStatus.NO_SHOW: frozenset(),
}

# NO_SHOW is reachable only through the evidence submission, never the table
DRIVER_TRANSITIONS: Dict[DriverStatus, FrozenSet[DriverStatus]] = {
    DriverStatus.PENDING: frozenset({DriverStatus.IN_PROGRESS, DriverStatus.COMPLETED, DriverStatus.CANCELLED}),
    DriverStatus.IN_PROGRESS: frozenset({DriverStatus.COMPLETED, DriverStatus.CANCELLED}),
    DriverStatus.COMPLETED: frozenset(),
    DriverStatus.CANCELLED: frozenset(),
    DriverStatus.NO_SHOW: frozenset(),
}

REP_TRANSITIONS: Dict[RepStatus, FrozenSet[RepStatus]] = {
    RepStatus.PENDING: frozenset({RepStatus.COMPLETED, RepStatus.CANCELLED}),
    RepStatus.COMPLETED: frozenset(),
    RepStatus.CANCELLED: frozenset(),
    RepStatus.NO_SHOW: frozenset(),
}

SUPPLIER_TRANSITIONS: Dict[SupplierStatus, FrozenSet[SupplierStatus]] = {
    SupplierStatus.PENDING: frozenset({SupplierStatus.IN_PROGRESS, SupplierStatus.COMPLETED}),
    SupplierStatus.IN_PROGRESS: frozenset({SupplierStatus.COMPLETED}),
    SupplierStatus.COMPLETED: frozenset(),
}

NO_SHOW_ELIGIBLE = {
    ActorRole.DRIVER: frozenset({DriverStatus.PENDING, DriverStatus.IN_PROGRESS}),
    ActorRole.REP: frozenset({RepStatus.PENDING}),
}

_TABLES = {
    ActorRole.DISPATCHER: (JobStatus, JOB_TRANSITIONS),
    ActorRole.DRIVER: (DriverStatus, DRIVER_TRANSITIONS),
    ActorRole.REP: (RepStatus, REP_TRANSITIONS),
    ActorRole.SUPPLIER: (SupplierStatus, SUPPLIER_TRANSITIONS),
}

# Assignment column written by each field role
STATUS_FIELDS = {
    ActorRole.DRIVER: "driver_status",
    ActorRole.REP: "rep_status",
    ActorRole.SUPPLIER: "supplier_status",
}


def status_enum(role: ActorRole) -> Type[Enum]:
    return _TABLES[role][0]


def coerce_status(role: ActorRole, value) -> Enum:
    """
    Convert a raw value into the role's enum.

    A value outside the role's vocabulary cannot be a valid target, so it is
    reported as a rejected transition rather than a parse error.
    """
    enum_cls = status_enum(role)
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(getattr(value, "value", value))
    except ValueError:
        return None


def allowed_next(role: ActorRole, current) -> FrozenSet:
    enum_cls, table = _TABLES[role]
    return table[enum_cls(getattr(current, "value", current))]


def is_terminal(role: ActorRole, status) -> bool:
    return not allowed_next(role, status)


def ensure_transition(role: ActorRole, current, new):
    """Return the new status as the role's enum, or raise InvalidTransition."""
    enum_cls, table = _TABLES[role]
    cur = enum_cls(getattr(current, "value", current))
    allowed = table[cur]
    target = coerce_status(role, new)
    if target is None or target not in allowed:
        attempted = getattr(new, "value", new)
        # keep enum declaration order so messages are stable
        ordered = [s.value for s in enum_cls if s in allowed]
        raise InvalidTransition(cur.value, str(attempted), ordered)
    return target
