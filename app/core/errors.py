"""
Domain errors raised by the job lifecycle services.

They subclass HTTPException so routers can let them propagate untouched and
FastAPI renders {"detail": "..."} with the right status code.
"""
from __future__ import annotations

from typing import Iterable

from fastapi import HTTPException, status


class JobError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class NotFound(JobError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(JobError):
    status_code = status.HTTP_403_FORBIDDEN


class TimeLocked(Forbidden):
    pass


class InvalidState(JobError):
    status_code = status.HTTP_409_CONFLICT


class BadRequest(JobError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransition(JobError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, attempted: str, allowed: Iterable[str]):
        self.current = current
        self.attempted = attempted
        self.allowed = list(allowed)
        allowed_txt = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f'Cannot transition from "{current}" to "{attempted}". Allowed transitions: {allowed_txt}'
        )
