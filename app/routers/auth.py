import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.db import begin_write, get_db
from app.core.security import (
    create_access_token,
    expires_in_seconds,
    hash_password,
    password_needs_rehash,
    verify_password,
)
from app.models.user import User
from app.schemas.auth import LoginRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.phone == payload.phone, User.deleted_at.is_(None)).first()
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        logger.info("Rejected login for %s", payload.phone)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if password_needs_rehash(user.password_hash):
        begin_write(db)
        user.password_hash = hash_password(payload.password)
        db.commit()

    return TokenResponse(
        access_token=create_access_token(subject=user.id, role=user.role.value),
        expires_in=expires_in_seconds(),
        user_id=user.id,
        role=user.role.value,
    )
