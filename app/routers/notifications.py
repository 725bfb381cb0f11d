from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db
from app.models.user import User
from app.schemas.notification import NotificationInbox, NotificationOut
from app.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationInbox)
def my_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return notifications.list_user_notifications(db, user.id)


@router.post("/read-all")
def read_all(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"updated": notifications.mark_all_read(db, user.id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def read_one(notification_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return notifications.mark_read(db, user.id, notification_id)
