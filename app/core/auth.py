"""
Request identity. Every call reloads the user so deactivation and role
changes apply immediately, whatever the token says.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.security import token_subject
from app.models.user import User, UserRole

bearer = HTTPBearer(auto_error=False)

# Roles that run the dispatch desk
DESK_ROLES = (UserRole.DISPATCHER, UserRole.ADMIN)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None:
        raise _unauthorized("Not authenticated")

    try:
        user_id = token_subject(creds.credentials)
    except JWTError:
        raise _unauthorized("Invalid token")

    user = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if not user or not user.is_active:
        raise _unauthorized("User inactive or not found")
    return user


def require_roles(*roles: UserRole):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(r.value for r in roles)}",
            )
        return user

    return _guard


require_desk = require_roles(*DESK_ROLES)
require_admin = require_roles(UserRole.ADMIN)
