from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

from app.core.config import settings

ph = PasswordHasher()  # Argon2id by default


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def password_needs_rehash(password_hash: str) -> bool:
    return ph.check_needs_rehash(password_hash)


def create_access_token(subject: str, role: str) -> str:
    # role is informational for portals; authorization always reloads the user
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def token_subject(token: str) -> str:
    """User id carried by a valid token. Raises JWTError otherwise."""
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    subject = payload.get("sub")
    if not subject:
        raise JWTError("token has no subject")
    return subject


def expires_in_seconds() -> int:
    return settings.JWT_EXPIRE_MINUTES * 60
