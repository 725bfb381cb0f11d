from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    APP_NAME: str = "Traffic Jobs API"

    # REQUIRED in .env
    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    DATABASE_URL: str = "sqlite:///./traffic.db"

    LOG_LEVEL: str = "INFO"
    SEED_DEMO_DATA: bool = False

    # Field roles may edit their status until service date + this many hours
    FIELD_EDIT_WINDOW_HOURS: int = 48

    FEE_CURRENCY: str = "EGP"
    MAP_LINK_BASE: str = "https://www.google.com/maps?q="

    # Outbound mail. Without SMTP_HOST messages are only logged.
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM: str = "noreply@traffic.local"
    SMTP_STARTTLS: bool = True

    # Department mailboxes, used when no EmailSettings row overrides them
    NOTIFY_DISPATCH_EMAIL: Optional[str] = None
    NOTIFY_TRAFFIC_EMAIL: Optional[str] = None
    NOTIFY_TIMEZONE: str = "Africa/Cairo"

    class Config:
        env_file = ".env"

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        if not v or len(v.strip()) < 32:
            raise ValueError("JWT_SECRET must be set and at least 32 characters.")
        if "CHANGE_ME" in v.upper():
            raise ValueError("JWT_SECRET looks like a placeholder. Set a real secret.")
        return v.strip()

    @field_validator("FIELD_EDIT_WINDOW_HOURS")
    @classmethod
    def validate_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("FIELD_EDIT_WINDOW_HOURS cannot be negative.")
        return v


settings = Settings()
