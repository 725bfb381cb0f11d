import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    root = logging.getLogger()
    if any(getattr(h, "_traffic_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._traffic_handler = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper())
