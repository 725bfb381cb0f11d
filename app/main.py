from fastapi import FastAPI
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import Base, engine, SessionLocal
from app.core.logging_config import configure_logging
from app.routers.auth import router as auth_router
from app.routers.job_locks import router as job_locks_router
from app.routers.notifications import router as notifications_router
from app.routers.portals import driver_router, rep_router, supplier_router
from app.routers.traffic_jobs import router as traffic_jobs_router
from app.services.seed import seed_demo_data

# Import models so SQLAlchemy registers them before create_all()
import app.models.user  # noqa: F401
import app.models.fleet  # noqa: F401
import app.models.traffic_job  # noqa: F401
import app.models.assignment  # noqa: F401
import app.models.status_log  # noqa: F401
import app.models.no_show  # noqa: F401
import app.models.fee  # noqa: F401
import app.models.notification  # noqa: F401

configure_logging()

app = FastAPI(title=settings.APP_NAME, version="0.1.0")

Base.metadata.create_all(bind=engine)

if settings.SEED_DEMO_DATA:
    with SessionLocal() as db:  # type: Session
        seed_demo_data(db)

app.include_router(auth_router)
app.include_router(traffic_jobs_router)
app.include_router(driver_router)
app.include_router(rep_router)
app.include_router(supplier_router)
app.include_router(job_locks_router)
app.include_router(notifications_router)


@app.get("/")
def root():
    return {"name": settings.APP_NAME, "docs": "/docs", "health": "/health"}


@app.get("/health")
def health():
    return {"ok": True}
