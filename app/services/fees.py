"""
Idempotent fee posting.

At most one fee exists per (identity, job). The check-then-insert runs in
the caller's transaction, and the insert sits in a SAVEPOINT so a racing
duplicate that trips the unique constraint degrades to "already posted"
without aborting the outer status change.
"""
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.fee import DriverFee, RepFee
from app.models.fleet import Driver, Rep
from app.models.traffic_job import TrafficJob

logger = logging.getLogger(__name__)


def _post_once(db: Session, model, owner_field: str, owner_id: str, job: TrafficJob, amount) -> object:
    filters = (getattr(model, owner_field) == owner_id, model.traffic_job_id == job.id)

    existing = db.query(model).filter(*filters).first()
    if existing:
        logger.info("%s for job %s already posted, skipping", model.__name__, job.internal_ref)
        return existing

    fee = model(
        id=str(uuid.uuid4()),
        traffic_job_id=job.id,
        amount=Decimal(str(amount)),
        currency=settings.FEE_CURRENCY,
        **{owner_field: owner_id},
    )
    try:
        with db.begin_nested():
            db.add(fee)
    except IntegrityError:
        logger.info("%s for job %s posted concurrently, reusing", model.__name__, job.internal_ref)
        return db.query(model).filter(*filters).one()

    logger.info("Posted %s %s %s for job %s", model.__name__, fee.amount, fee.currency, job.internal_ref)
    return fee


def post_rep_fee(db: Session, rep: Rep, job: TrafficJob) -> RepFee:
    return _post_once(db, RepFee, "rep_id", rep.id, job, rep.fee_per_flight or 0)


def post_driver_fee(db: Session, driver: Driver, job: TrafficJob, amount=None) -> Optional[DriverFee]:
    amount = driver.trip_fee if amount is None else amount
    if amount is None:
        return None
    return _post_once(db, DriverFee, "driver_id", driver.id, job, amount)
