from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.config import get_settings
from app.models.price_override import PriceOverride
from app.schemas.price_override import (
    ExpiredOverride,
    ExpiryResult,
    ExpirySummary,
    FieldChange,
    PriceOverrideRead,
)
from app.services.override_history import record_history, system_actor

logger = logging.getLogger(__name__)


def _count(db: Session, *criteria) -> int:
    return db.scalar(select(func.count(PriceOverride.id)).where(*criteria)) or 0


def expire_overrides(db: Session, now: datetime | None = None, batch_size: int | None = None) -> ExpiryResult:
    """Flip active overrides whose end date has passed to expired.

    Pages through candidates by id so the whole table is never loaded at once. A failed
    record is rolled back and skipped; the rest of the sweep carries on. Safe to re-run.
    """
    now = as_utc(now) if now else utcnow()
    batch_size = batch_size or get_settings().expiry_batch_size
    actor = system_actor()

    summary = ExpirySummary(
        total_overrides=_count(db),
        active_count=_count(db, PriceOverride.status == "active", PriceOverride.end_date >= now),
        inactive_count=_count(db, PriceOverride.status == "inactive"),
        already_expired_count=_count(db, PriceOverride.status == "expired"),
        newly_expired_count=0,
    )

    expired: list[ExpiredOverride] = []
    failed_count = 0
    last_id = 0
    while True:
        batch = db.scalars(
            select(PriceOverride)
            .where(PriceOverride.status == "active", PriceOverride.end_date < now, PriceOverride.id > last_id)
            .order_by(PriceOverride.id.asc())
            .limit(batch_size)
        ).all()
        if not batch:
            break
        ids = [row.id for row in batch]
        last_id = ids[-1]

        for override_id in ids:
            override = db.get(PriceOverride, override_id)
            if override is None or override.status != "active":
                continue
            before = PriceOverrideRead.from_model(override)
            try:
                override.status = "expired"
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                failed_count += 1
                logger.exception("Failed to expire price override %s", override_id)
                continue

            after = PriceOverrideRead.from_model(override)
            record_history(
                db,
                "EXPIRE",
                actor,
                old_data=before,
                new_data=after,
                changes=[FieldChange(field="status", old_value="active", new_value="expired")],
            )
            expired.append(
                ExpiredOverride(id=after.id, sku_code=after.sku_code, product_name=after.product_name, end_date=after.end_date)
            )

    summary.newly_expired_count = len(expired)
    logger.info("Expired %s price overrides (%s failed)", len(expired), failed_count)
    return ExpiryResult(
        expired_count=len(expired),
        failed_count=failed_count,
        expired_overrides=expired,
        summary=summary,
    )
