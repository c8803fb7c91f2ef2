"""Audit trail for price overrides.

History rows are written after the primary mutation has been committed, in their own
transaction. A failure here is logged and swallowed so it can never roll back or mask
the override change itself.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.models.price_override_history import HISTORY_ACTIONS, PriceOverrideHistory
from app.schemas.actor import ActorContext
from app.schemas.price_override import (
    FieldChange,
    HistoryFilter,
    PerformedBy,
    PriceOverrideHistoryRead,
    PriceOverrideRead,
)
from app.services.pagination import normalize_page, paginate

logger = logging.getLogger(__name__)

TRACKED_FIELDS = (
    "state",
    "district",
    "area_id",
    "area_name",
    "location.campus",
    "location.tower",
    "location.floor",
    "machine_id",
    "override_price",
    "start_date",
    "end_date",
    "reason",
    "status",
    "priority",
)


def system_actor() -> ActorContext:
    settings = get_settings()
    return ActorContext(
        user_id=0,
        email=settings.system_actor_email,
        name=settings.system_actor_name,
        role="system",
    )


def _field_value(snapshot: dict[str, Any], field: str) -> Any:
    value: Any = snapshot
    for part in field.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def diff_snapshots(before: PriceOverrideRead, after: PriceOverrideRead) -> list[FieldChange]:
    old = before.model_dump(mode="json")
    new = after.model_dump(mode="json")
    changes: list[FieldChange] = []
    for field in TRACKED_FIELDS:
        old_value = _field_value(old, field)
        new_value = _field_value(new, field)
        if old_value != new_value:
            changes.append(FieldChange(field=field, old_value=old_value, new_value=new_value))
    return changes


def _build_entry(
    action: str,
    actor: ActorContext,
    old_data: PriceOverrideRead | None,
    new_data: PriceOverrideRead | None,
    changes: list[FieldChange],
) -> PriceOverrideHistory:
    source = new_data or old_data
    return PriceOverrideHistory(
        price_override_id=source.id,
        sku_id=source.sku_id,
        sku_code=source.sku_code,
        product_name=source.product_name,
        action=action,
        old_data=old_data.model_dump(mode="json") if old_data else None,
        new_data=new_data.model_dump(mode="json") if new_data else None,
        changes=[change.model_dump(mode="json") for change in changes],
        performed_by_user_id=actor.user_id,
        performed_by_email=actor.email,
        performed_by_name=actor.name,
        performed_by_role=actor.role,
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
        request_path=actor.request_path,
    )


def record_history(
    db: Session,
    action: str,
    actor: ActorContext,
    old_data: PriceOverrideRead | None = None,
    new_data: PriceOverrideRead | None = None,
    changes: list[FieldChange] | None = None,
) -> PriceOverrideHistory | None:
    try:
        entry = _build_entry(action, actor, old_data, new_data, changes or [])
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to log price override history (%s)", action)
        return None

    logger.info("Price override history saved: %s #%s by user %s", action, entry.price_override_id, actor.user_id)
    return entry


def history_to_read(row: PriceOverrideHistory) -> PriceOverrideHistoryRead:
    return PriceOverrideHistoryRead(
        id=row.id,
        price_override_id=row.price_override_id,
        sku_id=row.sku_id,
        sku_code=row.sku_code,
        product_name=row.product_name,
        action=row.action,
        old_data=PriceOverrideRead.model_validate(row.old_data) if row.old_data else None,
        new_data=PriceOverrideRead.model_validate(row.new_data) if row.new_data else None,
        changes=[FieldChange.model_validate(change) for change in row.changes or []],
        performed_by=PerformedBy(
            user_id=row.performed_by_user_id,
            email=row.performed_by_email,
            name=row.performed_by_name or "",
            role=row.performed_by_role,
        ),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        request_path=row.request_path,
        timestamp=as_utc(row.timestamp),
    )


def query_history(
    db: Session,
    filters: HistoryFilter,
    page: int | None = None,
    limit: int | None = None,
) -> tuple[list[PriceOverrideHistory], int, int, int]:
    page, limit = normalize_page(page, limit, get_settings().history_page_size)

    query = select(PriceOverrideHistory)
    if filters.price_override_id is not None:
        query = query.where(PriceOverrideHistory.price_override_id == filters.price_override_id)
    if filters.sku_id is not None:
        query = query.where(PriceOverrideHistory.sku_id == filters.sku_id)
    if filters.action:
        action = filters.action.upper()
        if action not in HISTORY_ACTIONS:
            raise ValidationError(f"Unknown history action: {filters.action}")
        query = query.where(PriceOverrideHistory.action == action)
    if filters.user_id is not None:
        query = query.where(PriceOverrideHistory.performed_by_user_id == filters.user_id)
    if filters.from_date:
        query = query.where(PriceOverrideHistory.timestamp >= as_utc(filters.from_date))
    if filters.to_date:
        query = query.where(PriceOverrideHistory.timestamp <= as_utc(filters.to_date))

    query = query.order_by(PriceOverrideHistory.timestamp.desc(), PriceOverrideHistory.id.desc())
    rows, total = paginate(db, query, page, limit)
    return rows, total, page, limit
