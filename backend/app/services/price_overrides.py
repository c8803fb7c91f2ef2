from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.config import get_settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.price_override import OVERRIDE_STATUSES, PriceOverride
from app.schemas.actor import ActorContext
from app.schemas.price_override import (
    PriceOverrideCreate,
    PriceOverrideFilter,
    PriceOverrideRead,
    PriceOverrideUpdate,
)
from app.services.catalogue import get_area, get_catalogue_entry
from app.services.override_conflicts import find_conflict
from app.services.override_history import diff_snapshots, record_history
from app.services.override_rules import (
    calculate_priority,
    clean_text,
    has_location_scope,
    scope_fields,
    validate_price,
    validate_reason,
    validate_status,
    validate_window,
)
from app.services.pagination import normalize_page, paginate

logger = logging.getLogger(__name__)


def _resolve_area_name(db: Session, area_id: int | None) -> str | None:
    if area_id is None:
        return None
    area = get_area(db, area_id)
    if not area:
        raise ValidationError("Area not found")
    return area.area_name


def _ensure_no_conflict(db: Session, sku_id: int, fields: dict[str, Any], start_date, end_date, exclude_id=None) -> None:
    conflicting = find_conflict(db, sku_id, fields, start_date, end_date, exclude_id=exclude_id)
    if conflicting:
        raise ConflictError(
            "A conflicting price override already exists for this SKU and location "
            f"(ID: {conflicting.id})",
            conflicting_id=conflicting.id,
        )


def create_override(db: Session, payload: PriceOverrideCreate, actor: ActorContext) -> PriceOverride:
    settings = get_settings()

    catalogue = get_catalogue_entry(db, payload.sku_id)
    if not catalogue:
        raise ValidationError("SKU not found in catalogue")

    area_name = _resolve_area_name(db, payload.area_id)
    location = payload.location
    fields: dict[str, Any] = {
        "state": clean_text(payload.state),
        "district": clean_text(payload.district),
        "area_id": payload.area_id,
        "location_campus": clean_text(location.campus) if location else None,
        "location_tower": clean_text(location.tower) if location else None,
        "location_floor": clean_text(location.floor) if location else None,
        "machine_id": clean_text(payload.machine_id),
    }
    if not has_location_scope(fields):
        raise ValidationError("At least one location level (state, district, area, location or machine) is required")

    validate_window(payload.start_date, payload.end_date)
    validate_price(payload.override_price)
    reason = validate_reason(payload.reason, settings.reason_max_length)

    _ensure_no_conflict(db, payload.sku_id, fields, payload.start_date, payload.end_date)

    override = PriceOverride(
        sku_id=catalogue.id,
        sku_code=catalogue.sku,
        product_name=catalogue.name,
        original_base_price=catalogue.base_price,
        area_name=area_name,
        override_price=payload.override_price,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=reason,
        status="active",
        priority=calculate_priority(fields),
        created_by=actor.user_id,
        **fields,
    )
    db.add(override)
    db.commit()
    db.refresh(override)

    record_history(db, "CREATE", actor, new_data=PriceOverrideRead.from_model(override))
    logger.info(
        "Price override created: id=%s sku=%s price=%s priority=%s",
        override.id,
        override.sku_code,
        override.override_price,
        override.priority,
    )
    return override


def get_override(db: Session, override_id: int) -> PriceOverride:
    override = db.scalar(select(PriceOverride).where(PriceOverride.id == override_id))
    if not override:
        raise NotFoundError("Price override not found")
    return override


def list_overrides(
    db: Session,
    filters: PriceOverrideFilter,
    page: int | None = None,
    limit: int | None = None,
) -> tuple[list[PriceOverride], int, int, int]:
    page, limit = normalize_page(page, limit, get_settings().override_page_size)

    query = select(PriceOverride)
    if filters.sku_id is not None:
        query = query.where(PriceOverride.sku_id == filters.sku_id)
    if filters.sku_code:
        query = query.where(PriceOverride.sku_code.ilike(f"%{filters.sku_code}%"))
    if filters.state:
        query = query.where(PriceOverride.state.ilike(f"%{filters.state}%"))
    if filters.district:
        query = query.where(PriceOverride.district.ilike(f"%{filters.district}%"))
    if filters.area_id is not None:
        query = query.where(PriceOverride.area_id == filters.area_id)
    if filters.machine_id:
        query = query.where(PriceOverride.machine_id == filters.machine_id)
    if filters.status:
        if filters.status not in OVERRIDE_STATUSES:
            raise ValidationError(f"Unknown status: {filters.status}")
        query = query.where(PriceOverride.status == filters.status)
    if filters.start_date_from:
        query = query.where(PriceOverride.start_date >= as_utc(filters.start_date_from))
    if filters.start_date_to:
        query = query.where(PriceOverride.start_date <= as_utc(filters.start_date_to))

    query = query.order_by(PriceOverride.created_at.desc(), PriceOverride.id.desc())
    rows, total = paginate(db, query, page, limit)
    return rows, total, page, limit


def list_overrides_by_sku(db: Session, sku_id: int) -> list[PriceOverride]:
    rows = db.scalars(
        select(PriceOverride)
        .where(PriceOverride.sku_id == sku_id, PriceOverride.status.in_(("active", "inactive")))
        .order_by(PriceOverride.priority.desc(), PriceOverride.created_at.desc(), PriceOverride.id.desc())
    ).all()
    return list(rows)


def update_override(
    db: Session,
    override_id: int,
    patch: PriceOverrideUpdate,
    actor: ActorContext,
    action: str | None = None,
) -> PriceOverride:
    settings = get_settings()
    override = get_override(db, override_id)
    before = PriceOverrideRead.from_model(override)
    data = patch.model_dump(exclude_unset=True)

    status = data.get("status")
    if status is not None:
        if override.status == "expired" and status != "expired":
            raise ValidationError("Expired price overrides cannot change status")
        validate_status(status)
    new_status = status or override.status

    original_scope = scope_fields(override)
    fields: dict[str, Any] = dict(original_scope)
    for key in ("state", "district", "machine_id"):
        if key in data:
            fields[key] = clean_text(data[key])
    area_name = override.area_name
    if "area_id" in data:
        fields["area_id"] = data["area_id"]
        area_name = _resolve_area_name(db, data["area_id"])
    if "location" in data:
        location = data["location"] or {}
        fields["location_campus"] = clean_text(location.get("campus"))
        fields["location_tower"] = clean_text(location.get("tower"))
        fields["location_floor"] = clean_text(location.get("floor"))
    if not has_location_scope(fields):
        raise ValidationError("At least one location level (state, district, area, location or machine) is required")

    start_date = data.get("start_date") or as_utc(override.start_date)
    end_date = data.get("end_date") or as_utc(override.end_date)
    validate_window(start_date, end_date)

    override_price = data.get("override_price")
    if override_price is not None:
        validate_price(override_price)
    else:
        override_price = override.override_price

    reason = override.reason
    if data.get("reason") is not None:
        reason = validate_reason(data["reason"], settings.reason_max_length)

    # Conflicts are re-checked only when scope, window or activation changes
    scope_changed = fields != original_scope
    window_changed = start_date != as_utc(override.start_date) or end_date != as_utc(override.end_date)
    reactivating = override.status != "active"
    if new_status == "active" and (scope_changed or window_changed or reactivating):
        _ensure_no_conflict(db, override.sku_id, fields, start_date, end_date, exclude_id=override.id)

    for key, value in fields.items():
        setattr(override, key, value)
    override.area_name = area_name
    override.start_date = start_date
    override.end_date = end_date
    override.override_price = override_price
    override.reason = reason
    override.status = new_status
    override.priority = calculate_priority(fields)
    override.updated_by = actor.user_id
    db.commit()
    db.refresh(override)

    after = PriceOverrideRead.from_model(override)
    changes = diff_snapshots(before, after)
    if action is None:
        action = "UPDATE"
        if changes and all(change.field == "status" for change in changes):
            action = "ACTIVATE" if after.status == "active" else "DEACTIVATE"

    record_history(db, action, actor, old_data=before, new_data=after, changes=changes)
    logger.info("Price override updated: id=%s action=%s changes=%s", override.id, action, len(changes))
    return override


def update_override_status(db: Session, override_id: int, status: str, actor: ActorContext) -> PriceOverride:
    validate_status(status)
    action = "ACTIVATE" if status == "active" else "DEACTIVATE"
    return update_override(db, override_id, PriceOverrideUpdate(status=status), actor, action=action)


def delete_override(db: Session, override_id: int, actor: ActorContext) -> PriceOverrideRead:
    override = get_override(db, override_id)
    snapshot = PriceOverrideRead.from_model(override)

    db.delete(override)
    db.commit()

    record_history(db, "DELETE", actor, old_data=snapshot)
    logger.info("Price override deleted: id=%s sku=%s", snapshot.id, snapshot.sku_code)
    return snapshot
