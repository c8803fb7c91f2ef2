from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_actor, require_permission
from app.db.session import get_db
from app.schemas.actor import ActorContext
from app.schemas.price_override import (
    EffectivePriceContext,
    HistoryFilter,
    PriceOverrideCreate,
    PriceOverrideFilter,
    PriceOverrideRead,
    PriceOverrideStatusUpdate,
    PriceOverrideUpdate,
)
from app.services.override_expiry import expire_overrides
from app.services.override_history import history_to_read, query_history
from app.services.override_resolution import resolve_effective_price
from app.services.pagination import page_meta
from app.services.price_overrides import (
    create_override,
    delete_override,
    get_override,
    list_overrides,
    list_overrides_by_sku,
    update_override,
    update_override_status,
)


router = APIRouter()


def serialize_override(row) -> dict:
    return PriceOverrideRead.from_model(row).model_dump(mode="json")


def history_page(db: Session, filters: HistoryFilter, page: int | None, limit: int | None) -> dict:
    rows, total, page, limit = query_history(db, filters, page, limit)
    return {
        "success": True,
        "data": [history_to_read(row).model_dump(mode="json") for row in rows],
        "pagination": page_meta(page, limit, total).model_dump(),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_price_override(
    payload: PriceOverrideCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_permission("price_overrides:write")),
) -> dict:
    override = create_override(db, payload, actor)
    return {
        "success": True,
        "message": "Price override created successfully",
        "data": serialize_override(override),
    }


@router.get("")
def list_price_overrides(
    sku_id: int | None = None,
    sku_code: str | None = None,
    state: str | None = None,
    district: str | None = None,
    area_id: int | None = None,
    machine_id: str | None = None,
    status: str | None = None,
    start_date_from: datetime | None = None,
    start_date_to: datetime | None = None,
    page: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_permission("price_overrides:view")),
) -> dict:
    filters = PriceOverrideFilter(
        sku_id=sku_id,
        sku_code=sku_code,
        state=state,
        district=district,
        area_id=area_id,
        machine_id=machine_id,
        status=status,
        start_date_from=start_date_from,
        start_date_to=start_date_to,
    )
    rows, total, page, limit = list_overrides(db, filters, page, limit)
    return {
        "success": True,
        "data": [serialize_override(row) for row in rows],
        "pagination": page_meta(page, limit, total).model_dump(),
    }


@router.get("/history")
def price_override_history(
    price_override_id: int | None = None,
    sku_id: int | None = None,
    action: str | None = None,
    user_id: int | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    page: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_permission("price_overrides:view")),
) -> dict:
    filters = HistoryFilter(
        price_override_id=price_override_id,
        sku_id=sku_id,
        action=action,
        user_id=user_id,
        from_date=from_date,
        to_date=to_date,
    )
    return history_page(db, filters, page, limit)


@router.post("/expire")
def trigger_expiry(
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_permission("price_overrides:expire")),
) -> dict:
    result = expire_overrides(db)
    if result.expired_count == 0:
        message = "No overrides needed to be expired. All active overrides are still within their valid date range."
    else:
        message = f"Successfully expired {result.expired_count} price override(s) that passed their end date."
    return {"success": True, "message": message, "data": result.model_dump(mode="json")}


@router.get("/sku/{sku_id}/effective-price")
def effective_price(
    sku_id: int,
    machine_id: str | None = None,
    area_id: int | None = None,
    district: str | None = None,
    state: str | None = None,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(get_current_actor),
) -> dict:
    context = EffectivePriceContext(machine_id=machine_id, area_id=area_id, district=district, state=state)
    result = resolve_effective_price(db, sku_id, context)
    return {"success": True, "data": result.model_dump(mode="json")}


@router.get("/sku/{sku_id}")
def price_overrides_by_sku(
    sku_id: int,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_permission("price_overrides:view")),
) -> dict:
    rows = list_overrides_by_sku(db, sku_id)
    return {"success": True, "data": [serialize_override(row) for row in rows], "total": len(rows)}


@router.get("/{override_id}")
def get_price_override(
    override_id: int,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_permission("price_overrides:view")),
) -> dict:
    return {"success": True, "data": serialize_override(get_override(db, override_id))}


@router.put("/{override_id}")
def update_price_override(
    override_id: int,
    payload: PriceOverrideUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_permission("price_overrides:write")),
) -> dict:
    override = update_override(db, override_id, payload, actor)
    return {
        "success": True,
        "message": "Price override updated successfully",
        "data": serialize_override(override),
    }


@router.patch("/{override_id}/status")
def update_price_override_status(
    override_id: int,
    payload: PriceOverrideStatusUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_permission("price_overrides:write")),
) -> dict:
    override = update_override_status(db, override_id, payload.status, actor)
    label = "activated" if override.status == "active" else "deactivated"
    return {
        "success": True,
        "message": f"Price override {label} successfully",
        "data": serialize_override(override),
    }


@router.delete("/{override_id}")
def delete_price_override(
    override_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_permission("price_overrides:write")),
) -> dict:
    delete_override(db, override_id, actor)
    return {"success": True, "message": "Price override deleted successfully"}


@router.get("/{override_id}/history")
def price_override_history_by_id(
    override_id: int,
    page: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    _: ActorContext = Depends(require_permission("price_overrides:view")),
) -> dict:
    return history_page(db, HistoryFilter(price_override_id=override_id), page, limit)
