from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.area import Area
from app.models.product import Product


def get_catalogue_entry(db: Session, sku_id: int) -> Product | None:
    return db.scalar(select(Product).where(Product.id == sku_id, Product.is_active.is_(True)))


def get_area(db: Session, area_id: int) -> Area | None:
    return db.scalar(select(Area).where(Area.id == area_id))
