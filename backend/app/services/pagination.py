import math

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.schemas.price_override import Pagination


def normalize_page(page: int | None, limit: int | None, default_limit: int) -> tuple[int, int]:
    settings = get_settings()
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, min(limit, settings.max_page_limit)


def paginate(db: Session, query: Select, page: int, limit: int) -> tuple[list, int]:
    total = db.scalar(select(func.count()).select_from(query.order_by(None).subquery())) or 0
    rows = db.scalars(query.offset((page - 1) * limit).limit(limit)).all()
    return list(rows), total


def page_meta(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, totalPages=math.ceil(total / limit) if limit else 0)
