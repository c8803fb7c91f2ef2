import logging

from sqlalchemy.orm import Session

from app.models.area import Area
from app.models.product import Product

logger = logging.getLogger(__name__)


def seed_initial_data(db: Session) -> None:
    """Demo catalogue and areas for local runs. Production reads both from their owning services."""
    product_count = db.query(Product).count()
    if product_count == 0:
        db.add_all(
            [
                Product(sku="SKU-COLA-330", name="Cola Can 330ml", base_price=40.0, final_price=40.0),
                Product(sku="SKU-CHIPS-50", name="Salted Chips 50g", base_price=20.0, final_price=20.0),
                Product(sku="SKU-WATER-500", name="Mineral Water 500ml", base_price=15.0, final_price=15.0),
            ]
        )
        db.commit()
        logger.info("Seeded demo catalogue")

    area_count = db.query(Area).count()
    if area_count == 0:
        db.add_all(
            [
                Area(area_name="Whitefield Tech Park", state="Karnataka", district="Bengaluru Urban", pincode="560066"),
                Area(area_name="Electronic City Phase 1", state="Karnataka", district="Bengaluru Urban", pincode="560100"),
                Area(area_name="OMR IT Corridor", state="Tamil Nadu", district="Chennai", pincode="600097"),
            ]
        )
        db.commit()
        logger.info("Seeded demo areas")
