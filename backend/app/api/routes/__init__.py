from fastapi import APIRouter

from app.api.routes import price_overrides, public


api_router = APIRouter()
api_router.include_router(price_overrides.router, prefix="/price-overrides", tags=["Price Overrides"])
api_router.include_router(public.router, prefix="/public", tags=["Public"])
