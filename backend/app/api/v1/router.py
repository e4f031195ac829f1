from fastapi import APIRouter

from app.api.v1.endpoints import admin, paypal, plans, points, subscriptions

api_v1_router = APIRouter()

api_v1_router.include_router(paypal.router, prefix="/paypal", tags=["paypal"])
api_v1_router.include_router(points.router, prefix="/points", tags=["points"])
api_v1_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_v1_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_v1_router.include_router(admin.router, prefix="/admin", tags=["admin"])
